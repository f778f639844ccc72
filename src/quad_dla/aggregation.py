"""
Quadtree-accelerated many-walker DLA.

Unlike the one-walker-at-a-time models, every free particle moves on every
step. A step is:

1. random-walk all free particles;
2. rebuild the free-particle quadtree from scratch;
3. for each aggregate particle, in aggregate order, consume every free
   particle within `collision_radius`;
4. fuse each consumed candidate when it is at least `min_stick_distance` away
   and a uniform draw is <= the sticking probability, otherwise reject it;
5. the free list becomes whatever is left in the quadtree;
6. recycle rejected particles in batches, decay the sticking probability,
   reseed on growth and export the density profile on their cadences.

An aggregate particle processed earlier claims a shared candidate first.
Particles fused during a step start capturing on the next step.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Iterator, List, Sequence, Tuple

import numpy as np

from . import utils
from .density import DensityProfiler
from .params import DLAParams
from .particles import TAGS, FREE, STUCK, ParticleStore
from .quadtree import SpatialIndex
from .walk import KinematicStepper, RandomWalkStepper

Pair = Tuple[Tuple[float, float], str]


@dataclass
class StepStats:
    step: int
    fused: int
    rejected: int
    recycled: int
    reseeded: int
    free: int
    aggregate: int
    sticking_probability: float


class AggregationEngine:
    """
    Owns one run: parameters, random source, particle arena, free-particle
    index and density profiler. Nothing is shared between engines.
    """

    def __init__(
        self,
        params: DLAParams | None = None,
        rng: np.random.Generator | None = None,
        seed_ring: bool = True,
    ) -> None:
        self.params = params or DLAParams()
        p = self.params
        self.rng = rng if rng is not None else utils.make_rng(p.seed)

        self.store = ParticleStore(p.bounds, capacity=max(1024, 2 * p.seed_count))
        self.index = SpatialIndex(p.bounds, p.max_depth, p.bucket_capacity)
        self.profiler = DensityProfiler(
            p.bounds, p.max_depth, p.bucket_capacity,
            area_factor=p.area_factor, inclusive=p.inclusive_boundary,
        )
        if p.kinematic:
            self.stepper = KinematicStepper(p.step_size, p.damping, p.max_speed)
        else:
            self.stepper = RandomWalkStepper(p.step_size)

        self.sticking_probability = float(p.sticking_probability)
        self.steps = 0
        self.fused_total = 0
        self.rejected_total = 0
        self.exports = 0
        self._last_reseed = 0

        if seed_ring:
            self.store.seed(p.seed_count, p.seed_radius_fraction * p.half_extent)

    # ------------------------------------------------------------------ step
    def rebuild_index(self) -> SpatialIndex:
        self.index.clear()
        self.index.insert_points(self.store.free, self.store.free_positions())
        return self.index

    def resolve_collisions(self) -> Tuple[int, int]:
        """Consume candidates around every aggregate particle; return (fused, rejected)."""
        p = self.params
        store = self.store
        fused = rejected = 0
        for a in list(store.aggregate):
            ax, ay = store.positions[a]
            for cand in self.index.search((ax, ay), p.collision_radius, consuming=True):
                cx, cy = store.positions[cand]
                dist = math.hypot(cx - ax, cy - ay)
                if dist >= p.min_stick_distance and self.rng.random() <= self.sticking_probability:
                    store.fuse(cand)
                    fused += 1
                else:
                    store.reject(cand)
                    rejected += 1
        return fused, rejected

    def decay_sticking_probability(self) -> None:
        p = self.params
        if p.decay_factor < 1.0 and self.steps % p.decay_interval == 0:
            self.sticking_probability = max(
                p.min_sticking_probability, self.sticking_probability * p.decay_factor
            )

    def step(self) -> StepStats:
        p = self.params
        store = self.store

        self.stepper.step(store, store.free, self.rng)
        self.rebuild_index()
        fused, rejected = self.resolve_collisions()
        store.free = [int(h) for h in self.index.return_all(0)]

        recycled = store.recycle_rejected(p.recycle_batch, p.recycle_margin, self.rng).size
        self.steps += 1
        self.fused_total += fused
        self.rejected_total += rejected
        self.decay_sticking_probability()

        reseeded = 0
        if self.steps - self._last_reseed >= p.reseed_interval:
            reseeded = store.reseed_on_growth(
                p.reseed_aggregate_ratio,
                p.reseed_radius_fraction,
                p.reseed_count,
                p.reseed_ring_scale,
                self.rng,
                max_free=p.max_free_particles,
                gap=p.collision_radius + p.recycle_margin,
            ).size
            if reseeded:
                self._last_reseed = self.steps

        if p.export_path and self.steps % p.export_interval == 0:
            self.export_density()

        return StepStats(
            step=self.steps,
            fused=fused,
            rejected=rejected,
            recycled=int(recycled),
            reseeded=int(reseeded),
            free=len(store.free),
            aggregate=len(store.aggregate),
            sticking_probability=self.sticking_probability,
        )

    def run(self, steps: int) -> utils.ClusterResult:
        p = self.params
        t_start = time.perf_counter()
        for _ in range(int(steps)):
            stats = self.step()
            if p.verbose and stats.step % p.report_interval == 0:
                elapsed = time.perf_counter() - t_start
                rate = stats.step / elapsed if elapsed > 0 else 0.0
                idx = self.index.stats()
                print(
                    f"[quad_dla] step {stats.step}: free={stats.free}, "
                    f"aggregate={stats.aggregate}, R_max={self.store.max_radius():.1f}, "
                    f"p_stick={stats.sticking_probability:.3f}, nodes={idx['nodes']}, "
                    f"{rate:.0f} steps/s"
                )
        if p.verbose:
            elapsed = time.perf_counter() - t_start
            print(
                f"Simulation completed: {steps} steps, {len(self.store.aggregate)} aggregated "
                f"in {elapsed:.2f}s"
            )
        return self.result()

    # ------------------------------------------------------------------ outputs
    def profile(self) -> np.ndarray:
        return self.profiler.profile(self.store.aggregate_positions(), self.store.center)

    def export_density(self, path: str | None = None) -> np.ndarray:
        table = self.profile()
        utils.write_density_table(
            path or self.params.export_path, table, self.sticking_probability
        )
        self.exports += 1
        return table

    def iter_free(self) -> Iterator[Tuple[float, float]]:
        for h in self.store.free:
            x, y = self.store.positions[h]
            yield (float(x), float(y))

    def iter_aggregate(self) -> Iterator[Tuple[float, float]]:
        for h in self.store.aggregate:
            x, y = self.store.positions[h]
            yield (float(x), float(y))

    def pairs(self) -> List[Pair]:
        """Every held particle once, as ((x, y), tag): free first, then aggregate."""
        out: List[Pair] = [(pos, TAGS[FREE]) for pos in self.iter_free()]
        out.extend((pos, TAGS[STUCK]) for pos in self.iter_aggregate())
        return out

    def emit(self, sink: Callable[[Sequence[Pair]], None]) -> None:
        sink(self.pairs())

    def result(self) -> utils.ClusterResult:
        p = self.params
        meta = {
            "model": "quadtree",
            "steps": int(self.steps),
            "width": float(p.width),
            "height": float(p.height),
            "max_depth": int(p.max_depth),
            "collision_radius": float(p.collision_radius),
            "min_stick_distance": float(p.min_stick_distance),
            "sticking_probability": float(self.sticking_probability),
            "fused": int(self.fused_total),
            "rejected": int(self.rejected_total),
            "recycled": int(self.store.recycled_total),
            "reseeded": int(self.store.reseeded_total),
            "R_max": float(self.store.max_radius()),
            "seed": p.seed,
            "free_positions": self.store.free_positions().copy(),
        }
        return utils.ClusterResult(
            positions=self.store.aggregate_positions().copy(),
            density=self.profile(),
            meta=meta,
        )


def run_model(params: DLAParams | dict | None = None, steps: int = 1000) -> utils.ClusterResult:
    """
    Run the quadtree DLA model for `steps` steps and return a ClusterResult.
    """
    if params is None:
        params = DLAParams()
    elif isinstance(params, dict):
        params = DLAParams.from_dict(params)
    engine = AggregationEngine(params)
    return engine.run(steps)


__all__ = ["AggregationEngine", "StepStats", "run_model"]
