"""
Particle arena for the aggregation model.

All particle records live in one set of numpy arrays and are addressed by
integer handle. The free list, the aggregate list and the pending-recycle list
hold handles only, so a particle is never copied between collections.
Recycling rewrites a rejected record in place, so the arena grows with the
live population rather than with the number of rejections.
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple

import numpy as np

from . import utils

FREE = 0
STUCK = 1
REJECTED = 2

TAGS = {FREE: "free", STUCK: "stuck", REJECTED: "rejected"}


class ParticleStore:
    def __init__(self, bounds: Tuple[float, float, float, float], capacity: int = 1024) -> None:
        self.bounds = tuple(float(v) for v in bounds)
        self._capacity = max(1, int(capacity))
        self.positions = np.zeros((self._capacity, 2), dtype=np.float64)
        self.velocities = np.zeros((self._capacity, 2), dtype=np.float64)
        self.accelerations = np.zeros((self._capacity, 2), dtype=np.float64)
        self.states = np.zeros(self._capacity, dtype=np.int8)
        self.count = 0

        self.free: List[int] = []
        self.aggregate: List[int] = []
        self.pending: List[int] = []
        self.recycled_total = 0
        self.reseeded_total = 0

    # ------------------------------------------------------------------ geometry
    @property
    def center(self) -> Tuple[float, float]:
        x, y, w, h = self.bounds
        return (x + w / 2.0, y + h / 2.0)

    @property
    def half_extent(self) -> float:
        return min(self.bounds[2], self.bounds[3]) / 2.0

    def clamp(self, pts: np.ndarray) -> np.ndarray:
        """Clamp (N, 2) positions into the closed domain rectangle."""
        x, y, w, h = self.bounds
        out = np.asarray(pts, dtype=np.float64).reshape(-1, 2).copy()
        np.clip(out[:, 0], x, x + w, out=out[:, 0])
        np.clip(out[:, 1], y, y + h, out=out[:, 1])
        return out

    # ------------------------------------------------------------------ arena
    def _ensure_capacity(self, extra: int) -> None:
        needed = self.count + extra
        if needed <= self._capacity:
            return
        new_cap = max(needed, self._capacity * 2)
        for name in ("positions", "velocities", "accelerations"):
            arr = np.zeros((new_cap, 2), dtype=np.float64)
            arr[: self.count] = getattr(self, name)[: self.count]
            setattr(self, name, arr)
        states = np.zeros(new_cap, dtype=np.int8)
        states[: self.count] = self.states[: self.count]
        self.states = states
        self._capacity = new_cap

    def add(self, positions: np.ndarray, state: int = FREE) -> np.ndarray:
        """Allocate records at the given positions and file them by `state`."""
        pts = self.clamp(positions)
        n = pts.shape[0]
        self._ensure_capacity(n)
        handles = np.arange(self.count, self.count + n, dtype=np.int64)
        self.positions[handles] = pts
        self.velocities[handles] = 0.0
        self.accelerations[handles] = 0.0
        self.states[handles] = state
        self.count += n

        if state == FREE:
            self.free.extend(handles.tolist())
        elif state == STUCK:
            self.aggregate.extend(handles.tolist())
        else:
            self.pending.extend(handles.tolist())
        return handles

    def seed(self, count: int, radius: float, shape: str = "ring") -> np.ndarray:
        """
        Lay `count` free particles on a ring of `radius` around the domain
        center and place one aggregate nucleus at the center.
        """
        if shape not in ("ring", "circle"):
            raise ValueError(f"Unsupported seed shape: {shape}")
        self.add(np.array([self.center]), state=STUCK)
        return self.add(utils.ring_points(count, radius, self.center), state=FREE)

    # ------------------------------------------------------------------ transitions
    def fuse(self, handle: int) -> None:
        self.states[handle] = STUCK
        self.aggregate.append(int(handle))

    def reject(self, handle: int) -> None:
        self.states[handle] = REJECTED
        self.pending.append(int(handle))

    # ------------------------------------------------------------------ views
    def free_positions(self) -> np.ndarray:
        return self.positions[np.asarray(self.free, dtype=np.int64)]

    def aggregate_positions(self) -> np.ndarray:
        return self.positions[np.asarray(self.aggregate, dtype=np.int64)]

    def max_radius(self) -> float:
        """Largest aggregate distance from the domain center; 0.0 when empty."""
        if not self.aggregate:
            return 0.0
        return float(utils.radial_distances(self.aggregate_positions(), self.center).max())

    # ------------------------------------------------------------------ supply
    def needs_reseed(self, aggregate_ratio: float, radius_fraction: float) -> bool:
        if self.max_radius() > radius_fraction * self.half_extent:
            return True
        return len(self.aggregate) > aggregate_ratio * len(self.free)

    def reseed_ring(
        self, count: int, ring_scale: float, rng: np.random.Generator, gap: float = 1.0
    ) -> np.ndarray:
        """
        Inject a ring of free particles outside the current aggregate, at
        `ring_scale` times its radius but never closer than `gap` beyond it.
        """
        max_r = self.max_radius()
        radius = min(max(max_r * ring_scale, max_r + gap), self.half_extent)
        phase = rng.uniform(0.0, 2.0 * math.pi / max(count, 1))
        handles = self.add(utils.ring_points(count, radius, self.center, phase), state=FREE)
        self.reseeded_total += handles.size
        return handles

    def reseed_on_growth(
        self,
        aggregate_ratio: float,
        radius_fraction: float,
        count: int,
        ring_scale: float,
        rng: np.random.Generator,
        max_free: Optional[int] = None,
        gap: float = 1.0,
    ) -> np.ndarray:
        if count <= 0 or not self.needs_reseed(aggregate_ratio, radius_fraction):
            return np.empty(0, dtype=np.int64)
        if max_free is not None:
            count = min(count, max_free - len(self.free))
            if count <= 0:
                return np.empty(0, dtype=np.int64)
        return self.reseed_ring(count, ring_scale, rng, gap=gap)

    def recycle_rejected(
        self, batch: int, margin: float, rng: np.random.Generator
    ) -> np.ndarray:
        """
        Once `batch` rejected particles are pending, return them to the free
        list on a circle `margin` beyond the aggregate; below the threshold
        nothing happens. Records are reused in place with motion reset.
        """
        if len(self.pending) < batch:
            return np.empty(0, dtype=np.int64)
        handles = np.asarray(self.pending, dtype=np.int64)
        n = handles.size
        radius = min(self.max_radius() + margin, self.half_extent)
        theta = rng.uniform(0.0, 2.0 * math.pi, size=n)
        cx, cy = self.center
        pts = np.column_stack((cx + radius * np.cos(theta), cy + radius * np.sin(theta)))
        self.positions[handles] = self.clamp(pts)
        self.velocities[handles] = 0.0
        self.accelerations[handles] = 0.0
        self.states[handles] = FREE
        self.pending = []
        self.free.extend(handles.tolist())
        self.recycled_total += n
        return handles


__all__ = ["FREE", "STUCK", "REJECTED", "TAGS", "ParticleStore"]
