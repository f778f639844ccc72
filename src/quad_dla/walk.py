from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from numba import njit

from .particles import STUCK, ParticleStore


def _movable(store: ParticleStore, handles: Sequence[int]) -> np.ndarray:
    idx = np.asarray(handles, dtype=np.int64)
    if idx.size == 0:
        return idx
    return idx[store.states[idx] != STUCK]


class RandomWalkStepper:
    """
    Uniform box random walk: each free particle moves by (dx, dy) with both
    components drawn from U(-1, 1) * step_size, then is clamped to the domain.
    Draws follow the order of `handles` (the free list, which the engine
    refills from the index each step), so a seeded generator replays exactly.
    """

    def __init__(self, step_size: float = 1.0) -> None:
        self.step_size = float(step_size)

    def step(self, store: ParticleStore, handles: Sequence[int], rng: np.random.Generator) -> None:
        idx = _movable(store, handles)
        if idx.size == 0:
            return
        draws = rng.uniform(-1.0, 1.0, size=(idx.size, 2))
        store.positions[idx] = store.clamp(store.positions[idx] + draws * self.step_size)


@njit(cache=True, fastmath=True)
def _integrate_kernel(
    positions, velocities, accelerations, idx, draws,
    step_size, damping, max_speed, x0, y0, x1, y1,
):
    for k in range(idx.shape[0]):
        i = idx[k]
        ax = draws[k, 0] * step_size
        ay = draws[k, 1] * step_size
        accelerations[i, 0] = ax
        accelerations[i, 1] = ay

        vx = damping * velocities[i, 0] + ax
        vy = damping * velocities[i, 1] + ay
        speed = math.sqrt(vx * vx + vy * vy)
        if speed > max_speed:
            vx *= max_speed / speed
            vy *= max_speed / speed

        px = positions[i, 0] + vx
        py = positions[i, 1] + vy
        if px < x0:
            px = x0
            vx = 0.0
        elif px > x1:
            px = x1
            vx = 0.0
        if py < y0:
            py = y0
            vy = 0.0
        elif py > y1:
            py = y1
            vy = 0.0

        positions[i, 0] = px
        positions[i, 1] = py
        velocities[i, 0] = vx
        velocities[i, 1] = vy


class KinematicStepper:
    """
    Random acceleration walk. Velocity is damped, accelerated by a uniform
    draw and capped at `max_speed`; hitting a wall zeroes that velocity axis.
    """

    def __init__(self, step_size: float = 1.0, damping: float = 0.9, max_speed: float = 2.0) -> None:
        self.step_size = float(step_size)
        self.damping = float(damping)
        self.max_speed = float(max_speed)

    def step(self, store: ParticleStore, handles: Sequence[int], rng: np.random.Generator) -> None:
        idx = _movable(store, handles)
        if idx.size == 0:
            return
        draws = rng.uniform(-1.0, 1.0, size=(idx.size, 2))
        x, y, w, h = store.bounds
        _integrate_kernel(
            store.positions, store.velocities, store.accelerations, idx, draws,
            self.step_size, self.damping, self.max_speed, x, y, x + w, y + h,
        )


__all__ = ["RandomWalkStepper", "KinematicStepper"]
