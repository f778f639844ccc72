"""
Run configuration for the quadtree-accelerated aggregation model.

Every tunable of a run lives on `DLAParams`. Values are checked once, at
construction; anything out of range raises `ConfigurationError` and is never
clamped into range.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple

from . import utils


class ConfigurationError(ValueError):
    """Raised for parameter sets that cannot describe a valid run."""


@dataclass
class DLAParams:
    # Domain and index
    width: float = 800.0
    height: float = 800.0
    max_depth: int = 5
    bucket_capacity: int = 8  # advisory only, reported by SpatialIndex.stats()

    # Motion
    step_size: float = 1.0
    kinematic: bool = False
    damping: float = 0.9
    max_speed: float = 2.0

    # Collision / fusion
    collision_radius: float = 2.0
    min_stick_distance: float = 1.0
    sticking_probability: float = 1.0
    decay_factor: float = 1.0  # 1.0 keeps the probability constant
    decay_interval: int = 1000
    min_sticking_probability: float = 0.0

    # Seeding and supply
    seed_count: int = 360
    seed_radius_fraction: float = 0.5
    reseed_count: int = 360
    reseed_aggregate_ratio: float = 0.5
    reseed_radius_fraction: float = 0.8
    reseed_ring_scale: float = 1.5
    reseed_interval: int = 100
    max_free_particles: int = 20_000
    recycle_batch: int = 360
    recycle_margin: float = 5.0

    # Density export
    export_interval: int = 500
    export_path: Optional[str] = "density.csv"
    area_factor: float = 2.0
    inclusive_boundary: bool = True

    # Run control
    seed: Optional[int] = None
    verbose: bool = True
    report_interval: int = 500

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not (self.width > 0.0 and self.height > 0.0):
            raise ConfigurationError(
                f"domain dimensions must be positive, got {self.width}x{self.height}"
            )
        if not (math.isfinite(self.width) and math.isfinite(self.height)):
            raise ConfigurationError("domain dimensions must be finite")
        if self.max_depth < 1:
            raise ConfigurationError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.bucket_capacity < 1:
            raise ConfigurationError("bucket_capacity must be >= 1")
        for name in ("sticking_probability", "min_sticking_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"{name} must lie in [0, 1], got {value}")
        if self.min_sticking_probability > self.sticking_probability:
            raise ConfigurationError(
                "min_sticking_probability cannot exceed sticking_probability"
            )
        if not 0.0 < self.decay_factor <= 1.0:
            raise ConfigurationError(
                f"decay_factor must lie in (0, 1], got {self.decay_factor}"
            )
        if self.step_size < 0.0:
            raise ConfigurationError("step_size must be >= 0")
        if self.collision_radius <= 0.0:
            raise ConfigurationError("collision_radius must be positive")
        if self.min_stick_distance < 0.0:
            raise ConfigurationError("min_stick_distance must be >= 0")
        if not 0.0 <= self.damping <= 1.0:
            raise ConfigurationError("damping must lie in [0, 1]")
        if self.max_speed <= 0.0:
            raise ConfigurationError("max_speed must be positive")
        if self.area_factor <= 0.0:
            raise ConfigurationError("area_factor must be positive")
        for name in ("seed_count", "reseed_count", "max_free_particles"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")
        for name in (
            "decay_interval",
            "reseed_interval",
            "recycle_batch",
            "export_interval",
            "report_interval",
        ):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be >= 1")
        for name in ("seed_radius_fraction", "reseed_radius_fraction"):
            if not 0.0 < getattr(self, name) <= 1.0:
                raise ConfigurationError(f"{name} must lie in (0, 1]")
        if self.reseed_aggregate_ratio <= 0.0:
            raise ConfigurationError("reseed_aggregate_ratio must be positive")
        if self.reseed_ring_scale < 1.0:
            raise ConfigurationError("reseed_ring_scale must be >= 1")
        if self.recycle_margin < 0.0:
            raise ConfigurationError("recycle_margin must be >= 0")

    # ------------------------------------------------------------------ geometry
    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """Domain rectangle as (x, y, width, height)."""
        return (0.0, 0.0, float(self.width), float(self.height))

    @property
    def center(self) -> Tuple[float, float]:
        return (self.width / 2.0, self.height / 2.0)

    @property
    def half_extent(self) -> float:
        return min(self.width, self.height) / 2.0

    # ------------------------------------------------------------------ loaders
    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "DLAParams":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown parameter(s): {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "DLAParams":
        return cls.from_dict(utils.load_params(path))


__all__ = ["ConfigurationError", "DLAParams"]
