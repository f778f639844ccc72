"""
Quadtree DLA - many-walker diffusion-limited aggregation.

This package provides:
- SpatialIndex: depth-bounded region quadtree with consuming radius search
- ParticleStore: handle-based arena of free, aggregated and rejected particles
- RandomWalkStepper / KinematicStepper: per-step particle motion
- AggregationEngine: rebuild-query-fuse simulation loop
- DensityProfiler: radial density table of the aggregate
"""

from .params import ConfigurationError, DLAParams
from .quadtree import SpatialIndex
from .particles import ParticleStore
from .walk import KinematicStepper, RandomWalkStepper
from .density import DensityProfiler, mass_radius_dimension
from .aggregation import AggregationEngine, StepStats, run_model
from . import utils

__all__ = [
    # Core
    "SpatialIndex",
    "ParticleStore",
    "RandomWalkStepper",
    "KinematicStepper",
    "AggregationEngine",
    "DensityProfiler",
    "StepStats",
    "run_model",
    "mass_radius_dimension",
    # Configuration
    "DLAParams",
    "ConfigurationError",
    # Utilities
    "utils",
]
