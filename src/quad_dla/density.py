"""
Radial density profile of an aggregate.

The aggregate is bucketed into its own quadtree and queried with concentric,
non-consuming radius searches around the domain center, one per integer
radius from 0 up to the aggregate's extent. Each row is

    (r, count_within_r, area_factor * pi * r**2, count / area)

`area_factor` defaults to 2.0, reproducing the 2*pi*r**2 area term of the
historic output files; pass 1.0 for the ordinary disk area.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np
from scipy.stats import linregress

from . import utils
from .quadtree import Rect, SpatialIndex


class DensityProfiler:
    def __init__(
        self,
        bounds: Rect,
        max_depth: int = 5,
        bucket_capacity: int = 8,
        area_factor: float = 2.0,
        inclusive: bool = True,
    ) -> None:
        self.index = SpatialIndex(bounds, max_depth, bucket_capacity)
        self.area_factor = float(area_factor)
        self.inclusive = bool(inclusive)

    def build(self, positions: np.ndarray) -> SpatialIndex:
        pts = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        self.index.clear()
        self.index.insert_points(range(pts.shape[0]), pts)
        return self.index

    def profile(self, positions: np.ndarray, center: Tuple[float, float]) -> np.ndarray:
        """
        Return a (rows, 4) array of radius, count, area, density.

        An empty aggregate yields an empty table. The r = 0 row has zero area
        and reports a density of 0.0.
        """
        pts = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        if pts.shape[0] == 0:
            return np.empty((0, 4), dtype=np.float64)

        self.build(pts)
        max_r = float(utils.radial_distances(pts, center).max())
        radii = np.arange(0, int(math.floor(max_r)) + 1, dtype=np.float64)

        table = np.zeros((radii.size, 4), dtype=np.float64)
        for row, r in enumerate(radii):
            count = len(self.index.search(center, r, consuming=False, inclusive=self.inclusive))
            area = self.area_factor * math.pi * r * r
            table[row] = (r, count, area, count / area if area > 0.0 else 0.0)
        return table


def mass_radius_dimension(table: np.ndarray, r_min: float = 1.0, r_max: float | None = None):
    """
    Fit log(count) = D * log(r) + c over the profile rows with r_min <= r <= r_max.

    Returns (D, r_squared, intercept). Raises ValueError with fewer than three
    usable rows.
    """
    table = np.asarray(table, dtype=np.float64).reshape(-1, 4)
    r = table[:, 0]
    n = table[:, 1]
    mask = (r >= r_min) & (n > 0)
    if r_max is not None:
        mask &= r <= r_max
    if np.count_nonzero(mask) < 3:
        raise ValueError("Too few profile rows for a mass-radius fit.")
    fit = linregress(np.log(r[mask]), np.log(n[mask]))
    return float(fit.slope), float(fit.rvalue ** 2), float(fit.intercept)


__all__ = ["DensityProfiler", "mass_radius_dimension"]
