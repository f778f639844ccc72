"""
Tests for the radial density profile and its export format.
"""

import math
import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1] / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from quad_dla import utils
from quad_dla.density import DensityProfiler, mass_radius_dimension

BOUNDS = (0.0, 0.0, 100.0, 100.0)
CENTER = (50.0, 50.0)


def test_single_center_particle_inclusive_boundary():
    profiler = DensityProfiler(BOUNDS, max_depth=4, inclusive=True)
    table = profiler.profile(np.array([CENTER]), CENTER)
    assert table.shape == (1, 4)
    r, count, area, density = table[0]
    assert (r, count, area, density) == (0.0, 1.0, 0.0, 0.0)


def test_single_center_particle_exclusive_boundary():
    profiler = DensityProfiler(BOUNDS, max_depth=4, inclusive=False)
    table = profiler.profile(np.array([CENTER]), CENTER)
    assert table.shape == (1, 4)
    assert table[0, 1] == 0.0


def test_rows_use_two_pi_r_squared():
    pts = np.array([CENTER, [53.0, 50.0], [50.0, 55.0]])
    table = DensityProfiler(BOUNDS, max_depth=5).profile(pts, CENTER)

    np.testing.assert_array_equal(table[:, 0], [0, 1, 2, 3, 4, 5])
    np.testing.assert_array_equal(table[:, 1], [1, 1, 1, 2, 2, 3])
    np.testing.assert_allclose(table[1:, 2], 2.0 * math.pi * table[1:, 0] ** 2)
    assert table[3, 3] == pytest.approx(2.0 / (2.0 * math.pi * 9.0))


def test_exclusive_boundary_shifts_counts():
    pts = np.array([CENTER, [53.0, 50.0], [50.0, 55.0]])
    table = DensityProfiler(BOUNDS, max_depth=5, inclusive=False).profile(pts, CENTER)
    np.testing.assert_array_equal(table[:, 1], [0, 1, 1, 1, 2, 2])


def test_disk_area_factor():
    pts = np.array([CENTER, [52.0, 50.0]])
    table = DensityProfiler(BOUNDS, area_factor=1.0).profile(pts, CENTER)
    assert table[2, 2] == pytest.approx(math.pi * 4.0)
    assert table[2, 3] == pytest.approx(2.0 / (math.pi * 4.0))


def test_fractional_extent_stops_at_floor():
    pts = np.array([CENTER, [53.7, 50.0]])
    table = DensityProfiler(BOUNDS).profile(pts, CENTER)
    np.testing.assert_array_equal(table[:, 0], [0, 1, 2, 3])
    # the outer particle lies beyond the last integer radius
    assert table[-1, 1] == 1


def test_empty_aggregate_gives_empty_table():
    table = DensityProfiler(BOUNDS).profile(np.empty((0, 2)), CENTER)
    assert table.shape == (0, 4)


def test_profile_leaves_index_intact():
    rng = np.random.default_rng(0)
    pts = rng.uniform(30.0, 70.0, size=(200, 2))
    profiler = DensityProfiler(BOUNDS, max_depth=5)
    table = profiler.profile(pts, CENTER)
    assert profiler.index.size() == 200
    assert np.all(np.diff(table[:, 1]) >= 0)
    assert table[-1, 1] <= 200


def test_density_table_file_format(tmp_path):
    pts = np.array([CENTER, [52.0, 50.0]])
    table = DensityProfiler(BOUNDS).profile(pts, CENTER)
    path = tmp_path / "out" / "density.csv"
    utils.write_density_table(path, table, sticking_probability=0.5)

    lines = path.read_text().splitlines()
    assert lines[0] == "# sticking_probability=0.5"
    assert len(lines) == 4
    assert lines[1].split(",")[:3] == ["0", "1", "0"]
    assert all(len(line.split(",")) == 4 for line in lines[1:])

    loaded, sticking = utils.read_density_table(path)
    assert sticking == 0.5
    np.testing.assert_allclose(loaded, table)


def test_mass_radius_dimension_recovers_power_law():
    r = np.arange(0, 40, dtype=float)
    count = np.round(3.0 * r ** 1.7)
    area = 2.0 * math.pi * r ** 2
    density = np.divide(count, area, out=np.zeros_like(count), where=area > 0)
    table = np.column_stack((r, count, area, density))

    dim, r_sq, _ = mass_radius_dimension(table, r_min=2.0)
    assert dim == pytest.approx(1.7, abs=0.02)
    assert r_sq > 0.99


def test_mass_radius_dimension_needs_rows():
    table = np.array([[0, 1, 0, 0], [1, 1, 6.28, 0.16]], dtype=float)
    with pytest.raises(ValueError):
        mass_radius_dimension(table)
