"""
Radial Density Plotter for quadtree DLA density tables.
"""
import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from quad_dla import mass_radius_dimension, utils


def render_profile(table, output_path, sticking_probability=None, r_min=1.0):
    """
    Two panels: count within r on log-log axes with the mass-radius fit, and
    density against r. Returns the fitted dimension, or None when the table is
    too short to fit.
    """
    table = np.asarray(table, dtype=np.float64).reshape(-1, 4)
    r, count, _area, density = table.T

    try:
        dim, r_sq, intercept = mass_radius_dimension(table, r_min=r_min)
    except ValueError:
        dim = r_sq = intercept = None

    fig, (ax_mass, ax_rho) = plt.subplots(1, 2, figsize=(12, 5))

    mask = (r > 0) & (count > 0)
    ax_mass.loglog(r[mask], count[mask], "o", ms=3, color="k", label="N(r)")
    if dim is not None:
        fit_r = r[mask & (r >= r_min)]
        ax_mass.loglog(fit_r, np.exp(intercept) * fit_r ** dim, "r-",
                       label=f"D = {dim:.3f} (R² = {r_sq:.3f})")
    ax_mass.set_xlabel("r")
    ax_mass.set_ylabel("count within r")
    ax_mass.legend()

    ax_rho.plot(r[r > 0], density[r > 0], "-", color="tab:blue")
    ax_rho.set_xlabel("r")
    ax_rho.set_ylabel("density")

    title = "Radial density profile"
    if sticking_probability is not None:
        title += f" | p_stick = {sticking_probability:.3g}"
    fig.suptitle(title)

    if output_path:
        plt.savefig(output_path, dpi=150, bbox_inches="tight")
        print(f"Saved to {output_path}")
    plt.close(fig)
    return dim


def main(argv=None):
    parser = argparse.ArgumentParser(description="Radial density plotter")
    parser.add_argument("file", help="Density table (.csv) or cluster (.npz)")
    parser.add_argument("--r-min", type=float, default=1.0, help="Smallest radius used in the fit")
    parser.add_argument("--out", default=None, help="Output filename")
    args = parser.parse_args(argv)

    in_path = Path(args.file)
    if in_path.suffix == ".npz":
        result = utils.load_cluster(in_path)
        table = result.density
        sticking = (result.meta or {}).get("sticking_probability")
    else:
        table, sticking = utils.read_density_table(in_path)

    out_path = args.out or str(in_path.parent / (in_path.stem + "_profile.png"))
    dim = render_profile(table, out_path, sticking, args.r_min)
    if dim is not None:
        print(f"Mass-radius dimension: {dim:.3f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
