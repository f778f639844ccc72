"""
Aggregate plotter: aggregated particles coloured by arrival order, optional
free particles and the quadtree cells built over the aggregate.
"""
import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Rectangle

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from quad_dla import SpatialIndex, utils


def index_cells(positions, bounds, max_depth):
    """Rectangles of every quadtree node that holds at least one particle."""
    index = SpatialIndex(bounds, max_depth)
    index.insert_points(range(len(positions)), positions)
    return [(depth, rect) for depth, rect, items in index.iter_buckets() if items]


def render_aggregate(result, output_path, show_free=False, show_index=False, cmap="viridis"):
    pos = result.positions
    if pos is None or len(pos) == 0:
        raise ValueError("No aggregate positions found.")
    meta = result.meta or {}
    width = float(meta.get("width", pos[:, 0].max() * 2.0))
    height = float(meta.get("height", pos[:, 1].max() * 2.0))

    fig, ax = plt.subplots(figsize=(10, 10))
    ages = np.linspace(0.0, 1.0, len(pos))

    if show_free and "free_positions" in meta and len(meta["free_positions"]):
        free = np.asarray(meta["free_positions"])
        ax.scatter(free[:, 0], free[:, 1], s=0.5, c="lightgrey", label="free")

    if show_index:
        depth_limit = int(meta.get("max_depth", 5))
        for depth, (x, y, w, h) in index_cells(pos, (0.0, 0.0, width, height), depth_limit):
            ax.add_patch(Rectangle((x, y), w, h, fill=False, lw=0.4,
                                   ec="tab:green", alpha=0.3 + 0.7 * depth / depth_limit))

    sc = ax.scatter(pos[:, 0], pos[:, 1], s=1.0, c=ages, cmap=cmap)
    plt.colorbar(sc, label="arrival order (normalised)")

    ax.set_xlim(0, width)
    ax.set_ylim(0, height)
    ax.set_aspect("equal")
    ax.set_title(f"Quadtree DLA | N = {len(pos)} | steps = {meta.get('steps', '?')}")

    if output_path:
        plt.savefig(output_path, dpi=200, bbox_inches="tight")
        print(f"Saved to {output_path}")
    plt.close(fig)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Plot a saved quadtree DLA cluster")
    parser.add_argument("file", help="Input .npz file")
    parser.add_argument("--free", action="store_true", help="Also draw free particles")
    parser.add_argument("--index", action="store_true", help="Overlay occupied quadtree cells")
    parser.add_argument("--cmap", default="viridis", help="Matplotlib colormap")
    parser.add_argument("--out", default=None, help="Output filename")
    args = parser.parse_args(argv)

    result = utils.load_cluster(args.file)
    in_path = Path(args.file)
    out_path = args.out or str(in_path.parent / (in_path.stem + "_aggregate.png"))
    render_aggregate(result, out_path, args.free, args.index, args.cmap)
    return 0


if __name__ == "__main__":
    sys.exit(main())
