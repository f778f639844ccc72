#!/usr/bin/env python3
"""
Quadtree DLA Runner

Runs the many-walker aggregation model for a fixed number of steps, exports
the radial density table on its cadence and saves the final cluster as .npz.
"""

import argparse
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from quad_dla import AggregationEngine, ConfigurationError, DLAParams, utils


def build_params(args: argparse.Namespace) -> DLAParams:
    """Config file first, then any explicitly given command-line overrides."""
    base = utils.load_params(args.config) if args.config else {}
    overrides = {
        "width": args.width,
        "height": args.height,
        "max_depth": args.max_depth,
        "step_size": args.step_size,
        "collision_radius": args.collision_radius,
        "min_stick_distance": args.min_stick_distance,
        "sticking_probability": args.sticking_probability,
        "decay_factor": args.decay_factor,
        "seed_count": args.seed_count,
        "export_interval": args.export_interval,
        "export_path": args.export_path,
        "seed": args.seed,
    }
    base.update({k: v for k, v in overrides.items() if v is not None})
    if args.kinematic:
        base["kinematic"] = True
    if args.quiet:
        base["verbose"] = False
    return DLAParams.from_dict(base)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Run a quadtree DLA simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--steps", type=int, default=5000, help="Number of simulation steps")
    parser.add_argument("--config", type=str, default=None, help="JSON or TOML parameter file")
    parser.add_argument("--width", type=float, default=None)
    parser.add_argument("--height", type=float, default=None)
    parser.add_argument("--max-depth", type=int, default=None)
    parser.add_argument("--step-size", type=float, default=None)
    parser.add_argument("--collision-radius", type=float, default=None)
    parser.add_argument("--min-stick-distance", type=float, default=None)
    parser.add_argument("--sticking-probability", type=float, default=None)
    parser.add_argument("--decay-factor", type=float, default=None)
    parser.add_argument("--seed-count", type=int, default=None)
    parser.add_argument("--export-interval", type=int, default=None)
    parser.add_argument("--export-path", type=str, default=None, help="Density table path")
    parser.add_argument("--kinematic", action="store_true", help="Use the velocity/acceleration walk")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducibility")
    parser.add_argument("--out", type=str, default=None, help="Output .npz path (auto-generated if omitted)")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")

    args = parser.parse_args(argv)

    try:
        params = build_params(args)
    except ConfigurationError as exc:
        parser.error(str(exc))

    if params.verbose:
        print(
            f"Running quadtree DLA: {args.steps} steps, domain {params.width:g}x{params.height:g}, "
            f"depth {params.max_depth}, seed={params.seed}"
        )
    start_time = time.time()
    engine = AggregationEngine(params)
    result = engine.run(args.steps)
    elapsed_time = time.time() - start_time

    if args.out is None:
        output_dir = Path("results")
        output_dir.mkdir(exist_ok=True)
        args.out = str(output_dir / f"quadtree_T{args.steps}_S{params.seed}_{utils.now_str()}.npz")
    utils.save_cluster_result(args.out, result)

    if params.verbose:
        print(f"\nSimulation completed in {elapsed_time:.2f} seconds")
        print(f"   Aggregated particles: {result.positions.shape[0]}")
        print(f"   Output saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
