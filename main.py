from __future__ import annotations

import argparse
import sys
from pathlib import Path

from fractalfarm.config import default_render_config, load_named_sweep_configs
from fractalfarm.execution import run_local, run_single_render, run_sweep


def parse_args():
    parser = argparse.ArgumentParser(description="Render an escape-time fractal on an MPI worker farm.")
    parser.add_argument("--sweep", type=str, help="Path to sweep YAML file")
    parser.add_argument("--suite", type=str, help="Name of suite/experiment within sweep file")
    parser.add_argument("--list-suites", action="store_true", help="List suites in sweep file")
    parser.add_argument("--task-id", type=int, help="Run specific config index (for HPC arrays)")
    parser.add_argument(
        "--local",
        type=int,
        metavar="N_WORKERS",
        help="Run with N in-process worker threads instead of MPI ranks",
    )

    # Direct run parameters
    parser.add_argument("--n-ranks", type=int, help="Process count (informational under mpirun)")
    parser.add_argument("--chunk-size", type=int, help="Rows per chunk")
    parser.add_argument("--image-size", type=str, help="Canvas as WIDTHxHEIGHT")
    parser.add_argument("--center", nargs=2, type=float, metavar=("X", "Y"), help="Center of the view")
    parser.add_argument("--zoom", type=float, help="Pixels per unit of the complex plane")
    parser.add_argument("--max-iter", type=int, help="Iteration cap per pixel")
    parser.add_argument("--hue-per-iteration", type=float, help=argparse.SUPPRESS)
    parser.add_argument("--output", type=str, help="Path of the BMP to write (default: fractal.bmp)")

    return parser.parse_args()


def main():
    args = parse_args()

    if args.suite and not args.sweep:
        sys.exit("ERROR: --suite requires --sweep")

    # Handle sweep runs
    if args.sweep:
        sweep_path = Path(args.sweep)

        if args.list_suites:
            for name, configs in load_named_sweep_configs(sweep_path):
                print(f"{name}: {len(configs)} configurations")
            return 0

        if args.task_id is not None and args.suite is None:
            sys.exit("ERROR: --task-id requires --suite")

        suites = load_named_sweep_configs(sweep_path, args.suite)

        exit_code = 0
        for suite_name, configs in suites:
            descriptor = f"{sweep_path}::{suite_name}"
            rc = run_sweep(sweep_path, args.task_id, suite_name, configs, descriptor)
            exit_code = exit_code or rc
        return exit_code

    # Direct run: unset options keep their defaults
    overrides = {
        "n_ranks": args.n_ranks,
        "chunk_size": args.chunk_size,
        "image_size": args.image_size,
        "center": args.center,
        "zoom": args.zoom,
        "max_iter": args.max_iter,
        "hue_per_iteration": args.hue_per_iteration,
        "output": args.output,
    }
    try:
        config = default_render_config(**{k: v for k, v in overrides.items() if v is not None})
    except ValueError as exc:
        sys.exit(f"ERROR: {exc}")

    if args.local is not None:
        if args.local < 0:
            sys.exit("ERROR: --local needs a non-negative worker count")
        run_local(config, args.local)
    else:
        run_single_render(config, None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
