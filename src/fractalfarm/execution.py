"""Execution helpers for the fractal farm CLI."""

from __future__ import annotations

import os
import subprocess
import sys
from contextlib import nullcontext
from pathlib import Path
from typing import List, Optional

import mlflow

from .bmp import write_bmp
from .config import RenderConfig, load_sweep_configs
from .logging import EXPERIMENT_NAME, log_to_mlflow, resolve_tracking_uri
from .report import RenderReport


def run_single_render(config: RenderConfig, suite_name: Optional[str] = None) -> None:
    """Execute one render within an MPI context; rank 0 writes and logs it."""
    from mpi4py import MPI

    from .mpi import run_mpi_render

    comm = MPI.COMM_WORLD
    rank = comm.Get_rank()
    size = comm.Get_size()

    if rank == 0:
        print(
            f"[Run] Starting render '{config.run_name}' "
            f"(ranks={size}, chunks={config.total_chunks}, chunk_size={config.chunk_size})",
            flush=True,
        )

    report = run_mpi_render(config, comm)

    if rank == 0:
        finish_render(config, report, suite_name)


def run_local(config: RenderConfig, n_workers: int, suite_name: Optional[str] = None) -> RenderReport:
    """Execute one render with in-process worker threads instead of MPI ranks."""
    from .local import run_local_render

    print(
        f"[Run] Starting local render '{config.run_name}' "
        f"(workers={n_workers}, chunks={config.total_chunks}, chunk_size={config.chunk_size})",
        flush=True,
    )
    report = run_local_render(config, n_workers)
    finish_render(config, report, suite_name)
    return report


def finish_render(config: RenderConfig, report: RenderReport, suite_name: Optional[str]) -> None:
    """Hand the master image to the encoder, then log the run."""
    image_path = None
    if config.output and report.image is not None:
        image_path = write_bmp(config.output, report.image)
        print(f"[Run] Image written to {image_path}", flush=True)

    suite = suite_name or os.environ.get("FRACTALFARM_SUITE") or "default"
    if os.environ.get("SKIP_MLFLOW"):
        print("[Run] SKIP_MLFLOW set - skipping MLflow logging.", flush=True)
    else:
        print("[Run] Render finished, logging to MLflow...", flush=True)
    log_to_mlflow(config, report, suite, image_path)

    wall_time = report.timing.get("wall_time", 0.0)
    print(f"[Timing] Total: {wall_time:.4f}s", flush=True)


def run_sweep(
    config_path: str | Path | None,
    task_id: Optional[int] = None,
    suite_name: Optional[str] = None,
    configs: Optional[List[RenderConfig]] = None,
    descriptor: Optional[str] = None,
) -> int:
    """Launch every config of a sweep (or only ``task_id``) and return an exit code."""
    if configs is None:
        if config_path is None:
            raise ValueError("config_path must be provided when configs is None")
        configs = load_sweep_configs(config_path)
    if not configs:
        print("ERROR: No configurations found in sweep", file=sys.stderr)
        return 1

    if task_id is not None:
        if not 0 <= task_id < len(configs):
            print(f"ERROR: task-id {task_id} out of range [0, {len(configs) - 1}]", file=sys.stderr)
            return 1
        selected = [(task_id, configs[task_id])]
    else:
        selected = list(enumerate(configs))
        print(f"[Sweep] {len(configs)} configurations from {descriptor or config_path or 'sweep'}")

    failed = []
    for idx, config in selected:
        print(f"[Sweep {idx + 1}/{len(configs)}] {config.run_name} ({config.total_chunks} chunks)", flush=True)
        returncode = launch_render(config, suite_name)
        if returncode != 0:
            print(f"[Sweep] {config.run_name} failed with exit code {returncode}", file=sys.stderr)
            failed.append(config.run_name)

    print(f"[Sweep] {len(selected) - len(failed)}/{len(selected)} renders succeeded", flush=True)
    for name in failed:
        print(f"  failed: {name}")
    return 1 if failed else 0


def launch_render(config: RenderConfig, suite_name: Optional[str] = None) -> int:
    """Run one config under ``mpirun``, echoing its output; returns the exit code.

    Unless SKIP_MLFLOW is set, the MLflow run is opened here and continued by
    the coordinator rank through MLFLOW_RUN_ID.
    """
    cmd, env = build_command(config)
    if suite_name:
        env["FRACTALFARM_SUITE"] = suite_name

    tracked = not os.environ.get("SKIP_MLFLOW")
    if tracked:
        mlflow.set_tracking_uri(resolve_tracking_uri())
        mlflow.set_experiment(EXPERIMENT_NAME)
    run_context = mlflow.start_run(run_name=config.run_name) if tracked else nullcontext()

    with run_context as run:
        if run is not None:
            env["MLFLOW_RUN_ID"] = run.info.run_id
        with subprocess.Popen(cmd, env=env, text=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT) as proc:
            lines = []
            if proc.stdout is not None:
                for line in proc.stdout:
                    print(line, end="", flush=True)
                    lines.append(line)
        if run is not None and lines:
            mlflow.log_text("".join(lines), "logs/output.txt")
    return proc.returncode


def build_command(config: RenderConfig) -> tuple[list[str], dict[str, str]]:
    """Build the mpirun command and environment for a single configuration."""
    cmd = ["mpirun", "-n", str(config.n_ranks), sys.executable, sys.argv[0], *config.to_cli_args()]
    return cmd, os.environ.copy()
