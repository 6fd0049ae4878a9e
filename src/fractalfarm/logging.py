"""MLflow logging for fractal render runs."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import mlflow
import pandas as pd
from matplotlib import pyplot as plt

from .config import RenderConfig
from .report import RenderReport

DEFAULT_TRACKING_URI = "file:./mlruns"
EXPERIMENT_NAME = "fractalfarm"


def log_to_mlflow(
    config: RenderConfig,
    report: RenderReport,
    suite_name: str = "default",
    image_path: Optional[Path] = None,
) -> None:
    """Log a finished render with its tables, metrics and image.

    Called on the coordinator rank. If MLFLOW_RUN_ID is set the run started
    by the parent sweep process is continued, otherwise a new run is created.
    """
    if os.environ.get("SKIP_MLFLOW"):
        return

    mlflow.set_tracking_uri(resolve_tracking_uri())
    mlflow.set_experiment(EXPERIMENT_NAME)

    existing_run_id = os.environ.get("MLFLOW_RUN_ID")
    if existing_run_id:
        run_context = mlflow.start_run(run_id=existing_run_id)
    else:
        run_context = mlflow.start_run(run_name=config.run_name)

    with run_context as run:
        tags = {
            "node_name": os.uname().nodename,
            "suite": suite_name,
        }
        job_id = os.environ.get("SLURM_JOB_ID") or os.environ.get("LSB_JOBID")
        if job_id:
            tags["job_id"] = job_id
        mlflow.set_tags(tags)

        mlflow.log_params(config.to_dict())

        chunk_records = report.copy_chunks()
        if chunk_records:
            mlflow.log_table(_records_to_table(chunk_records), "chunks.json")
        if report.merges:
            mlflow.log_table(_records_to_table(report.merges), "merges.json")

        timing_stats = report.timing or {}
        rank_records = timing_stats.get("rank_stats")
        if isinstance(rank_records, list) and rank_records:
            mlflow.log_table(_records_to_table(rank_records), "ranks.json")

        for key in ("wall_time", "comp_total", "comm_total", "comm_send_total", "comm_recv_total", "total_chunks"):
            mlflow.log_metric(key, float(timing_stats.get(key, 0.0)))

        if report.image is not None:
            fig, ax = plt.subplots(figsize=(6, 6))
            ax.imshow(report.image)
            ax.set_axis_off()
            mlflow.log_figure(fig, "figures/fractal.png")
            plt.close(fig)

        if image_path is not None and image_path.exists():
            mlflow.log_artifact(str(image_path), "images")

        print(f"[MLflow] Logged run: {config.run_name} (suite: {suite_name})")
        print(f"[MLflow] Run ID: {run.info.run_id}")


def _records_to_table(records: Sequence[Dict[str, Any]]) -> Dict[str, List[Any]]:
    """Convert row-wise records into MLflow table format."""
    frame = pd.DataFrame.from_records(records)
    return frame.to_dict(orient="list")


def resolve_tracking_uri() -> str:
    return os.environ.get("MLFLOW_TRACKING_URI") or DEFAULT_TRACKING_URI
