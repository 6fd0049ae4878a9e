"""Run the coordinator/worker protocol inside one process."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Dict, List

from .computation import compute_chunk
from .config import RenderConfig
from .coordinator import run_coordinator
from .report import RenderReport, aggregate_timing
from .transport import LocalFabric
from .worker import ChunkComputer, run_worker

__all__ = ["run_local_render"]


def run_local_render(
    config: RenderConfig,
    n_workers: int,
    compute: ChunkComputer = compute_chunk,
) -> RenderReport:
    """Render with ``n_workers`` worker threads; rank 0 is the calling thread."""
    if n_workers < 0:
        raise ValueError(f"n_workers must be non-negative, got {n_workers}")

    fabric = LocalFabric(n_workers)
    start_time = time.perf_counter()

    with ThreadPoolExecutor(max_workers=max(n_workers, 1), thread_name_prefix="farm-worker") as pool:
        futures = []
        for rank in range(1, n_workers + 1):
            future = pool.submit(run_worker, config, fabric.worker_channel(rank), rank, compute)
            future.add_done_callback(partial(fabric.watch, rank))
            futures.append(future)

        try:
            image, stats, chunk_records, merges = run_coordinator(
                config, fabric.coordinator_channel(), n_workers, compute
            )
        except BaseException:
            fabric.release_workers()
            raise

        all_stats: List[Dict[str, float]] = [stats]
        records: List[Dict[str, Any]] = list(chunk_records)
        for future in futures:
            worker_stats, worker_records = future.result()
            all_stats.append(worker_stats)
            records.extend(worker_records)

    timing = aggregate_timing(all_stats, time.perf_counter() - start_time)
    return RenderReport(image, timing, records or None, merges)
