"""Worker side of the chunk farming protocol."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Tuple

from .computation import compute_chunk
from .config import RenderConfig
from .errors import ProtocolViolation
from .protocol import Assign, Assignment, ChunkResult, Terminate, WorkerChannel
from .report import chunk_record, init_rank_stats, rank_log
from .scheduling import ChunkGrid

ChunkComputer = Callable[[RenderConfig, int], ChunkResult]


def _await_assignment(channel: WorkerChannel, stats: Dict[str, float]) -> Assignment:
    t0 = time.perf_counter()
    message = channel.recv_assignment()
    stats["comm_recv"] += time.perf_counter() - t0
    if not isinstance(message, (Assign, Terminate)):
        raise ProtocolViolation(f"Unexpected message from coordinator: {message!r}")
    return message


def run_worker(
    config: RenderConfig,
    channel: WorkerChannel,
    rank: int,
    compute: ChunkComputer = compute_chunk,
) -> Tuple[Dict[str, float], List[Dict[str, Any]]]:
    """Compute assigned chunks until the coordinator says stop.

    Returns the rank's timing statistics and one record per computed chunk.
    """
    grid = ChunkGrid.for_config(config)
    stats = init_rank_stats()
    chunk_details: List[Dict[str, Any]] = []

    message = _await_assignment(channel, stats)
    if isinstance(message, Terminate):
        stats["terminated_early"] = 1.0
        rank_log(rank, "Terminated during fan-out, no work available")
        return stats, chunk_details

    while isinstance(message, Assign):
        chunk_id = message.chunk_index
        if not 0 <= chunk_id < grid.num_chunks:
            raise ProtocolViolation(f"Assigned chunk {chunk_id} outside [0, {grid.num_chunks})")

        comp_start = time.perf_counter()
        result = compute(config, chunk_id)
        single_comp = time.perf_counter() - comp_start
        rank_log(
            rank,
            f"Computing chunk {chunk_id} (rows {result.start}:{result.end}) took {single_comp:.4f}s",
        )
        stats["comp"] += single_comp
        stats["chunks"] += 1

        t0 = time.perf_counter()
        channel.send_result(result)
        stats["comm_send"] += time.perf_counter() - t0
        chunk_details.append(chunk_record(rank, chunk_id, result.start, result.end, single_comp))

        message = _await_assignment(channel, stats)

    rank_log(rank, f"Received shutdown signal after {int(stats['chunks'])} chunks")
    return stats, chunk_details
