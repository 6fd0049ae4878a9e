"""Coordinator side of the chunk farming protocol."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Tuple

import numpy as np

from .computation import allocate_image, compute_chunk
from .config import RenderConfig
from .errors import ProtocolViolation
from .protocol import COORDINATOR_RANK, TERMINATE, Assign, ChunkResult, CoordinatorChannel
from .report import chunk_record, init_rank_stats, rank_log
from .scheduling import ChunkGrid, DynamicScheduler
from .worker import ChunkComputer


class Coordinator:
    """Owns the master image and the assignment table for one render.

    The coordinator is the only writer of the master image and merges one
    result at a time, so no locking is involved.
    """

    def __init__(self, config: RenderConfig, channel: CoordinatorChannel, n_workers: int):
        self.config = config
        self.channel = channel
        self.n_workers = n_workers
        self.grid = ChunkGrid.for_config(config)
        self.scheduler = DynamicScheduler(self.grid)
        self.image = allocate_image(config)
        self.stats = init_rank_stats()
        self.merges: List[Dict[str, int]] = []
        # chunk index -> worker currently computing it
        self.owners: Dict[int, int] = {}

    def fan_out(self) -> None:
        """Send every worker exactly one message: a chunk or termination."""
        for worker in range(1, self.n_workers + 1):
            self._dispatch(worker)

    def dispatch_until_done(self) -> None:
        while not self.scheduler.finished:
            t0 = time.perf_counter()
            worker, result = self.channel.recv_result()
            self.stats["comm_recv"] += time.perf_counter() - t0
            self.merge(worker, result)
            self._dispatch(worker)

    def compute_locally(self, compute: ChunkComputer) -> List[Dict[str, Any]]:
        """Single-process run: the coordinator works through every chunk itself."""
        chunk_details: List[Dict[str, Any]] = []
        chunk_id = self.scheduler.request_chunk()
        while chunk_id is not None:
            self.owners[chunk_id] = COORDINATOR_RANK
            comp_start = time.perf_counter()
            result = compute(self.config, chunk_id)
            single_comp = time.perf_counter() - comp_start
            self.stats["comp"] += single_comp
            self.stats["chunks"] += 1
            self.merge(COORDINATOR_RANK, result)
            chunk_details.append(
                chunk_record(COORDINATOR_RANK, chunk_id, result.start, result.end, single_comp)
            )
            chunk_id = self.scheduler.request_chunk()
        return chunk_details

    def merge(self, worker: int, result: ChunkResult) -> None:
        chunk_id = result.chunk_index
        if self.owners.get(chunk_id) != worker:
            raise ProtocolViolation(f"Worker {worker} returned chunk {chunk_id} it was not assigned")
        chunk = self.grid.bounds(chunk_id)
        expected = (chunk.rows, self.config.width, 3)
        if (result.start, result.end) != (chunk.start, chunk.end) or result.pixels.shape != expected:
            raise ProtocolViolation(
                f"Chunk {chunk_id} from worker {worker} has rows {result.start}:{result.end} "
                f"and shape {result.pixels.shape}, expected {chunk.start}:{chunk.end} and {expected}"
            )
        self.scheduler.mark_complete(chunk_id)
        del self.owners[chunk_id]
        self.image[chunk.start:chunk.end] = result.pixels
        self.merges.append({"order": len(self.merges), "chunk_id": chunk_id, "rank": worker})
        rank_log(
            COORDINATOR_RANK,
            f"Merged chunk {chunk_id} from worker {worker} "
            f"({self.scheduler.completed}/{self.scheduler.total_chunks})",
        )

    def _dispatch(self, worker: int) -> None:
        chunk_id = self.scheduler.request_chunk()
        if chunk_id is None:
            rank_log(COORDINATOR_RANK, f"No more chunks - sending shutdown to worker {worker}")
            message = TERMINATE
        else:
            rank_log(COORDINATOR_RANK, f"Assigning chunk {chunk_id} to worker {worker}")
            self.owners[chunk_id] = worker
            message = Assign(chunk_id)
        t0 = time.perf_counter()
        self.channel.send_assignment(worker, message)
        self.stats["comm_send"] += time.perf_counter() - t0


def run_coordinator(
    config: RenderConfig,
    channel: CoordinatorChannel,
    n_workers: int,
    compute: ChunkComputer = compute_chunk,
) -> Tuple[np.ndarray, Dict[str, float], List[Dict[str, Any]], List[Dict[str, int]]]:
    """Drive a render to completion.

    Returns the master image, the coordinator's stats, records of chunks the
    coordinator computed itself (only when it has no workers) and the merge log.
    """
    coordinator = Coordinator(config, channel, n_workers)

    if n_workers == 0:
        chunk_details = coordinator.compute_locally(compute)
        return coordinator.image, coordinator.stats, chunk_details, coordinator.merges

    coordinator.fan_out()
    coordinator.dispatch_until_done()
    rank_log(COORDINATOR_RANK, f"All {coordinator.scheduler.total_chunks} chunks merged")
    return coordinator.image, coordinator.stats, [], coordinator.merges
