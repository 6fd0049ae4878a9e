"""MPI transport for the chunk farming protocol."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import numpy as np
from mpi4py import MPI

from .computation import compute_chunk
from .config import RenderConfig
from .coordinator import run_coordinator
from .protocol import COORDINATOR_RANK, Assignment, ChunkResult
from .report import RenderReport, aggregate_timing, rank_log
from .worker import ChunkComputer, run_worker

__all__ = ["MpiCoordinatorChannel", "MpiWorkerChannel", "run_mpi_render"]

# MPI tags
ASSIGN_TAG = 11
RESULT_TAG = 20
DATA_TAG = 21


class MpiCoordinatorChannel:
    """Rank 0 end: assignments are pickled, pixel blocks arrive as raw buffers."""

    def __init__(self, comm: MPI.Intracomm, width: int):
        self.comm = comm
        self.width = width
        self._status = MPI.Status()

    def send_assignment(self, worker: int, message: Assignment) -> None:
        self.comm.send(message, dest=worker, tag=ASSIGN_TAG)

    def recv_result(self) -> Tuple[int, ChunkResult]:
        chunk_id, start, end = self.comm.recv(
            source=MPI.ANY_SOURCE, tag=RESULT_TAG, status=self._status
        )
        worker = self._status.Get_source()
        # Messages from one source are not overtaken, so the block that
        # follows on DATA_TAG belongs to this header.
        pixels = np.empty((end - start, self.width, 3), dtype=np.uint8)
        self.comm.Recv(pixels, source=worker, tag=DATA_TAG)
        return worker, ChunkResult(chunk_id, start, end, pixels)


class MpiWorkerChannel:
    def __init__(self, comm: MPI.Intracomm):
        self.comm = comm

    def recv_assignment(self) -> Assignment:
        return self.comm.recv(source=COORDINATOR_RANK, tag=ASSIGN_TAG)

    def send_result(self, result: ChunkResult) -> None:
        self.comm.send((result.chunk_index, result.start, result.end), dest=COORDINATOR_RANK, tag=RESULT_TAG)
        self.comm.Send(np.ascontiguousarray(result.pixels), dest=COORDINATOR_RANK, tag=DATA_TAG)


def run_mpi_render(
    config: RenderConfig,
    comm: MPI.Intracomm | None = None,
    compute: ChunkComputer = compute_chunk,
) -> RenderReport:
    """Execute the render on every rank of ``comm``; only rank 0 gets the image."""
    comm = comm or MPI.COMM_WORLD
    rank = comm.Get_rank()
    size = comm.Get_size()

    start_time = MPI.Wtime()

    image = None
    merges: List[Dict[str, int]] = []
    try:
        if rank == COORDINATOR_RANK:
            channel = MpiCoordinatorChannel(comm, config.width)
            image, stats, chunk_records, merges = run_coordinator(config, channel, size - 1, compute)
        else:
            stats, chunk_records = run_worker(config, MpiWorkerChannel(comm), rank, compute)
    except Exception as exc:
        # Peers block in recv forever unless the whole job is torn down.
        rank_log(rank, f"Aborting: {exc!r}")
        comm.Abort(1)
        raise

    # Excluding time spent gathering timings
    total_time = MPI.Wtime() - start_time

    all_stats = comm.gather(stats, root=COORDINATOR_RANK)
    all_chunks = comm.gather(chunk_records, root=COORDINATOR_RANK)

    if rank != COORDINATOR_RANK:
        return RenderReport(None, {}, None)

    timing = aggregate_timing(all_stats, total_time)
    records: List[Dict[str, Any]] = [record for per_rank in all_chunks for record in per_rank]
    rank_log(rank, f"Render finished in {total_time:.4f}s across {size} ranks")
    return RenderReport(image, timing, records or None, merges)
