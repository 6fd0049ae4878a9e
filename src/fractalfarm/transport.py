"""In-process message fabric for running the protocol on threads."""

from __future__ import annotations

import queue
from concurrent.futures import Future
from typing import Dict, Tuple, Union

from .protocol import TERMINATE, Assignment, ChunkResult

__all__ = ["LocalFabric"]

_Delivery = Tuple[int, Union[ChunkResult, BaseException]]


class LocalFabric:
    """One result queue shared by all workers plus one assignment queue per worker.

    Mirrors the MPI layout: the coordinator receives from any worker in
    arrival order and replies point-to-point.
    """

    def __init__(self, n_workers: int):
        self.n_workers = n_workers
        self._results: "queue.Queue[_Delivery]" = queue.Queue()
        self._assignments: Dict[int, "queue.Queue[Assignment]"] = {
            rank: queue.Queue() for rank in range(1, n_workers + 1)
        }

    def coordinator_channel(self) -> "LocalCoordinatorChannel":
        return LocalCoordinatorChannel(self)

    def worker_channel(self, rank: int) -> "LocalWorkerChannel":
        if rank not in self._assignments:
            raise ValueError(f"No worker with rank {rank} in a fabric of {self.n_workers}")
        return LocalWorkerChannel(self, rank)

    def watch(self, rank: int, future: Future) -> None:
        """Done-callback for a worker future: forward its failure to the coordinator."""
        exc = future.exception()
        if exc is not None:
            self._results.put((rank, exc))

    def release_workers(self) -> None:
        """Unblock every worker after the coordinator gave up."""
        for inbox in self._assignments.values():
            inbox.put(TERMINATE)


class LocalCoordinatorChannel:
    def __init__(self, fabric: LocalFabric):
        self._fabric = fabric

    def send_assignment(self, worker: int, message: Assignment) -> None:
        self._fabric._assignments[worker].put(message)

    def recv_result(self) -> Tuple[int, ChunkResult]:
        worker, payload = self._fabric._results.get()
        if isinstance(payload, BaseException):
            raise payload
        return worker, payload


class LocalWorkerChannel:
    def __init__(self, fabric: LocalFabric, rank: int):
        self._fabric = fabric
        self.rank = rank

    def recv_assignment(self) -> Assignment:
        return self._fabric._assignments[self.rank].get()

    def send_result(self, result: ChunkResult) -> None:
        self._fabric._results.put((self.rank, result))
