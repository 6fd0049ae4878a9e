"""Messages exchanged between the coordinator and its workers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple, Union

import numpy as np

__all__ = [
    "Assign",
    "Terminate",
    "TERMINATE",
    "Assignment",
    "ChunkResult",
    "CoordinatorChannel",
    "WorkerChannel",
]

COORDINATOR_RANK = 0


@dataclass(frozen=True)
class Assign:
    chunk_index: int


@dataclass(frozen=True)
class Terminate:
    pass


TERMINATE = Terminate()

# Coordinator -> worker. Termination is its own variant, so the first message
# a worker sees needs no special casing.
Assignment = Union[Assign, Terminate]


@dataclass(frozen=True)
class ChunkResult:
    """Worker -> coordinator: the RGB pixel block of one row band."""

    chunk_index: int
    start: int
    end: int
    pixels: np.ndarray  # uint8, shape (end - start, width, 3)

    @property
    def rows(self) -> int:
        return self.end - self.start


class CoordinatorChannel(Protocol):
    def send_assignment(self, worker: int, message: Assignment) -> None:
        ...

    def recv_result(self) -> Tuple[int, ChunkResult]:
        """Block until any worker reports; return ``(worker rank, result)``."""
        ...


class WorkerChannel(Protocol):
    def recv_assignment(self) -> Assignment:
        ...

    def send_result(self, result: ChunkResult) -> None:
        ...
