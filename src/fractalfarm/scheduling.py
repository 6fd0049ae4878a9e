"""Chunk partitioning and first-come-first-served chunk assignment."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from .errors import ProtocolViolation


@dataclass(frozen=True)
class Chunk:
    """Half-open row band ``[start, end)`` of the canvas."""

    index: int
    start: int
    end: int

    @property
    def rows(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class ChunkGrid:
    """Partition of ``height`` rows into bands of ``chunk_size`` rows.

    The last band is clipped to the canvas when ``height`` is not a multiple
    of ``chunk_size``.
    """

    height: int
    chunk_size: int

    def __post_init__(self) -> None:
        if self.height <= 0:
            raise ValueError(f"height must be positive, got {self.height}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    @classmethod
    def for_config(cls, config) -> "ChunkGrid":
        return cls(config.height, config.chunk_size)

    @property
    def num_chunks(self) -> int:
        return (self.height + self.chunk_size - 1) // self.chunk_size

    def bounds(self, index: int) -> Chunk:
        if not 0 <= index < self.num_chunks:
            raise IndexError(f"Chunk index {index} out of range [0, {self.num_chunks})")
        start = index * self.chunk_size
        return Chunk(index, start, min(start + self.chunk_size, self.height))

    def __len__(self) -> int:
        return self.num_chunks

    def __iter__(self) -> Iterator[Chunk]:
        for index in range(self.num_chunks):
            yield self.bounds(index)


@dataclass
class DynamicScheduler:
    """Hands out chunk indices on demand and tracks their completion."""

    grid: ChunkGrid
    next_chunk: int = 0
    completed: int = 0
    done: List[bool] = field(init=False)

    def __post_init__(self) -> None:
        self.done = [False] * self.grid.num_chunks

    @property
    def total_chunks(self) -> int:
        return self.grid.num_chunks

    @property
    def finished(self) -> bool:
        return self.completed == self.total_chunks

    def request_chunk(self) -> Optional[int]:
        """Request the next available chunk, or None if all chunks are assigned."""
        if self.next_chunk >= self.total_chunks:
            return None
        chunk_id = self.next_chunk
        self.next_chunk += 1
        return chunk_id

    def mark_complete(self, chunk_id: int) -> None:
        """Record a finished chunk; it must have been handed out and not finished yet."""
        if not 0 <= chunk_id < self.next_chunk:
            raise ProtocolViolation(f"Chunk {chunk_id} was never assigned")
        if self.done[chunk_id]:
            raise ProtocolViolation(f"Chunk {chunk_id} completed twice")
        self.done[chunk_id] = True
        self.completed += 1
