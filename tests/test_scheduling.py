"""Chunk grid partitioning and the assignment table."""

import pytest

from fractalfarm.errors import ProtocolViolation
from fractalfarm.scheduling import Chunk, ChunkGrid, DynamicScheduler


@pytest.mark.parametrize("height", [1, 7, 99, 100, 101, 400, 1000])
@pytest.mark.parametrize("chunk_size", [1, 3, 10, 100, 2000])
def test_chunks_partition_rows_exactly(height, chunk_size):
    grid = ChunkGrid(height, chunk_size)
    chunks = list(grid)

    assert len(chunks) == grid.num_chunks == -(-height // chunk_size)
    assert chunks[0].start == 0
    assert chunks[-1].end == height
    for previous, current in zip(chunks, chunks[1:]):
        assert previous.end == current.start
    assert sum(chunk.rows for chunk in chunks) == height
    assert all(0 < chunk.rows <= chunk_size for chunk in chunks)


def test_last_chunk_is_clipped():
    grid = ChunkGrid(height=250, chunk_size=100)
    assert grid.bounds(2) == Chunk(index=2, start=200, end=250)
    assert grid.bounds(2).rows == 50


def test_bounds_are_half_open():
    grid = ChunkGrid(height=400, chunk_size=100)
    assert [(c.start, c.end) for c in grid] == [(0, 100), (100, 200), (200, 300), (300, 400)]


@pytest.mark.parametrize("index", [-1, 4, 100])
def test_out_of_range_index(index):
    with pytest.raises(IndexError):
        ChunkGrid(400, 100).bounds(index)


@pytest.mark.parametrize("height,chunk_size", [(0, 10), (10, 0), (-5, 2)])
def test_invalid_grid(height, chunk_size):
    with pytest.raises(ValueError):
        ChunkGrid(height, chunk_size)


def test_scheduler_hands_out_each_chunk_once():
    scheduler = DynamicScheduler(ChunkGrid(10, 3))
    handed_out = [scheduler.request_chunk() for _ in range(4)]

    assert handed_out == [0, 1, 2, 3]
    assert scheduler.request_chunk() is None
    assert scheduler.next_chunk == 4


def test_scheduler_completion_in_any_order():
    scheduler = DynamicScheduler(ChunkGrid(10, 3))
    for _ in range(4):
        scheduler.request_chunk()
    for chunk_id in (2, 0, 3):
        scheduler.mark_complete(chunk_id)
        assert not scheduler.finished
    scheduler.mark_complete(1)
    assert scheduler.finished
    assert scheduler.completed == 4


def test_scheduler_rejects_duplicate_completion():
    scheduler = DynamicScheduler(ChunkGrid(10, 5))
    scheduler.request_chunk()
    scheduler.mark_complete(0)
    with pytest.raises(ProtocolViolation):
        scheduler.mark_complete(0)


def test_scheduler_rejects_unassigned_completion():
    scheduler = DynamicScheduler(ChunkGrid(10, 5))
    scheduler.request_chunk()
    with pytest.raises(ProtocolViolation):
        scheduler.mark_complete(1)
