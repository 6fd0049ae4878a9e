import time

import numpy as np
import pytest

from fractalfarm.config import default_render_config
from fractalfarm.protocol import ChunkResult
from fractalfarm.scheduling import ChunkGrid


def stamp_chunk(config, chunk_id):
    """Stand-in for the sampler: fill a chunk with its index + 1."""
    chunk = ChunkGrid.for_config(config).bounds(chunk_id)
    pixels = np.full((chunk.rows, config.width, 3), chunk_id + 1, dtype=np.uint8)
    return ChunkResult(chunk_id, chunk.start, chunk.end, pixels)


def jittered_stamp(seed):
    """Like ``stamp_chunk`` but with a per-chunk delay so arrivals interleave."""
    rng = np.random.default_rng(seed)
    delays = rng.uniform(0.0, 0.01, size=1024)

    def compute(config, chunk_id):
        time.sleep(delays[chunk_id % len(delays)])
        return stamp_chunk(config, chunk_id)

    return compute


def expected_stamp_image(config):
    image = np.zeros((config.height, config.width, 3), dtype=np.uint8)
    for chunk in ChunkGrid.for_config(config):
        image[chunk.start:chunk.end] = chunk.index + 1
    return image


@pytest.fixture
def small_config():
    return default_render_config(width=32, height=50, chunk_size=8, max_iter=50)
