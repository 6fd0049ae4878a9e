from __future__ import annotations

import math
from typing import Tuple

import numpy as np
from numba import njit

from .config import RenderConfig
from .errors import AllocationFailure
from .protocol import ChunkResult
from .scheduling import ChunkGrid

__all__ = [
    "NO_ESCAPE",
    "allocate_image",
    "iterations_to_escape",
    "hue_to_rgb",
    "color_of",
    "plane_coordinate",
    "compute_rows",
    "compute_chunk",
]

NO_ESCAPE = -1.0
ESCAPE_RADIUS = 8.0


@njit(nogil=True)
def iterations_to_escape(x: float, y: float, max_iter: int) -> float:
    """Smoothed escape count of ``z -> z**2 + (x + iy)``, or ``NO_ESCAPE``."""
    a = 0.0
    b = 0.0
    for i in range(max_iter):
        tmp = a * a - b * b + x
        b = 2.0 * a * b + y
        a = tmp
        if a * a + b * b > ESCAPE_RADIUS * ESCAPE_RADIUS:
            return i - math.log(math.sqrt(a * a + b * b)) / math.log(ESCAPE_RADIUS)
    return NO_ESCAPE


@njit(nogil=True)
def hue_to_rgb(t: float) -> int:
    while t > 360.0:
        t -= 360.0
    while t < 0.0:
        t += 360.0
    if t < 60.0:
        return int(255.0 * t / 60.0)
    if t < 180.0:
        return 255
    if t < 240.0:
        return int(255.0 * (4.0 - t / 60.0))
    return 0


@njit(nogil=True)
def color_of(value: float, hue_per_iteration: float) -> Tuple[int, int, int]:
    if value == NO_ESCAPE:
        return 0, 0, 0
    h = hue_per_iteration * value
    return hue_to_rgb(h + 120.0), hue_to_rgb(h), hue_to_rgb(h + 240.0)


@njit(nogil=True)
def plane_coordinate(pixel: int, extent: int, zoom: float, center: float) -> float:
    """Map a pixel index along one axis to its coordinate in the plane."""
    return (pixel - extent // 2) / zoom + center


@njit(nogil=True)
def _render_rows(
    start: int,
    end: int,
    width: int,
    height: int,
    center_x: float,
    center_y: float,
    zoom: float,
    max_iter: int,
    hue_per_iteration: float,
    block: np.ndarray,
) -> None:
    for row in range(start, end):
        y = plane_coordinate(row, height, zoom, center_y)
        for col in range(width):
            x = plane_coordinate(col, width, zoom, center_x)
            r, g, b = color_of(iterations_to_escape(x, y, max_iter), hue_per_iteration)
            block[row - start, col, 0] = r
            block[row - start, col, 1] = g
            block[row - start, col, 2] = b


def _allocate(shape: Tuple[int, ...]) -> np.ndarray:
    try:
        return np.zeros(shape, dtype=np.uint8)
    except (MemoryError, ValueError) as exc:
        raise AllocationFailure(f"Cannot allocate raster of shape {shape}") from exc


def allocate_image(config: RenderConfig) -> np.ndarray:
    """Master raster, ``(height, width, 3)`` RGB with row 0 at the top."""
    return _allocate((config.height, config.width, 3))


def compute_rows(config: RenderConfig, start: int, end: int, block: np.ndarray) -> None:
    """Color rows ``[start, end)`` of the canvas into ``block``."""
    _render_rows(
        start,
        end,
        config.width,
        config.height,
        float(config.center_x),
        float(config.center_y),
        float(config.zoom),
        config.max_iter,
        float(config.hue_per_iteration),
        block,
    )


def compute_chunk(config: RenderConfig, chunk_id: int) -> ChunkResult:
    chunk = ChunkGrid.for_config(config).bounds(chunk_id)
    block = _allocate((chunk.rows, config.width, 3))
    compute_rows(config, chunk.start, chunk.end, block)
    return ChunkResult(chunk_id, chunk.start, chunk.end, block)
