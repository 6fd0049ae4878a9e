"""Escape-time sampler, color mapping and the chunk kernel."""

import math

import numpy as np
import pytest

from fractalfarm.baseline import compute_reference
from fractalfarm.computation import (
    NO_ESCAPE,
    allocate_image,
    color_of,
    compute_chunk,
    hue_to_rgb,
    iterations_to_escape,
    plane_coordinate,
)
from fractalfarm.config import default_render_config
from fractalfarm.errors import AllocationFailure


def python_escape(x, y, max_iter):
    a = b = 0.0
    for i in range(max_iter):
        a, b = a * a - b * b + x, 2 * a * b + y
        if a * a + b * b > 64:
            return i - math.log(math.sqrt(a * a + b * b)) / math.log(8)
    return NO_ESCAPE


@pytest.mark.parametrize("max_iter", [1, 2, 10, 300, 5000])
def test_origin_never_escapes(max_iter):
    assert iterations_to_escape(0.0, 0.0, max_iter) == NO_ESCAPE


def test_zero_iterations_never_escape():
    assert iterations_to_escape(50.0, 50.0, 0) == NO_ESCAPE


def test_escape_is_smoothed():
    # |z| = 10 after the first step
    assert iterations_to_escape(10.0, 0.0, 5) == pytest.approx(-math.log(10) / math.log(8))
    # 3 -> 12 on the second step
    assert iterations_to_escape(3.0, 0.0, 5) == pytest.approx(1 - math.log(12) / math.log(8))


@pytest.mark.parametrize(
    "x,y",
    [(-0.75, 0.1), (0.3, 0.5), (-1.186340599860225, -0.303652988644423), (0.26, 0.0), (-2.1, 0.0)],
)
def test_matches_plain_python(x, y):
    assert iterations_to_escape(x, y, 300) == pytest.approx(python_escape(x, y, 300))


def test_sampler_is_deterministic():
    values = {iterations_to_escape(-0.7435, 0.1314, 1000) for _ in range(5)}
    assert len(values) == 1


@pytest.mark.parametrize(
    "hue,expected",
    [
        (0.0, 0),
        (30.0, 127),
        (60.0, 255),
        (179.9, 255),
        (180.0, 255),
        (210.0, 127),
        (240.0, 0),
        (359.0, 0),
        (360.0, 0),
        (420.0, 255),
        (-60.0, 0),
        (750.0, 127),
    ],
)
def test_hue_to_rgb(hue, expected):
    assert hue_to_rgb(hue) == expected


def test_no_escape_is_black():
    assert tuple(color_of(NO_ESCAPE, 5.0)) == (0, 0, 0)


def test_color_cycles_with_hue_per_iteration():
    assert tuple(color_of(0.0, 5.0)) == (255, 0, 0)
    assert tuple(color_of(6.0, 5.0)) == (255, 127, 0)
    # a full 360 degree turn gives the same color
    assert tuple(color_of(80.0, 5.0)) == tuple(color_of(8.0, 5.0))


def test_plane_coordinate_is_centered():
    assert plane_coordinate(200, 400, 100.0, 0.5) == pytest.approx(0.5)
    assert plane_coordinate(150, 300, 100.0, -0.25) == pytest.approx(-0.25)
    assert plane_coordinate(0, 400, 100.0, 0.5) == pytest.approx(-1.5)
    assert plane_coordinate(0, 300, 100.0, -0.25) == pytest.approx(-1.75)


def test_compute_chunk_shape(small_config):
    result = compute_chunk(small_config, 6)
    assert (result.chunk_index, result.start, result.end) == (6, 48, 50)
    assert result.pixels.shape == (2, small_config.width, 3)
    assert result.pixels.dtype == np.uint8


def test_chunks_match_reference_rows(small_config):
    reference = compute_reference(small_config)
    for chunk_id in range(small_config.total_chunks):
        result = compute_chunk(small_config, chunk_id)
        np.testing.assert_array_equal(result.pixels, reference[result.start:result.end])


def test_compute_chunk_out_of_range(small_config):
    with pytest.raises(IndexError):
        compute_chunk(small_config, small_config.total_chunks)


def test_reference_has_interior_and_exterior():
    config = default_render_config(width=60, height=40, zoom=15.0, center=(-0.5, 0.0), max_iter=100)
    image = compute_reference(config)
    black = np.all(image == 0, axis=2)
    assert black.any()
    assert not black.all()
    # the origin lies in the set
    assert black[config.height // 2, config.width // 2 + int(0.5 * config.zoom)]


def test_allocation_failure():
    config = default_render_config(width=10**10, height=10**10)
    with pytest.raises(AllocationFailure):
        allocate_image(config)
