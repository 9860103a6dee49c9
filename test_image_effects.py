#!/usr/bin/env python3
"""
Tests for pixelation and edge preserving box blur
"""
import numpy as np
import pytest

from error_handling import InvalidArgument
from image_effects import (
    apply_image_effects,
    blur_kernel_size,
    blur_strength,
    box_blur,
    pixel_block_size,
    pixelate,
)


def random_canvas(height=35, width=180, seed=0):
    return np.random.default_rng(seed).integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def test_zoom_one_is_passthrough():
    canvas = random_canvas()
    assert apply_image_effects(canvas, 1) is canvas


@pytest.mark.parametrize("zoom", [2, 3, 4])
def test_effects_keep_shape(zoom):
    canvas = random_canvas(35 * zoom, 180 * zoom, seed=zoom)
    result = apply_image_effects(canvas, zoom)
    assert result.shape == canvas.shape
    assert result.dtype == np.uint8


def test_zoom_parameters():
    assert [pixel_block_size(z) for z in (1, 2, 3, 4)] == [1, 1, 1, 1]
    assert [blur_kernel_size(z) for z in (1, 2, 3, 4)] == [1, 1, 1, 1]
    assert blur_strength(3) == pytest.approx(0.6)
    assert blur_strength(4) == pytest.approx(0.7)


def test_single_pixel_blocks_and_kernels_leave_pixels_alone():
    """At zoom 1-4 the block side and kernel side are 1, so pixels are unchanged"""
    canvas = random_canvas(140, 720, seed=4)
    result = apply_image_effects(canvas, 4)
    assert result is not canvas
    assert np.array_equal(result, canvas)


def test_pixelate_fills_blocks_from_top_left():
    canvas = random_canvas(7, 9, seed=1)
    result = pixelate(canvas, 2)
    for y in range(7):
        for x in range(9):
            assert np.array_equal(result[y, x], canvas[y - y % 2, x - x % 2])


def test_pixelate_rejects_bad_block():
    with pytest.raises(InvalidArgument):
        pixelate(random_canvas(), 0)


def test_box_blur_preserves_edges():
    canvas = random_canvas(12, 15, seed=2)
    result = box_blur(canvas, 3, 1.0)

    assert np.array_equal(result[0], canvas[0])
    assert np.array_equal(result[-1], canvas[-1])
    assert np.array_equal(result[:, 0], canvas[:, 0])
    assert np.array_equal(result[:, -1], canvas[:, -1])


def test_box_blur_interior_is_weighted_mean():
    canvas = random_canvas(12, 15, seed=3)
    strength = 0.6
    result = box_blur(canvas, 3, strength)

    source = canvas.astype(np.float64)
    for y in range(1, 11):
        for x in range(1, 14):
            expected = source[y - 1:y + 2, x - 1:x + 2].mean(axis=(0, 1)) * strength
            assert np.all(np.abs(result[y, x].astype(np.float64) - expected) <= 1.0)


def test_box_blur_even_kernel_edges():
    """Even kernels anchor above-left of centre: one leading edge row, two trailing"""
    canvas = random_canvas(10, 10, seed=5)
    result = box_blur(canvas, 4, 1.0)
    assert np.array_equal(result[0], canvas[0])
    assert np.array_equal(result[-2:], canvas[-2:])
    assert np.array_equal(result[:, -2:], canvas[:, -2:])
    assert not np.array_equal(result[1:-2, 1:-2], canvas[1:-2, 1:-2])


def test_box_blur_rejects_bad_kernel():
    with pytest.raises(InvalidArgument):
        box_blur(random_canvas(), 0, 0.5)
