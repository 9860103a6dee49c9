#!/usr/bin/env python3
"""
Zoom dependent degradation applied to a finished captcha canvas
"""

import numpy as np
import cv2

from error_handling import InvalidArgument


def pixelate(canvas: np.ndarray, block_size: int) -> np.ndarray:
    """Fill every block_size x block_size block with its top-left pixel"""
    if block_size < 1:
        raise InvalidArgument(f"Block size must be at least 1, got {block_size}")
    if block_size == 1:
        return canvas.copy()

    height, width = canvas.shape[:2]
    samples = canvas[::block_size, ::block_size]
    expanded = np.repeat(np.repeat(samples, block_size, axis=0), block_size, axis=1)
    return np.ascontiguousarray(expanded[:height, :width])


def box_blur(canvas: np.ndarray, kernel_size: int, strength: float) -> np.ndarray:
    """Uniform kernel convolution whose weights sum to strength.

    Pixels whose kernel window would fall outside the canvas keep their
    original value.
    """
    if kernel_size < 1:
        raise InvalidArgument(f"Kernel size must be at least 1, got {kernel_size}")
    if kernel_size == 1:
        return canvas.copy()

    height, width = canvas.shape[:2]
    anchor = (kernel_size - 1) // 2
    kernel = np.full((kernel_size, kernel_size), strength / (kernel_size * kernel_size), dtype=np.float32)
    blurred = cv2.filter2D(canvas, -1, kernel, anchor=(anchor, anchor), borderType=cv2.BORDER_CONSTANT)

    # Restore the edge band the kernel could not fully cover
    top, left = anchor, anchor
    bottom = height - (kernel_size - 1 - anchor)
    right = width - (kernel_size - 1 - anchor)
    result = canvas.copy()
    if top < bottom and left < right:
        result[top:bottom, left:right] = blurred[top:bottom, left:right]
    return result


def pixel_block_size(zoom: int) -> int:
    return max(1, zoom // 4)


def blur_kernel_size(zoom: int) -> int:
    return max(1, zoom // 6)


def blur_strength(zoom: int) -> float:
    return 0.3 + 0.1 * zoom


def apply_image_effects(canvas: np.ndarray, zoom: int) -> np.ndarray:
    """Pixelate above zoom 1, additionally blur above zoom 2"""
    if zoom == 1:
        return canvas
    if zoom > 1:
        canvas = pixelate(canvas, pixel_block_size(zoom))
    if zoom > 2:
        canvas = box_blur(canvas, blur_kernel_size(zoom), blur_strength(zoom))
    return canvas
