#!/usr/bin/env python3
"""
Arrow CAPTCHA image synthesis
Renders six arrow badges over a noisy background with OpenCV

Layer order (each painted over the previous):
  1. near-white background with light gray speckles
  2. six gradient badges with drop shadow and border
  3. one coloured arrow per badge, pointing LEFT / UP / RIGHT
  4. rotated translucent noise characters
  5. bold noise lines
  6. translucent sine curves and dots
"""

import random
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
import cv2

from arrow_sequence import Direction, SEQUENCE_LENGTH, is_valid_symbol
from error_handling import InvalidArgument

BASE_WIDTH = 180
BASE_HEIGHT = 35
MIN_ZOOM = 1
MAX_ZOOM = 4

ARROW_SIZE = 16
CIRCLE_SIZE = 24
ARROW_SPACING = 2
NOISE_FONT_SIZE = 12

# All colours are BGR, as OpenCV expects
BACKGROUND_COLOR = (250, 250, 250)
BRIGHT_COLORS = [
    (0, 0, 255),      # red
    (255, 0, 0),      # blue
    (0, 255, 0),      # green
    (255, 0, 255),    # magenta
    (255, 255, 0),    # cyan
    (0, 200, 255),    # orange
    (180, 105, 255),  # hot pink
    (128, 0, 128),    # purple
    (0, 165, 255),    # dark orange
]
BOLD_LINE_COLORS = [
    (0, 0, 255),      # red
    (0, 0, 0),        # black
    (255, 255, 255),  # white
    (255, 0, 0),      # blue
    (0, 255, 0),      # green
    (128, 0, 128),    # purple
    (0, 165, 255),    # orange
]
NOISE_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789!@#$%^&*()"
NOISE_TEXT_COLOR = (192, 192, 192)
NOISE_TEXT_ALPHA = 0.3
NOISE_MAX_ROTATION = 15

SHADOW_ALPHA = 60 / 255
WAVE_ALPHA = 80 / 255
WAVE_COUNT = 3

# Arrow outline for an UP arrow, as fractions of the arrow size
# relative to the badge centre; LEFT and RIGHT are rotations of it.
ARROW_SHAPE = (
    (0.0, -1 / 3),
    (-1 / 2, 1 / 6),
    (-1 / 4, 1 / 6),
    (-1 / 4, 1 / 3),
    (1 / 4, 1 / 3),
    (1 / 4, 1 / 6),
    (1 / 2, 1 / 6),
)


def validate_zoom(zoom) -> int:
    """Raise InvalidArgument unless zoom is an integer in [1, 4]"""
    if isinstance(zoom, bool) or not isinstance(zoom, int):
        raise InvalidArgument(f"Zoom level must be an integer, got {zoom!r}")
    if zoom < MIN_ZOOM or zoom > MAX_ZOOM:
        raise InvalidArgument(f"Zoom level must be between {MIN_ZOOM} and {MAX_ZOOM}, got {zoom}")
    return zoom


def canvas_size(zoom: int) -> Tuple[int, int]:
    """(width, height) of the canvas for a zoom level"""
    validate_zoom(zoom)
    return BASE_WIDTH * zoom, BASE_HEIGHT * zoom


def brighter(color: Tuple[int, int, int]) -> Tuple[int, int, int]:
    """Lighten a colour by ~1/0.7 per channel, lifting pure black to a dark gray"""
    factor = 0.7
    floor = int(1.0 / (1.0 - factor))
    if all(channel == 0 for channel in color):
        return (floor, floor, floor)
    lifted = []
    for channel in color:
        if 0 < channel < floor:
            channel = floor
        lifted.append(min(int(channel / factor), 255))
    return tuple(lifted)


def arrow_polygon(center_x: int, center_y: int, direction: Direction, zoom: int) -> np.ndarray:
    """Vertices of the 7-point arrow glyph centred on a badge"""
    size = ARROW_SIZE * zoom
    points = []
    for dx, dy in ARROW_SHAPE:
        if direction is Direction.LEFT:
            dx, dy = dy, dx
        elif direction is Direction.RIGHT:
            dx, dy = -dy, dx
        points.append((center_x + int(round(dx * size)), center_y + int(round(dy * size))))
    return np.array(points, dtype=np.int32)


def badge_centers(zoom: int) -> list:
    """Centre points of the six badges, laid out as a centred row"""
    width, height = canvas_size(zoom)
    circle_size = CIRCLE_SIZE * zoom
    spacing = ARROW_SPACING * zoom
    total_width = SEQUENCE_LENGTH * circle_size + (SEQUENCE_LENGTH - 1) * spacing
    start_x = (width - total_width) // 2 + circle_size // 2
    center_y = height // 2
    return [(start_x + i * (circle_size + spacing), center_y) for i in range(SEQUENCE_LENGTH)]


class CaptchaRenderer:
    """Draws one challenge canvas for an answer sequence at a zoom level"""

    def __init__(self, sequence: Sequence[int], zoom: int, rng: Optional[random.Random] = None):
        validate_zoom(zoom)
        if len(sequence) != SEQUENCE_LENGTH or not all(is_valid_symbol(s) for s in sequence):
            raise InvalidArgument(
                f"Sequence must be {SEQUENCE_LENGTH} symbols from 0-2, got {tuple(sequence)!r}"
            )
        self.sequence = tuple(sequence)
        self.zoom = zoom
        self.width, self.height = canvas_size(zoom)
        self.rng = rng if rng is not None else random.SystemRandom()

    def render(self) -> np.ndarray:
        """Paint all layers and return a height x width x 3 uint8 BGR array"""
        canvas = np.empty((self.height, self.width, 3), dtype=np.uint8)
        self._draw_background(canvas)
        self._draw_arrow_circles(canvas)
        self._draw_noise_characters(canvas)
        self._draw_noise_lines(canvas)
        self._draw_distortion_effects(canvas)
        return canvas

    # ── Layer 1 ──────────────────────────────────────────────────────────────

    def _draw_background(self, canvas: np.ndarray):
        canvas[:] = BACKGROUND_COLOR
        zoom = self.zoom
        for _ in range(self.width * self.height // 50):
            x = self.rng.randrange(self.width)
            y = self.rng.randrange(self.height)
            brightness = 220 + self.rng.randrange(35)
            canvas[y:y + zoom, x:x + zoom] = brightness

    # ── Layers 2 and 3 ───────────────────────────────────────────────────────

    def _draw_arrow_circles(self, canvas: np.ndarray):
        circle_size = CIRCLE_SIZE * self.zoom
        for (center_x, center_y), symbol in zip(badge_centers(self.zoom), self.sequence):
            self._draw_circle_background(canvas, center_x, center_y, circle_size)
            self._draw_arrow(canvas, center_x, center_y, Direction(symbol))

    def _draw_circle_background(self, canvas: np.ndarray, center_x: int, center_y: int, size: int):
        rng = self.rng
        radius = size // 2

        shadow_color = tuple(180 + rng.randrange(50) for _ in range(3))
        offset = radius // 2
        self._blend_region(
            canvas, center_x + offset, center_y + offset, radius, SHADOW_ALPHA,
            lambda layer, c: cv2.circle(layer, c, radius, shadow_color, -1, cv2.LINE_AA)
        )

        color1 = np.array([230 + rng.randrange(25) for _ in range(3)], dtype=np.float32)
        color2 = np.array([200 + rng.randrange(55) for _ in range(3)], dtype=np.float32)
        self._fill_gradient_circle(canvas, center_x, center_y, radius, color1, color2)

        border_color = tuple(150 + rng.randrange(80) for _ in range(3))
        cv2.circle(canvas, (center_x, center_y), radius, border_color,
                   max(1, self.zoom // 2), cv2.LINE_AA)

    def _fill_gradient_circle(self, canvas, center_x, center_y, radius, color1, color2):
        """Diagonal linear gradient from the top-left to the bottom-right of the badge"""
        left, top = center_x - radius, center_y - radius
        x0, y0 = max(left, 0), max(top, 0)
        x1 = min(center_x + radius + 1, self.width)
        y1 = min(center_y + radius + 1, self.height)
        if x0 >= x1 or y0 >= y1:
            return

        ys, xs = np.mgrid[y0:y1, x0:x1]
        t = ((xs - left) + (ys - top)) / float(4 * radius)
        t = np.clip(t, 0.0, 1.0)[..., None]
        gradient = color1 * (1.0 - t) + color2 * t

        mask = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
        cv2.circle(mask, (center_x - x0, center_y - y0), radius, 255, -1, cv2.LINE_AA)
        weight = (mask.astype(np.float32) / 255.0)[..., None]

        region = canvas[y0:y1, x0:x1].astype(np.float32)
        canvas[y0:y1, x0:x1] = np.round(region * (1.0 - weight) + gradient * weight).astype(np.uint8)

    def _draw_arrow(self, canvas: np.ndarray, center_x: int, center_y: int, direction: Direction):
        color = self.rng.choice(BRIGHT_COLORS)
        points = arrow_polygon(center_x, center_y, direction, self.zoom)
        cv2.fillPoly(canvas, [points], color, cv2.LINE_AA)
        cv2.polylines(canvas, [points], True, brighter(color), max(1, self.zoom // 2), cv2.LINE_AA)

    # ── Layer 4 ──────────────────────────────────────────────────────────────

    def _draw_noise_characters(self, canvas: np.ndarray):
        font = cv2.FONT_HERSHEY_SIMPLEX
        thickness = max(1, self.zoom)
        scale = cv2.getFontScaleFromHeight(font, NOISE_FONT_SIZE * self.zoom, thickness)
        (m_width, m_height), baseline = cv2.getTextSize('M', font, scale, thickness)
        line_height = m_height + baseline
        advance_floor = max(1, m_width // 3)

        mask = np.zeros((self.height, self.width), dtype=np.uint8)
        num_rows = self.height // line_height + 1
        for row in range(num_rows):
            y = row * line_height + m_height
            x = 0
            while x < self.width:
                char = self.rng.choice(NOISE_CHARS)
                angle = self.rng.randint(-NOISE_MAX_ROTATION, NOISE_MAX_ROTATION)
                self._stamp_glyph(mask, char, x, y, angle, font, scale, thickness, line_height)
                (char_width, _), _ = cv2.getTextSize(char, font, scale, thickness)
                x += max(char_width // 2, advance_floor)

        alpha = (mask.astype(np.float32) / 255.0 * NOISE_TEXT_ALPHA)[..., None]
        gray = np.array(NOISE_TEXT_COLOR, dtype=np.float32)
        blended = canvas.astype(np.float32) * (1.0 - alpha) + gray * alpha
        canvas[:] = np.round(blended).astype(np.uint8)

    def _stamp_glyph(self, mask, char, x, y, angle, font, scale, thickness, line_height):
        """Draw one glyph into mask, rotated about its baseline origin"""
        patch_size = 4 * line_height
        half = patch_size // 2
        patch = np.zeros((patch_size, patch_size), dtype=np.uint8)
        cv2.putText(patch, char, (half, half), font, scale, 255, thickness, cv2.LINE_AA)
        rotation = cv2.getRotationMatrix2D((float(half), float(half)), angle, 1.0)
        patch = cv2.warpAffine(patch, rotation, (patch_size, patch_size))

        left, top = x - half, y - half
        x0, y0 = max(left, 0), max(top, 0)
        x1, y1 = min(left + patch_size, self.width), min(top + patch_size, self.height)
        if x0 >= x1 or y0 >= y1:
            return
        region = mask[y0:y1, x0:x1]
        np.maximum(region, patch[y0 - top:y1 - top, x0 - left:x1 - left], out=region)

    # ── Layer 5 ──────────────────────────────────────────────────────────────

    def _draw_noise_lines(self, canvas: np.ndarray):
        rng = self.rng
        width, height = self.width, self.height
        thickness = 1 + (1 if self.zoom > 2 else 0)
        num_lines = rng.randint(3, 2 + self.zoom)

        for _ in range(num_lines):
            color = rng.choice(BOLD_LINE_COLORS)
            line_type = rng.randrange(4)

            if line_type == 0:
                y = rng.randrange(height)
                start, end = (0, y), (width, y)
            elif line_type == 1:
                x = rng.randrange(width)
                start, end = (x, 0), (x, height)
            elif line_type == 2:
                start, end = (0, rng.randrange(height)), (width, rng.randrange(height))
            else:
                start, end = (width, rng.randrange(height)), (0, rng.randrange(height))

            cv2.line(canvas, start, end, color, thickness, cv2.LINE_AA)

    # ── Layer 6 ──────────────────────────────────────────────────────────────

    def _draw_distortion_effects(self, canvas: np.ndarray):
        rng = self.rng
        zoom = self.zoom
        stroke = max(1, int(round(0.8 * zoom)))
        xs = np.arange(self.width)

        for _ in range(WAVE_COUNT):
            color = tuple(rng.randrange(256) for _ in range(3))
            start_y = rng.randrange(self.height)
            amplitude = (5 + rng.randrange(10)) * zoom
            period = (20 + rng.randrange(20)) * zoom

            ys = start_y + (amplitude * np.sin(2 * np.pi * xs / period)).astype(np.int32)
            points = np.stack([xs, ys], axis=1).astype(np.int32)
            overlay = canvas.copy()
            cv2.polylines(overlay, [points], False, color, stroke, cv2.LINE_AA)
            canvas[:] = cv2.addWeighted(overlay, WAVE_ALPHA, canvas, 1.0 - WAVE_ALPHA, 0)

        for _ in range(30 * zoom):
            color = tuple(rng.randrange(256) for _ in range(3))
            alpha = (60 + rng.randrange(100)) / 255
            x = rng.randrange(self.width)
            y = rng.randrange(self.height)
            size = (1 + rng.randrange(3)) * zoom
            radius = max(1, size // 2)
            self._blend_region(
                canvas, x + size // 2, y + size // 2, radius, alpha,
                lambda layer, c: cv2.circle(layer, c, radius, color, -1, cv2.LINE_AA)
            )

    def _blend_region(self, canvas: np.ndarray, center_x: int, center_y: int, radius: int,
                      alpha: float, draw: Callable[[np.ndarray, Tuple[int, int]], object]):
        """Alpha-blend a shape drawn by draw() within the box around a centre point"""
        pad = radius + 2
        x0, y0 = max(center_x - pad, 0), max(center_y - pad, 0)
        x1, y1 = min(center_x + pad + 1, self.width), min(center_y + pad + 1, self.height)
        if x0 >= x1 or y0 >= y1:
            return
        region = canvas[y0:y1, x0:x1]
        overlay = region.copy()
        draw(overlay, (center_x - x0, center_y - y0))
        region[:] = cv2.addWeighted(overlay, alpha, region, 1.0 - alpha, 0)


def render_captcha(sequence: Sequence[int], zoom: int, rng: Optional[random.Random] = None) -> np.ndarray:
    """Render a canvas for the given answer sequence"""
    return CaptchaRenderer(sequence, zoom, rng).render()
