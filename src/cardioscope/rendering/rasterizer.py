"""Rasterize a sampled series into a fixed-size RGBA pixel buffer.

Coordinates used for drawing have their origin in the bottom-left corner with
``y`` growing upward, matching the plot. :class:`PixelBuffer` stores rows
top-first so the array can be handed directly to an image type.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

Color = tuple[int, int, int, int]

BLACK: Color = (0, 0, 0, 255)
GREEN: Color = (0, 255, 0, 255)
WHITE: Color = (255, 255, 255, 255)

# Ranges narrower than this are rendered as a flat line.
FLAT_RANGE_EPSILON = 1e-6

MARGIN_X_FRACTION = 0.05
MARGIN_Y_FRACTION = 0.1


def _check_color(name: str, color: Sequence[int]) -> Color:
    if len(color) != 4 or not all(0 <= int(channel) <= 255 for channel in color):
        raise ValueError(f"{name} must be four channels in 0..255, got {color!r}")
    return tuple(int(channel) for channel in color)


@dataclass(frozen=True)
class RenderStyle:
    """Colors, tick counts and output resolution for a plot surface."""

    background_color: Color = BLACK
    waveform_color: Color = GREEN
    axis_color: Color = WHITE
    label_color: Color = WHITE
    x_ticks: int = 10
    y_ticks: int = 5
    width: int = 1024
    height: int = 256
    tick_length: int = 5

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Resolution must be at least 1x1, got {self.width}x{self.height}")
        if self.x_ticks < 0 or self.y_ticks < 0:
            raise ValueError("Tick counts must be non-negative")
        if self.tick_length < 0:
            raise ValueError("Tick length must be non-negative")
        for name in ("background_color", "waveform_color", "axis_color", "label_color"):
            object.__setattr__(self, name, _check_color(name, getattr(self, name)))


@dataclass(frozen=True)
class ValueRange:
    """Inclusive value range used to scale a series."""

    minimum: float
    maximum: float

    @property
    def span(self) -> float:
        return self.maximum - self.minimum


@dataclass(frozen=True)
class NormalizedRect:
    """Rectangle in surface-relative coordinates (0..1, origin bottom-left)."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class PixelRect:
    """Plot area in pixels, origin bottom-left."""

    left: int
    bottom: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def top(self) -> int:
        return self.bottom + self.height

    def normalized(self, surface_width: int, surface_height: int) -> NormalizedRect:
        """Express this rectangle relative to a surface of the given size."""
        return NormalizedRect(
            x=self.left / surface_width,
            y=self.bottom / surface_height,
            width=self.width / surface_width,
            height=self.height / surface_height,
        )


class PixelBuffer:
    """Row-major ``height x width`` grid of RGBA pixels."""

    def __init__(self, width: int, height: int, fill: Color = BLACK):
        if width < 1 or height < 1:
            raise ValueError(f"Buffer size must be at least 1x1, got {width}x{height}")
        self._width = width
        self._height = height
        self._data = np.empty((height, width, 4), dtype=np.uint8)
        self._data[:, :] = fill

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def pixels(self) -> np.ndarray:
        """Read-only view of the ``(height, width, 4)`` array, top row first."""
        view = self._data.view()
        view.setflags(write=False)
        return view

    def fill(self, color: Color) -> None:
        self._data[:, :] = color

    def set_pixel(self, x: int, y: int, color: Color) -> None:
        """Set the pixel at plot coordinates ``(x, y)``; out-of-range is ignored."""
        if 0 <= x < self._width and 0 <= y < self._height:
            self._data[self._height - 1 - y, x] = color

    def pixel(self, x: int, y: int) -> Color:
        """Return the pixel at plot coordinates ``(x, y)``."""
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self._width}x{self._height} buffer")
        return tuple(int(c) for c in self._data[self._height - 1 - y, x])

    def to_bytes(self) -> bytes:
        return self._data.tobytes()

    def copy(self) -> "PixelBuffer":
        clone = PixelBuffer(self._width, self._height)
        clone._data[...] = self._data
        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return np.array_equal(self._data, other._data)

    __hash__ = None


def draw_line(buffer: PixelBuffer, x0: int, y0: int, x1: int, y1: int, color: Color) -> None:
    """Draw a line between two points, both endpoints included (Bresenham)."""
    x, y = int(x0), int(y0)
    x1, y1 = int(x1), int(y1)
    dx = abs(x1 - x)
    dy = -abs(y1 - y)
    step_x = 1 if x < x1 else -1
    step_y = 1 if y < y1 else -1
    error = dx + dy

    while True:
        buffer.set_pixel(x, y, color)
        if x == x1 and y == y1:
            break
        doubled = 2 * error
        if doubled >= dy:
            error += dy
            x += step_x
        if doubled <= dx:
            error += dx
            y += step_y


def compute_margins(width: int, height: int) -> tuple[int, int]:
    """Return ``(margin_x, margin_y)`` in pixels."""
    return round(width * MARGIN_X_FRACTION), round(height * MARGIN_Y_FRACTION)


def plot_area(style: RenderStyle) -> PixelRect:
    """Return the pixel rectangle inside the margins of ``style``'s surface."""
    margin_x, margin_y = compute_margins(style.width, style.height)
    return PixelRect(
        left=margin_x,
        bottom=margin_y,
        width=style.width - 2 * margin_x,
        height=style.height - 2 * margin_y,
    )


def value_range(series: Sequence[float] | np.ndarray) -> ValueRange:
    """Return the min/max range of ``series``.

    Flat or empty input yields a unit range centered on the value (or zero),
    so callers never divide by zero.
    """
    values = np.asarray(series, dtype=np.float64)
    if values.size == 0:
        return ValueRange(-0.5, 0.5)
    low = float(values.min())
    high = float(values.max())
    return widen_flat_range(ValueRange(low, high))


def widen_flat_range(bounds: ValueRange) -> ValueRange:
    """Replace a range narrower than ``FLAT_RANGE_EPSILON`` with a unit range.

    The unit range is centered on the midpoint of ``bounds``.
    """
    if bounds.span < FLAT_RANGE_EPSILON:
        center = (bounds.minimum + bounds.maximum) / 2.0
        return ValueRange(center - 0.5, center + 0.5)
    return bounds


def normalize(series: Sequence[float] | np.ndarray, bounds: ValueRange | None = None) -> np.ndarray:
    """Map ``series`` into ``[0, 1]`` relative to ``bounds``."""
    values = np.asarray(series, dtype=np.float64)
    if bounds is None:
        bounds = value_range(values)
    else:
        bounds = widen_flat_range(bounds)
    return (values - bounds.minimum) / bounds.span


def resample_indices(sample_count: int, width: int) -> np.ndarray:
    """Source sample index for each destination column (nearest, no interpolation).

    Column ``i`` maps to ``floor(i / (width - 1) * (sample_count - 1))``.
    """
    if sample_count < 1:
        return np.zeros(0, dtype=np.int64)
    columns = np.arange(width, dtype=np.int64)
    if width == 1:
        return np.zeros(1, dtype=np.int64)
    return (columns * (sample_count - 1)) // (width - 1)


def tick_fractions(count: int) -> list[float]:
    """Evenly spaced fractions ``i / count`` for ``i = 0..count``."""
    if count < 0:
        raise ValueError("Tick count must be non-negative")
    if count == 0:
        return [0.0]
    return [i / count for i in range(count + 1)]


class WaveformRasterizer:
    """Render series into pixel buffers using a fixed :class:`RenderStyle`."""

    def __init__(self, style: RenderStyle | None = None):
        self._style = style or RenderStyle()

    @property
    def style(self) -> RenderStyle:
        return self._style

    @property
    def plot_area(self) -> PixelRect:
        return plot_area(self._style)

    def _prepare(self, buffer: PixelBuffer | None) -> PixelBuffer:
        style = self._style
        if buffer is None:
            return PixelBuffer(style.width, style.height, fill=style.background_color)
        if (buffer.width, buffer.height) != (style.width, style.height):
            raise ValueError(
                f"Buffer is {buffer.width}x{buffer.height}, style expects {style.width}x{style.height}"
            )
        buffer.fill(style.background_color)
        return buffer

    def render_blank(self, buffer: PixelBuffer | None = None) -> PixelBuffer:
        """Return a buffer cleared to the background color."""
        return self._prepare(buffer)

    def render(
        self,
        series: Sequence[float] | np.ndarray,
        buffer: PixelBuffer | None = None,
        bounds: ValueRange | None = None,
    ) -> PixelBuffer:
        """Render ``series`` with axes and ticks.

        Args:
            series: Samples to draw, resampled to the buffer width.
            buffer: Optional buffer to overwrite. Its previous content is
                discarded entirely.
            bounds: Value range mapped onto the plot height. Defaults to the
                range of ``series``.

        Returns:
            The rendered buffer.
        """
        buffer = self._prepare(buffer)
        values = np.asarray(series, dtype=np.float64)

        if values.size:
            self._draw_waveform(buffer, values, bounds or value_range(values))
        self._draw_axes(buffer)
        return buffer

    def _draw_waveform(self, buffer: PixelBuffer, values: np.ndarray, bounds: ValueRange) -> None:
        style = self._style
        _, margin_y = compute_margins(style.width, style.height)
        usable_height = style.height - 2 * margin_y

        normalized = normalize(values, bounds)
        sampled = normalized[resample_indices(values.size, style.width)]
        rows = margin_y + np.floor(sampled * usable_height).astype(np.int64)
        rows = np.clip(rows, 0, style.height - 1)

        previous = None
        for column, row in enumerate(rows.tolist()):
            if previous is None:
                buffer.set_pixel(column, row, style.waveform_color)
            else:
                draw_line(buffer, column - 1, previous, column, row, style.waveform_color)
            previous = row

    def _draw_axes(self, buffer: PixelBuffer) -> None:
        style = self._style
        area = plot_area(style)
        color = style.axis_color
        half = style.tick_length

        draw_line(buffer, area.left, area.bottom, area.left, area.top, color)
        draw_line(buffer, area.left, area.bottom, area.right, area.bottom, color)

        for fraction in tick_fractions(style.x_ticks):
            x = area.left + math.floor(fraction * area.width)
            draw_line(buffer, x, area.bottom - half, x, area.bottom + half, color)
        for fraction in tick_fractions(style.y_ticks):
            y = area.bottom + math.floor(fraction * area.height)
            draw_line(buffer, area.left - half, y, area.left + half, y, color)
