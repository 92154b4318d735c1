"""Tick label placement independent of any text rendering backend."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cardioscope.rendering.rasterizer import NormalizedRect, ValueRange, tick_fractions


class Axis(Enum):
    X = "x"
    Y = "y"


class TextAnchor(Enum):
    """Which point of the text box sits on the label position."""

    TOP_CENTER = "top_center"
    MIDDLE_RIGHT = "middle_right"


@dataclass(frozen=True)
class TickLabel:
    """Formatted tick value and its anchor in normalized surface coordinates."""

    text: str
    x: float
    y: float
    anchor: TextAnchor
    value: float


def lerp(start: float, end: float, fraction: float) -> float:
    return start + (end - start) * fraction


def tick_values(minimum: float, maximum: float, tick_count: int) -> list[float]:
    """Values at ``tick_count + 1`` evenly spaced ticks from min to max."""
    return [lerp(minimum, maximum, fraction) for fraction in tick_fractions(tick_count)]


def format_tick(value: float) -> str:
    """Format a tick value with two decimals, never ``-0.00``."""
    text = f"{value:.2f}"
    if text == "-0.00":
        return "0.00"
    return text


def compute_labels(
    axis: Axis | str,
    bounds: ValueRange | tuple[float, float],
    tick_count: int,
    area: NormalizedRect,
) -> list[TickLabel]:
    """Lay out the tick labels of one axis.

    X labels hang below the bottom edge of ``area``, Y labels sit left of its
    left edge. Positions are in the same normalized space as ``area``.
    """
    axis = Axis(axis)
    if tick_count < 0:
        raise ValueError("Tick count must be non-negative")
    if isinstance(bounds, ValueRange):
        minimum, maximum = bounds.minimum, bounds.maximum
    else:
        minimum, maximum = bounds

    labels: list[TickLabel] = []
    for fraction in tick_fractions(tick_count):
        value = lerp(minimum, maximum, fraction)
        if axis is Axis.X:
            x = area.x + fraction * area.width
            y = area.y
            anchor = TextAnchor.TOP_CENTER
        else:
            x = area.x
            y = area.y + fraction * area.height
            anchor = TextAnchor.MIDDLE_RIGHT
        labels.append(TickLabel(text=format_tick(value), x=x, y=y, anchor=anchor, value=value))
    return labels
