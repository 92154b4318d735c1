"""Waveform rendering for Cardioscope."""

from cardioscope.rendering.labels import Axis, TextAnchor, TickLabel, compute_labels
from cardioscope.rendering.plot import PlotFrame, WaveformPlot
from cardioscope.rendering.rasterizer import (
    NormalizedRect,
    PixelBuffer,
    PixelRect,
    RenderStyle,
    ValueRange,
    WaveformRasterizer,
    draw_line,
)

__all__ = [
    "Axis",
    "NormalizedRect",
    "PixelBuffer",
    "PixelRect",
    "PlotFrame",
    "RenderStyle",
    "TextAnchor",
    "TickLabel",
    "ValueRange",
    "WaveformPlot",
    "WaveformRasterizer",
    "compute_labels",
    "draw_line",
]
