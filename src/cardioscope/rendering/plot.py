"""Per-surface plot controller combining rasterizer and label layout."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from cardioscope.models.simulation import ResultModel
from cardioscope.rendering.labels import Axis, TickLabel, compute_labels
from cardioscope.rendering.rasterizer import (
    PixelBuffer,
    RenderStyle,
    ValueRange,
    WaveformRasterizer,
    value_range,
)

logger = logging.getLogger(__name__)


@dataclass
class PlotFrame:
    """Rendered image plus the labels the display layer should draw."""

    output_name: str
    buffer: PixelBuffer
    x_labels: list[TickLabel] = field(default_factory=list)
    y_labels: list[TickLabel] = field(default_factory=list)
    found: bool = True


class WaveformPlot:
    """Draw one named output of a result onto one display surface.

    The pixel buffer is owned by the plot and reused for every draw, so a
    single plot must not be drawn from two threads at once.
    """

    def __init__(self, output_name: str = "pa", style: RenderStyle | None = None):
        self.output_name = output_name
        self._rasterizer = WaveformRasterizer(style)
        self._buffer: PixelBuffer | None = None

    @property
    def style(self) -> RenderStyle:
        return self._rasterizer.style

    @style.setter
    def style(self, value: RenderStyle) -> None:
        self._rasterizer = WaveformRasterizer(value)
        self._buffer = None

    def _target(self) -> PixelBuffer:
        style = self._rasterizer.style
        if self._buffer is None:
            self._buffer = PixelBuffer(style.width, style.height, fill=style.background_color)
        return self._buffer

    def draw(self, result: ResultModel) -> PlotFrame:
        """Render ``result[output_name]``.

        A missing output yields a blank frame without labels.
        """
        values = result.get_output(self.output_name)
        if values is None:
            logger.warning("Output '%s' not found in simulation results", self.output_name)
            buffer = self._rasterizer.render_blank(self._target())
            return PlotFrame(self.output_name, buffer, found=False)

        bounds = value_range(values)
        buffer = self._rasterizer.render(values, buffer=self._target(), bounds=bounds)
        x_labels, y_labels = self.layout_labels(ValueRange(*result.time_range), bounds)
        return PlotFrame(self.output_name, buffer, x_labels, y_labels)

    def layout_labels(self, time_bounds: ValueRange, bounds: ValueRange) -> tuple[list[TickLabel], list[TickLabel]]:
        style = self._rasterizer.style
        area = self._rasterizer.plot_area.normalized(style.width, style.height)
        return (
            compute_labels(Axis.X, time_bounds, style.x_ticks, area),
            compute_labels(Axis.Y, bounds, style.y_ticks, area),
        )
