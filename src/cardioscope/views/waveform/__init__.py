"""Waveform display widgets."""

from .plot_widget import WaveformCanvas, WaveformPlotWidget, buffer_to_image

__all__ = ["WaveformCanvas", "WaveformPlotWidget", "buffer_to_image"]
