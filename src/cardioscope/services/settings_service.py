"""Application settings service using QSettings."""

from __future__ import annotations

from PySide6.QtCore import QSettings

from cardioscope.models.simulation import ParameterSet
from cardioscope.rendering.rasterizer import Color, RenderStyle
from cardioscope.services.simulation_channel import DEFAULT_HOST, DEFAULT_PORT
from cardioscope.services.simulation_service import ConnectionSettings

DEFAULT_PLOT_OUTPUTS = ["plv", "pa", "volume"]


def _color_to_text(color: Color) -> str:
    return "#" + "".join(f"{channel:02x}" for channel in color)


def _color_from_text(text: str, fallback: Color) -> Color:
    value = str(text).lstrip("#")
    if len(value) == 6:
        value += "ff"
    if len(value) != 8:
        return fallback
    try:
        return tuple(int(value[i : i + 2], 16) for i in range(0, 8, 2))
    except ValueError:
        return fallback


class SettingsService:
    """Service for managing application settings.

    Args:
        settings: QSettings store to use. Defaults to the per-user
            ``Cardioscope`` settings.
    """

    def __init__(self, settings: QSettings | None = None):
        self._settings = settings if settings is not None else QSettings("Cardioscope", "Cardioscope")

    # Solver connection
    def get_connection_settings(self) -> ConnectionSettings:
        """Get the solver host, port and timeout."""
        timeout = float(self._settings.value("connection/timeout", 30.0))
        return ConnectionSettings(
            host=str(self._settings.value("connection/host", DEFAULT_HOST)),
            port=int(self._settings.value("connection/port", DEFAULT_PORT)),
            timeout=timeout if timeout > 0 else None,
        )

    def set_connection_settings(self, connection: ConnectionSettings) -> None:
        """Save the solver connection."""
        self._settings.setValue("connection/host", connection.host)
        self._settings.setValue("connection/port", connection.port)
        self._settings.setValue("connection/timeout", connection.timeout or 0.0)

    # Plot style
    def get_render_style(self) -> RenderStyle:
        """Get the plot style."""
        defaults = RenderStyle()
        return RenderStyle(
            background_color=_color_from_text(
                self._settings.value("style/background_color", ""), defaults.background_color
            ),
            waveform_color=_color_from_text(
                self._settings.value("style/waveform_color", ""), defaults.waveform_color
            ),
            axis_color=_color_from_text(self._settings.value("style/axis_color", ""), defaults.axis_color),
            label_color=_color_from_text(self._settings.value("style/label_color", ""), defaults.label_color),
            x_ticks=int(self._settings.value("style/x_ticks", defaults.x_ticks)),
            y_ticks=int(self._settings.value("style/y_ticks", defaults.y_ticks)),
            width=int(self._settings.value("style/width", defaults.width)),
            height=int(self._settings.value("style/height", defaults.height)),
        )

    def set_render_style(self, style: RenderStyle) -> None:
        """Save the plot style."""
        self._settings.setValue("style/background_color", _color_to_text(style.background_color))
        self._settings.setValue("style/waveform_color", _color_to_text(style.waveform_color))
        self._settings.setValue("style/axis_color", _color_to_text(style.axis_color))
        self._settings.setValue("style/label_color", _color_to_text(style.label_color))
        self._settings.setValue("style/x_ticks", style.x_ticks)
        self._settings.setValue("style/y_ticks", style.y_ticks)
        self._settings.setValue("style/width", style.width)
        self._settings.setValue("style/height", style.height)

    # Plotted outputs
    def get_plot_outputs(self) -> list[str]:
        """Get the output names shown in the plot panels."""
        value = self._settings.value("plots/outputs", DEFAULT_PLOT_OUTPUTS)
        if isinstance(value, str):
            value = [value]
        return list(value or DEFAULT_PLOT_OUTPUTS)

    def set_plot_outputs(self, outputs: list[str]) -> None:
        """Save the output names shown in the plot panels."""
        self._settings.setValue("plots/outputs", list(outputs))

    # Last parameter values
    def get_parameters(self) -> ParameterSet:
        """Get the last parameter values used for a run."""
        self._settings.beginGroup("parameters")
        try:
            return ParameterSet((key, float(self._settings.value(key))) for key in self._settings.childKeys())
        finally:
            self._settings.endGroup()

    def set_parameters(self, parameters: ParameterSet) -> None:
        """Save parameter values."""
        self._settings.remove("parameters")
        for name, value in parameters.items():
            self._settings.setValue(f"parameters/{name}", value)
