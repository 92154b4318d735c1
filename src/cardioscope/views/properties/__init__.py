"""Property editing panels."""

from .parameter_panel import ParameterPanel

__all__ = ["ParameterPanel"]
