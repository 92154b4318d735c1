"""Data models for Cardioscope."""

from cardioscope.models.simulation import (
    DEFAULT_PARAMETER_CONSTRAINTS,
    ModelMetadata,
    ModelParameter,
    ParameterConstraint,
    ParameterSet,
    ResultModel,
    default_parameters,
)

__all__ = [
    "DEFAULT_PARAMETER_CONSTRAINTS",
    "ModelMetadata",
    "ModelParameter",
    "ParameterConstraint",
    "ParameterSet",
    "ResultModel",
    "default_parameters",
]
