"""Data model shared by the solver client and the waveform renderer."""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass, field
from types import MappingProxyType

import numpy as np


# =============================================================================
# Parameters
# =============================================================================


def _finite_float(name: str, value: float) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Parameter '{name}' must be finite, got {value!r}")
    return number


class ParameterSet(MutableMapping):
    """Ordered mapping of model parameter names to float values.

    Values are coerced to ``float`` on assignment. Non-finite values are
    rejected because they have no JSON representation.
    """

    def __init__(self, values: Mapping[str, float] | Iterable[tuple[str, float]] | None = None):
        self._values: dict[str, float] = {}
        if values is not None:
            items = values.items() if isinstance(values, Mapping) else values
            for name, value in items:
                self[name] = value

    def __getitem__(self, name: str) -> float:
        return self._values[name]

    def __setitem__(self, name: str, value: float) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError("Parameter names must be non-empty strings")
        self._values[name] = _finite_float(name, value)

    def __delitem__(self, name: str) -> None:
        del self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ParameterSet({self._values!r})"

    def copy(self) -> "ParameterSet":
        """Return an independent copy."""
        return ParameterSet(self._values)

    def to_dict(self) -> dict[str, float]:
        """Return a plain dict snapshot preserving order."""
        return dict(self._values)

    def clamped(self, constraints: Mapping[str, "ParameterConstraint"]) -> "ParameterSet":
        """Return a copy with every constrained value clamped into range."""
        result = self.copy()
        for name, value in self._values.items():
            constraint = constraints.get(name)
            if constraint is not None:
                result[name] = constraint.clamp(value)
        return result


@dataclass(frozen=True)
class ParameterConstraint:
    """Editable range and default for a single model parameter."""

    minimum: float
    maximum: float
    default: float

    def __post_init__(self) -> None:
        if not self.minimum <= self.default <= self.maximum:
            raise ValueError(
                f"Constraint requires minimum <= default <= maximum "
                f"(got {self.minimum}, {self.default}, {self.maximum})"
            )

    def clamp(self, value: float) -> float:
        """Clamp ``value`` into ``[minimum, maximum]``."""
        return min(max(float(value), self.minimum), self.maximum)

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


# Two-element windkessel model served by the cardiovascular solver.
DEFAULT_PARAMETER_CONSTRAINTS: Mapping[str, ParameterConstraint] = MappingProxyType(
    {
        "heartRate": ParameterConstraint(30.0, 120.0, 70.0),
        "R1": ParameterConstraint(0.01, 0.2, 0.02),
        "R2": ParameterConstraint(0.1, 2.0, 0.5),
        "C": ParameterConstraint(0.1, 3.0, 1.5),
    }
)


def default_parameters() -> ParameterSet:
    """Return a ParameterSet populated with the default constraint values."""
    return ParameterSet(
        (name, constraint.default) for name, constraint in DEFAULT_PARAMETER_CONSTRAINTS.items()
    )


# =============================================================================
# Metadata
# =============================================================================


@dataclass(frozen=True)
class ModelParameter:
    """A single parameter entry as reported by the solver."""

    name: str
    value: float


@dataclass(frozen=True)
class ModelMetadata:
    """Description of the model served by the solver.

    Attributes:
        model_name: Human-readable model name.
        parameters: Default values for every tunable parameter.
        outputs: Names of the series a simulation run produces.
    """

    model_name: str
    parameters: ParameterSet = field(default_factory=ParameterSet)
    outputs: tuple[str, ...] = ()

    @property
    def parameter_entries(self) -> list[ModelParameter]:
        return [ModelParameter(name, value) for name, value in self.parameters.items()]

    def constraint_for(self, name: str) -> ParameterConstraint:
        """Return the editing constraint for ``name``.

        Parameters without a declared range get a permissive range spanning
        ten times the reported default on either side.
        """
        known = DEFAULT_PARAMETER_CONSTRAINTS.get(name)
        if known is not None:
            return known
        default = self.parameters.get(name, 0.0)
        span = max(abs(default) * 10.0, 1.0)
        return ParameterConstraint(default - span, default + span, default)


# =============================================================================
# Results
# =============================================================================


TIME_KEY = "time"


def _frozen_array(values: Iterable[float]) -> np.ndarray:
    array = np.array(values, dtype=np.float64)
    if array.ndim != 1:
        raise ValueError("Series must be one-dimensional")
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class ResultModel:
    """Immutable result of one simulation run.

    ``time`` is the shared, non-decreasing time axis and ``outputs`` maps each
    output name to a series of the same length. Instances that violate this
    raise ``ValueError`` on construction and so never reach the renderer.
    """

    time: np.ndarray
    outputs: Mapping[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self) -> None:
        time = _frozen_array(self.time)
        if time.size == 0:
            raise ValueError("Time axis must contain at least one sample")
        if time.size > 1 and np.any(np.diff(time) < 0):
            raise ValueError("Time axis must be non-decreasing")

        outputs: dict[str, np.ndarray] = {}
        for name, values in self.outputs.items():
            if name == TIME_KEY:
                raise ValueError("'time' is reserved for the time axis")
            series = _frozen_array(values)
            if series.size != time.size:
                raise ValueError(
                    f"Series '{name}' has {series.size} samples, expected {time.size}"
                )
            outputs[name] = series

        object.__setattr__(self, "time", time)
        object.__setattr__(self, "outputs", MappingProxyType(outputs))

    @property
    def sample_count(self) -> int:
        return int(self.time.size)

    @property
    def output_names(self) -> tuple[str, ...]:
        return tuple(self.outputs)

    @property
    def time_range(self) -> tuple[float, float]:
        return float(self.time.min()), float(self.time.max())

    def get_output(self, name: str) -> np.ndarray | None:
        """Look up a series by name, ignoring case.

        ``"time"`` returns the time axis. Unknown names return ``None``.
        """
        key = name.strip().lower()
        if key == TIME_KEY:
            return self.time
        if name in self.outputs:
            return self.outputs[name]
        for output_name, series in self.outputs.items():
            if output_name.lower() == key:
                return series
        return None

    def series(self, name: str) -> np.ndarray:
        """Like :meth:`get_output` but raise ``KeyError`` for unknown names."""
        values = self.get_output(name)
        if values is None:
            raise KeyError(name)
        return values

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get_output(name) is not None
