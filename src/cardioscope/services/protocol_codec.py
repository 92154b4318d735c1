"""Line-delimited JSON codec for the cardiovascular solver protocol.

Every message is a single JSON object on one UTF-8 line::

    {"command":"get_metadata"}
    {"command":"run_simulation","parameters":{"heartRate":70.0,"R1":0.02}}

Responses are either a metadata record or a result record holding a ``time``
array plus one array per model output, all of the same length.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from typing import Any

from cardioscope.models.simulation import TIME_KEY, ModelMetadata, ParameterSet, ResultModel

__all__ = [
    "LINE_TERMINATOR",
    "ENCODING",
    "ProtocolError",
    "MalformedResponseError",
    "InconsistentLengthsError",
    "NoDataError",
    "encode_metadata_request",
    "encode_run_request",
    "encode_response",
    "decode_metadata",
    "decode_result",
]

LINE_TERMINATOR = b"\n"
ENCODING = "utf-8"

GET_METADATA_COMMAND = "get_metadata"
RUN_SIMULATION_COMMAND = "run_simulation"


class ProtocolError(Exception):
    """Raised when a solver response cannot be decoded."""


class MalformedResponseError(ProtocolError):
    """The response is not valid JSON or lacks required fields."""


class InconsistentLengthsError(ProtocolError):
    """An output series does not match the length of the time axis."""

    def __init__(self, series_name: str, length: int, expected: int):
        super().__init__(
            f"Series '{series_name}' has {length} samples but the time axis has {expected}"
        )
        self.series_name = series_name
        self.length = length
        self.expected = expected


class NoDataError(ProtocolError):
    """The solver answered with an empty line."""


# =============================================================================
# Encoding
# =============================================================================


def _dump_line(payload: Mapping[str, Any]) -> bytes:
    # json always writes '.' as the decimal point and never groups digits,
    # whatever the process locale is.
    text = json.dumps(payload, separators=(",", ":"), allow_nan=False, ensure_ascii=False)
    return text.encode(ENCODING) + LINE_TERMINATOR


def encode_metadata_request() -> bytes:
    """Encode the metadata request line."""
    return _dump_line({"command": GET_METADATA_COMMAND})


def encode_run_request(parameters: Mapping[str, float]) -> bytes:
    """Encode a run request for the given parameter values.

    The values are snapshotted, so the caller may keep editing ``parameters``
    after the call.

    Raises:
        ValueError: If a value is not a finite number.
    """
    snapshot = ParameterSet(parameters).to_dict()
    return _dump_line({"command": RUN_SIMULATION_COMMAND, "parameters": snapshot})


def encode_response(result: ResultModel) -> bytes:
    """Encode ``result`` in the solver's response format."""
    payload: dict[str, list[float]] = {TIME_KEY: [float(v) for v in result.time]}
    for name, series in result.outputs.items():
        payload[name] = [float(v) for v in series]
    return _dump_line(payload)


# =============================================================================
# Decoding
# =============================================================================


def _reject_constant(token: str) -> float:
    raise MalformedResponseError(f"Non-finite number '{token}' in response")


def _load_object(line: str | bytes) -> dict[str, Any]:
    if isinstance(line, bytes):
        try:
            line = line.decode(ENCODING)
        except UnicodeDecodeError as exc:
            raise MalformedResponseError(f"Response is not valid UTF-8: {exc}") from exc

    text = line.strip()
    if not text:
        raise NoDataError("No data received from solver")
    if "\n" in text:
        raise MalformedResponseError("Response spans more than one line")

    try:
        payload = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Invalid JSON in response: {exc.msg}") from exc
    except (ValueError, RecursionError) as exc:
        # Integer literals beyond the conversion digit limit, or nesting too deep.
        raise MalformedResponseError(f"Unreadable response: {exc}") from exc

    if not isinstance(payload, dict):
        raise MalformedResponseError("Response must be a JSON object")
    return payload


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _numeric_array(name: str, values: Any) -> list[float]:
    if not isinstance(values, list):
        raise MalformedResponseError(f"Field '{name}' must be an array")
    for item in values:
        if not _is_number(item):
            raise MalformedResponseError(f"Field '{name}' contains a non-numeric value: {item!r}")
    try:
        floats = [float(item) for item in values]
    except OverflowError as exc:
        raise MalformedResponseError(f"Field '{name}' contains a number out of range") from exc
    if not all(math.isfinite(item) for item in floats):
        raise MalformedResponseError(f"Field '{name}' contains a non-finite value")
    return floats


def decode_metadata(line: str | bytes) -> ModelMetadata:
    """Decode a metadata response line.

    Raises:
        NoDataError: If the line is empty.
        MalformedResponseError: If the line is not a valid metadata record.
    """
    payload = _load_object(line)

    model_name = payload.get("modelName")
    if not isinstance(model_name, str):
        raise MalformedResponseError("Metadata is missing 'modelName'")

    raw_parameters = payload.get("parameters")
    if not isinstance(raw_parameters, list):
        raise MalformedResponseError("Metadata is missing 'parameters'")

    parameters = ParameterSet()
    for entry in raw_parameters:
        if not isinstance(entry, dict):
            raise MalformedResponseError("Metadata parameter entries must be objects")
        name = entry.get("name")
        value = entry.get("value")
        if not isinstance(name, str) or not name or not _is_number(value):
            raise MalformedResponseError(f"Invalid metadata parameter entry: {entry!r}")
        try:
            parameters[name] = value
        except (ValueError, OverflowError) as exc:
            raise MalformedResponseError(str(exc)) from exc

    outputs = payload.get("outputs")
    if not isinstance(outputs, list) or not all(isinstance(name, str) for name in outputs):
        raise MalformedResponseError("Metadata is missing 'outputs'")

    return ModelMetadata(model_name=model_name, parameters=parameters, outputs=tuple(outputs))


def decode_result(line: str | bytes) -> ResultModel:
    """Decode a simulation result line.

    Every array field other than ``time`` is treated as a model output.
    Non-array fields are ignored.

    Raises:
        NoDataError: If the line is empty.
        MalformedResponseError: If the JSON is invalid or the time axis is
            missing, empty or decreasing.
        InconsistentLengthsError: If an output length differs from the time
            axis length.
    """
    payload = _load_object(line)

    if TIME_KEY not in payload:
        raise MalformedResponseError("Result is missing 'time'")
    time = _numeric_array(TIME_KEY, payload[TIME_KEY])
    if not time:
        raise MalformedResponseError("Result time axis is empty")
    if any(later < earlier for earlier, later in zip(time, time[1:])):
        raise MalformedResponseError("Result time axis is not non-decreasing")

    outputs: dict[str, list[float]] = {}
    for name, values in payload.items():
        if name == TIME_KEY or not isinstance(values, list):
            continue
        series = _numeric_array(name, values)
        if len(series) != len(time):
            raise InconsistentLengthsError(name, len(series), len(time))
        outputs[name] = series

    return ResultModel(time=time, outputs=outputs)
