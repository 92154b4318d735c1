"""Tests for the stand-in solver."""

import json

import numpy as np
import pytest

from cardioscope.devtools.mock_solver import OUTPUTS, handle_request, simulate_windkessel
from cardioscope.services.protocol_codec import decode_metadata, decode_result
from cardioscope.services.simulation_channel import SimulationChannel


def test_windkessel_result_shape():
    result = simulate_windkessel(heart_rate=60.0, beats=2, dt=0.01)
    assert result.sample_count == 201
    assert set(result.output_names) == set(OUTPUTS)
    assert result.time_range == pytest.approx((0.0, 2.0))


def test_flow_only_during_systole():
    result = simulate_windkessel(heart_rate=60.0, beats=1, dt=0.01)
    flow = result.series("flow")
    assert np.all(flow[result.time >= 0.3] == 0.0)
    assert flow.max() > 0.0


def test_volume_refills_each_beat():
    result = simulate_windkessel(heart_rate=60.0, beats=2, dt=0.01)
    volume = result.series("volume")
    assert volume[0] == volume[100]


def test_metadata_request():
    metadata = decode_metadata(handle_request('{"command":"get_metadata"}'))
    assert metadata.outputs == tuple(OUTPUTS)
    assert metadata.parameters["heartRate"] == 70.0


def test_run_request_uses_parameters():
    line = handle_request('{"command":"run_simulation","parameters":{"heartRate":120.0}}', beats=1)
    result = decode_result(line)
    assert result.time_range[1] == pytest.approx(0.5)


def test_unknown_command():
    assert "error" in json.loads(handle_request('{"command":"reboot"}'))
    assert "error" in json.loads(handle_request("not json"))


@pytest.mark.parametrize(
    "parameters",
    [
        "[70]",
        '"fast"',
        '{"heartRate":0}',
        '{"heartRate":-60}',
        '{"heartRate":0.000001}',
        '{"heartRate":"70"}',
        '{"heartRate":true}',
        '{"C":0}',
        '{"R2":-1}',
        '{"R1":-0.1}',
        '{"R1":' + "9" * 400 + "}",
    ],
)
def test_invalid_parameters_get_error_reply(parameters):
    reply = handle_request('{"command":"run_simulation","parameters":' + parameters + "}", beats=1)
    assert "error" in json.loads(reply)


def test_invalid_parameters_keep_connection_open(mock_solver):
    with SimulationChannel(timeout=5.0) as channel:
        channel.connect("127.0.0.1", mock_solver.port)
        reply = channel.request(b'{"command":"run_simulation","parameters":{"heartRate":0}}')
        assert "error" in json.loads(reply)
        assert channel.fetch_metadata().outputs == tuple(OUTPUTS)
