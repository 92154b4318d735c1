"""Tests for the threaded simulation service."""

import socket
import threading

import pytest

from cardioscope.models.simulation import ModelMetadata, ResultModel
from cardioscope.services.simulation_channel import SolverRefusedError
from cardioscope.services.simulation_service import (
    ConnectionSettings,
    SimulationService,
    SimulationState,
    SimulationWorker,
)


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def service(qapp, mock_solver):
    service = SimulationService()
    service.connection = ConnectionSettings("127.0.0.1", mock_solver.port, timeout=5.0)
    yield service
    service.stop()
    service.wait()


class TestSimulationService:
    """Tests for SimulationService."""

    def test_initial_state(self, qapp):
        service = SimulationService()
        assert service.state == SimulationState.IDLE
        assert service.metadata is None
        assert service.last_result is None
        assert not service.is_running

    def test_load_metadata(self, qtbot, service):
        with qtbot.waitSignal(service.metadata_loaded, timeout=5000) as blocker:
            assert service.load_metadata()
        metadata = blocker.args[0]
        assert isinstance(metadata, ModelMetadata)
        assert service.metadata is metadata
        qtbot.waitUntil(lambda: service.state == SimulationState.COMPLETED, timeout=5000)
        assert service.last_result is None

    def test_load_metadata_then_run_defaults(self, qtbot, service):
        with qtbot.waitSignal(service.simulation_finished, timeout=10000) as blocker:
            service.load_metadata(run_after=True)
        assert isinstance(blocker.args[0], ResultModel)
        assert service.metadata is not None

    def test_run_simulation(self, qtbot, service):
        with qtbot.waitSignal(service.simulation_finished, timeout=10000) as blocker:
            service.run_simulation({"heartRate": 60.0, "R1": 0.02, "R2": 0.5, "C": 1.5})
        result = blocker.args[0]
        assert service.last_result is result
        assert "pa" in result
        qtbot.waitUntil(lambda: service.state == SimulationState.COMPLETED, timeout=5000)

    def test_state_changes_to_running(self, qtbot, service):
        with qtbot.waitSignal(service.state_changed, timeout=1000) as blocker:
            service.load_metadata()
        assert blocker.args == [SimulationState.RUNNING]
        service.wait()

    def test_rejects_second_request_while_running(self, qtbot, service):
        assert service.load_metadata()
        with qtbot.waitSignal(service.error, timeout=1000) as blocker:
            assert not service.run_simulation({"heartRate": 70.0})
        assert blocker.args == ["Simulation already running"]
        service.wait()

    def test_refused_connection_reports_error(self, qtbot, qapp):
        service = SimulationService()
        service.connection = ConnectionSettings("127.0.0.1", _unused_port(), timeout=2.0)
        with qtbot.waitSignal(service.failed, timeout=5000) as blocker:
            service.run_simulation({"heartRate": 70.0})
        assert isinstance(blocker.args[0], SolverRefusedError)
        assert service.state == SimulationState.ERROR
        assert isinstance(service.last_error, SolverRefusedError)
        service.wait()

    def test_connection_persisted_to_settings(self, qapp):
        class FakeSettings:
            def __init__(self):
                self.saved = None

            def get_connection_settings(self):
                return ConnectionSettings("solver.local", 2100)

            def set_connection_settings(self, connection):
                self.saved = connection

        settings = FakeSettings()
        service = SimulationService(settings)
        assert service.connection.host == "solver.local"

        service.connection = ConnectionSettings("127.0.0.1", 2000)
        assert settings.saved.port == 2000


class TestCancellation:
    """Tests for stopping a simulation in flight."""

    def test_stop_cancels_pending_run(self, qtbot, qapp, scripted_solver):
        gate = threading.Event()
        scripted_solver.responses.extend([gate, '{"time":[0,1],"pa":[1,2]}'])
        service = SimulationService()
        service.connection = ConnectionSettings("127.0.0.1", scripted_solver.server.port, timeout=10.0)
        try:
            assert service.run_simulation({"heartRate": 70.0})
            assert scripted_solver.received.wait(5)

            with qtbot.assertNotEmitted(service.simulation_finished, wait=300):
                with qtbot.assertNotEmitted(service.failed, wait=300):
                    service.stop()
            assert service.state == SimulationState.CANCELLED
            assert service.last_result is None
        finally:
            gate.set()
            service.wait()

    def test_stop_when_idle_keeps_state(self, qapp):
        service = SimulationService()
        service.stop()
        assert service.state == SimulationState.IDLE

    def test_worker_cancelled_before_start_sends_nothing(self, qapp, scripted_solver):
        connection = ConnectionSettings("127.0.0.1", scripted_solver.server.port, timeout=5.0)
        worker = SimulationWorker(connection, parameters={"heartRate": 70.0}, fetch_metadata=True)
        emitted = []
        worker.metadata_loaded.connect(emitted.append)
        worker.result_ready.connect(emitted.append)
        worker.error.connect(emitted.append)

        worker.cancel()
        worker.run()

        assert worker.was_cancelled
        assert emitted == []
        assert scripted_solver.requests == []
