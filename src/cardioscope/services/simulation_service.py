"""Simulation service running solver exchanges off the UI thread."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from PySide6.QtCore import QObject, QThread, Signal

from cardioscope.models.simulation import ModelMetadata, ParameterSet, ResultModel
from cardioscope.services.protocol_codec import ProtocolError
from cardioscope.services.simulation_channel import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    ChannelError,
    RequestCancelledError,
    SimulationChannel,
)

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from cardioscope.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


class SimulationState(Enum):
    """State of the simulation service."""

    IDLE = auto()
    RUNNING = auto()
    CANCELLED = auto()
    COMPLETED = auto()
    ERROR = auto()


@dataclass
class ConnectionSettings:
    """Where the solver listens and how long to wait for it."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float | None = 30.0


class SimulationWorker(QThread):
    """Worker thread owning one channel for one connect/exchange/close cycle."""

    metadata_loaded = Signal(object)  # ModelMetadata
    result_ready = Signal(object)  # ResultModel
    error = Signal(object)  # Exception

    def __init__(
        self,
        connection: ConnectionSettings,
        parameters: Mapping[str, float] | None = None,
        fetch_metadata: bool = False,
        run_defaults: bool = False,
        parent=None,
    ):
        super().__init__(parent)
        self._connection = connection
        # Snapshot so edits made while the request is in flight do not leak in.
        self._parameters = ParameterSet(parameters) if parameters is not None else None
        self._fetch_metadata = fetch_metadata
        self._run_defaults = run_defaults
        self._channel = SimulationChannel(timeout=connection.timeout)
        self._cancelled = False

    def run(self) -> None:
        """Connect, run the requested exchanges and close."""
        try:
            if self._cancelled:
                return
            with self._channel as channel:
                channel.connect(self._connection.host, self._connection.port)
                if self._fetch_metadata and not self._cancelled:
                    metadata = channel.fetch_metadata()
                    logger.info("Loaded model '%s'", metadata.model_name)
                    self.metadata_loaded.emit(metadata)
                    if self._parameters is None and self._run_defaults:
                        self._parameters = metadata.parameters.copy()
                if self._parameters is not None and not self._cancelled:
                    result = channel.run_simulation(self._parameters)
                    logger.info("Received %d samples from solver", result.sample_count)
                    self.result_ready.emit(result)
        except (ChannelError, ProtocolError, ValueError) as exc:
            self.error.emit(exc)

    def cancel(self) -> None:
        """Abort the exchange in progress."""
        self._cancelled = True
        self._channel.cancel()

    @property
    def was_cancelled(self) -> bool:
        return self._cancelled


class SimulationService(QObject):
    """Service for requesting metadata and simulation runs from the solver."""

    # Signals
    state_changed = Signal(SimulationState)
    metadata_loaded = Signal(object)  # ModelMetadata
    simulation_finished = Signal(object)  # ResultModel
    error = Signal(str)
    failed = Signal(object)  # Exception

    def __init__(self, settings_service: "SettingsService" | None = None, parent=None):
        super().__init__(parent)

        self._state = SimulationState.IDLE
        self._worker: SimulationWorker | None = None
        self._settings_service = settings_service
        self._connection = ConnectionSettings()
        self._metadata: ModelMetadata | None = None
        self._last_result: ResultModel | None = None
        self._last_error: Exception | None = None
        if settings_service is not None:
            self._connection = settings_service.get_connection_settings()

    @property
    def state(self) -> SimulationState:
        """Get current simulation state."""
        return self._state

    @property
    def connection(self) -> ConnectionSettings:
        return self._connection

    @connection.setter
    def connection(self, value: ConnectionSettings) -> None:
        if self.is_running:
            raise RuntimeError("Cannot change the connection while a simulation is running")
        self._connection = value
        if self._settings_service is not None:
            self._settings_service.set_connection_settings(value)

    @property
    def metadata(self) -> ModelMetadata | None:
        return self._metadata

    @property
    def last_result(self) -> ResultModel | None:
        """Get the last simulation result."""
        return self._last_result

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def is_running(self) -> bool:
        """Check if a request is currently in flight."""
        return self._state == SimulationState.RUNNING

    def load_metadata(self, run_after: bool = False) -> bool:
        """Fetch the model metadata, optionally followed by a default run.

        Returns:
            False when another request is still running.
        """
        return self._start(fetch_metadata=True, parameters=None, run_after=run_after)

    def run_simulation(self, parameters: Mapping[str, float]) -> bool:
        """Run a simulation with ``parameters``."""
        return self._start(fetch_metadata=False, parameters=parameters)

    def _start(
        self,
        fetch_metadata: bool,
        parameters: Mapping[str, float] | None,
        run_after: bool = False,
    ) -> bool:
        if self.is_running:
            self.error.emit("Simulation already running")
            return False

        self._set_state(SimulationState.RUNNING)
        worker = SimulationWorker(
            self._connection,
            parameters=parameters,
            fetch_metadata=fetch_metadata,
            run_defaults=run_after,
        )
        self._worker = worker
        worker.metadata_loaded.connect(self._on_metadata_loaded)
        worker.result_ready.connect(self._on_result_ready)
        worker.error.connect(self._on_error)
        worker.finished.connect(self._on_worker_finished)
        worker.start()
        return True

    def stop(self) -> None:
        """Cancel the request in flight."""
        if self._worker and self._worker.isRunning():
            self._worker.cancel()
            self._worker.wait(5000)  # Wait up to 5 seconds
            self._set_state(SimulationState.CANCELLED)

    def wait(self, msecs: int = 5000) -> bool:
        """Block until the current worker finishes."""
        if self._worker is None:
            return True
        return self._worker.wait(msecs)

    def _set_state(self, state: SimulationState) -> None:
        """Set state and emit signal."""
        self._state = state
        self.state_changed.emit(state)

    def _from_cancelled_worker(self) -> bool:
        worker = self.sender()
        return isinstance(worker, SimulationWorker) and worker.was_cancelled

    def _on_metadata_loaded(self, metadata: ModelMetadata) -> None:
        if self._from_cancelled_worker():
            return
        self._metadata = metadata
        self.metadata_loaded.emit(metadata)

    def _on_result_ready(self, result: ResultModel) -> None:
        if self._from_cancelled_worker():
            logger.info("Discarding result of a cancelled simulation")
            return
        self._last_result = result
        self.simulation_finished.emit(result)

    def _on_error(self, exc: Exception) -> None:
        self._last_error = exc
        if isinstance(exc, RequestCancelledError):
            self._set_state(SimulationState.CANCELLED)
            return
        logger.warning("Simulation request failed: %s", exc)
        self._set_state(SimulationState.ERROR)
        self.failed.emit(exc)
        self.error.emit(str(exc))

    def _on_worker_finished(self) -> None:
        worker = self.sender()
        if self._state == SimulationState.RUNNING:
            self._set_state(SimulationState.COMPLETED)
        if worker is self._worker:
            self._worker = None
        if worker is not None:
            worker.deleteLater()
