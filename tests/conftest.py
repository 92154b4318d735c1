"""Pytest configuration and fixtures."""

import os
import threading

import pytest

# Run Qt headless when no display server is available.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtWidgets import QApplication

from cardioscope.devtools.mock_solver import SolverServer, handle_request


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication instance for the entire test session."""
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def result():
    """Create the five-sample result used across rendering tests."""
    from cardioscope.models.simulation import ResultModel

    return ResultModel(
        time=[0.0, 1.0, 2.0, 3.0, 4.0],
        outputs={"pa": [80.0, 90.0, 120.0, 100.0, 85.0], "plv": [5.0, 5.0, 5.0, 5.0, 5.0]},
    )


class ScriptedSolver:
    """Solver handler returning queued responses and recording requests.

    A queued ``threading.Event`` makes the handler wait for it before
    answering with the next queued response. ``None`` closes the connection.
    """

    def __init__(self):
        self.requests: list[str] = []
        self.responses: list = []
        self.received = threading.Event()

    def __call__(self, line: str):
        self.requests.append(line)
        self.received.set()
        if not self.responses:
            return handle_request(line, beats=1)
        response = self.responses.pop(0)
        if isinstance(response, threading.Event):
            response.wait(5)
            response = self.responses.pop(0) if self.responses else handle_request(line, beats=1)
        return response


@pytest.fixture
def scripted_solver():
    """Running solver whose answers the test controls."""
    script = ScriptedSolver()
    server = SolverServer(script, port=0)
    server.start()
    script.server = server
    try:
        yield script
    finally:
        server.stop()


@pytest.fixture
def mock_solver():
    """Running mock solver answering with the windkessel model."""
    server = SolverServer(lambda line: handle_request(line, beats=1), port=0)
    server.start()
    try:
        yield server
    finally:
        server.stop()
