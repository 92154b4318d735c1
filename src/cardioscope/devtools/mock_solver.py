#!/usr/bin/env python3
"""Stand-in cardiovascular solver for running Cardioscope without the real one.

Listens on TCP, answers ``get_metadata`` and ``run_simulation`` commands with
a two-element windkessel model driven by a half-sine ejection flow.

Usage:
    python -m cardioscope.devtools.mock_solver
    python -m cardioscope.devtools.mock_solver --port 2001 --beats 5
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import socket
import threading
from typing import Callable

import numpy as np

from cardioscope.models.simulation import DEFAULT_PARAMETER_CONSTRAINTS, ResultModel
from cardioscope.services.protocol_codec import encode_response

logger = logging.getLogger(__name__)

MODEL_NAME = "Two-element windkessel"
OUTPUTS = ["plv", "pa", "flow", "volume"]
MAX_RX_LINE_BYTES = 1_000_000
# Bounds the number of samples per run.
MIN_HEART_RATE = 1.0
MAX_HEART_RATE = 600.0

# Maps one request line to one response line (no terminator); None drops the client.
RequestHandler = Callable[[str], "str | None"]


def simulate_windkessel(
    heart_rate: float = 70.0,
    r1: float = 0.02,
    r2: float = 0.5,
    compliance: float = 1.5,
    beats: int = 3,
    dt: float = 0.001,
) -> ResultModel:
    """Integrate the windkessel model with forward Euler."""
    period = 60.0 / heart_rate
    systole = 0.3 * period
    steps = int(round(beats * period / dt))
    time = np.arange(steps + 1, dtype=np.float64) * dt

    phase = np.mod(time, period)
    flow = np.where(phase < systole, 500.0 * np.sin(np.pi * phase / systole), 0.0)

    pa = np.empty_like(time)
    pa[0] = 80.0
    for i in range(steps):
        pa[i + 1] = pa[i] + dt * (flow[i] - pa[i] / r2) / compliance

    plv = np.where(flow > 0.0, pa + r1 * flow, 8.0)
    ejected = np.cumsum(flow) * dt
    beat_start = np.searchsorted(time, np.floor(time / period) * period)
    volume = 120.0 - (ejected - ejected[beat_start])
    return ResultModel(time=time, outputs={"plv": plv, "pa": pa, "flow": flow, "volume": volume})


def _parameter_problem(params) -> str | None:
    """Describe why ``params`` cannot drive the model, or return None."""
    if not isinstance(params, dict):
        return "parameters must be an object"
    for name, value in params.items():
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return f"parameter {name} must be a number"
        try:
            finite = math.isfinite(value)
        except OverflowError:
            finite = False
        if not finite:
            return f"parameter {name} must be finite"
    if not MIN_HEART_RATE <= params.get("heartRate", 70.0) <= MAX_HEART_RATE:
        return f"parameter heartRate must lie in {MIN_HEART_RATE:g}..{MAX_HEART_RATE:g}"
    for name in ("R2", "C"):
        if params.get(name, 1.0) <= 0:
            return f"parameter {name} must be positive"
    if params.get("R1", 0.0) < 0:
        return "parameter R1 must not be negative"
    return None


def handle_request(line: str, beats: int = 3) -> str:
    """Answer one protocol request."""
    try:
        request = json.loads(line)
    except json.JSONDecodeError:
        return json.dumps({"error": "invalid json"})

    command = request.get("command") if isinstance(request, dict) else None
    if command == "get_metadata":
        return json.dumps(
            {
                "modelName": MODEL_NAME,
                "parameters": [
                    {"name": name, "value": constraint.default}
                    for name, constraint in DEFAULT_PARAMETER_CONSTRAINTS.items()
                ],
                "outputs": OUTPUTS,
            }
        )
    if command == "run_simulation":
        params = request.get("parameters") or {}
        problem = _parameter_problem(params)
        if problem is not None:
            return json.dumps({"error": problem})
        defaults = {name: c.default for name, c in DEFAULT_PARAMETER_CONSTRAINTS.items()}
        defaults.update(params)
        with np.errstate(over="ignore", invalid="ignore"):
            result = simulate_windkessel(
                heart_rate=defaults["heartRate"],
                r1=defaults["R1"],
                r2=defaults["R2"],
                compliance=defaults["C"],
                beats=beats,
            )
        try:
            return encode_response(result).decode("utf-8").rstrip("\n")
        except ValueError:
            # Non-finite samples cannot be written as JSON.
            return json.dumps({"error": "simulation diverged"})
    return json.dumps({"error": f"unknown command: {command}"})


class SolverServer:
    """Multi-client line-oriented TCP server.

    Args:
        handler: Maps a request line to a response line.
        host: Interface to bind.
        port: Port to bind; ``0`` picks a free port (see :attr:`port`).
    """

    def __init__(self, handler: RequestHandler = handle_request, host: str = "127.0.0.1", port: int = 2000):
        self.handler = handler
        self.host = host
        self.port = port
        self._server_sock: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._running = False
        self._client_socks: set[socket.socket] = set()
        self._state_lock = threading.Lock()

    def __enter__(self) -> "SolverServer":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def start(self) -> None:
        if self._running:
            return
        self._server_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server_sock.bind((self.host, self.port))
        self._server_sock.listen(4)
        self._server_sock.settimeout(0.2)
        self.port = self._server_sock.getsockname()[1]
        self._running = True
        self._accept_thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._accept_thread.start()
        logger.info("Mock solver listening on %s:%s", self.host, self.port)

    def stop(self) -> None:
        self._running = False
        if self._server_sock is not None:
            self._server_sock.close()
            self._server_sock = None

        with self._state_lock:
            socks = list(self._client_socks)
            self._client_socks.clear()
        for conn in socks:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            conn.close()

        if self._accept_thread and self._accept_thread.is_alive():
            self._accept_thread.join(timeout=1.5)
        self._accept_thread = None

    def _accept_loop(self) -> None:
        while self._running:
            try:
                conn, addr = self._server_sock.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            with self._state_lock:
                self._client_socks.add(conn)
            logger.debug("Client connected: %s", addr)
            threading.Thread(target=self._client_handler, args=(conn,), daemon=True).start()

    def _client_handler(self, conn: socket.socket) -> None:
        buf = bytearray()
        try:
            while self._running:
                try:
                    data = conn.recv(4096)
                except OSError:
                    break
                if not data:
                    break
                buf.extend(data)
                if len(buf) > MAX_RX_LINE_BYTES and b"\n" not in buf:
                    logger.warning("Dropping oversized unterminated request")
                    buf.clear()
                    continue

                while True:
                    nl = buf.find(b"\n")
                    if nl < 0:
                        break
                    line = bytes(buf[:nl]).decode("utf-8", errors="replace").strip()
                    del buf[: nl + 1]
                    if not line:
                        continue
                    response = self.handler(line)
                    if response is None:
                        # Handler asked to drop the connection without answering.
                        return
                    try:
                        conn.sendall(response.encode("utf-8") + b"\n")
                    except OSError:
                        # Client went away while the response was prepared.
                        return
        finally:
            with self._state_lock:
                self._client_socks.discard(conn)
            conn.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Mock cardiovascular solver")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default 127.0.0.1)")
    parser.add_argument("--port", type=int, default=2000, help="TCP port (default 2000)")
    parser.add_argument("--beats", type=int, default=3, help="Cardiac cycles per run (default 3)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    server = SolverServer(lambda line: handle_request(line, beats=args.beats), args.host, args.port)
    server.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()


if __name__ == "__main__":
    main()
