"""Blocking TCP channel to the cardiovascular solver."""

from __future__ import annotations

import logging
import socket
import threading
from enum import Enum, auto
from typing import Callable, Mapping

from cardioscope.models.simulation import ModelMetadata, ResultModel
from cardioscope.services.protocol_codec import (
    LINE_TERMINATOR,
    ProtocolError,
    decode_metadata,
    decode_result,
    encode_metadata_request,
    encode_run_request,
)

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 2000

_READ_CHUNK = 65536
# Guardrail for a peer that never sends a newline.
MAX_LINE_BYTES = 64_000_000


class ChannelState(Enum):
    """Lifecycle state of a SimulationChannel."""

    IDLE = auto()
    CONNECTING = auto()
    AWAITING_RESPONSE = auto()
    FAILED = auto()


class ChannelError(Exception):
    """Base class for channel failures."""


class SolverConnectionError(ChannelError):
    """The connection to the solver failed or was lost."""


class SolverRefusedError(SolverConnectionError):
    """The solver refused the connection."""


class SolverClosedError(SolverConnectionError):
    """The solver closed the connection before answering."""


class SolverTimeoutError(SolverConnectionError):
    """Connecting or waiting for a response timed out."""


class RequestCancelledError(SolverConnectionError):
    """The caller cancelled the pending request."""


class BusyError(ChannelError):
    """A request is already awaiting a response on this channel."""


class SimulationChannel:
    """One connection to the solver carrying one exchange at a time.

    ``request`` blocks until a full response line arrives. Only one request
    may be outstanding; a concurrent call raises :class:`BusyError` without
    touching the socket. ``cancel`` may be called from any thread to abort
    a blocked request.

    Args:
        timeout: Default timeout in seconds for connect and each request.
            ``None`` waits indefinitely.
        state_listener: Optional callable invoked with each new state.
    """

    def __init__(
        self,
        timeout: float | None = None,
        state_listener: Callable[[ChannelState], None] | None = None,
    ):
        self._timeout = timeout
        self._state_listener = state_listener
        self._state = ChannelState.IDLE
        self._state_lock = threading.Lock()
        self._request_lock = threading.Lock()
        self._socket: socket.socket | None = None
        self._buffer = bytearray()
        self._cancelled = threading.Event()
        self._address: tuple[str, int] | None = None
        self._last_error: Exception | None = None

    def __enter__(self) -> "SimulationChannel":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._socket is not None

    @property
    def address(self) -> tuple[str, int] | None:
        return self._address

    @property
    def last_error(self) -> Exception | None:
        """The most recent failure, cleared by the next successful exchange."""
        return self._last_error

    def _set_state(self, state: ChannelState) -> None:
        with self._state_lock:
            self._state = state
        if self._state_listener is not None:
            self._state_listener(state)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, timeout: float | None = None) -> None:
        """Open the connection.

        Allowed from ``IDLE`` and ``FAILED``. There is no automatic retry.

        Raises:
            BusyError: If a request is in flight.
            SolverRefusedError: If the solver refused the connection.
            SolverTimeoutError: If connecting timed out.
            SolverConnectionError: For any other socket failure.
        """
        if not self._request_lock.acquire(blocking=False):
            raise BusyError("Cannot reconnect while a request is pending")
        try:
            self._close_socket()
            self._cancelled.clear()
            self._set_state(ChannelState.CONNECTING)
            effective_timeout = self._timeout if timeout is None else timeout
            logger.info("Connecting to solver at %s:%s", host, port)
            try:
                sock = socket.create_connection((host, port), timeout=effective_timeout)
            except socket.timeout as exc:
                self._fail(SolverTimeoutError(f"Timed out connecting to {host}:{port}"), exc)
            except ConnectionRefusedError as exc:
                self._fail(SolverRefusedError(f"Connection to {host}:{port} refused"), exc)
            except OSError as exc:
                self._fail(SolverConnectionError(f"Cannot connect to {host}:{port}: {exc}"), exc)

            self._socket = sock
            self._address = (host, port)
            self._last_error = None
            self._set_state(ChannelState.IDLE)
        finally:
            self._request_lock.release()

    def close(self) -> None:
        """Close the connection.

        An idle channel returns to ``IDLE``. A pending request is cancelled
        instead: it raises :class:`RequestCancelledError` and leaves the
        channel ``FAILED``.
        """
        self._cancelled.set()
        if not self._request_lock.acquire(blocking=False):
            # The pending request notices the cancellation and cleans up.
            self._shutdown_socket()
            return
        try:
            self._close_socket()
            self._set_state(ChannelState.IDLE)
        finally:
            self._request_lock.release()

    def cancel(self) -> None:
        """Abort the pending request, if any.

        The blocked ``request`` call raises :class:`RequestCancelledError`.
        The cancellation sticks until the next ``connect``, so a request
        that has not reached the socket yet is cancelled as well. The
        connection is unusable afterwards and must be reopened.
        """
        logger.info("Cancelling solver request")
        self._cancelled.set()
        self._shutdown_socket()

    def _shutdown_socket(self) -> None:
        sock = self._socket
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected.
            pass

    def _close_socket(self) -> None:
        sock, self._socket = self._socket, None
        self._buffer.clear()
        if sock is not None:
            sock.close()

    def _fail(self, error: SolverConnectionError, cause: BaseException | None = None):
        self._close_socket()
        self._last_error = error
        self._set_state(ChannelState.FAILED)
        logger.warning("Solver channel failed: %s", error)
        raise error from cause

    # ------------------------------------------------------------------
    # Exchanges
    # ------------------------------------------------------------------

    def request(self, message: bytes, timeout: float | None = None) -> bytes:
        """Send one message and return the single response line.

        The line is returned undecoded, without its terminator; decoding is
        left to the protocol codec.

        Raises:
            BusyError: If another request is still awaiting its response.
            SolverConnectionError: If the channel is not connected, the
                connection closes, the wait times out or is cancelled.
        """
        if not self._request_lock.acquire(blocking=False):
            raise BusyError("A request is already awaiting a response on this channel")
        try:
            if self._socket is None:
                raise SolverConnectionError("Channel is not connected")

            self._set_state(ChannelState.AWAITING_RESPONSE)
            if self._cancelled.is_set():
                self._fail(RequestCancelledError("Request cancelled"))
            if not message.endswith(LINE_TERMINATOR):
                message += LINE_TERMINATOR

            effective_timeout = self._timeout if timeout is None else timeout
            try:
                self._socket.settimeout(effective_timeout)
                self._socket.sendall(message)
                logger.debug("Sent %d bytes to solver", len(message))
                line = self._read_line()
            except socket.timeout as exc:
                self._fail(SolverTimeoutError("Timed out waiting for the solver response"), exc)
            except OSError as exc:
                if self._cancelled.is_set():
                    self._fail(RequestCancelledError("Request cancelled"), exc)
                self._fail(SolverConnectionError(f"Connection error: {exc}"), exc)

            logger.debug("Received %d bytes from solver", len(line))
            self._last_error = None
            self._set_state(ChannelState.IDLE)
            return line
        finally:
            self._request_lock.release()

    def _read_line(self) -> bytes:
        while True:
            index = self._buffer.find(LINE_TERMINATOR)
            if index >= 0:
                line = bytes(self._buffer[:index])
                del self._buffer[: index + 1]
                return line.rstrip(b"\r")

            if len(self._buffer) > MAX_LINE_BYTES:
                self._fail(SolverConnectionError("Response line exceeds the size limit"))

            chunk = self._socket.recv(_READ_CHUNK)
            if not chunk:
                if self._cancelled.is_set():
                    self._fail(RequestCancelledError("Request cancelled"))
                self._fail(SolverClosedError("Solver closed the connection before responding"))
            self._buffer.extend(chunk)

    def _exchange(self, message: bytes, decoder, timeout: float | None):
        line = self.request(message, timeout=timeout)
        try:
            return decoder(line)
        except ProtocolError as exc:
            # The malformed response is discarded; the stream stays line aligned.
            self._last_error = exc
            logger.warning("Discarding solver response: %s", exc)
            raise

    def fetch_metadata(self, timeout: float | None = None) -> ModelMetadata:
        """Request the model metadata."""
        return self._exchange(encode_metadata_request(), decode_metadata, timeout)

    def run_simulation(self, parameters: Mapping[str, float], timeout: float | None = None) -> ResultModel:
        """Run a simulation with ``parameters`` and return the decoded result."""
        return self._exchange(encode_run_request(parameters), decode_result, timeout)
