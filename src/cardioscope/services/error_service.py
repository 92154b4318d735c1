"""Error handling service for user-friendly error messages."""

from dataclasses import dataclass, replace
from enum import Enum, auto

from PySide6.QtCore import QObject, Signal
from PySide6.QtWidgets import QMessageBox, QWidget

from cardioscope.services.protocol_codec import (
    InconsistentLengthsError,
    MalformedResponseError,
    NoDataError,
    ProtocolError,
)
from cardioscope.services.simulation_channel import (
    BusyError,
    RequestCancelledError,
    SolverClosedError,
    SolverConnectionError,
    SolverRefusedError,
    SolverTimeoutError,
)


class ErrorSeverity(Enum):
    """Error severity levels."""

    INFO = auto()
    WARNING = auto()
    ERROR = auto()
    CRITICAL = auto()


@dataclass
class ErrorInfo:
    """Information about an error."""

    title: str
    message: str
    details: str = ""
    severity: ErrorSeverity = ErrorSeverity.ERROR
    suggestion: str = ""


# User-friendly error message mappings
ERROR_MESSAGES = {
    # Connection errors
    "solver_refused": ErrorInfo(
        title="Solver Not Running",
        message="The solver refused the connection.",
        suggestion="Start the solver and check the host and port in the connection settings.",
    ),
    "solver_closed": ErrorInfo(
        title="Connection Lost",
        message="The solver closed the connection before sending a result.",
        suggestion="Check the solver log for errors, then run the simulation again.",
    ),
    "solver_timeout": ErrorInfo(
        title="Solver Timeout",
        message="The solver did not answer in time.",
        suggestion="Increase the timeout or try simpler parameter values.",
    ),
    "solver_unreachable": ErrorInfo(
        title="Connection Failed",
        message="Unable to communicate with the solver.",
        suggestion="Check the network connection and the solver address.",
    ),
    "request_cancelled": ErrorInfo(
        title="Simulation Cancelled",
        message="The simulation request was cancelled.",
        severity=ErrorSeverity.INFO,
    ),
    "request_busy": ErrorInfo(
        title="Simulation Running",
        message="A simulation is already running.",
        suggestion="Wait for the current run to finish or stop it first.",
        severity=ErrorSeverity.WARNING,
    ),
    # Protocol errors
    "response_malformed": ErrorInfo(
        title="Invalid Response",
        message="The solver sent a response that could not be read.",
        suggestion="Make sure the solver version matches this application.",
    ),
    "response_inconsistent": ErrorInfo(
        title="Inconsistent Results",
        message="The solver returned series of different lengths.",
        suggestion="The result was discarded. Check the solver output configuration.",
    ),
    "response_empty": ErrorInfo(
        title="No Results",
        message="The solver answered without any data.",
        suggestion="Check the solver log for errors.",
        severity=ErrorSeverity.WARNING,
    ),
}

# Checked in order; subclasses before their bases.
_EXCEPTION_KEYS = [
    (SolverRefusedError, "solver_refused"),
    (SolverClosedError, "solver_closed"),
    (SolverTimeoutError, "solver_timeout"),
    (RequestCancelledError, "request_cancelled"),
    (SolverConnectionError, "solver_unreachable"),
    (BusyError, "request_busy"),
    (InconsistentLengthsError, "response_inconsistent"),
    (NoDataError, "response_empty"),
    (MalformedResponseError, "response_malformed"),
    (ProtocolError, "response_malformed"),
]


def error_key_for(exception: Exception) -> str | None:
    """Return the ERROR_MESSAGES key describing ``exception``."""
    for exc_type, key in _EXCEPTION_KEYS:
        if isinstance(exception, exc_type):
            return key
    return None


def describe_exception(exception: Exception, context: str = "") -> ErrorInfo:
    """Build the ErrorInfo shown for ``exception``."""
    key = error_key_for(exception)
    if key is not None:
        return replace(ERROR_MESSAGES[key], details=str(exception))
    if isinstance(exception, ValueError):
        return ErrorInfo(
            title="Invalid Value",
            message=f"An invalid value was provided{f' for {context}' if context else ''}.",
            details=str(exception),
            suggestion="Check the input values and try again.",
        )
    return ErrorInfo(
        title="Error",
        message=f"An unexpected error occurred{f' while {context}' if context else ''}.",
        details=f"{type(exception).__name__}: {exception}",
        suggestion="Please try again. If the problem persists, check the log output.",
    )


class ErrorService(QObject):
    """Service for handling and displaying errors."""

    error_occurred = Signal(str, str, str)  # title, message, details

    def __init__(self, parent: QWidget | None = None):
        super().__init__(parent)
        self._parent_widget = parent

    def set_parent_widget(self, widget: QWidget) -> None:
        """Set the parent widget for dialogs."""
        self._parent_widget = widget

    def show_error(self, error_key: str, details: str = "") -> None:
        """Show an error dialog using a predefined error key."""
        info = ERROR_MESSAGES.get(error_key)
        if info is None:
            info = ErrorInfo(title="Error", message=f"An error occurred: {error_key}", details=details)
        elif details:
            info = replace(info, details=details)
        self._display_error(info)

    def show_exception(self, exception: Exception, context: str = "") -> None:
        """Show an error dialog for an exception with context."""
        self._display_error(describe_exception(exception, context))

    def _display_error(self, info: ErrorInfo) -> None:
        """Display the error dialog."""
        # Emit signal for logging/monitoring
        self.error_occurred.emit(info.title, info.message, info.details)

        full_message = info.message
        if info.suggestion:
            full_message += f"\n\n{info.suggestion}"
        if info.details:
            full_message += f"\n\nDetails: {info.details}"

        if info.severity == ErrorSeverity.INFO:
            QMessageBox.information(self._parent_widget, info.title, full_message)
        elif info.severity == ErrorSeverity.WARNING:
            QMessageBox.warning(self._parent_widget, info.title, full_message)
        else:  # ERROR, CRITICAL
            QMessageBox.critical(self._parent_widget, info.title, full_message)
