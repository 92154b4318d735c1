"""Application services for Cardioscope."""

from cardioscope.services.error_service import ErrorInfo, ErrorService, ErrorSeverity
from cardioscope.services.protocol_codec import (
    InconsistentLengthsError,
    MalformedResponseError,
    NoDataError,
    ProtocolError,
)
from cardioscope.services.settings_service import SettingsService
from cardioscope.services.simulation_channel import (
    BusyError,
    ChannelError,
    ChannelState,
    RequestCancelledError,
    SimulationChannel,
    SolverClosedError,
    SolverConnectionError,
    SolverRefusedError,
    SolverTimeoutError,
)
from cardioscope.services.simulation_service import (
    ConnectionSettings,
    SimulationService,
    SimulationState,
)

__all__ = [
    "BusyError",
    "ChannelError",
    "ChannelState",
    "ConnectionSettings",
    "ErrorInfo",
    "ErrorService",
    "ErrorSeverity",
    "InconsistentLengthsError",
    "MalformedResponseError",
    "NoDataError",
    "ProtocolError",
    "RequestCancelledError",
    "SettingsService",
    "SimulationChannel",
    "SimulationService",
    "SimulationState",
    "SolverClosedError",
    "SolverConnectionError",
    "SolverRefusedError",
    "SolverTimeoutError",
]
