"""
Interactive session module
"""
from .cancellation import CancellationToken, cancel_on_signals
from .pty import encode_terminal_modes, request_pty
from .relay import (
    SessionState,
    CloseReason,
    LocalStreams,
    RelayTask,
    RelayOutcome,
    InteractiveSession,
)

__all__ = [
    "CancellationToken",
    "cancel_on_signals",
    "encode_terminal_modes",
    "request_pty",
    "SessionState",
    "CloseReason",
    "LocalStreams",
    "RelayTask",
    "RelayOutcome",
    "InteractiveSession",
]
