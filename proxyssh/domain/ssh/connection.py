from __future__ import annotations

from typing import Optional

import paramiko

from ...core.exceptions import TransportError
from ...core.logging import get_logger

logger = get_logger(__name__)


class SSHConnection:
    """
    Authenticated SSH connection over a tunneled socket.

    - Owns the paramiko Transport and, through it, the tunnel socket
    - Hands out at most one session channel
    - Supports with-statement cleanup
    """

    def __init__(self, transport: paramiko.Transport, destination_name: str) -> None:
        self.transport = transport
        self.destination_name = destination_name
        self._channel: Optional[paramiko.Channel] = None

    @property
    def username(self) -> Optional[str]:
        return self.transport.get_username()

    def is_alive(self) -> bool:
        return self.transport.is_active()

    def open_session(self) -> paramiko.Channel:
        """
        Open the single session channel of this connection.

        Raises:
            RuntimeError: If a session was already opened
            TransportError: If the server refuses the channel
        """
        if self._channel is not None:
            raise RuntimeError("A session is already open on this connection")
        try:
            self._channel = self.transport.open_session()
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise TransportError(f"Failed to open session on {self.destination_name}: {e}") from e
        return self._channel

    def close(self) -> None:
        """Close session channel and transport"""
        if self._channel is not None:
            try:
                self._channel.close()
            except Exception:
                pass
        if self.transport.is_active():
            logger.debug(f"Closing connection to {self.destination_name}")
        self.transport.close()

    # --------------------
    # Context manager
    # --------------------
    def __enter__(self) -> SSHConnection:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
