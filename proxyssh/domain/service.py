"""
Session pipeline service - dial, authenticate, relay
"""
from typing import Callable, Optional

from ..core.interfaces import HostKeyPolicy
from ..core.logging import get_logger
from ..core.telemetry import get_telemetry
from .proxy import ProxyEndpoint, Destination, ProxyDialer
from .ssh import AuthMethod, SessionConfig, SSHConnection, authenticate
from .session import CancellationToken, InteractiveSession, LocalStreams, RelayOutcome

logger = get_logger(__name__)
telemetry = get_telemetry()


class SessionPipeline:
    """
    Session pipeline - pure business logic.

    Runs the three stages strictly in order; each stage starts only after the
    previous one succeeded, and whatever an earlier stage created is closed
    if a later one fails. No dependency on CLI, Typer or terminal state.
    """

    def __init__(
        self,
        proxy: ProxyEndpoint,
        destination: Destination,
        user: str,
        auth_method: AuthMethod,
        session_config: SessionConfig,
        host_key_policy: Optional[HostKeyPolicy] = None,
        connect_timeout: Optional[float] = None,
        keepalive: int = 0,
    ):
        """
        Initialize pipeline.

        Args:
            proxy: Proxy endpoint
            destination: SSH server behind the proxy
            user: Remote username
            auth_method: The single authentication method for this run
            session_config: PTY parameters
            host_key_policy: Host key policy (default: accept any)
            connect_timeout: Bound for dial, handshake and key auth (None = none)
            keepalive: SSH keepalive interval in seconds (0 = off)
        """
        self.proxy = proxy
        self.destination = destination
        self.user = user
        self.auth_method = auth_method
        self.session_config = session_config
        self.host_key_policy = host_key_policy
        self.connect_timeout = connect_timeout
        self.keepalive = keepalive

    def connect(self) -> SSHConnection:
        """Dial the tunnel and authenticate over it"""
        stream = ProxyDialer(self.proxy, timeout=self.connect_timeout).dial(self.destination)
        try:
            return authenticate(
                stream,
                self.user,
                self.auth_method,
                str(self.destination),
                host_key_policy=self.host_key_policy,
                timeout=self.connect_timeout,
                keepalive=self.keepalive,
            )
        except BaseException:
            stream.close()
            raise

    def run(
        self,
        streams: Optional[LocalStreams] = None,
        cancel: Optional[CancellationToken] = None,
        on_relaying: Optional[Callable[[InteractiveSession], None]] = None,
    ) -> RelayOutcome:
        """
        Run the whole pipeline.

        Args:
            streams: Local streams (default: process standard streams)
            cancel: Token that ends the relay
            on_relaying: Called once the relay loops are running

        Returns:
            How the relay ended
        """
        logger.info(f"Connecting to {self.destination} via {self.proxy}")
        connection = self.connect()

        session = InteractiveSession(connection, self.session_config, streams=streams, cancel=cancel)
        session.request_pty()
        session.start_shell()
        session.start_relay()
        if on_relaying is not None:
            try:
                on_relaying(session)
            except BaseException:
                session.close()
                raise
        return session.wait()
