"""
Domain layer: proxy tunnel, SSH authentication, interactive session
"""
from .proxy import ProxyScheme, ProxyEndpoint, Destination, dial
from .ssh import PublicKeyAuth, InteractiveAuth, SessionConfig, SSHConnection, authenticate
from .session import CancellationToken, InteractiveSession, RelayOutcome
from .service import SessionPipeline

__all__ = [
    "ProxyScheme",
    "ProxyEndpoint",
    "Destination",
    "dial",
    "PublicKeyAuth",
    "InteractiveAuth",
    "SessionConfig",
    "SSHConnection",
    "authenticate",
    "CancellationToken",
    "InteractiveSession",
    "RelayOutcome",
    "SessionPipeline",
]
