"""
proxyssh - interactive SSH client that reaches its host through a proxy

Provides a single pipeline:
- Proxy tunnel dialer (direct, HTTP CONNECT, HTTPS CONNECT, SOCKS4/4a, SOCKS5)
- SSH authenticator (public key or keyboard-interactive)
- Interactive session relay (PTY, shell, stdin/stdout/stderr)
"""

__version__ = "0.1.0"

# Export domain components
from .domain import (
    ProxyScheme,
    ProxyEndpoint,
    Destination,
    dial,
    PublicKeyAuth,
    InteractiveAuth,
    SessionConfig,
    SSHConnection,
    authenticate,
    CancellationToken,
    InteractiveSession,
    RelayOutcome,
    SessionPipeline,
)

__all__ = [
    # Version
    "__version__",
    # Proxy
    "ProxyScheme",
    "ProxyEndpoint",
    "Destination",
    "dial",
    # SSH
    "PublicKeyAuth",
    "InteractiveAuth",
    "SessionConfig",
    "SSHConnection",
    "authenticate",
    # Session
    "CancellationToken",
    "InteractiveSession",
    "RelayOutcome",
    "SessionPipeline",
]
