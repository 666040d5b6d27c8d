"""
Unified exception definitions
"""
from typing import Optional


class ProxySSHError(Exception):
    """Base exception class"""
    pass


# ============================================================
# Configuration
# ============================================================

class ConfigurationError(ProxySSHError):
    """Bad arguments, URL or configuration file"""
    pass


class UnsupportedProxyScheme(ConfigurationError):
    """Proxy URL scheme is not one of the supported schemes"""
    pass


class InvalidDestination(ConfigurationError):
    """Destination is not a valid host:port"""
    pass


class KeyLoadError(ConfigurationError):
    """Private key file could not be read or decoded"""
    pass


# ============================================================
# Proxy tunnel
# ============================================================

class ProxyError(ProxySSHError):
    """Proxy error"""
    pass


class ProxyUnreachable(ProxyError):
    """Could not open a connection to the proxy"""
    pass


class TunnelRejected(ProxyError):
    """Proxy refused to open the tunnel"""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class ProtocolError(ProxyError):
    """Proxy handshake was malformed or truncated"""
    pass


# ============================================================
# SSH
# ============================================================

class TransportError(ProxySSHError):
    """SSH transport I/O error"""
    pass


class AuthenticationFailed(ProxySSHError):
    """SSH handshake or user authentication failed"""
    pass


class HostKeyRejected(AuthenticationFailed):
    """Server host key was rejected by the host key policy"""
    pass


# ============================================================
# Session
# ============================================================

class SessionError(ProxySSHError):
    """Interactive session error"""
    pass


class PtyAllocationFailed(SessionError):
    """Remote side refused the pseudo-terminal request"""
    pass


class ShellStartFailed(SessionError):
    """Remote side refused to start a shell"""
    pass


class RelayIOError(ProxySSHError):
    """I/O error in one relay loop; recorded, never raised past the loop"""

    def __init__(self, stream: str, cause: BaseException):
        super().__init__(f"{stream} relay failed: {cause}")
        self.stream = stream
        self.cause = cause
