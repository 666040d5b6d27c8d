"""
Proxy tunnel dialer

Opens one outbound socket and negotiates a byte-stream tunnel to the
destination through an HTTP CONNECT or SOCKS proxy.
"""
import base64
import ipaddress
import socket
import ssl
import struct
from enum import IntEnum
from typing import Callable, Dict, Optional

from ...core.constants import MAX_HTTP_RESPONSE_HEAD
from ...core.exceptions import ProxyError, ProxyUnreachable, TunnelRejected, ProtocolError
from ...core.logging import get_logger
from ...core.telemetry import get_telemetry
from .models import ProxyEndpoint, ProxyScheme, Destination

logger = get_logger(__name__)
telemetry = get_telemetry()


# ============================================================================
# SOCKS4 Protocol Constants
# ============================================================================

SOCKS4_VERSION = 0x04
SOCKS4_CONNECT = 0x01
# 0.0.0.x with x != 0 tells a SOCKS4a proxy to resolve the trailing hostname
SOCKS4A_MARKER_IP = b"\x00\x00\x00\x01"


class SOCKS4Reply(IntEnum):
    """SOCKS4 reply codes"""
    GRANTED = 0x5A
    REJECTED = 0x5B
    IDENTD_UNREACHABLE = 0x5C
    IDENTD_MISMATCH = 0x5D


# ============================================================================
# SOCKS5 Protocol Constants
# ============================================================================

SOCKS5_VERSION = 0x05
SOCKS5_AUTH_VERSION = 0x01


class SOCKS5Method(IntEnum):
    """SOCKS5 authentication methods"""
    NO_AUTH = 0x00
    GSSAPI = 0x01
    USERNAME_PASSWORD = 0x02
    NO_ACCEPTABLE = 0xFF


class SOCKS5Command(IntEnum):
    """SOCKS5 commands"""
    CONNECT = 0x01
    BIND = 0x02
    UDP_ASSOCIATE = 0x03


class SOCKS5AddressType(IntEnum):
    """SOCKS5 address types"""
    IPV4 = 0x01
    DOMAIN = 0x03
    IPV6 = 0x04


class SOCKS5Reply(IntEnum):
    """SOCKS5 reply codes"""
    SUCCESS = 0x00
    GENERAL_FAILURE = 0x01
    CONNECTION_NOT_ALLOWED = 0x02
    NETWORK_UNREACHABLE = 0x03
    HOST_UNREACHABLE = 0x04
    CONNECTION_REFUSED = 0x05
    TTL_EXPIRED = 0x06
    COMMAND_NOT_SUPPORTED = 0x07
    ADDRESS_TYPE_NOT_SUPPORTED = 0x08


def _reply_name(enum_cls: type, code: int) -> str:
    try:
        return enum_cls(code).name.lower().replace("_", " ")
    except ValueError:
        return f"unknown reply 0x{code:02x}"


# ============================================================================
# Dialer
# ============================================================================

class ProxyDialer:
    """
    Dials a destination through a single proxy.

    The returned socket carries the destination's bytes and nothing else:
    every handshake reads exactly the bytes the proxy owes, so the first
    tunneled byte is still unread when dial() returns.
    """

    def __init__(self, proxy: ProxyEndpoint, timeout: Optional[float] = None):
        """
        Initialize dialer.

        Args:
            proxy: Parsed proxy endpoint
            timeout: Connect and handshake timeout in seconds (None = OS default)
        """
        self.proxy = proxy
        self.timeout = timeout
        self._handshakes: Dict[ProxyScheme, Callable[[socket.socket, Destination], None]] = {
            ProxyScheme.DIRECT: lambda sock, destination: None,
            ProxyScheme.HTTP: self._handshake_http,
            ProxyScheme.HTTPS: self._handshake_http,
            ProxyScheme.SOCKS4: self._handshake_socks4,
            ProxyScheme.SOCKS4A: self._handshake_socks4,
            ProxyScheme.SOCKS5: self._handshake_socks5,
            ProxyScheme.SOCKS5H: self._handshake_socks5,
        }

    def dial(self, destination: Destination) -> socket.socket:
        """
        Open a tunnel to destination.

        Returns:
            Blocking socket connected to destination through the proxy

        Raises:
            ProxyUnreachable: If the proxy cannot be reached
            TunnelRejected: If the proxy refuses the tunnel
            ProtocolError: If the handshake is malformed or truncated
        """
        handshake = self._handshakes[self.proxy.scheme]
        sock = self._open(destination)
        try:
            if self.proxy.scheme is ProxyScheme.HTTPS:
                sock = self._wrap_tls(sock)
            handshake(sock, destination)
        except ProxyError:
            sock.close()
            raise
        except (OSError, EOFError) as e:
            sock.close()
            raise ProtocolError(f"Proxy handshake with {self.proxy} failed: {e}") from e

        sock.settimeout(None)
        logger.info(f"Tunnel to {destination} established via {self.proxy}")
        telemetry.record_event("proxy.dialed", {
            "proxy": self.proxy.redacted(),
            "scheme": self.proxy.scheme.value,
            "destination": str(destination),
        })
        return sock

    # --------------------
    # Connection
    # --------------------
    def _open(self, destination: Destination) -> socket.socket:
        if self.proxy.scheme is ProxyScheme.DIRECT:
            address = (destination.host, destination.port)
        else:
            address = (self.proxy.host, self.proxy.port)

        logger.debug(f"Connecting to {address[0]}:{address[1]}")
        try:
            return socket.create_connection(address, timeout=self.timeout)
        except OSError as e:
            raise ProxyUnreachable(f"Cannot connect to {address[0]}:{address[1]}: {e}") from e

    def _wrap_tls(self, sock: socket.socket) -> socket.socket:
        ctx = ssl.create_default_context()
        try:
            return ctx.wrap_socket(sock, server_hostname=self.proxy.host)
        except ssl.SSLError as e:
            raise ProtocolError(f"TLS handshake with {self.proxy} failed: {e}") from e

    def _recv_exact(self, sock: socket.socket, size: int) -> bytes:
        """Read exactly size bytes or fail with ProtocolError"""
        buf = b""
        while len(buf) < size:
            chunk = sock.recv(size - len(buf))
            if not chunk:
                raise ProtocolError(
                    f"Proxy closed the connection during handshake "
                    f"(expected {size} bytes, got {len(buf)})"
                )
            buf += chunk
        return buf

    # --------------------
    # HTTP CONNECT
    # --------------------
    def _handshake_http(self, sock: socket.socket, destination: Destination) -> None:
        target = str(destination)
        lines = [
            f"CONNECT {target} HTTP/1.1",
            f"Host: {target}",
        ]
        if self.proxy.has_credentials:
            token = f"{self.proxy.username}:{self.proxy.password or ''}".encode("utf-8")
            lines.append(f"Proxy-Authorization: Basic {base64.b64encode(token).decode('ascii')}")
        lines.extend(["", ""])
        sock.sendall("\r\n".join(lines).encode("utf-8"))

        head = self._read_http_head(sock)
        status_line = head.split(b"\r\n", 1)[0].decode("iso-8859-1")
        parts = status_line.split(" ", 2)
        if len(parts) < 2 or not parts[0].startswith("HTTP/"):
            raise ProtocolError(f"Invalid response from proxy: {status_line!r}")
        try:
            status = int(parts[1])
        except ValueError:
            raise ProtocolError(f"Invalid proxy status line: {status_line!r}") from None

        if not 200 <= status < 300:
            reason = f"{status} {parts[2] if len(parts) > 2 else ''}".strip()
            raise TunnelRejected(f"Proxy refused CONNECT to {target}: {reason}", reason=reason)
        logger.debug(f"Proxy answered: {status_line}")

    def _read_http_head(self, sock: socket.socket) -> bytes:
        # One byte at a time: the tunneled stream starts right after the blank line
        head = b""
        while not head.endswith(b"\r\n\r\n"):
            chunk = sock.recv(1)
            if not chunk:
                raise ProtocolError("Proxy closed the connection during CONNECT handshake")
            head += chunk
            if len(head) > MAX_HTTP_RESPONSE_HEAD:
                raise ProtocolError("Proxy response head too large")
        return head

    # --------------------
    # SOCKS4 / SOCKS4a
    # --------------------
    def _handshake_socks4(self, sock: socket.socket, destination: Destination) -> None:
        user_id = (self.proxy.username or "").encode("utf-8") + b"\x00"
        request = struct.pack(">BBH", SOCKS4_VERSION, SOCKS4_CONNECT, destination.port)

        if self.proxy.scheme is ProxyScheme.SOCKS4A and not destination.is_ip_literal:
            request += SOCKS4A_MARKER_IP + user_id + destination.encoded_host + b"\x00"
        else:
            request += self._resolve_ipv4(destination) + user_id
        sock.sendall(request)

        reply = self._recv_exact(sock, 8)
        if reply[0] != 0x00:
            raise ProtocolError(f"Invalid SOCKS4 reply version: {reply[0]}")
        if reply[1] != SOCKS4Reply.GRANTED:
            reason = _reply_name(SOCKS4Reply, reply[1])
            raise TunnelRejected(f"SOCKS4 proxy refused {destination}: {reason}", reason=reason)

    def _resolve_ipv4(self, destination: Destination) -> bytes:
        try:
            infos = socket.getaddrinfo(destination.host, destination.port,
                                       socket.AF_INET, socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise ProxyError(f"Cannot resolve {destination.host} for SOCKS4: {e}") from e
        return socket.inet_aton(infos[0][4][0])

    # --------------------
    # SOCKS5
    # --------------------
    def _handshake_socks5(self, sock: socket.socket, destination: Destination) -> None:
        methods = [SOCKS5Method.NO_AUTH]
        if self.proxy.has_credentials:
            methods.append(SOCKS5Method.USERNAME_PASSWORD)
        sock.sendall(bytes([SOCKS5_VERSION, len(methods), *methods]))

        version, method = self._recv_exact(sock, 2)
        if version != SOCKS5_VERSION:
            raise ProtocolError(f"Invalid SOCKS5 version in reply: {version}")
        if method == SOCKS5Method.NO_ACCEPTABLE:
            raise TunnelRejected("SOCKS5 proxy accepted none of the offered authentication methods",
                                 reason="no acceptable methods")
        if method == SOCKS5Method.USERNAME_PASSWORD and self.proxy.has_credentials:
            self._socks5_authenticate(sock)
        elif method != SOCKS5Method.NO_AUTH:
            raise ProtocolError(f"SOCKS5 proxy selected a method that was not offered: 0x{method:02x}")

        sock.sendall(
            bytes([SOCKS5_VERSION, SOCKS5Command.CONNECT, 0x00])
            + self._socks5_address(destination)
            + struct.pack(">H", destination.port)
        )

        version, reply, _, atype = self._recv_exact(sock, 4)
        if version != SOCKS5_VERSION:
            raise ProtocolError(f"Invalid SOCKS5 version in reply: {version}")
        if reply != SOCKS5Reply.SUCCESS:
            reason = _reply_name(SOCKS5Reply, reply)
            raise TunnelRejected(f"SOCKS5 proxy refused {destination}: {reason}", reason=reason)

        # Consume the bound address so the stream starts at the first tunneled byte
        if atype == SOCKS5AddressType.IPV4:
            self._recv_exact(sock, 4)
        elif atype == SOCKS5AddressType.IPV6:
            self._recv_exact(sock, 16)
        elif atype == SOCKS5AddressType.DOMAIN:
            self._recv_exact(sock, self._recv_exact(sock, 1)[0])
        else:
            raise ProtocolError(f"Invalid SOCKS5 bound address type: {atype}")
        self._recv_exact(sock, 2)

    def _socks5_authenticate(self, sock: socket.socket) -> None:
        username = self.proxy.username.encode("utf-8")
        password = (self.proxy.password or "").encode("utf-8")
        if len(username) > 255 or len(password) > 255:
            raise ProxyError("SOCKS5 username and password must be at most 255 bytes")
        sock.sendall(
            bytes([SOCKS5_AUTH_VERSION, len(username)]) + username
            + bytes([len(password)]) + password
        )
        _, status = self._recv_exact(sock, 2)
        if status != 0x00:
            raise TunnelRejected("SOCKS5 proxy rejected the credentials",
                                 reason="authentication failed")

    def _socks5_address(self, destination: Destination) -> bytes:
        try:
            ip = ipaddress.ip_address(destination.host)
        except ValueError:
            host = destination.encoded_host
            return bytes([SOCKS5AddressType.DOMAIN, len(host)]) + host

        if ip.version == 4:
            return bytes([SOCKS5AddressType.IPV4]) + ip.packed
        return bytes([SOCKS5AddressType.IPV6]) + ip.packed


def dial(proxy: ProxyEndpoint, destination: Destination, timeout: Optional[float] = None) -> socket.socket:
    """Open a tunnel to destination through proxy"""
    return ProxyDialer(proxy, timeout=timeout).dial(destination)
