"""
Shared fixtures: threaded fake proxies, an echo destination and an
in-process paramiko SSH server.
"""
import base64
import socket
import struct
import threading

import paramiko
import pytest

from proxyssh.core.telemetry import get_telemetry
from proxyssh.domain.proxy import Destination
from proxyssh.domain.ssh import PublicKeyAuth, authenticate


def _recv_exact(sock, size):
    buf = b""
    while len(buf) < size:
        chunk = sock.recv(size - len(buf))
        if not chunk:
            raise ConnectionError("short read")
        buf += chunk
    return buf


def _recv_until(sock, marker):
    buf = b""
    while not buf.endswith(marker):
        chunk = sock.recv(1)
        if not chunk:
            raise ConnectionError("short read")
        buf += chunk
    return buf


def _pipe(src, dst):
    try:
        while True:
            data = src.recv(65536)
            if not data:
                break
            dst.sendall(data)
    except OSError:
        pass
    finally:
        try:
            dst.shutdown(socket.SHUT_WR)
        except OSError:
            pass


class _ThreadedServer:
    """Accepts on 127.0.0.1 and handles each client in its own thread"""

    def __init__(self):
        self._listener = socket.create_server(("127.0.0.1", 0))
        self.port = self._listener.getsockname()[1]
        self._sockets = []
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while True:
            try:
                client, _ = self._listener.accept()
            except OSError:
                return
            self._sockets.append(client)
            threading.Thread(target=self._handle, args=(client,), daemon=True).start()

    def _handle(self, client):
        raise NotImplementedError

    def close(self):
        self._listener.close()
        for sock in self._sockets:
            try:
                sock.close()
            except OSError:
                pass


class EchoServer(_ThreadedServer):
    """Destination that sends every byte back"""

    def _handle(self, client):
        try:
            while True:
                data = client.recv(65536)
                if not data:
                    break
                client.sendall(data)
        except OSError:
            pass
        finally:
            client.close()


class FakeProxy(_ThreadedServer):
    """
    Minimal HTTP CONNECT / SOCKS4(a) / SOCKS5 proxy.

    Options:
        username, password: Credentials the proxy insists on
        reject: Refuse every tunnel
        truncate: Hang up in the middle of the handshake
        trailing: Bytes sent right after the success reply, in the same write
        bound: SOCKS5 bound address type in the reply ("ipv4" or "domain")
    """

    def __init__(self, kind, username=None, password=None, reject=False,
                 truncate=False, trailing=b"", bound="ipv4"):
        self.kind = kind
        self.username = username
        self.password = password
        self.reject = reject
        self.truncate = truncate
        self.trailing = trailing
        self.bound = bound
        self.requests = []
        super().__init__()

    def _handle(self, client):
        try:
            if self.truncate:
                client.recv(4096)
                client.close()
                return
            target = getattr(self, f"_handshake_{self.kind}")(client)
            if target is None:
                client.close()
                return
            upstream = socket.create_connection(target, timeout=5)
            upstream.settimeout(None)
            self._sockets.append(upstream)
            threading.Thread(target=_pipe, args=(upstream, client), daemon=True).start()
            _pipe(client, upstream)
        except (OSError, ConnectionError):
            client.close()

    def _handshake_http(self, client):
        head = _recv_until(client, b"\r\n\r\n").decode("latin-1")
        lines = head.split("\r\n")
        method, target, _ = lines[0].split(" ")
        headers = {}
        for line in lines[1:]:
            if line:
                name, _, value = line.partition(":")
                headers[name.lower()] = value.strip()
        self.requests.append({"method": method, "target": target, "headers": headers})

        if self.reject:
            client.sendall(b"HTTP/1.1 403 Forbidden\r\nContent-Length: 0\r\n\r\n")
            return None
        if self.username is not None:
            token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
            if headers.get("proxy-authorization") != f"Basic {token}":
                client.sendall(b"HTTP/1.1 407 Proxy Authentication Required\r\n\r\n")
                return None

        client.sendall(b"HTTP/1.1 200 Connection established\r\nProxy-Agent: fake\r\n\r\n" + self.trailing)
        host, _, port = target.rpartition(":")
        return host.strip("[]"), int(port)

    def _handshake_socks4(self, client):
        version, command, port = struct.unpack(">BBH", _recv_exact(client, 4))
        ip = _recv_exact(client, 4)
        user_id = _recv_until(client, b"\x00")[:-1].decode()
        if ip[:3] == b"\x00\x00\x00" and ip[3] != 0:
            host = _recv_until(client, b"\x00")[:-1].decode()
        else:
            host = socket.inet_ntoa(ip)
        self.requests.append({
            "version": version, "command": command, "host": host, "port": port, "user_id": user_id,
        })

        if self.reject:
            client.sendall(b"\x00\x5b" + b"\x00" * 6)
            return None
        client.sendall(b"\x00\x5a" + b"\x00" * 6 + self.trailing)
        return host, port

    def _handshake_socks5(self, client):
        _, count = _recv_exact(client, 2)
        methods = list(_recv_exact(client, count))
        wanted = 0x02 if self.username is not None else 0x00
        if wanted not in methods:
            client.sendall(b"\x05\xff")
            return None
        client.sendall(bytes([0x05, wanted]))

        if wanted == 0x02:
            _, ulen = _recv_exact(client, 2)
            username = _recv_exact(client, ulen).decode()
            password = _recv_exact(client, _recv_exact(client, 1)[0]).decode()
            accepted = (username, password) == (self.username, self.password)
            client.sendall(b"\x01" + (b"\x00" if accepted else b"\x01"))
            if not accepted:
                return None

        _, command, _, atype = _recv_exact(client, 4)
        if atype == 0x01:
            host = socket.inet_ntoa(_recv_exact(client, 4))
        elif atype == 0x04:
            host = socket.inet_ntop(socket.AF_INET6, _recv_exact(client, 16))
        else:
            host = _recv_exact(client, _recv_exact(client, 1)[0]).decode()
        port = struct.unpack(">H", _recv_exact(client, 2))[0]
        self.requests.append({
            "methods": methods, "command": command, "atype": atype, "host": host, "port": port,
        })

        if self.reject:
            client.sendall(b"\x05\x05\x00\x01" + b"\x00" * 6)
            return None
        if self.bound == "domain":
            bound = b"\x03" + bytes([len(b"proxy.example")]) + b"proxy.example"
        else:
            bound = b"\x01\x7f\x00\x00\x01"
        client.sendall(b"\x05\x00\x00" + bound + b"\x04\x38" + self.trailing)
        return host, port


# ============================================================================
# SSH server
# ============================================================================

class _ServerInterface(paramiko.ServerInterface):
    """Records what one client asked for"""

    def __init__(self, server):
        self.server = server
        self.responses = None
        self.pty_request = None
        self.pty_received = threading.Event()
        self.shell_requested = threading.Event()

    def get_allowed_auths(self, username):
        return "publickey,keyboard-interactive"

    def check_auth_publickey(self, username, key):
        if username == self.server.username and key.get_base64() == self.server.authorized_key.get_base64():
            return paramiko.AUTH_SUCCESSFUL
        return paramiko.AUTH_FAILED

    def check_auth_interactive(self, username, submethods):
        if username != self.server.username:
            return paramiko.AUTH_FAILED
        return paramiko.InteractiveQuery(
            "Login",
            "Answer every question",
            ("Password: ", False),
            ("Favourite colour: ", True),
        )

    def check_auth_interactive_response(self, responses):
        self.responses = list(responses)
        if self.responses and self.responses[0] == self.server.password:
            return paramiko.AUTH_SUCCESSFUL
        return paramiko.AUTH_FAILED

    def check_channel_request(self, kind, chanid):
        if kind == "session":
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def check_channel_pty_request(self, channel, term, width, height, pixelwidth, pixelheight, modes):
        if isinstance(term, bytes):
            term = term.decode()
        self.pty_request = {"term": term, "width": width, "height": height, "modes": bytes(modes)}
        self.pty_received.set()
        return self.server.allow_pty

    def check_channel_shell_request(self, channel):
        if not self.server.allow_shell:
            return False
        self.shell_requested.set()
        return True


class FakeSSHServer(_ThreadedServer):
    """
    SSH server with a line-oriented toy shell.

    Shell commands:
        echo TEXT   TEXT on stdout
        warn TEXT   TEXT on stderr
        exit        exit status 3, channel closed
    End of input closes the channel with exit status 0.
    """

    def __init__(self, host_key, authorized_key, username="tester", password="s3cret"):
        self.host_key = host_key
        self.authorized_key = authorized_key
        self.username = username
        self.password = password
        self.allow_pty = True
        self.allow_shell = True
        self.interfaces = []
        self._transports = []
        super().__init__()

    @property
    def destination(self):
        return Destination("127.0.0.1", self.port)

    def _handle(self, client):
        interface = _ServerInterface(self)
        self.interfaces.append(interface)
        transport = paramiko.Transport(client)
        transport.add_server_key(self.host_key)
        self._transports.append(transport)
        try:
            transport.start_server(server=interface)
        except (paramiko.SSHException, EOFError, OSError):
            return

        channel = transport.accept(timeout=10)
        if channel is None:
            return
        if interface.shell_requested.wait(10):
            self._run_shell(channel)

    def _run_shell(self, channel):
        buf = b""
        try:
            while True:
                data = channel.recv(1024)
                if not data:
                    channel.send_exit_status(0)
                    channel.close()
                    return
                buf += data
                while b"\n" in buf:
                    line, buf = buf.split(b"\n", 1)
                    line = line.rstrip(b"\r")
                    if line == b"exit":
                        channel.send_exit_status(3)
                        channel.close()
                        return
                    if line.startswith(b"echo "):
                        channel.sendall(line[5:] + b"\n")
                    elif line.startswith(b"warn "):
                        channel.sendall_stderr(line[5:] + b"\n")
        except (OSError, EOFError, paramiko.SSHException):
            pass

    def close(self):
        super().close()
        for transport in self._transports:
            transport.close()


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def clean_telemetry():
    get_telemetry().clear()
    yield
    get_telemetry().clear()


@pytest.fixture
def echo_server():
    server = EchoServer()
    yield server
    server.close()


@pytest.fixture
def fake_proxy():
    """Factory: fake_proxy("socks5", username="u", password="p")"""
    proxies = []

    def factory(kind, **options):
        proxy = FakeProxy(kind, **options)
        proxies.append(proxy)
        return proxy

    yield factory
    for proxy in proxies:
        proxy.close()


@pytest.fixture(scope="session")
def host_key():
    return paramiko.RSAKey.generate(2048)


@pytest.fixture(scope="session")
def client_key():
    return paramiko.RSAKey.generate(2048)


@pytest.fixture(scope="session")
def stranger_key():
    return paramiko.RSAKey.generate(2048)


@pytest.fixture
def ssh_server(host_key, client_key):
    server = FakeSSHServer(host_key, client_key)
    yield server
    server.close()


@pytest.fixture
def ssh_connection(ssh_server, client_key):
    """Authenticated connection straight to the test server"""
    stream = socket.create_connection(("127.0.0.1", ssh_server.port), timeout=10)
    connection = authenticate(
        stream,
        "tester",
        PublicKeyAuth(client_key),
        str(ssh_server.destination),
        timeout=10,
    )
    yield connection
    connection.close()
