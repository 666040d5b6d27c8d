"""
Interactive session relay

Allocates a remote pseudo-terminal, starts the remote shell and copies the
three standard streams between the remote channel and the local process.

State machine:
    CREATED -> PTY_REQUESTED -> SHELL_STARTED -> RELAYING -> CLOSED
    any non-terminal state -> FAILED
"""
import io
import os
import select
import socket
import sys
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Callable, Dict, Optional

import paramiko

from ...core.constants import RELAY_BUFFER_SIZE, RELAY_POLL_INTERVAL, RELAY_JOIN_TIMEOUT
from ...core.exceptions import (
    ProxySSHError,
    PtyAllocationFailed,
    ShellStartFailed,
    RelayIOError,
)
from ...core.logging import get_logger
from ...core.telemetry import get_telemetry
from ..ssh.connection import SSHConnection
from ..ssh.models import SessionConfig
from .cancellation import CancellationToken
from .pty import request_pty

logger = get_logger(__name__)
telemetry = get_telemetry()


class SessionState(str, Enum):
    """Interactive session lifecycle"""
    CREATED = "created"
    PTY_REQUESTED = "pty-requested"
    SHELL_STARTED = "shell-started"
    RELAYING = "relaying"
    CLOSED = "closed"
    FAILED = "failed"


_TRANSITIONS = {
    SessionState.CREATED: SessionState.PTY_REQUESTED,
    SessionState.PTY_REQUESTED: SessionState.SHELL_STARTED,
    SessionState.SHELL_STARTED: SessionState.RELAYING,
    SessionState.RELAYING: SessionState.CLOSED,
}


class CloseReason(str, Enum):
    """Why the relay stopped"""
    INTERRUPTED = "interrupted"
    REMOTE_CLOSED = "remote-closed"


@dataclass
class LocalStreams:
    """Local side of the relay, all binary"""
    stdin: BinaryIO
    stdout: BinaryIO
    stderr: BinaryIO

    @classmethod
    def from_sys(cls) -> "LocalStreams":
        return cls(sys.stdin.buffer, sys.stdout.buffer, sys.stderr.buffer)


@dataclass
class RelayTask:
    """One supervised copy loop"""
    name: str
    bytes_copied: int = 0
    error: Optional[RelayIOError] = None
    thread: Optional[threading.Thread] = field(default=None, repr=False)
    done: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def finished(self) -> bool:
        return self.done.is_set()


@dataclass
class RelayOutcome:
    """Result of a relay run"""
    reason: CloseReason
    signal_name: Optional[str] = None
    exit_status: Optional[int] = None
    tasks: Dict[str, RelayTask] = field(default_factory=dict)

    @property
    def errors(self) -> Dict[str, RelayIOError]:
        return {name: task.error for name, task in self.tasks.items() if task.error}


class InteractiveSession:
    """
    One remote shell on one connection.

    The session owns its channel and, once run, the connection: both are
    closed when the session closes or fails.
    """

    def __init__(
        self,
        connection: SSHConnection,
        config: SessionConfig,
        streams: Optional[LocalStreams] = None,
        cancel: Optional[CancellationToken] = None,
        poll_interval: float = RELAY_POLL_INTERVAL,
    ):
        """
        Initialize session.

        Args:
            connection: Authenticated connection
            config: PTY parameters
            streams: Local streams (default: process stdin/stdout/stderr)
            cancel: Token that stops the relay (default: a private token)
            poll_interval: How often blocked loops check the token, in seconds
        """
        self.connection = connection
        self.config = config
        self.streams = streams or LocalStreams.from_sys()
        self.cancel = cancel or CancellationToken()
        self.poll_interval = poll_interval
        self.state = SessionState.CREATED
        self.tasks: Dict[str, RelayTask] = {}
        self._channel: Optional[paramiko.Channel] = None

    # --------------------
    # State machine
    # --------------------
    def _advance(self, target: SessionState) -> None:
        if _TRANSITIONS.get(self.state) is not target:
            raise RuntimeError(f"Illegal session transition {self.state.value} -> {target.value}")
        logger.debug(f"Session {self.state.value} -> {target.value}")
        self.state = target

    def _fail(self, error: ProxySSHError) -> ProxySSHError:
        self.state = SessionState.FAILED
        self._release()
        return error

    # --------------------
    # Setup
    # --------------------
    def request_pty(self) -> None:
        """CREATED -> PTY_REQUESTED"""
        if self.state is not SessionState.CREATED:
            raise RuntimeError(f"Cannot request a PTY in state {self.state.value}")
        try:
            self._channel = self.connection.open_session()
            request_pty(self._channel, self.config)
        except ProxySSHError as e:
            raise self._fail(e)
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise self._fail(PtyAllocationFailed(f"Request for pseudo terminal failed: {e}")) from e
        self._advance(SessionState.PTY_REQUESTED)

    def start_shell(self) -> None:
        """PTY_REQUESTED -> SHELL_STARTED"""
        if self.state is not SessionState.PTY_REQUESTED:
            raise RuntimeError(f"Cannot start a shell in state {self.state.value}")
        try:
            self._channel.invoke_shell()
        except (paramiko.SSHException, OSError, EOFError) as e:
            raise self._fail(ShellStartFailed(f"Failed to start shell: {e}")) from e
        self._advance(SessionState.SHELL_STARTED)

    def start_relay(self) -> None:
        """SHELL_STARTED -> RELAYING: launch the three copy loops"""
        if self.state is not SessionState.SHELL_STARTED:
            raise RuntimeError(f"Cannot start relay in state {self.state.value}")
        channel = self._channel
        channel.settimeout(self.poll_interval)

        self._spawn("stdin", self._read_local_stdin, self._send_remote,
                    on_eof=self._close_remote_stdin)
        self._spawn("stdout", channel.recv, self._writer(self.streams.stdout))
        self._spawn("stderr", channel.recv_stderr, self._writer(self.streams.stderr))
        self._advance(SessionState.RELAYING)

    # --------------------
    # Supervision
    # --------------------
    def wait(self) -> RelayOutcome:
        """
        Block until the token is cancelled or the remote side finishes both
        output streams, then close the session.
        """
        if self.state is not SessionState.RELAYING:
            raise RuntimeError(f"Cannot wait for relay in state {self.state.value}")

        reported = set()
        while True:
            if self.cancel.wait(self.poll_interval):
                reason = CloseReason.INTERRUPTED
                break
            for task in self.tasks.values():
                if task.finished and task.name not in reported:
                    reported.add(task.name)
                    if task.error:
                        logger.warning(f"{task.error}; other streams keep running")
                    else:
                        logger.debug(f"{task.name} relay reached end of input")
            if self.tasks["stdout"].finished and self.tasks["stderr"].finished:
                reason = CloseReason.REMOTE_CLOSED
                break

        outcome = RelayOutcome(
            reason=reason,
            signal_name=self.cancel.reason if reason is CloseReason.INTERRUPTED else None,
            tasks=self.tasks,
        )
        self.cancel.cancel("session closed")
        self._join()
        if self._channel.exit_status_ready():
            outcome.exit_status = self._channel.recv_exit_status()

        self.close()
        for task in self.tasks.values():
            telemetry.record_metric("relay.bytes", task.bytes_copied, {"stream": task.name})
        telemetry.record_event("session.closed", {
            "reason": outcome.reason.value,
            "signal": outcome.signal_name,
            "exit_status": outcome.exit_status,
        })
        return outcome

    def run(self) -> RelayOutcome:
        """PTY, shell, relay until closed"""
        self.request_pty()
        self.start_shell()
        self.start_relay()
        return self.wait()

    def close(self) -> None:
        """RELAYING -> CLOSED, releasing channel and connection"""
        if self.state is SessionState.RELAYING:
            self._advance(SessionState.CLOSED)
        self._release()

    def _release(self) -> None:
        self.cancel.cancel("session closed")
        self.connection.close()

    def _join(self) -> None:
        for task in self.tasks.values():
            if task.thread is not None and task.thread.is_alive():
                task.thread.join(timeout=RELAY_JOIN_TIMEOUT)
                if task.thread.is_alive():
                    logger.debug(f"{task.name} relay still blocked after close")

    # --------------------
    # Copy loops
    # --------------------
    def _spawn(
        self,
        name: str,
        read: Callable[[int], bytes],
        write: Callable[[bytes], None],
        on_eof: Optional[Callable[[], None]] = None,
    ) -> None:
        task = RelayTask(name=name)
        task.thread = threading.Thread(
            target=self._copy,
            args=(task, read, write, on_eof),
            daemon=True,
            name=f"Relay-{name}",
        )
        self.tasks[name] = task
        task.thread.start()

    def _copy(
        self,
        task: RelayTask,
        read: Callable[[int], bytes],
        write: Callable[[bytes], None],
        on_eof: Optional[Callable[[], None]],
    ) -> None:
        """Copy until end of input, I/O error or cancellation"""
        try:
            while not self.cancel.is_cancelled:
                try:
                    data = read(RELAY_BUFFER_SIZE)
                except socket.timeout:
                    continue
                if not data:
                    if on_eof is not None:
                        on_eof()
                    break
                write(data)
                task.bytes_copied += len(data)
        except (OSError, EOFError, ValueError, paramiko.SSHException) as e:
            if not self.cancel.is_cancelled:
                task.error = RelayIOError(task.name, e)
        finally:
            task.done.set()

    def _read_local_stdin(self, size: int) -> bytes:
        stdin = self.streams.stdin
        read1 = getattr(stdin, "read1", None)
        try:
            fd = stdin.fileno()
        except (AttributeError, io.UnsupportedOperation):
            return (read1 or stdin.read)(size)

        ready, _, _ = select.select([fd], [], [], self.poll_interval)
        if not ready:
            raise socket.timeout()
        # read1 hands out bytes already buffered by the stream before touching fd
        if read1 is not None:
            return read1(size)
        return os.read(fd, size)

    def _send_remote(self, data: bytes) -> None:
        while data and not self.cancel.is_cancelled:
            try:
                sent = self._channel.send(data)
            except socket.timeout:
                continue
            data = data[sent:]

    def _close_remote_stdin(self) -> None:
        logger.debug("Local stdin closed, sending EOF to remote shell")
        self._channel.shutdown_write()

    @staticmethod
    def _writer(stream: BinaryIO) -> Callable[[bytes], None]:
        def write(data: bytes) -> None:
            stream.write(data)
            stream.flush()
        return write
