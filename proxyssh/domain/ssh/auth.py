"""
SSH authenticator

Runs the SSH transport handshake and one user-authentication method over an
already established byte stream.
"""
import socket
from typing import List, Optional, Sequence

import paramiko

from ...core.exceptions import AuthenticationFailed, TransportError, ConfigurationError
from ...core.interfaces import ChallengePrompt, HostKeyPolicy
from ...core.logging import get_logger
from ...core.telemetry import get_telemetry
from .connection import SSHConnection
from .host_keys import AcceptAnyHostKey
from .models import AuthMethod, PublicKeyAuth, InteractiveAuth

logger = get_logger(__name__)
telemetry = get_telemetry()


def _split_destination(destination_name: str):
    host, _, port = destination_name.rpartition(":")
    host = host.strip("[]")
    try:
        return host, int(port)
    except ValueError:
        return destination_name, 22


def authenticate(
    stream: socket.socket,
    user: str,
    method: AuthMethod,
    destination_name: str,
    host_key_policy: Optional[HostKeyPolicy] = None,
    timeout: Optional[float] = None,
    keepalive: int = 0,
) -> SSHConnection:
    """
    Handshake and authenticate over stream.

    Args:
        stream: Connected socket (usually a proxy tunnel)
        user: Remote username
        method: PublicKeyAuth or InteractiveAuth
        destination_name: "host:port" of the server, used for host key lookup
        host_key_policy: Host key policy (default: accept any key)
        timeout: Handshake and auth timeout in seconds (None = wait forever)
        keepalive: Keepalive interval in seconds (0 = disabled)

    Returns:
        Authenticated connection owning stream

    Raises:
        AuthenticationFailed: Handshake, host key or credentials rejected
        TransportError: Stream failed underneath the handshake
    """
    if not user:
        raise ConfigurationError("Username must not be empty")
    policy = host_key_policy or AcceptAnyHostKey()
    hostname, port = _split_destination(destination_name)

    transport = paramiko.Transport(stream)
    try:
        transport.start_client(timeout=timeout)
        policy.verify(hostname, port, transport.get_remote_server_key())
        logger.debug(f"SSH handshake with {destination_name} done ({transport.remote_version})")

        if isinstance(method, PublicKeyAuth):
            _auth_publickey(transport, user, method, timeout)
        elif isinstance(method, InteractiveAuth):
            _auth_interactive(transport, user, method)
        else:
            raise ValueError(f"Unsupported auth method: {method!r}")

        if not transport.is_authenticated():
            raise AuthenticationFailed(f"Authentication as {user} on {destination_name} was not completed")

    except AuthenticationFailed:
        transport.close()
        raise
    except paramiko.AuthenticationException as e:
        transport.close()
        raise AuthenticationFailed(f"Authentication as {user} on {destination_name} failed: {e}") from e
    except paramiko.SSHException as e:
        transport.close()
        raise AuthenticationFailed(f"SSH handshake with {destination_name} failed: {e}") from e
    except (OSError, EOFError) as e:
        transport.close()
        raise TransportError(f"Connection to {destination_name} lost during handshake: {e}") from e
    except BaseException:
        transport.close()
        raise

    if keepalive > 0:
        transport.set_keepalive(keepalive)

    logger.info(f"Authenticated as {user} on {destination_name} ({method.name})")
    telemetry.record_event("ssh.authenticated", {
        "destination": destination_name,
        "user": user,
        "method": method.name,
    })
    return SSHConnection(transport, destination_name)


def _auth_publickey(transport: paramiko.Transport, user: str, method: PublicKeyAuth,
                    timeout: Optional[float]) -> None:
    """Present the key and sign the session identifier with it, in one round"""
    transport.auth_timeout = timeout
    transport.auth_publickey(user, method.key)


def _auth_interactive(transport: paramiko.Transport, user: str, method: InteractiveAuth) -> None:
    """Keyboard-interactive; every challenge round goes to the answerer"""

    def handler(title: str, instructions: str, prompt_list: Sequence[ChallengePrompt]) -> List[str]:
        answers = method.answerer.answer(title, instructions, list(prompt_list))
        if len(answers) != len(prompt_list):
            logger.warning(f"Challenge answerer returned {len(answers)} answers for {len(prompt_list)} prompts")
            answers = (list(answers) + [""] * len(prompt_list))[:len(prompt_list)]
        return answers

    # The user may take any time to type; only the handshake is bounded
    transport.auth_timeout = None
    transport.auth_interactive(user, handler)
