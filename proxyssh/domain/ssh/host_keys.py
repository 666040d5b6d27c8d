"""
Server host key policies
"""
from pathlib import Path
from typing import Dict, Optional, Type

import paramiko

from ...core.constants import DEFAULT_KNOWN_HOSTS_PATH
from ...core.exceptions import ConfigurationError, HostKeyRejected
from ...core.interfaces import HostKeyPolicy, PromptProvider
from ...core.logging import get_logger

logger = get_logger(__name__)


def known_hosts_name(hostname: str, port: int) -> str:
    """Host entry name as OpenSSH writes it in known_hosts"""
    if port == 22:
        return hostname
    return f"[{hostname}]:{port}"


class AcceptAnyHostKey(HostKeyPolicy):
    """Trusts every host key. Logged loudly, never silent."""

    def __init__(self, **_: object):
        pass

    def verify(self, hostname: str, port: int, key: paramiko.PKey) -> None:
        logger.warning(
            f"Host key of {known_hosts_name(hostname, port)} accepted without verification "
            f"({key.get_name()} {key.fingerprint})"
        )


class KnownHostsPolicy(HostKeyPolicy):
    """Only accepts keys already listed in an OpenSSH known_hosts file"""

    def __init__(self, known_hosts: Optional[str] = None, **_: object):
        self.path = Path(known_hosts or DEFAULT_KNOWN_HOSTS_PATH).expanduser()
        self.host_keys = paramiko.HostKeys()
        if self.path.exists():
            try:
                self.host_keys.load(str(self.path))
            except OSError as e:
                raise ConfigurationError(f"Cannot read known hosts file {self.path}: {e}") from e

    def verify(self, hostname: str, port: int, key: paramiko.PKey) -> None:
        name = known_hosts_name(hostname, port)
        known = self.host_keys.lookup(name)
        if known is None or key.get_name() not in known:
            self.on_unknown(name, key)
            return
        if known[key.get_name()].asbytes() != key.asbytes():
            raise HostKeyRejected(
                f"Host key for {name} does not match {self.path} "
                f"(server offered {key.get_name()} {key.fingerprint}); "
                "possible man-in-the-middle attack"
            )
        logger.debug(f"Host key for {name} matches {self.path}")

    def on_unknown(self, name: str, key: paramiko.PKey) -> None:
        raise HostKeyRejected(
            f"Host {name} is not in {self.path} "
            f"(server offered {key.get_name()} {key.fingerprint})"
        )


class AskHostKeyPolicy(KnownHostsPolicy):
    """Like KnownHostsPolicy, but asks before trusting an unknown host and records it"""

    def __init__(self, known_hosts: Optional[str] = None,
                 prompt_provider: Optional[PromptProvider] = None, **_: object):
        super().__init__(known_hosts=known_hosts)
        if prompt_provider is None:
            raise ConfigurationError("The ask host key policy needs an interactive prompt")
        self.prompt_provider = prompt_provider

    def on_unknown(self, name: str, key: paramiko.PKey) -> None:
        trusted = self.prompt_provider.confirm(
            f"The authenticity of host '{name}' can't be established.\n"
            f"{key.get_name()} key fingerprint is {key.fingerprint}.\n"
            "Are you sure you want to continue connecting?",
            default=False,
        )
        if not trusted:
            raise HostKeyRejected(f"Host key for {name} not accepted")

        self.host_keys.add(name, key.get_name(), key)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.host_keys.save(str(self.path))
        except OSError as e:
            logger.warning(f"Could not record host key in {self.path}: {e}")
        else:
            logger.info(f"Permanently added '{name}' ({key.get_name()}) to {self.path}")


HOST_KEY_POLICIES: Dict[str, Type[HostKeyPolicy]] = {
    "accept-any": AcceptAnyHostKey,
    "known-hosts": KnownHostsPolicy,
    "ask": AskHostKeyPolicy,
}


def create_host_key_policy(
    name: str,
    known_hosts: Optional[str] = None,
    prompt_provider: Optional[PromptProvider] = None,
) -> HostKeyPolicy:
    """Build the host key policy registered under name"""
    try:
        policy_cls = HOST_KEY_POLICIES[name]
    except KeyError:
        valid = ", ".join(HOST_KEY_POLICIES)
        raise ConfigurationError(f"Unknown host key policy '{name}'. Valid choices: {valid}") from None
    return policy_cls(known_hosts=known_hosts, prompt_provider=prompt_provider)
