"""
Configuration loader with priority: CLI > TOML > defaults
"""
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional

from ...core.constants import (
    DEFAULT_HOST_KEY_POLICY,
    DEFAULT_CHALLENGE_ANSWERER,
    DEFAULT_KEEPALIVE,
)
from ...core.exceptions import ConfigurationError
from ...domain.ssh.models import SessionConfig


class ConfigLoader:
    """Configuration loader with priority support"""

    def load_toml(self, path: Path) -> Dict[str, Any]:
        """Load TOML configuration file"""
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            return tomllib.loads(path.read_text(encoding='utf-8'))
        except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Failed to parse TOML configuration {path}: {e}") from e

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configurations with priority.
        Later configs override earlier ones; None never overrides.
        """
        result = {}

        for config in configs:
            result = self._deep_merge(result, config)

        return result

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if value is None:
                continue
            if isinstance(value, dict):
                nested = result.get(key)
                result[key] = self._deep_merge(nested if isinstance(nested, dict) else {}, value)
            else:
                result[key] = value

        return result

    def load(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Load configuration with priority: CLI > TOML > defaults

        Args:
            toml_path: Path to TOML configuration file
            cli_overrides: CLI parameter overrides

        Returns:
            Merged configuration dictionary
        """
        configs = []

        if toml_path:
            configs.append(self.load_toml(toml_path))

        if cli_overrides:
            configs.append(cli_overrides)

        return self.merge_configs(*configs)


def _value(table: Dict[str, Any], key: str, default: Any) -> Any:
    """Table entry, with None meaning unset"""
    value = table.get(key)
    return default if value is None else value


def _optional_float(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if number <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return number


@dataclass
class AppConfig:
    """Resolved application configuration"""
    host_key_policy: str = DEFAULT_HOST_KEY_POLICY
    known_hosts: Optional[str] = None
    connect_timeout: Optional[float] = None
    keepalive: int = DEFAULT_KEEPALIVE
    challenge: str = DEFAULT_CHALLENGE_ANSWERER
    raw: bool = False
    session: SessionConfig = field(default_factory=SessionConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Create from a merged configuration dictionary"""
        ssh = data.get("ssh") or {}
        auth = data.get("auth") or {}
        session = data.get("session") or {}

        try:
            keepalive = int(_value(ssh, "keepalive", DEFAULT_KEEPALIVE))
        except (TypeError, ValueError):
            raise ConfigurationError(f"ssh.keepalive must be an integer, got {ssh.get('keepalive')!r}") from None
        if keepalive < 0:
            raise ConfigurationError(f"ssh.keepalive must not be negative, got {keepalive}")

        try:
            session_config = SessionConfig.from_dict(session)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid [session] configuration: {e}") from e

        return cls(
            host_key_policy=_value(ssh, "host_key_policy", DEFAULT_HOST_KEY_POLICY),
            known_hosts=ssh.get("known_hosts"),
            connect_timeout=_optional_float(ssh.get("connect_timeout"), "ssh.connect_timeout"),
            keepalive=keepalive,
            challenge=_value(auth, "challenge", DEFAULT_CHALLENGE_ANSWERER),
            raw=bool(_value(session, "raw", False)),
            session=session_config,
        )
