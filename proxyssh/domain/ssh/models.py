"""
SSH domain models
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Union

import paramiko

from ...core.constants import (
    DEFAULT_TERM,
    DEFAULT_WIDTH,
    DEFAULT_HEIGHT,
    DEFAULT_TERMINAL_MODES,
    TERMINAL_MODE_OPCODES,
)
from ...core.exceptions import ConfigurationError
from ...core.interfaces import ChallengeAnswerer


@dataclass(frozen=True)
class PublicKeyAuth:
    """Public key authentication with an already decoded private key"""
    key: paramiko.PKey = field(repr=False)

    @property
    def name(self) -> str:
        return "publickey"


@dataclass(frozen=True)
class InteractiveAuth:
    """Keyboard-interactive authentication driven by an answerer"""
    answerer: ChallengeAnswerer

    @property
    def name(self) -> str:
        return "keyboard-interactive"


AuthMethod = Union[PublicKeyAuth, InteractiveAuth]


def _freeze_modes(modes: Mapping[Union[str, int], int]) -> Mapping[int, int]:
    """Translate mode names to opcodes, keeping insertion order"""
    resolved: Dict[int, int] = {}
    for name, value in modes.items():
        if isinstance(name, int):
            opcode = name
        else:
            try:
                opcode = TERMINAL_MODE_OPCODES[name.upper()]
            except KeyError:
                raise ConfigurationError(f"Unknown terminal mode: {name}") from None
        if not (1 <= opcode <= 159):
            raise ConfigurationError(f"Invalid terminal mode opcode: {opcode}")
        if not (0 <= int(value) <= 0xFFFFFFFF):
            raise ConfigurationError(f"Terminal mode {name} value out of range: {value}")
        resolved[opcode] = int(value)
    return MappingProxyType(resolved)


@dataclass(frozen=True)
class SessionConfig:
    """Pseudo-terminal request parameters"""
    term: str = DEFAULT_TERM
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    modes: Mapping[int, int] = field(
        default_factory=lambda: _freeze_modes(DEFAULT_TERMINAL_MODES)
    )

    def __post_init__(self) -> None:
        if not self.term:
            raise ConfigurationError("Terminal type must not be empty")
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(f"Invalid terminal size: {self.width}x{self.height}")
        if not isinstance(self.modes, MappingProxyType):
            object.__setattr__(self, "modes", _freeze_modes(self.modes))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionConfig":
        """Create from dictionary (the [session] config table)"""
        return cls(
            term=data.get("term") or DEFAULT_TERM,
            width=int(data.get("width") or DEFAULT_WIDTH),
            height=int(data.get("height") or DEFAULT_HEIGHT),
            modes=data.get("modes") or DEFAULT_TERMINAL_MODES,
        )

