"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

import paramiko


# (prompt text, echo) as delivered by the server
ChallengePrompt = Tuple[str, bool]


class PromptProvider(ABC):
    """User prompt interface"""

    @abstractmethod
    def prompt(self, message: str, default: Optional[str] = None, password: bool = False) -> str:
        """Prompt user for input"""
        pass

    @abstractmethod
    def confirm(self, message: str, default: bool = False) -> bool:
        """Prompt user for confirmation"""
        pass

    @abstractmethod
    def info(self, message: str) -> None:
        """Display info message"""
        pass


class ChallengeAnswerer(ABC):
    """Answers keyboard-interactive challenges"""

    @abstractmethod
    def answer(
        self,
        title: str,
        instructions: str,
        prompts: Sequence[ChallengePrompt],
    ) -> List[str]:
        """Return exactly one answer per prompt, in order"""
        pass


class HostKeyPolicy(ABC):
    """Decides whether a server host key is acceptable"""

    @abstractmethod
    def verify(self, hostname: str, port: int, key: paramiko.PKey) -> None:
        """Raise HostKeyRejected if the key must not be trusted"""
        pass
