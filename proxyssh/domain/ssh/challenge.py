"""
Keyboard-interactive challenge answerers
"""
import re
from typing import Dict, List, Sequence, Type

from rich.markup import escape

from ...core.exceptions import ConfigurationError
from ...core.interfaces import ChallengeAnswerer, ChallengePrompt, PromptProvider
from ...core.logging import get_logger

logger = get_logger(__name__)

PASSWORD_PROMPT_PATTERN = re.compile(r"password", re.IGNORECASE)


def _label(text: str) -> str:
    """Server prompt text as a prompt label (the prompt adds its own colon)"""
    return escape(text.strip().rstrip(":").rstrip())


class PasswordOnlyAnswerer(ChallengeAnswerer):
    """
    Answers password prompts with masked user input.

    Every other prompt receives an empty answer. This covers servers that
    expose plain password login through keyboard-interactive, and nothing
    more; use PromptAllAnswerer for OTP or multi-question challenges.
    """

    def __init__(self, prompt_provider: PromptProvider):
        self.prompt_provider = prompt_provider

    def answer(self, title: str, instructions: str, prompts: Sequence[ChallengePrompt]) -> List[str]:
        answers = [""] * len(prompts)
        for index, (text, _echo) in enumerate(prompts):
            if PASSWORD_PROMPT_PATTERN.search(text):
                answers[index] = self.prompt_provider.prompt(_label(text), password=True)
            else:
                logger.debug(f"Leaving challenge prompt {text!r} unanswered")
        return answers


class PromptAllAnswerer(ChallengeAnswerer):
    """Asks the user every prompt, masking input the server marks as non-echo"""

    def __init__(self, prompt_provider: PromptProvider):
        self.prompt_provider = prompt_provider

    def answer(self, title: str, instructions: str, prompts: Sequence[ChallengePrompt]) -> List[str]:
        if prompts and (title or instructions):
            header = "\n".join(part for part in (title, instructions) if part)
            self.prompt_provider.info(escape(header))
        return [
            self.prompt_provider.prompt(_label(text), password=not echo)
            for text, echo in prompts
        ]


ANSWERERS: Dict[str, Type[ChallengeAnswerer]] = {
    "password-only": PasswordOnlyAnswerer,
    "prompt-all": PromptAllAnswerer,
}


def create_answerer(name: str, prompt_provider: PromptProvider) -> ChallengeAnswerer:
    """Build the answerer registered under name"""
    try:
        answerer_cls = ANSWERERS[name]
    except KeyError:
        valid = ", ".join(ANSWERERS)
        raise ConfigurationError(f"Unknown challenge answerer '{name}'. Valid choices: {valid}") from None
    return answerer_cls(prompt_provider)
