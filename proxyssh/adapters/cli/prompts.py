"""
Rich-based user prompts

On a terminal, prompts go through rich. When stdin is a pipe the answers
are read straight off the binary stream, one byte at a time, so that the
bytes after an answer are still unread when the relay takes over stdin.
"""
import io
import os
import sys
from typing import BinaryIO, Optional
from rich.console import Console
from rich.prompt import Prompt, Confirm

from ...core.exceptions import ConfigurationError
from ...core.interfaces import PromptProvider
from ...core.logging import get_stdout_console


def read_line(stdin: BinaryIO) -> str:
    """Read one line without reading ahead; '' at end of input"""
    try:
        fd = stdin.fileno()
    except (AttributeError, io.UnsupportedOperation):
        return stdin.readline().decode("utf-8", errors="replace").rstrip("\r\n")

    line = bytearray()
    while not line.endswith(b"\n"):
        byte = os.read(fd, 1)
        if not byte:
            break
        line += byte
    return line.decode("utf-8", errors="replace").rstrip("\r\n")


class RichPromptProvider(PromptProvider):
    """Rich-based prompt provider"""

    def __init__(self, console: Optional[Console] = None, stdin: Optional[BinaryIO] = None):
        self.console = console or get_stdout_console()
        self._stdin = stdin

    @property
    def stdin(self) -> BinaryIO:
        return self._stdin if self._stdin is not None else sys.stdin.buffer

    @property
    def interactive(self) -> bool:
        try:
            return self.stdin.isatty()
        except (AttributeError, ValueError):
            return False

    def _ask_line(self, message: str) -> str:
        self.console.print(f"{message}: ", end="", markup=False, highlight=False)
        return read_line(self.stdin)

    def prompt(self, message: str, default: Optional[str] = None, password: bool = False) -> str:
        """Prompt user for input; an empty answer without default is returned as ''"""
        if not self.interactive:
            answer = self._ask_line(message)
            return answer if answer or default is None else default
        if default is None:
            return Prompt.ask(message, password=password, default="", show_default=False,
                              console=self.console)
        return Prompt.ask(message, password=password, default=default, console=self.console)

    def confirm(self, message: str, default: bool = False) -> bool:
        """Prompt user for confirmation"""
        if not self.interactive:
            answer = self._ask_line(f"{message} [y/n]").strip().lower()
            return answer in ("y", "yes") if answer else default
        return Confirm.ask(message, default=default, console=self.console)

    def info(self, message: str) -> None:
        """Display info message"""
        self.console.print(f"[cyan]ℹ[/cyan] {message}")


def ask_username(prompt_provider: PromptProvider) -> str:
    """
    Read the remote username.

    Raises:
        ConfigurationError: If the answer is empty
    """
    username = (prompt_provider.prompt("Username") or "").strip()
    if not username:
        raise ConfigurationError("Username must not be empty")
    return username
