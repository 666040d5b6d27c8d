"""
Local terminal mode control
"""
import sys
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO

from ...core.logging import get_logger

try:
    import termios
    import tty
except ImportError:  # Windows
    termios = None
    tty = None

logger = get_logger(__name__)


@contextmanager
def raw_terminal(stream: Optional[TextIO] = None) -> Iterator[bool]:
    """
    Put the terminal behind stream into raw mode for the duration of the block.

    Yields True when raw mode is active. Does nothing when stream is not a
    TTY or the platform has no termios.
    """
    stream = stream or sys.stdin
    if termios is None or not stream.isatty():
        logger.debug("Local stdin is not a terminal, leaving its mode alone")
        yield False
        return

    fd = stream.fileno()
    saved = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        yield True
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)
