"""
Rich-based logging

Log records go to stderr so that stdout carries nothing but the remote
shell's output.
"""
import sys
import logging
from typing import Optional
from pathlib import Path

from rich.logging import RichHandler
from rich.console import Console
from rich.traceback import install as install_traceback


_stdout_console = Console(file=sys.stdout)
_stderr_console = Console(file=sys.stderr)

# Locals stay out of tracebacks: they may hold passwords and keys
install_traceback(show_locals=False, width=120)

FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"

# Third-party loggers that are too chatty at DEBUG
QUIET_LOGGERS = ("paramiko",)


def _rich_handler(level: int, rich_tracebacks: bool) -> RichHandler:
    handler = RichHandler(
        console=_stderr_console,
        show_time=True,
        show_path=level <= logging.DEBUG,
        rich_tracebacks=rich_tracebacks,
        markup=False,
        show_level=True,
    )
    handler.setLevel(level)
    return handler


def _file_handler(path: Path, level: int) -> logging.FileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    rich_tracebacks: bool = True,
) -> None:
    """
    Route all logging through rich on stderr, plus an optional plain file.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        rich_tracebacks: Enable rich tracebacks
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(_rich_handler(log_level, rich_tracebacks))
    if log_file:
        root_logger.addHandler(_file_handler(log_file, log_level))

    # paramiko logs every packet at DEBUG
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Logger for a module (pass __name__)"""
    return logging.getLogger(name)


def get_stdout_console() -> Console:
    """Console for prompts and user-facing output"""
    return _stdout_console


def get_stderr_console() -> Console:
    """Console for errors and logs"""
    return _stderr_console
