"""
Cooperative cancellation for the relay loops
"""
import signal
import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from ...core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CANCEL_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """One-shot flag shared by the coordinator and the relay loops"""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        """Cancel; the first reason wins"""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; True if cancelled"""
        return self._event.wait(timeout)


@contextmanager
def cancel_on_signals(
    token: CancellationToken,
    signals: Sequence[signal.Signals] = DEFAULT_CANCEL_SIGNALS,
) -> Iterator[CancellationToken]:
    """
    Route process signals into token while the block runs.

    Must be entered from the main thread. Previous handlers are restored on
    exit.
    """
    def handler(signum, frame):
        name = signal.Signals(signum).name
        logger.debug(f"Received {name}")
        token.cancel(name)

    previous = {}
    try:
        for sig in signals:
            previous[sig] = signal.signal(sig, handler)
        yield token
    finally:
        for sig, old_handler in previous.items():
            signal.signal(sig, old_handler)
