"""
In-process telemetry

Pipeline stages record events (proxy.dialed, ssh.authenticated,
session.closed); the relay records per-stream byte counts as metrics.
Relay threads record concurrently, so every access holds the lock.
"""
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Metric:
    """One measured value"""
    name: str
    value: float
    timestamp: float = field(default_factory=time.time)
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class Event:
    """Something that happened, with context"""
    name: str
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)


class Telemetry:
    """Thread-safe collector of metrics and events"""

    def __init__(self):
        self._metrics: List[Metric] = []
        self._events: List[Event] = []
        self._lock = threading.Lock()

    def record_metric(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        with self._lock:
            self._metrics.append(Metric(name=name, value=value, tags=tags or {}))

    def record_event(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            self._events.append(Event(name=name, metadata=metadata or {}))

    def find_event(self, name: str) -> Optional[Event]:
        """Most recent event with the given name, or None"""
        with self._lock:
            return next((e for e in reversed(self._events) if e.name == name), None)

    def totals(self, name: str, tag: str) -> Dict[str, float]:
        """
        Sum a metric per value of one tag.

        >>> telemetry.totals("relay.bytes", "stream")
        {'stdin': 12.0, 'stdout': 4096.0, 'stderr': 0.0}
        """
        result: Dict[str, float] = defaultdict(float)
        with self._lock:
            for metric in self._metrics:
                if metric.name == name and tag in metric.tags:
                    result[metric.tags[tag]] += metric.value
        return dict(result)

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._events.clear()


_telemetry = Telemetry()


def get_telemetry() -> Telemetry:
    """Process-wide telemetry instance"""
    return _telemetry
