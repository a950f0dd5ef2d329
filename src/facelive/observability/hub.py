"""Process-wide trace hub.

The hub fans records out to registered sinks. It is disabled by default,
so emitting code guards with ``if hub.enabled`` and pays nothing when
tracing is off.
"""

import logging
import threading
from typing import List, Optional

from facelive.observability.records import TraceLevel, TraceRecord
from facelive.observability.sinks import Sink

logger = logging.getLogger(__name__)


class ObservabilityHub:
    """Singleton trace dispatcher."""

    _instance: Optional["ObservabilityHub"] = None
    _instance_lock = threading.Lock()

    def __init__(self) -> None:
        self._level = TraceLevel.OFF
        self._sinks: List[Sink] = []
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> "ObservabilityHub":
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Close sinks and drop the singleton (tests, CLI teardown)."""
        with cls._instance_lock:
            if cls._instance is not None:
                cls._instance.close()
            cls._instance = None

    @property
    def level(self) -> TraceLevel:
        return self._level

    @property
    def enabled(self) -> bool:
        return self._level > TraceLevel.OFF

    def configure(self, level: TraceLevel = TraceLevel.NORMAL, sinks: Optional[List[Sink]] = None) -> None:
        self._level = TraceLevel(level)
        if sinks:
            for sink in sinks:
                self.add_sink(sink)
        logger.debug("Observability configured: level=%s, sinks=%d", self._level.name, len(self._sinks))

    def is_level_enabled(self, level: TraceLevel) -> bool:
        return level <= self._level

    def add_sink(self, sink: Sink) -> None:
        with self._lock:
            if sink not in self._sinks:
                self._sinks.append(sink)

    def remove_sink(self, sink: Sink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def emit(self, record: TraceRecord) -> None:
        if not self.enabled or not self.is_level_enabled(record.min_level):
            return
        with self._lock:
            sinks = list(self._sinks)
        for sink in sinks:
            sink.write(record)

    def flush(self) -> None:
        with self._lock:
            sinks = list(self._sinks)
        for sink in sinks:
            sink.flush()

    def close(self) -> None:
        with self._lock:
            sinks = list(self._sinks)
            self._sinks.clear()
        for sink in sinks:
            sink.close()
        self._level = TraceLevel.OFF


__all__ = ["ObservabilityHub"]
