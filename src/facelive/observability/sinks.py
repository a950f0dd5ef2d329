"""Trace output sinks.

Sinks receive trace records and handle their output to various destinations:
- FileSink: JSONL file output
- ConsoleSink: Formatted console output
- MemorySink: In-memory buffer for testing/analysis
- NullSink: Discards everything
"""

import sys
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, TextIO, Type, Union

from facelive.observability.records import (
    CaptureRecord,
    ChallengeAdvanceRecord,
    DetectorErrorRecord,
    GateFailRecord,
    SessionEndRecord,
    SessionStartRecord,
    TraceRecord,
)


class Sink(ABC):
    """Destination for trace records."""

    @abstractmethod
    def write(self, record: TraceRecord) -> None:
        ...

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.flush()


class NullSink(Sink):
    def write(self, record: TraceRecord) -> None:
        pass


class FileSink(Sink):
    """Append records to a JSONL file, one record per line.

    Args:
        path: Output file. Parent directories are created.
        buffer_size: Records buffered before an automatic flush.
    """

    def __init__(self, path: Union[str, Path], buffer_size: int = 100):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._buffer_size = max(1, buffer_size)
        self._buffer: List[str] = []
        self._lock = threading.Lock()
        self._file: Optional[TextIO] = open(self._path, "a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    def write(self, record: TraceRecord) -> None:
        with self._lock:
            if self._file is None:
                return
            self._buffer.append(record.to_json())
            if len(self._buffer) >= self._buffer_size:
                self._flush_locked()

    def flush(self) -> None:
        with self._lock:
            self._flush_locked()

    def close(self) -> None:
        with self._lock:
            self._flush_locked()
            if self._file is not None:
                self._file.close()
                self._file = None

    def _flush_locked(self) -> None:
        if self._file is None or not self._buffer:
            return
        self._file.write("\n".join(self._buffer) + "\n")
        self._file.flush()
        self._buffer.clear()


class MemorySink(Sink):
    """Keep records in memory.

    Args:
        max_records: Oldest records are dropped beyond this (0 = unbounded).
    """

    def __init__(self, max_records: int = 0):
        self._max_records = max_records
        self._records: List[TraceRecord] = []
        self._lock = threading.Lock()

    def write(self, record: TraceRecord) -> None:
        with self._lock:
            self._records.append(record)
            if self._max_records and len(self._records) > self._max_records:
                del self._records[0]

    def get_records(self) -> List[TraceRecord]:
        with self._lock:
            return list(self._records)

    def get_by_type(self, record_type: Union[str, Type[TraceRecord]]) -> List[TraceRecord]:
        """Records matching a ``record_type`` string or a record class."""
        if isinstance(record_type, str):
            return [r for r in self.get_records() if r.record_type == record_type]
        return [r for r in self.get_records() if isinstance(r, record_type)]

    def get_advances(self) -> List[ChallengeAdvanceRecord]:
        return self.get_by_type(ChallengeAdvanceRecord)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class ConsoleSink(Sink):
    """One-line console output for the records worth watching live.

    Args:
        stream: Output stream (default: stderr).
        color: ANSI colours. Defaults to True when the stream is a TTY.
    """

    _COLORS = {
        "red": "\033[31m",
        "green": "\033[32m",
        "yellow": "\033[33m",
        "blue": "\033[34m",
        "magenta": "\033[35m",
        "cyan": "\033[36m",
    }
    _RESET = "\033[0m"

    def __init__(self, stream: Optional[TextIO] = None, color: Optional[bool] = None):
        self._stream = stream or sys.stderr
        if color is None:
            color = hasattr(self._stream, "isatty") and self._stream.isatty()
        self._color = color

    def write(self, record: TraceRecord) -> None:
        line = self._format_record(record)
        if line is not None:
            self._stream.write(line + "\n")

    def flush(self) -> None:
        self._stream.flush()

    def _colorize(self, text: str, color: str) -> str:
        if not self._color:
            return text
        return f"{self._COLORS.get(color, '')}{text}{self._RESET}"

    def _format_record(self, record: TraceRecord) -> Optional[str]:
        if isinstance(record, ChallengeAdvanceRecord):
            tag = self._colorize("[ADVANCE]", "green")
            return (
                f"{tag} Frame {record.frame_index}: {record.old_challenge} -> "
                f"{self._colorize(record.new_challenge, 'cyan')} "
                f"(streak={record.streak}, progress={record.progress:.2f})"
            )
        elif isinstance(record, GateFailRecord):
            tag = self._colorize("[GATE]", "yellow")
            return (
                f"{tag} Frame {record.frame_index}: {record.reason} "
                f"during {record.challenge} (size={record.face_size:.2f})"
            )
        elif isinstance(record, CaptureRecord):
            tag = self._colorize("[CAPTURE]", "magenta")
            state = "accepted" if record.accepted else "ignored"
            return f"{tag} Frame {record.frame_index}: {state} in {record.challenge}"
        elif isinstance(record, DetectorErrorRecord):
            tag = self._colorize("[DETECT]", "red")
            return f"{tag} Frame {record.frame_index}: {record.error}"
        elif isinstance(record, SessionStartRecord):
            tag = self._colorize("[SESSION]", "blue")
            return f"{tag} start {record.session_id}".rstrip()
        elif isinstance(record, SessionEndRecord):
            tag = self._colorize("[SESSION]", "blue")
            return (
                f"{tag} end {record.session_id} reason={record.reason} "
                f"challenge={record.final_challenge} frames={record.frames_seen} "
                f"({record.duration_sec:.1f}s)"
            )
        return None


__all__ = ["Sink", "NullSink", "FileSink", "MemorySink", "ConsoleSink"]
