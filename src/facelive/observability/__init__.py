"""Observability system for facelive.

Tracks what the liveness engine decided and why:
- Session boundaries
- Challenge advances and captures
- Gate failures (no face / face too small)
- Every evaluated observation (VERBOSE)

Trace Levels:
- OFF: No tracing (production default)
- MINIMAL: Advances, captures, session boundaries
- NORMAL: + gate failures and detector errors
- VERBOSE: + per-frame observation details

Example:
    >>> from facelive.observability import ObservabilityHub, TraceLevel, FileSink
    >>> hub = ObservabilityHub.get_instance()
    >>> hub.configure(level=TraceLevel.NORMAL)
    >>> hub.add_sink(FileSink("/tmp/liveness_trace.jsonl"))
"""

from facelive.observability.records import (
    TraceLevel,
    TraceRecord,
    SessionStartRecord,
    SessionEndRecord,
    ChallengeAdvanceRecord,
    GateFailRecord,
    ObservationRecord,
    CaptureRecord,
    DetectorErrorRecord,
)
from facelive.observability.sinks import (
    Sink,
    NullSink,
    FileSink,
    MemorySink,
    ConsoleSink,
)
from facelive.observability.hub import ObservabilityHub

__all__ = [
    # Core
    "TraceLevel",
    "ObservabilityHub",
    "Sink",
    # Records
    "TraceRecord",
    "SessionStartRecord",
    "SessionEndRecord",
    "ChallengeAdvanceRecord",
    "GateFailRecord",
    "ObservationRecord",
    "CaptureRecord",
    "DetectorErrorRecord",
    # Sinks
    "FileSink",
    "ConsoleSink",
    "MemorySink",
    "NullSink",
]
