"""Trace record data classes for facelive observability.

Record Categories:
- Session records: session start/end
- Engine records: challenge advances, gate failures, per-frame observations
- Capture records: still image handed back to the engine
- Detector records: detector failures degraded to "no face"
"""

import json
import time
from dataclasses import asdict, dataclass, field
from enum import IntEnum
from typing import Any, Dict, List


class TraceLevel(IntEnum):
    """Trace verbosity.

    - OFF: No tracing (default)
    - MINIMAL: Session boundaries, challenge advances, captures
    - NORMAL: + gate failures and detector errors
    - VERBOSE: + every processed observation
    """

    OFF = 0
    MINIMAL = 1
    NORMAL = 2
    VERBOSE = 3

    @classmethod
    def from_string(cls, name: str) -> "TraceLevel":
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(
                f"Unknown trace level: {name!r}. "
                f"Use one of {[lvl.name.lower() for lvl in cls]}."
            ) from None


@dataclass
class TraceRecord:
    """Base trace record.

    Subclasses set ``record_type`` (init=False) and, when needed, a
    different ``min_level``.
    """

    record_type: str = field(default="trace", init=False)
    timestamp_ns: int = field(default_factory=time.time_ns)
    min_level: TraceLevel = field(default=TraceLevel.NORMAL, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("min_level", None)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


# =============================================================================
# Session Records
# =============================================================================


@dataclass
class SessionStartRecord(TraceRecord):
    """Emitted when a liveness session starts (or restarts after reset)."""
    record_type: str = field(default="session_start", init=False)
    min_level: TraceLevel = field(default=TraceLevel.MINIMAL, repr=False)

    session_id: str = ""
    config: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SessionEndRecord(TraceRecord):
    """Emitted when a session finishes, for any reason."""
    record_type: str = field(default="session_end", init=False)
    min_level: TraceLevel = field(default=TraceLevel.MINIMAL, repr=False)

    session_id: str = ""
    reason: str = ""  # "completed", "idle_timeout", "source_exhausted", "stopped"
    final_challenge: str = ""
    frames_seen: int = 0
    gate_failures: Dict[str, int] = field(default_factory=dict)
    duration_sec: float = 0.0


# =============================================================================
# Engine Records
# =============================================================================


@dataclass
class ChallengeAdvanceRecord(TraceRecord):
    """Emitted when a challenge streak is met and the engine moves on."""
    record_type: str = field(default="challenge_advance", init=False)
    min_level: TraceLevel = field(default=TraceLevel.MINIMAL, repr=False)

    frame_index: int = 0
    old_challenge: str = ""
    new_challenge: str = ""
    streak: int = 0
    progress: float = 0.0
    completed_steps: List[str] = field(default_factory=list)


@dataclass
class GateFailRecord(TraceRecord):
    """Emitted when a frame fails the face gate (no face / too small)."""
    record_type: str = field(default="gate_fail", init=False)

    frame_index: int = 0
    challenge: str = ""
    reason: str = ""
    face_size: float = 0.0
    streak_lost: int = 0


@dataclass
class ObservationRecord(TraceRecord):
    """Every observation the engine evaluates (VERBOSE)."""
    record_type: str = field(default="observation", init=False)
    min_level: TraceLevel = field(default=TraceLevel.VERBOSE, repr=False)

    frame_index: int = 0
    challenge: str = ""
    face_detected: bool = False
    head_yaw: float = 0.0
    smile_probability: float = 0.0
    face_size: float = 0.0
    passed: bool = False
    streak: int = 0


@dataclass
class CaptureRecord(TraceRecord):
    """Emitted when the caller hands back a still capture."""
    record_type: str = field(default="capture", init=False)
    min_level: TraceLevel = field(default=TraceLevel.MINIMAL, repr=False)

    frame_index: int = 0
    accepted: bool = False
    challenge: str = ""


# =============================================================================
# Detector Records
# =============================================================================


@dataclass
class DetectorErrorRecord(TraceRecord):
    """Detector raised on a frame; the frame was treated as "no face"."""
    record_type: str = field(default="detector_error", init=False)

    frame_index: int = 0
    error: str = ""


__all__ = [
    "TraceLevel",
    "TraceRecord",
    "SessionStartRecord",
    "SessionEndRecord",
    "ChallengeAdvanceRecord",
    "GateFailRecord",
    "ObservationRecord",
    "CaptureRecord",
    "DetectorErrorRecord",
]
