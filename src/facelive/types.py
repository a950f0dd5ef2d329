"""Facelive data types.

Per-frame face observations coming from the detector, the ordered set of
liveness challenges, and the engine-owned liveness state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


@dataclass(frozen=True)
class FaceBounds:
    """Face bounding box, normalized to the frame (x, y, width, height in [0, 1])."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class FaceObservation:
    """Face analysis result for a single frame.

    Yaw convention: positive ``head_yaw`` means the head is turned to the
    user's left (the comparison the engine uses for ``TurnLeft``). Some
    detector SDKs report the opposite sign, with left as ``yaw < -20``;
    flip the sign when building observations from those
    (``MediaPipeFaceBackend(yaw_sign=-1.0)``) rather than the helpers.

    Attributes:
        face_detected: Whether any face was found in the frame.
        head_yaw: Horizontal head rotation in degrees, roughly [-180, 180].
        head_roll: Head tilt in degrees. Carried through, not used by the engine.
        smile_probability: Smile classifier output [0, 1].
        face_size: Face bbox area divided by frame area [0, 1].
        face_bounds: Normalized face bbox (informational only).
        confidence: Detector confidence for the chosen face (informational only).
    """

    face_detected: bool
    head_yaw: float = 0.0
    head_roll: float = 0.0
    smile_probability: float = 0.0
    face_size: float = 0.0
    face_bounds: Optional[FaceBounds] = None
    confidence: float = 0.0

    @classmethod
    def no_face(cls) -> FaceObservation:
        """Observation for a frame where nothing usable was detected."""
        return cls(face_detected=False)

    def is_face_size_sufficient(self, min_size: float = 0.3) -> bool:
        """Face is close enough to the camera.

        Printed photos held away from the lens produce small faces.
        """
        return self.face_detected and self.face_size > min_size

    def is_smiling(self, threshold: float = 0.75) -> bool:
        return self.face_detected and self.smile_probability > threshold

    def is_head_turned_left(self, threshold: float = 20.0) -> bool:
        return self.face_detected and self.head_yaw > threshold

    def is_head_turned_right(self, threshold: float = 20.0) -> bool:
        return self.face_detected and self.head_yaw < -threshold


class Challenge(Enum):
    """Liveness challenges in their canonical order."""

    INITIALIZING = "initializing"
    TURN_LEFT = "turn_left"
    TURN_RIGHT = "turn_right"
    SMILE = "smile"
    FACE_CAPTURE = "face_capture"
    COMPLETED = "completed"

    @property
    def index(self) -> int:
        """Position in the fixed challenge order."""
        return _CHALLENGE_INDEX[self]

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, Challenge):
            return NotImplemented
        return self.index < other.index

    def __le__(self, other: Any) -> bool:
        if not isinstance(other, Challenge):
            return NotImplemented
        return self.index <= other.index

    def __gt__(self, other: Any) -> bool:
        if not isinstance(other, Challenge):
            return NotImplemented
        return self.index > other.index

    def __ge__(self, other: Any) -> bool:
        if not isinstance(other, Challenge):
            return NotImplemented
        return self.index >= other.index


CHALLENGE_ORDER: tuple[Challenge, ...] = tuple(Challenge)
_CHALLENGE_INDEX: Dict[Challenge, int] = {c: i for i, c in enumerate(CHALLENGE_ORDER)}


class LivenessError(Enum):
    """Transient per-frame framing problems shown to the user."""

    NO_FACE_DETECTED = "no_face_detected"
    FACE_TOO_SMALL = "face_too_small"

    @property
    def message(self) -> str:
        return _ERROR_MESSAGES[self]


_ERROR_MESSAGES = {
    LivenessError.NO_FACE_DETECTED: "No face detected - Position your face",
    LivenessError.FACE_TOO_SMALL: "Move closer - Fill the oval",
}


@dataclass(frozen=True)
class LivenessState:
    """Snapshot of a liveness session.

    Only the engine produces new states; every field is immutable so a
    snapshot handed to the UI can never change under it.
    """

    challenge: Challenge = Challenge.INITIALIZING
    consecutive_success_count: int = 0
    completed_steps: FrozenSet[Challenge] = field(default_factory=frozenset)
    face_detected: bool = False
    face_size_sufficient: bool = False
    error: Optional[LivenessError] = None
    progress: float = 0.0

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error is not None else None

    @property
    def is_complete(self) -> bool:
        return self.challenge is Challenge.COMPLETED

    def to_dict(self, lang: str = "en") -> Dict[str, Any]:
        """UI-facing snapshot including the derived instruction text."""
        from facelive.challenges import instruction_for

        return {
            "challenge": self.challenge.value,
            "instruction": instruction_for(self.challenge, lang),
            "consecutive_success_count": self.consecutive_success_count,
            "completed_steps": [
                c.value for c in CHALLENGE_ORDER if c in self.completed_steps
            ],
            "face_detected": self.face_detected,
            "face_size_sufficient": self.face_size_sufficient,
            "error": self.error.value if self.error is not None else None,
            "error_message": self.error_message,
            "progress": self.progress,
            "is_complete": self.is_complete,
        }


__all__ = [
    "FaceBounds",
    "FaceObservation",
    "Challenge",
    "CHALLENGE_ORDER",
    "LivenessError",
    "LivenessState",
]
