"""Challenge table.

Each challenge maps to one ``ChallengeStep`` holding everything the
engine needs: the pass predicate, which streak length applies, the next
challenge, the progress value shown while the challenge is active, and
the instruction text. Adding a step means adding a row here and a member
to ``Challenge``; the engine's control flow does not change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from facelive.config import LivenessConfig
from facelive.types import Challenge, FaceObservation

Predicate = Callable[[FaceObservation, LivenessConfig], bool]

LANGUAGES = ("en", "ne")


@dataclass(frozen=True)
class ChallengeStep:
    """One row of the challenge table.

    Attributes:
        predicate: Pass test for a gated-valid frame. None for steps that
            are not driven by observations (capture, completed).
        lock_step: Uses ``lock_required_frames`` instead of ``required_frames``.
        next: Challenge entered once the streak is met.
        progress: Progress fraction while this challenge is active.
        instructions: Instruction text per language code.
    """

    predicate: Optional[Predicate]
    next: Challenge
    progress: float
    instructions: Dict[str, str] = field(default_factory=dict)
    lock_step: bool = False


def _face_locked(obs: FaceObservation, cfg: LivenessConfig) -> bool:
    return True


def _turned_left(obs: FaceObservation, cfg: LivenessConfig) -> bool:
    return obs.head_yaw > cfg.turn_yaw_threshold


def _turned_right(obs: FaceObservation, cfg: LivenessConfig) -> bool:
    return obs.head_yaw < -cfg.turn_yaw_threshold


def _smiling(obs: FaceObservation, cfg: LivenessConfig) -> bool:
    return obs.smile_probability > cfg.smile_threshold


CHALLENGE_STEPS: Dict[Challenge, ChallengeStep] = {
    Challenge.INITIALIZING: ChallengeStep(
        predicate=_face_locked,
        lock_step=True,
        next=Challenge.TURN_LEFT,
        progress=0.0,
        instructions={
            "en": "Position your face in the frame",
            "ne": "आफ्नो अनुहार फ्रेममा राख्नुहोस्",
        },
    ),
    Challenge.TURN_LEFT: ChallengeStep(
        predicate=_turned_left,
        next=Challenge.TURN_RIGHT,
        progress=0.25,
        instructions={
            "en": "Turn your head LEFT",
            "ne": "आफ्नो टाउको बायाँ घुमाउनुहोस्",
        },
    ),
    Challenge.TURN_RIGHT: ChallengeStep(
        predicate=_turned_right,
        next=Challenge.SMILE,
        progress=0.5,
        instructions={
            "en": "Turn your head RIGHT",
            "ne": "आफ्नो टाउको दायाँ घुमाउनुहोस्",
        },
    ),
    Challenge.SMILE: ChallengeStep(
        predicate=_smiling,
        next=Challenge.FACE_CAPTURE,
        progress=0.75,
        instructions={
            "en": "Now SMILE!",
            "ne": "अब मुस्कुराउनुहोस्!",
        },
    ),
    Challenge.FACE_CAPTURE: ChallengeStep(
        predicate=None,
        next=Challenge.COMPLETED,
        progress=0.9,
        instructions={
            "en": "Hold Steady",
            "ne": "स्थिर रहनुहोस्",
        },
    ),
    Challenge.COMPLETED: ChallengeStep(
        predicate=None,
        next=Challenge.COMPLETED,
        progress=1.0,
        instructions={
            "en": "Verification Complete!",
            "ne": "प्रमाणीकरण पूर्ण भयो!",
        },
    ),
}


def step_for(challenge: Challenge) -> ChallengeStep:
    return CHALLENGE_STEPS[challenge]


def next_challenge(challenge: Challenge) -> Challenge:
    """Next challenge in the fixed order; Completed maps to itself."""
    return CHALLENGE_STEPS[challenge].next


def progress_for(challenge: Challenge) -> float:
    return CHALLENGE_STEPS[challenge].progress


def required_frames(challenge: Challenge, config: LivenessConfig) -> int:
    """Consecutive passing frames needed to leave ``challenge``."""
    if CHALLENGE_STEPS[challenge].lock_step:
        return config.lock_required_frames
    return config.required_frames


def instruction_for(challenge: Challenge, lang: str = "en") -> str:
    """Instruction text for a challenge.

    Raises:
        ValueError: If ``lang`` is not one of ``LANGUAGES``.
    """
    if lang not in LANGUAGES:
        raise ValueError(f"Unknown language: {lang!r}. Use one of {LANGUAGES}.")
    return CHALLENGE_STEPS[challenge].instructions[lang]


__all__ = [
    "ChallengeStep",
    "CHALLENGE_STEPS",
    "LANGUAGES",
    "step_for",
    "next_challenge",
    "progress_for",
    "required_frames",
    "instruction_for",
]
