"""facelive - Active liveness challenges for KYC face onboarding.

Consumes per-frame face measurements (head yaw, smile probability, face
size) and walks the user through an ordered challenge sequence:
center -> turn left -> turn right -> smile -> hold for capture -> complete.

Quick Start:
    >>> from facelive import Challenge, LivenessEngine, FaceObservation
    >>> engine = LivenessEngine()
    >>> for obs in observations:
    ...     state = engine.process(obs)
    ...     print(engine.instruction(), f"{state.progress:.0%}")
    ...     if state.challenge is Challenge.FACE_CAPTURE:
    ...         engine.mark_captured()

Pure transition functions:
    >>> from facelive.engine import initial_state, process_observation
    >>> state = process_observation(initial_state(), obs)
"""

from facelive.types import (
    CHALLENGE_ORDER,
    Challenge,
    FaceBounds,
    FaceObservation,
    LivenessError,
    LivenessState,
)
from facelive.config import LivenessConfig, SessionConfig, load_config
from facelive.engine import (
    LivenessEngine,
    initial_state,
    mark_captured,
    process_observation,
)
from facelive.session import (
    LatestFrameSlot,
    LivenessSession,
    SessionResult,
    replay_observations,
)

__version__ = "0.1.0"

__all__ = [
    # Types
    "Challenge",
    "CHALLENGE_ORDER",
    "FaceBounds",
    "FaceObservation",
    "LivenessError",
    "LivenessState",
    # Configuration
    "LivenessConfig",
    "SessionConfig",
    "load_config",
    # Engine
    "LivenessEngine",
    "initial_state",
    "process_observation",
    "mark_captured",
    # Session
    "LatestFrameSlot",
    "LivenessSession",
    "SessionResult",
    "replay_observations",
]
