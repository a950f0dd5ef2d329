"""Liveness challenge engine.

Turns a stream of per-frame face observations into challenge
transitions: Initializing -> TurnLeft -> TurnRight -> Smile ->
FaceCapture -> Completed.

Per frame:

1. Frozen during FaceCapture and after Completed.
2. Gate: a face must be detected and larger than ``min_face_size``.
   A gate failure resets the streak and sets a framing error.
3. The active challenge's predicate passes (streak + 1) or fails
   (streak reset to 0).
4. Once the streak reaches the required length (5 for the initial face
   lock, 3 otherwise) the engine records the step as completed and moves
   to the next challenge.

The transition functions are pure and total; ``LivenessEngine`` wraps
them in a lock-protected, observable container for a running session.

Example:
    >>> from facelive import LivenessEngine, FaceObservation
    >>> engine = LivenessEngine()
    >>> unsubscribe = engine.subscribe(lambda state: print(state.challenge))
    >>> engine.process(FaceObservation(face_detected=True, face_size=0.5))
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from facelive.challenges import (
    instruction_for,
    next_challenge,
    progress_for,
    required_frames,
    step_for,
)
from facelive.config import LivenessConfig
from facelive.observability import (
    CaptureRecord,
    ChallengeAdvanceRecord,
    GateFailRecord,
    ObservabilityHub,
    ObservationRecord,
    SessionEndRecord,
    SessionStartRecord,
)
from facelive.types import (
    CHALLENGE_ORDER,
    Challenge,
    FaceObservation,
    LivenessError,
    LivenessState,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[LivenessState], None]

_FROZEN = (Challenge.FACE_CAPTURE, Challenge.COMPLETED)


# =============================================================================
# Pure transition functions
# =============================================================================


def initial_state() -> LivenessState:
    """State at the start of a liveness session."""
    return LivenessState()


def reset() -> LivenessState:
    """Fresh state for a retry; identical to :func:`initial_state`."""
    return initial_state()


def gate_error(obs: FaceObservation, config: LivenessConfig) -> Optional[LivenessError]:
    """Framing error for ``obs``, or None when the face passes the gate."""
    if not obs.face_detected:
        return LivenessError.NO_FACE_DETECTED
    if not obs.is_face_size_sufficient(min_size=config.min_face_size):
        return LivenessError.FACE_TOO_SMALL
    return None


def process_observation(
    state: LivenessState,
    obs: FaceObservation,
    config: Optional[LivenessConfig] = None,
) -> LivenessState:
    """Apply one observation to ``state``.

    Args:
        state: Current state.
        obs: Face analysis for one frame.
        config: Thresholds (defaults to ``LivenessConfig()``).

    Returns:
        The next state. ``state`` itself is returned when nothing changed,
        including every call while frozen (FaceCapture, Completed).
    """
    if state.challenge in _FROZEN:
        return state

    cfg = config or LivenessConfig()

    new = _apply(state, obs, cfg)
    return state if new == state else new


def _apply(state: LivenessState, obs: FaceObservation, cfg: LivenessConfig) -> LivenessState:
    error = gate_error(obs, cfg)
    if error is not None:
        return replace(
            state,
            consecutive_success_count=0,
            face_detected=obs.face_detected,
            face_size_sufficient=obs.is_face_size_sufficient(min_size=cfg.min_face_size),
            error=error,
        )

    step = step_for(state.challenge)
    passed = step.predicate is not None and step.predicate(obs, cfg)
    streak = state.consecutive_success_count + 1 if passed else 0

    if streak >= required_frames(state.challenge, cfg):
        nxt = next_challenge(state.challenge)
        return replace(
            state,
            challenge=nxt,
            consecutive_success_count=0,
            completed_steps=state.completed_steps | {state.challenge},
            face_detected=True,
            face_size_sufficient=True,
            error=None,
            progress=progress_for(nxt),
        )

    return replace(
        state,
        consecutive_success_count=streak,
        face_detected=True,
        face_size_sufficient=True,
        error=None,
    )


def mark_captured(state: LivenessState) -> LivenessState:
    """Complete the session once the caller holds a still capture.

    Only valid in FaceCapture; any other state is returned unchanged so
    no challenge can be skipped. Upload of the capture happens outside
    the engine and never affects this transition.
    """
    if state.challenge is not Challenge.FACE_CAPTURE:
        return state
    return replace(
        state,
        challenge=Challenge.COMPLETED,
        consecutive_success_count=0,
        completed_steps=state.completed_steps | {Challenge.FACE_CAPTURE},
        error=None,
        progress=progress_for(Challenge.COMPLETED),
    )


def instruction(state: LivenessState, lang: str = "en") -> str:
    return instruction_for(state.challenge, lang)


def progress(state: LivenessState) -> float:
    return state.progress


def is_complete(state: LivenessState) -> bool:
    return state.challenge is Challenge.COMPLETED


# =============================================================================
# Observable engine
# =============================================================================


class LivenessEngine:
    """Session-scoped liveness state container.

    Serializes calls with a lock, so observations may arrive from any
    thread. Listeners are notified only when the state actually changed,
    outside the state lock but in commit order: a write waits until the
    previous write has finished notifying. Listeners may read the engine
    or feed it again from the notifying thread.

    Args:
        config: Challenge thresholds.
        session_id: Label used in logs and trace records.
    """

    def __init__(self, config: Optional[LivenessConfig] = None, *, session_id: str = ""):
        self.config = config or LivenessConfig()
        self.session_id = session_id
        self._lock = threading.Lock()
        self._delivery_lock = threading.RLock()
        self._listeners: List[StateListener] = []
        self._hub = ObservabilityHub.get_instance()
        self._state = initial_state()
        self._frame_index = 0
        self._gate_failures: Dict[str, int] = {}
        self._started_at = time.monotonic()
        self._emit_session_start()

    # --- read side -----------------------------------------------------------

    @property
    def state(self) -> LivenessState:
        return self._state

    @property
    def challenge(self) -> Challenge:
        return self._state.challenge

    @property
    def progress(self) -> float:
        return self._state.progress

    @property
    def is_complete(self) -> bool:
        return self._state.is_complete

    @property
    def frames_seen(self) -> int:
        return self._frame_index

    def instruction(self, lang: str = "en") -> str:
        return instruction_for(self._state.challenge, lang)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener.

        Returns:
            A callable that removes the listener.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # --- write side ----------------------------------------------------------

    def process(self, obs: FaceObservation) -> LivenessState:
        """Feed one observation and return the resulting state."""
        with self._delivery_lock:
            with self._lock:
                old = self._state
                if old.challenge in _FROZEN:
                    return old

                self._frame_index += 1
                frame_index = self._frame_index
                new = process_observation(old, obs, self.config)
                self._state = new
                if new.error is not None:
                    reason = new.error.value
                    self._gate_failures[reason] = self._gate_failures.get(reason, 0) + 1
                listeners = list(self._listeners) if new is not old else []

            self._record_frame(frame_index, old, new, obs)
            self._notify(listeners, new)
        return new

    def mark_captured(self) -> LivenessState:
        """Hand back a still capture taken during FaceCapture."""
        with self._delivery_lock:
            with self._lock:
                old = self._state
                new = mark_captured(old)
                self._state = new
                listeners = list(self._listeners) if new is not old else []
                frame_index = self._frame_index

            accepted = new is not old
            if accepted:
                logger.info("Capture accepted at frame %d, session %s complete", frame_index, self.session_id or "-")
                self._emit_advance(frame_index, old, new, streak=0)
            else:
                logger.warning("mark_captured() ignored in %s", old.challenge.value)

            if self._hub.enabled:
                self._hub.emit(CaptureRecord(
                    frame_index=frame_index,
                    accepted=accepted,
                    challenge=old.challenge.value,
                ))

            self._notify(listeners, new)
        return new

    def reset(self) -> LivenessState:
        """Discard the session and start over from Initializing."""
        with self._delivery_lock:
            with self._lock:
                old = self._state
                new = reset()
                self._state = new
                self._frame_index = 0
                self._gate_failures = {}
                self._started_at = time.monotonic()
                listeners = list(self._listeners) if new != old else []

            logger.info("Liveness session %s reset from %s", self.session_id or "-", old.challenge.value)
            self._emit_session_start()
            self._notify(listeners, new)
        return new

    def summary(self) -> Dict[str, Any]:
        """Frame and gate statistics for the current session."""
        with self._lock:
            state = self._state
            return {
                "session_id": self.session_id,
                "challenge": state.challenge.value,
                "progress": state.progress,
                "frames_seen": self._frame_index,
                "gate_failures": dict(self._gate_failures),
                "completed_steps": [c.value for c in CHALLENGE_ORDER if c in state.completed_steps],
                "duration_sec": time.monotonic() - self._started_at,
            }

    def close(self, reason: str = "") -> Dict[str, Any]:
        """Log the session summary and emit the session end record."""
        summary = self.summary()
        failures = summary["gate_failures"]
        logger.info(
            "liveness summary: session=%s challenge=%s frames=%d, gate failures: %s",
            self.session_id or "-",
            summary["challenge"],
            summary["frames_seen"],
            failures if failures else "none",
        )
        if self._hub.enabled:
            self._hub.emit(SessionEndRecord(
                session_id=self.session_id,
                reason=reason or ("completed" if self.is_complete else "abandoned"),
                final_challenge=summary["challenge"],
                frames_seen=summary["frames_seen"],
                gate_failures=failures,
                duration_sec=summary["duration_sec"],
            ))
        return summary

    # --- internals -----------------------------------------------------------

    def _record_frame(
        self, frame_index: int, old: LivenessState, new: LivenessState, obs: FaceObservation,
    ) -> None:
        if new.error is not None:
            reason = new.error.value
            logger.debug(
                "gate FAIL frame=%d challenge=%s: %s (size=%.3f)",
                frame_index, old.challenge.value, reason, obs.face_size,
            )
            if self._hub.enabled:
                self._hub.emit(GateFailRecord(
                    frame_index=frame_index,
                    challenge=old.challenge.value,
                    reason=reason,
                    face_size=obs.face_size,
                    streak_lost=old.consecutive_success_count,
                ))

        if self._hub.enabled:
            self._hub.emit(ObservationRecord(
                frame_index=frame_index,
                challenge=old.challenge.value,
                face_detected=obs.face_detected,
                head_yaw=obs.head_yaw,
                smile_probability=obs.smile_probability,
                face_size=obs.face_size,
                passed=new.consecutive_success_count > old.consecutive_success_count
                or new.challenge is not old.challenge,
                streak=new.consecutive_success_count,
            ))

        if new.challenge is not old.challenge:
            logger.info(
                "Challenge %s passed at frame %d -> %s (progress %.2f)",
                old.challenge.value, frame_index, new.challenge.value, new.progress,
            )
            self._emit_advance(frame_index, old, new, streak=required_frames(old.challenge, self.config))

    def _emit_advance(self, frame_index: int, old: LivenessState, new: LivenessState, streak: int) -> None:
        if not self._hub.enabled:
            return
        self._hub.emit(ChallengeAdvanceRecord(
            frame_index=frame_index,
            old_challenge=old.challenge.value,
            new_challenge=new.challenge.value,
            streak=streak,
            progress=new.progress,
            completed_steps=[c.value for c in CHALLENGE_ORDER if c in new.completed_steps],
        ))

    def _emit_session_start(self) -> None:
        logger.info("Liveness session %s started", self.session_id or "-")
        if self._hub.enabled:
            self._hub.emit(SessionStartRecord(
                session_id=self.session_id,
                config=self.config.to_dict(),
            ))

    @staticmethod
    def _notify(listeners: List[StateListener], state: LivenessState) -> None:
        for listener in listeners:
            listener(state)


__all__ = [
    "LivenessEngine",
    "initial_state",
    "reset",
    "gate_error",
    "process_observation",
    "mark_captured",
    "instruction",
    "progress",
    "is_complete",
]
