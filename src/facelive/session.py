"""Liveness session loop.

Connects a frame source, a face detection backend, and the liveness
engine::

    frames -> backend.detect() -> to_observation() -> engine.process()
                                                   -> capture() on FaceCapture

Camera sources that produce frames faster than they can be analyzed go
through a ``LatestFrameSlot``: only the newest frame is kept, older
unconsumed frames are dropped.

Example:
    >>> from facelive.session import LivenessSession
    >>> session = LivenessSession(backend)
    >>> result = session.run(frames)
    >>> print(result.reason, result.state.progress)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, Optional

import numpy as np

from facelive.config import SessionConfig
from facelive.detect.adapter import to_observation
from facelive.detect.types import FaceDetectionBackend
from facelive.engine import LivenessEngine
from facelive.observability import DetectorErrorRecord, ObservabilityHub
from facelive.types import Challenge, FaceObservation, LivenessState

logger = logging.getLogger(__name__)

CaptureFn = Callable[[np.ndarray], Optional[Any]]


def copy_frame(frame: np.ndarray) -> np.ndarray:
    """Default capture: keep a copy of the frame being analyzed."""
    return frame.copy()


class LatestFrameSlot:
    """Single-slot frame buffer that always holds the newest frame.

    A producer thread calls ``put()`` at camera rate; the consumer calls
    ``get()`` when it is ready for the next frame. Frames overwritten
    before being consumed are counted in ``dropped``.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._frame: Optional[np.ndarray] = None
        self._closed = False
        self.dropped = 0
        self.delivered = 0

    def put(self, frame: np.ndarray) -> None:
        with self._cond:
            if self._closed:
                return
            if self._frame is not None:
                self.dropped += 1
            self._frame = frame
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[np.ndarray]:
        """Take the newest unconsumed frame.

        Returns:
            The frame, or None on timeout or once the slot is closed and empty.
        """
        with self._cond:
            if self._frame is None and not self._closed:
                self._cond.wait(timeout)
            frame, self._frame = self._frame, None
            if frame is not None:
                self.delivered += 1
            return frame

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[np.ndarray]:
        while True:
            frame = self.get(timeout=0.5)
            if frame is not None:
                yield frame
            elif self._closed:
                return


@dataclass
class SessionResult:
    """Result from LivenessSession.run().

    Attributes:
        state: Final engine state.
        reason: Why the loop stopped: "completed", "idle_timeout",
            "source_exhausted", or "stopped".
        capture: Still capture handed back to the engine, if any.
        frames_seen: Frames pulled from the source.
        detector_errors: Frames where the detector raised.
        duration_sec: Wall time of the loop.
    """

    state: LivenessState
    reason: str
    capture: Optional[Any] = None
    frames_seen: int = 0
    detector_errors: int = 0
    duration_sec: float = 0.0

    @property
    def completed(self) -> bool:
        return self.state.is_complete

    def to_dict(self) -> dict:
        return {
            "reason": self.reason,
            "completed": self.completed,
            "frames_seen": self.frames_seen,
            "detector_errors": self.detector_errors,
            "duration_sec": self.duration_sec,
            "state": self.state.to_dict(),
        }


class LivenessSession:
    """Run one liveness session over a stream of frames.

    Args:
        backend: Initialized face detection backend.
        engine: Engine to drive (a fresh ``LivenessEngine`` if omitted).
        capture: Called with the current frame while the engine is in
            FaceCapture. Return None to retry on the next frame.
        config: Idle timeout and detection confidence settings.
        on_observation: Called with every observation derived from a frame
            (e.g. to record a trace for later replay).
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        backend: FaceDetectionBackend,
        engine: Optional[LivenessEngine] = None,
        *,
        capture: Optional[CaptureFn] = None,
        config: Optional[SessionConfig] = None,
        on_observation: Optional[Callable[[FaceObservation], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.backend = backend
        self.engine = engine or LivenessEngine()
        self.config = config or SessionConfig()
        self._capture = capture or copy_frame
        self._on_observation = on_observation
        self._clock = clock
        self._hub = ObservabilityHub.get_instance()
        self._stop = threading.Event()
        self._frames_seen = 0
        self._detector_errors = 0

    def stop(self) -> None:
        """Ask a running ``run()`` to return after the current frame."""
        self._stop.set()

    def analyze(self, frame: np.ndarray) -> FaceObservation:
        """Detect faces in one frame.

        Detector failures are logged and treated as "no face" so a bad
        frame never ends the session.
        """
        height, width = frame.shape[:2]
        try:
            faces = self.backend.detect(frame)
        except Exception as exc:
            self._detector_errors += 1
            logger.warning("Face detection failed on frame %d: %s", self._frames_seen, exc)
            if self._hub.enabled:
                self._hub.emit(DetectorErrorRecord(
                    frame_index=self._frames_seen,
                    error=f"{type(exc).__name__}: {exc}",
                ))
            return FaceObservation.no_face()

        return to_observation(
            faces, width, height,
            min_confidence=self.config.min_detection_confidence,
        )

    def run(self, frames: Iterable[np.ndarray]) -> SessionResult:
        """Drive the engine until completion, timeout, stop, or end of frames."""
        engine = self.engine
        self._stop.clear()
        self._frames_seen = 0
        self._detector_errors = 0
        started = self._clock()
        last_face_at = started
        capture: Optional[Any] = None
        reason = "source_exhausted"

        for frame in frames:
            if self._stop.is_set():
                reason = "stopped"
                break

            if engine.is_complete:
                reason = "completed"
                break

            self._frames_seen += 1

            if engine.challenge is not Challenge.FACE_CAPTURE:
                obs = self.analyze(frame)
                if self._on_observation is not None:
                    self._on_observation(obs)
                state = engine.process(obs)
                now = self._clock()

                if state.error is None:
                    last_face_at = now
                elif self.config.idle_timeout_sec > 0 and now - last_face_at >= self.config.idle_timeout_sec:
                    logger.info(
                        "No usable face for %.1fs, abandoning session at %s",
                        now - last_face_at, state.challenge.value,
                    )
                    reason = "idle_timeout"
                    break

            if engine.challenge is Challenge.FACE_CAPTURE:
                capture = self._capture(frame)
                if capture is None:
                    logger.debug("Capture not available on frame %d, retrying", self._frames_seen)
                    continue
                engine.mark_captured()
                reason = "completed"
                break
        else:
            if self._stop.is_set():
                reason = "stopped"

        result = SessionResult(
            state=engine.state,
            reason=reason,
            capture=capture if engine.is_complete else None,
            frames_seen=self._frames_seen,
            detector_errors=self._detector_errors,
            duration_sec=self._clock() - started,
        )
        engine.close(reason=reason)
        return result


def replay_observations(
    observations: Iterable[FaceObservation],
    engine: Optional[LivenessEngine] = None,
    *,
    simulate_capture: bool = True,
) -> SessionResult:
    """Feed recorded observations through an engine, without a detector.

    Args:
        observations: Recorded per-frame observations.
        engine: Engine to drive (a fresh ``LivenessEngine`` if omitted).
        simulate_capture: Call ``mark_captured()`` as soon as the engine
            reaches FaceCapture.

    Returns:
        SessionResult with reason "completed" or "source_exhausted".
    """
    engine = engine or LivenessEngine()
    started = time.monotonic()
    frames = 0

    for obs in observations:
        frames += 1
        engine.process(obs)
        if simulate_capture and engine.challenge is Challenge.FACE_CAPTURE:
            engine.mark_captured()
        if engine.is_complete:
            break

    reason = "completed" if engine.is_complete else "source_exhausted"
    result = SessionResult(
        state=engine.state,
        reason=reason,
        frames_seen=frames,
        duration_sec=time.monotonic() - started,
    )
    engine.close(reason=reason)
    return result


__all__ = [
    "LatestFrameSlot",
    "LivenessSession",
    "SessionResult",
    "copy_frame",
    "replay_observations",
]
