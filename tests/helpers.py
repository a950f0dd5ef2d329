"""Observation builders shared by the test modules."""

import numpy as np

from facelive.detect.types import DetectedFace
from facelive.types import FaceObservation


def face(yaw=0.0, smile=0.0, size=0.5, detected=True):
    """Observation of a face with the given pose, expression and size."""
    return FaceObservation(
        face_detected=detected,
        head_yaw=yaw,
        smile_probability=smile,
        face_size=size,
    )


def no_face():
    return FaceObservation.no_face()


def passing_run():
    """Observations that take a fresh engine all the way to FaceCapture."""
    return (
        [face()] * 5
        + [face(yaw=30.0)] * 3
        + [face(yaw=-30.0)] * 3
        + [face(smile=0.9)] * 3
    )


def create_mock_frame(width=640, height=480):
    return np.zeros((height, width, 3), dtype=np.uint8)


class ScriptedBackend:
    """Detection backend that replays one detection list per call."""

    def __init__(self, script):
        self._script = list(script)
        self.calls = 0

    def initialize(self):
        pass

    def detect(self, image):
        result = self._script[min(self.calls, len(self._script) - 1)]
        self.calls += 1
        if isinstance(result, Exception):
            raise result
        return result

    def cleanup(self):
        pass


def detected(yaw=0.0, smile=0.0, size=0.5, width=640, height=480, confidence=1.0):
    """DetectedFace whose bbox covers ``size`` of a width x height frame."""
    w = width * size ** 0.5
    h = height * size ** 0.5
    return DetectedFace(
        bbox=(0.0, 0.0, w, h),
        confidence=confidence,
        yaw=yaw,
        smile_probability=smile,
    )


def script_for_passing_run():
    """Per-frame detections equivalent to ``passing_run()``."""
    return (
        [[detected()]] * 5
        + [[detected(yaw=30.0)]] * 3
        + [[detected(yaw=-30.0)]] * 3
        + [[detected(smile=0.9)]] * 3
    )
