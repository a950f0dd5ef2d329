"""Face detector collaborator: backend protocol and observation adapter."""

from facelive.detect.adapter import to_observation
from facelive.detect.backends import get_backend
from facelive.detect.types import DetectedFace, FaceDetectionBackend

__all__ = [
    "DetectedFace",
    "FaceDetectionBackend",
    "get_backend",
    "to_observation",
]
