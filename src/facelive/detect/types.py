"""Backend protocol definitions for face detection."""

from dataclasses import dataclass
from typing import List, Protocol

import numpy as np


@dataclass
class DetectedFace:
    """Result from a face detection backend.

    Attributes:
        bbox: Bounding box (x, y, width, height) in pixels.
        confidence: Detection confidence [0, 1].
        yaw: Head yaw in degrees, positive = turned to the user's left.
        roll: Head roll in degrees.
        smile_probability: Smile score [0, 1].
        face_id: Tracking id when the backend provides one.
    """

    bbox: tuple[float, float, float, float]
    confidence: float = 1.0
    yaw: float = 0.0
    roll: float = 0.0
    smile_probability: float = 0.0
    face_id: int = 0

    @property
    def area(self) -> float:
        return max(0.0, self.bbox[2]) * max(0.0, self.bbox[3])


class FaceDetectionBackend(Protocol):
    """Protocol for face detection backends.

    Implementations should be swappable without changing the session loop.
    """

    def initialize(self) -> None:
        """Load models."""
        ...

    def detect(self, image: np.ndarray) -> List[DetectedFace]:
        """Detect faces in a BGR image (H, W, 3)."""
        ...

    def cleanup(self) -> None:
        """Release resources and unload models."""
        ...


__all__ = ["DetectedFace", "FaceDetectionBackend"]
