"""Convert detector output into per-frame face observations."""

import logging
from typing import Sequence

from facelive.detect.types import DetectedFace
from facelive.types import FaceBounds, FaceObservation

logger = logging.getLogger(__name__)


def to_observation(
    faces: Sequence[DetectedFace],
    image_width: int,
    image_height: int,
    min_confidence: float = 0.0,
) -> FaceObservation:
    """Build the observation for one frame from its detected faces.

    The largest face (closest to the camera) is used when several are
    detected. Its relative size is the bbox area over the frame area.

    Args:
        faces: Backend detections in pixel coordinates.
        image_width: Frame width in pixels.
        image_height: Frame height in pixels.
        min_confidence: Detections below this confidence are ignored.

    Returns:
        FaceObservation; ``FaceObservation.no_face()`` when nothing usable
        was detected.

    Raises:
        ValueError: If the frame has no area.
    """
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Invalid image size: {image_width}x{image_height}")

    candidates = [f for f in faces if f.confidence >= min_confidence]
    if not candidates:
        if faces:
            logger.debug(
                "%d face(s) below confidence %.2f, treating as no face",
                len(faces), min_confidence,
            )
        return FaceObservation.no_face()

    face = max(candidates, key=lambda f: f.area)
    image_area = float(image_width * image_height)
    face_size = min(1.0, face.area / image_area)

    x, y, w, h = face.bbox
    bounds = FaceBounds(
        x=x / image_width,
        y=y / image_height,
        width=w / image_width,
        height=h / image_height,
    )

    return FaceObservation(
        face_detected=True,
        head_yaw=float(face.yaw),
        head_roll=float(face.roll),
        smile_probability=float(face.smile_probability),
        face_size=face_size,
        face_bounds=bounds,
        confidence=float(face.confidence),
    )


__all__ = ["to_observation"]
