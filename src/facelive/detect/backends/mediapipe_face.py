"""MediaPipe face landmarker backend.

Head pose comes from the facial transformation matrix, the smile score
from the ``mouthSmileLeft`` / ``mouthSmileRight`` blendshapes.
"""

import logging
import math
import urllib.request
from pathlib import Path
from typing import List, Optional

import numpy as np

from facelive.detect.types import DetectedFace

logger = logging.getLogger(__name__)

FACE_LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/1/face_landmarker.task"
)

_SMILE_BLENDSHAPES = ("mouthSmileLeft", "mouthSmileRight")


def _get_model_path() -> Path:
    """Get path to the face landmarker model, downloading if necessary."""
    cache_dir = Path.home() / ".cache" / "facelive" / "models"
    cache_dir.mkdir(parents=True, exist_ok=True)

    model_path = cache_dir / "face_landmarker.task"

    if not model_path.exists():
        logger.info("Downloading face landmarker model to %s...", model_path)
        try:
            urllib.request.urlretrieve(FACE_LANDMARKER_MODEL_URL, model_path)
            logger.info("Download complete.")
        except Exception as e:
            raise RuntimeError(
                f"Failed to download face landmarker model: {e}\n"
                f"You can manually download from: {FACE_LANDMARKER_MODEL_URL}\n"
                f"And save to: {model_path}"
            ) from e

    return model_path


def pose_from_matrix(matrix: np.ndarray) -> tuple[float, float]:
    """Yaw and roll in degrees from a 4x4 (or 3x3) transformation matrix."""
    r = np.asarray(matrix, dtype=np.float64)[:3, :3]
    sy = math.sqrt(r[0, 0] ** 2 + r[1, 0] ** 2)

    if sy > 1e-6:
        yaw = math.atan2(-r[2, 0], sy)
        roll = math.atan2(r[1, 0], r[0, 0])
    else:
        # Gimbal lock at +-90 deg yaw: roll is not separable.
        yaw = math.atan2(-r[2, 0], sy)
        roll = 0.0

    return math.degrees(yaw), math.degrees(roll)


def smile_from_blendshapes(categories) -> float:
    """Mean of the two mouth-smile blendshape scores."""
    scores = [c.score for c in categories if c.category_name in _SMILE_BLENDSHAPES]
    if not scores:
        return 0.0
    return float(min(1.0, max(0.0, sum(scores) / len(scores))))


class MediaPipeFaceBackend:
    """MediaPipe FaceLandmarker backend (Tasks API 0.10.x+).

    Args:
        max_num_faces: Maximum faces to detect (default: 2).
        min_detection_confidence: Minimum face detection confidence.
        yaw_sign: Multiplier applied to yaw. Use -1.0 for mirrored
            (selfie) previews so a turn to the user's left stays positive.
        model_path: Explicit model file; downloaded to the cache if omitted.
    """

    def __init__(
        self,
        max_num_faces: int = 2,
        min_detection_confidence: float = 0.5,
        yaw_sign: float = 1.0,
        model_path: Optional[str] = None,
    ):
        self._max_num_faces = max_num_faces
        self._min_detection_confidence = min_detection_confidence
        self._yaw_sign = yaw_sign
        self._model_path = model_path
        self._landmarker: Optional[object] = None
        self._initialized = False

    def initialize(self) -> None:
        """Create the MediaPipe FaceLandmarker."""
        if self._initialized:
            return

        try:
            from mediapipe.tasks import python
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise ImportError(
                "MediaPipe is required for the face landmarker backend. "
                "Install it with: pip install facelive[mediapipe]"
            ) from e

        model_path = Path(self._model_path) if self._model_path else _get_model_path()

        base_options = python.BaseOptions(model_asset_path=str(model_path))
        options = vision.FaceLandmarkerOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.IMAGE,
            num_faces=self._max_num_faces,
            min_face_detection_confidence=self._min_detection_confidence,
            output_face_blendshapes=True,
            output_facial_transformation_matrixes=True,
        )

        self._landmarker = vision.FaceLandmarker.create_from_options(options)
        self._initialized = True
        logger.info("MediaPipe face backend initialized (Tasks API)")

    def detect(self, image: np.ndarray) -> List[DetectedFace]:
        """Detect faces in a BGR image.

        Args:
            image: BGR image as numpy array (H, W, 3).

        Returns:
            Detected faces with pixel bboxes, pose, and smile score.
        """
        if not self._initialized or self._landmarker is None:
            raise RuntimeError("Backend not initialized. Call initialize() first.")

        import cv2
        import mediapipe as mp

        height, width = image.shape[:2]
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=image_rgb)

        result = self._landmarker.detect(mp_image)

        faces: List[DetectedFace] = []
        for idx, landmarks in enumerate(result.face_landmarks or []):
            pts = np.array([[lm.x, lm.y] for lm in landmarks], dtype=np.float32)
            x0, y0 = np.clip(pts.min(axis=0), 0.0, 1.0)
            x1, y1 = np.clip(pts.max(axis=0), 0.0, 1.0)

            yaw, roll = 0.0, 0.0
            matrices = result.facial_transformation_matrixes
            if matrices and idx < len(matrices):
                yaw, roll = pose_from_matrix(matrices[idx])

            smile = 0.0
            blendshapes = result.face_blendshapes
            if blendshapes and idx < len(blendshapes):
                smile = smile_from_blendshapes(blendshapes[idx])

            faces.append(DetectedFace(
                bbox=(
                    float(x0 * width),
                    float(y0 * height),
                    float((x1 - x0) * width),
                    float((y1 - y0) * height),
                ),
                # FaceLandmarker reports no per-face score; detections
                # already passed min_face_detection_confidence.
                confidence=1.0,
                yaw=self._yaw_sign * yaw,
                roll=roll,
                smile_probability=smile,
                face_id=idx,
            ))

        return faces

    def cleanup(self) -> None:
        """Release MediaPipe resources."""
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
        self._initialized = False
        logger.info("MediaPipe face backend cleaned up")


__all__ = ["MediaPipeFaceBackend", "pose_from_matrix", "smile_from_blendshapes"]
