"""Persistence for observation traces and session results.

Traces are JSONL, one FaceObservation per line, so a recorded camera
session can be replayed through the engine without the detector::

    {"face_detected": true, "head_yaw": 24.5, "smile_probability": 0.1, "face_size": 0.42}
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List

from facelive.types import FaceBounds, FaceObservation


def observation_to_dict(obs: FaceObservation) -> dict:
    """Convert a FaceObservation to a JSON-serializable dict."""
    return {
        "face_detected": obs.face_detected,
        "head_yaw": obs.head_yaw,
        "head_roll": obs.head_roll,
        "smile_probability": obs.smile_probability,
        "face_size": obs.face_size,
        "face_bounds": list(obs.face_bounds.as_tuple()) if obs.face_bounds else None,
        "confidence": obs.confidence,
    }


def observation_from_dict(data: dict) -> FaceObservation:
    """Convert a dict from JSON to a FaceObservation. Missing keys take defaults."""
    bounds = data.get("face_bounds")
    return FaceObservation(
        face_detected=bool(data.get("face_detected", False)),
        head_yaw=float(data.get("head_yaw", 0.0)),
        head_roll=float(data.get("head_roll", 0.0)),
        smile_probability=float(data.get("smile_probability", 0.0)),
        face_size=float(data.get("face_size", 0.0)),
        face_bounds=FaceBounds(*bounds) if bounds else None,
        confidence=float(data.get("confidence", 0.0)),
    )


def save_trace(observations: Iterable[FaceObservation], path: str | Path) -> int:
    """Write observations to a JSONL trace.

    Returns:
        Number of observations written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for obs in observations:
            f.write(json.dumps(observation_to_dict(obs)) + "\n")
            count += 1
    return count


def load_trace(path: str | Path) -> List[FaceObservation]:
    """Read a JSONL observation trace.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a line is not a JSON object.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Trace file not found: {path}")

    observations: List[FaceObservation] = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{lineno}: invalid JSON: {e.msg}") from e
            if not isinstance(data, dict):
                raise ValueError(f"{path}:{lineno}: expected a JSON object")
            observations.append(observation_from_dict(data))
    return observations


def save_result(result: Any, path: str | Path) -> None:
    """Save a SessionResult to JSON with version metadata.

    The still capture itself is not written; only whether one was taken.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = result.to_dict()
    data["captured"] = result.capture is not None
    data["_version"] = {
        "app": "facelive",
        "app_version": "0.1.0",
        "created_at": datetime.now(timezone.utc).isoformat(),
    }

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


__all__ = [
    "observation_to_dict",
    "observation_from_dict",
    "save_trace",
    "load_trace",
    "save_result",
]
