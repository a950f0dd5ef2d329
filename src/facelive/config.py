"""Configuration for the liveness engine and session loop.

Example:
    >>> from facelive.config import LivenessConfig, load_config
    >>> config = LivenessConfig(smile_threshold=0.7)
    >>>
    >>> # From YAML
    >>> engine_cfg, session_cfg = load_config("liveness.yaml")

YAML layout::

    engine:
      min_face_size: 0.15
      turn_yaw_threshold: 20.0
      smile_threshold: 0.65
      lock_required_frames: 5
      required_frames: 3
    session:
      idle_timeout_sec: 30.0
      min_detection_confidence: 0.5
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class LivenessConfig:
    """Challenge thresholds.

    Attributes:
        min_face_size: Gate: face area / frame area must exceed this.
        turn_yaw_threshold: Yaw (degrees) to exceed for a head-turn challenge.
        smile_threshold: Smile probability to exceed for the smile challenge.
        lock_required_frames: Consecutive passing frames needed on the
            initial face lock. Higher than the others to reject transient
            false-positive detections.
        required_frames: Consecutive passing frames needed for every other
            challenge.
    """

    min_face_size: float = 0.15
    turn_yaw_threshold: float = 20.0
    smile_threshold: float = 0.65
    lock_required_frames: int = 5
    required_frames: int = 3

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_face_size <= 1.0:
            raise ValueError(f"min_face_size must be in [0, 1], got {self.min_face_size}")
        if not 0.0 <= self.smile_threshold <= 1.0:
            raise ValueError(f"smile_threshold must be in [0, 1], got {self.smile_threshold}")
        if self.turn_yaw_threshold <= 0:
            raise ValueError(
                f"turn_yaw_threshold must be positive, got {self.turn_yaw_threshold}"
            )
        if self.lock_required_frames < 1 or self.required_frames < 1:
            raise ValueError("required frame counts must be >= 1")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> LivenessConfig:
        """Create a config from a dictionary, ignoring unknown keys."""
        return cls(**_known_keys(cls, data))

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> LivenessConfig:
        """Load the ``engine:`` section of a YAML config file."""
        return load_config(yaml_path)[0]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SessionConfig:
    """Frame-loop settings outside the engine.

    Attributes:
        idle_timeout_sec: Abandon the session when no usable face has been
            seen for this long. 0 disables the timeout.
        min_detection_confidence: Detector results below this are ignored.
    """

    idle_timeout_sec: float = 30.0
    min_detection_confidence: float = 0.5

    def __post_init__(self) -> None:
        if self.idle_timeout_sec < 0:
            raise ValueError(f"idle_timeout_sec must be >= 0, got {self.idle_timeout_sec}")
        if not 0.0 <= self.min_detection_confidence <= 1.0:
            raise ValueError(
                "min_detection_confidence must be in [0, 1], "
                f"got {self.min_detection_confidence}"
            )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> SessionConfig:
        return cls(**_known_keys(cls, data))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(
    yaml_path: Union[str, Path],
) -> Tuple[LivenessConfig, SessionConfig]:
    """Load engine and session configs from a YAML file.

    Args:
        yaml_path: Path to the YAML configuration file.

    Returns:
        (LivenessConfig, SessionConfig). Missing sections take defaults.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the document is not a mapping or a value is invalid.
    """
    import yaml

    path = Path(yaml_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping: {path}")

    return (
        LivenessConfig.from_dict(data.get("engine")),
        SessionConfig.from_dict(data.get("session")),
    )


def _known_keys(cls, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not data:
        return {}
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


__all__ = ["LivenessConfig", "SessionConfig", "load_config"]
