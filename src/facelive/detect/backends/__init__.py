"""Face detection backends.

Backends with heavy dependencies are imported lazily so the core package
works without them.
"""


def get_backend(name: str = "mediapipe", **kwargs):
    """Create a detection backend by name.

    Raises:
        ValueError: If the backend name is unknown.
    """
    if name == "mediapipe":
        from facelive.detect.backends.mediapipe_face import MediaPipeFaceBackend
        return MediaPipeFaceBackend(**kwargs)
    raise ValueError(f"Unknown detection backend: {name}. Use 'mediapipe'.")


__all__ = ["get_backend"]
