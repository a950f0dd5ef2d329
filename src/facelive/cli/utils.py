"""CLI helpers shared by commands."""

from typing import Tuple

from facelive.config import LivenessConfig, SessionConfig, load_config
from facelive.observability import ConsoleSink, FileSink, ObservabilityHub, TraceLevel


def load_cli_config(args) -> Tuple[LivenessConfig, SessionConfig]:
    """Configs from ``--config``, or defaults."""
    path = getattr(args, "config", None)
    if path:
        return load_config(path)
    return LivenessConfig(), SessionConfig()


def setup_tracing(args) -> ObservabilityHub:
    """Configure the trace hub from ``--trace`` / ``--trace-output``."""
    hub = ObservabilityHub.get_instance()
    level = TraceLevel.from_string(getattr(args, "trace", "off") or "off")
    if level == TraceLevel.OFF:
        return hub

    output = getattr(args, "trace_output", None)
    hub.add_sink(FileSink(output) if output else ConsoleSink())
    hub.configure(level=level)
    return hub


def teardown_tracing() -> None:
    ObservabilityHub.reset_instance()
