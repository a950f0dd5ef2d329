"""Shared test fixtures for facelive tests."""

import pytest

from facelive.observability import MemorySink, ObservabilityHub, TraceLevel


@pytest.fixture(autouse=True)
def reset_hub():
    """Every test starts and ends with tracing disabled."""
    ObservabilityHub.reset_instance()
    yield
    ObservabilityHub.reset_instance()


@pytest.fixture
def memory_sink():
    """Hub configured at VERBOSE with an attached MemorySink."""
    sink = MemorySink()
    hub = ObservabilityHub.get_instance()
    hub.add_sink(sink)
    hub.configure(level=TraceLevel.VERBOSE)
    return sink
