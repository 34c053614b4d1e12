"""Shared pytest fixtures."""

import pytest

from parceltrace.config import SinkBackend, TrackerConfig

from fakes import MemorySink


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def fast_config() -> TrackerConfig:
    """Config with near-zero waits and no on-disk sink."""
    return TrackerConfig(
        sink_backend=SinkBackend.NONE,
        fallback_wait_ms=50,
        animation_wait_ms=0,
        delay_between_batches_ms=0,
        retry_backoff_ms=0,
        api_key=None,
        api_key_secondary=None,
    )
