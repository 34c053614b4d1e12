"""Call outcome sinks."""

from parceltrace.config import SinkBackend, TrackerConfig
from parceltrace.sinks.base import CallLogSink
from parceltrace.sinks.sqlite_sink import SQLiteCallLog
from parceltrace.sinks.redis_sink import RedisCallLog


def create_sink(config: TrackerConfig) -> CallLogSink | None:
    """Build the sink selected by config, or None when logging is off."""
    if config.sink_backend == SinkBackend.SQLITE:
        return SQLiteCallLog(config.sqlite_path)
    if config.sink_backend == SinkBackend.REDIS:
        return RedisCallLog(config.redis_url)
    return None


__all__ = ["CallLogSink", "SQLiteCallLog", "RedisCallLog", "create_sink"]
