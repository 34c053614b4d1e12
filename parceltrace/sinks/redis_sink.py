"""Redis call log."""

from datetime import date, timedelta

import redis.asyncio as redis

from parceltrace.models.calls import ApiCallRecord, ApiKeyType, CallRecord
from parceltrace.sinks.base import CallLogSink


class RedisCallLog(CallLogSink):
    """
    Redis-backed call log, for deployments where several workers share counters.

    Example:
        sink = RedisCallLog("redis://localhost:6379/0")
        async with sink:
            await sink.record_call(record)
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        history_size: int = 100,
        counter_ttl: timedelta = timedelta(days=3),
    ):
        """
        Args:
            redis_url: Redis connection URL
            history_size: Call records kept per tracking code
            counter_ttl: Lifetime of daily counter keys
        """
        self.redis_url = redis_url
        self.history_size = history_size
        self.counter_ttl = counter_ttl
        self._client: redis.Redis | None = None
        self._key_prefix = "parceltrace:"

    async def _ensure_client(self) -> redis.Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = redis.from_url(self.redis_url)
        return self._client

    def _calls_key(self, tracking_code: str) -> str:
        return f"{self._key_prefix}calls:{tracking_code}"

    def _counter_key(self, day: date) -> str:
        return f"{self._key_prefix}api:{day.isoformat()}"

    async def record_call(self, record: CallRecord) -> None:
        client = await self._ensure_client()
        key = self._calls_key(record.tracking_code)

        pipe = client.pipeline()
        pipe.lpush(key, record.model_dump_json())
        pipe.ltrim(key, 0, self.history_size - 1)
        await pipe.execute()

    async def record_api_call(self, record: ApiCallRecord) -> None:
        client = await self._ensure_client()
        counter = self._counter_key(record.recorded_at.date())

        pipe = client.pipeline()
        pipe.hincrby(counter, record.key_type.value, 1)
        pipe.expire(counter, self.counter_ttl)
        pipe.lpush(f"{self._key_prefix}api:log", record.model_dump_json())
        pipe.ltrim(f"{self._key_prefix}api:log", 0, self.history_size - 1)
        await pipe.execute()

    async def api_calls_on(self, day: date) -> dict[ApiKeyType, int]:
        client = await self._ensure_client()
        raw = await client.hgetall(self._counter_key(day))
        return {
            ApiKeyType(key.decode() if isinstance(key, bytes) else key): int(value)
            for key, value in raw.items()
        }

    async def recent_calls(self, tracking_code: str, limit: int = 20) -> list[CallRecord]:
        client = await self._ensure_client()
        rows = await client.lrange(self._calls_key(tracking_code), 0, limit - 1)
        return [CallRecord.model_validate_json(row) for row in rows]

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

