"""Redis-backed weather cache storing JSON envelopes with SETEX."""

import json
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from agroweather.cache.base import CacheKey, CachePayload, WeatherCache
from agroweather.domain import ForecastBundle, Observation
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/redis_weather_cache")

_OBSERVATIONS = TypeAdapter(list[Observation])


class RedisWeatherCache(WeatherCache):
    """Payloads are wrapped as {"kind": "forecast" | "observations", "data": ...}.

    Redis owns expiry, so a key that is still present is fresh. Read failures
    (connection errors, undecodable values) are logged and reported as misses;
    write failures are logged and dropped, since the fetched data is still
    returned to the caller.
    """

    def __init__(self, client, prefix: str = "agroweather:") -> None:
        logger.debug("Initializing RedisWeatherCache", extra={"prefix": prefix})
        self.client = client
        self.prefix = prefix

    def _key(self, key: CacheKey) -> str:
        """Redis key under the configured prefix."""
        return f"{self.prefix}{key}"

    @staticmethod
    def _dump(payload: CachePayload) -> str:
        """Serialize a payload into its JSON envelope."""
        if isinstance(payload, ForecastBundle):
            envelope: dict[str, Any] = {"kind": "forecast", "data": payload.model_dump(mode="json")}
        else:
            envelope = {"kind": "observations", "data": _OBSERVATIONS.dump_python(list(payload), mode="json")}
        return json.dumps(envelope, separators=(",", ":"))

    @staticmethod
    def _load(raw: Any) -> CachePayload:
        """Decode a JSON envelope; unknown kinds raise ValueError."""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        envelope = json.loads(raw)
        kind = envelope.get("kind")
        if kind == "forecast":
            return ForecastBundle.model_validate(envelope["data"])
        if kind == "observations":
            return _OBSERVATIONS.validate_python(envelope["data"])
        raise ValueError(f"unknown cache payload kind {kind!r}")

    def get(self, key: CacheKey) -> Optional[CachePayload]:
        """Cached payload, or None on a miss, a read error or an undecodable value."""
        try:
            raw = self.client.get(self._key(key))
        except Exception as exc:
            logger.error("Failed to read weather cache from Redis: %s", exc)
            return None
        if not raw:
            logger.debug("Cache miss", extra={"key": str(key)})
            return None
        try:
            payload = self._load(raw)
        except (ValueError, KeyError, ValidationError) as exc:
            logger.warning("Discarding undecodable cache entry", extra={"key": str(key), "error": str(exc)})
            return None
        logger.debug("Cache hit", extra={"key": str(key)})
        return payload

    def set(self, key: CacheKey, payload: CachePayload, ttl_seconds: float) -> None:
        """SETEX with the TTL rounded down to whole seconds, minimum one."""
        ttl = max(1, int(ttl_seconds))
        try:
            self.client.setex(self._key(key), ttl, self._dump(payload))
        except Exception as exc:
            logger.error("Failed to write weather cache to Redis: %s", exc)

    def evict(self, key: CacheKey) -> None:
        """Delete one entry; errors are logged."""
        try:
            self.client.delete(self._key(key))
        except Exception as exc:
            logger.error("Failed to delete weather cache entry from Redis: %s", exc)

    def clear(self) -> None:
        """Best-effort clear for all entries under the configured prefix."""
        try:
            for k in self.client.scan_iter(f"{self.prefix}*"):
                self.client.delete(k)
        except Exception as exc:
            logger.error("Failed to clear weather cache from Redis: %s", exc)
