"""Factory helpers for choosing a weather cache backend at startup."""

from __future__ import annotations

import redis

from agroweather import config
from agroweather.cache.base import WeatherCache
from agroweather.cache.memory import InMemoryWeatherCache
from agroweather.cache.redis import RedisWeatherCache
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="cache/factory")


def build_cache(settings: config.Settings | None = None) -> WeatherCache:
    """Use Redis when a URL is configured and answers PING, memory otherwise."""
    settings = settings or config.settings
    if settings.cache_redis_url:
        masked = mask_url(settings.cache_redis_url)
        try:
            client = redis.Redis.from_url(settings.cache_redis_url)
            client.ping()
            logger.info("Using RedisWeatherCache", extra={"redis_url": masked})
            return RedisWeatherCache(client)
        except (redis.RedisError, ValueError) as exc:
            logger.warning(
                "Falling back to InMemoryWeatherCache (Redis unavailable)",
                extra={"redis_url": masked, "error": str(exc)},
            )
    logger.info("Using InMemoryWeatherCache", extra={"max_entries": settings.cache_max_entries})
    return InMemoryWeatherCache(max_entries=settings.cache_max_entries)
