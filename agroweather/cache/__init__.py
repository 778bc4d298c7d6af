"""Weather cache backends."""

from .base import CacheEntry, CacheKey, CachePayload, WeatherCache
from .factory import build_cache
from .memory import InMemoryWeatherCache
from .redis import RedisWeatherCache
from .singleflight import SingleFlight

__all__ = [
    "build_cache",
    "CacheEntry",
    "CacheKey",
    "CachePayload",
    "WeatherCache",
    "InMemoryWeatherCache",
    "RedisWeatherCache",
    "SingleFlight",
]
