"""Shared protocol and types for weather cache backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Tuple, Union

from agroweather.domain import ForecastBundle, Observation, Operation

CachePayload = Union[ForecastBundle, List[Observation]]


@dataclass(frozen=True)
class CacheKey:
    """Operation + rounded coordinates + sorted request parameters.

    Rounding makes nearby requests share an entry; at the default precision of
    2 decimals that is roughly a 1 km cell.
    """
    operation: Operation
    latitude: float
    longitude: float
    params: Tuple[Tuple[str, str], ...] = field(default=())

    @classmethod
    def build(cls, operation: Operation, latitude: float, longitude: float, precision: int = 2, **params: Any) -> "CacheKey":
        return cls(
            operation=operation,
            latitude=round(latitude, precision),
            longitude=round(longitude, precision),
            params=tuple(sorted((k, str(v)) for k, v in params.items() if v is not None)),
        )

    def __str__(self) -> str:
        parts = [self.operation.value, f"{self.latitude:g}", f"{self.longitude:g}"]
        parts.extend(f"{k}={v}" for k, v in self.params)
        return ":".join(parts)


@dataclass
class CacheEntry:
    key: str
    payload: CachePayload
    written_at: float
    ttl_seconds: float

    def is_fresh(self, now: float) -> bool:
        return now - self.written_at < self.ttl_seconds


class WeatherCache(Protocol):
    """Protocol for weather cache backends."""

    def get(self, key: CacheKey) -> Optional[CachePayload]:
        """Return the cached payload, or None if missing or expired."""

    def set(self, key: CacheKey, payload: CachePayload, ttl_seconds: float) -> None:
        """Store a payload, replacing any previous entry for the key."""

    def evict(self, key: CacheKey) -> None:
        """Remove one entry without raising if it is absent."""

    def clear(self) -> None:
        """Remove every entry."""
