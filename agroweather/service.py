"""Cached, provider-agnostic weather operations for agricultural consumers."""
from __future__ import annotations

import datetime as dt
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, List, Optional, TypeVar, Union

from agroweather import config
from agroweather.agronomy import compute_daily_indices
from agroweather.cache import CacheKey, CachePayload, SingleFlight, WeatherCache, build_cache
from agroweather.domain import (
    AgronomicIndices,
    ForecastBundle,
    Observation,
    Operation,
    PredictionBundle,
    Unavailable,
    UnavailableReason,
)
from agroweather.errors import InsufficientHistory
from agroweather.orchestrator import Deadline, FallbackOrchestrator
from agroweather.prediction import PredictionEngine, load_models
from agroweather.prediction.engine import MAX_HORIZON_HOURS
from agroweather.providers import FetchRequest, build_providers
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="service")

MIN_FORECAST_DAYS = 1
MAX_FORECAST_DAYS = 14
AGRICULTURE_FORECAST_DAYS = 7

P = TypeVar("P", ForecastBundle, List[Observation])
DeadlineArg = Union[Deadline, float, None]


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class WeatherService:
    """The engine's public surface: current, extended, historical, agronomic and predicted weather.

    Reads go through the cache first. A miss is fetched once per key even under
    concurrent callers (single-flight), and only successful, non-empty results
    are written back.
    """

    def __init__(
        self,
        orchestrator: FallbackOrchestrator,
        cache: WeatherCache,
        engine: Optional[PredictionEngine] = None,
        settings: config.Settings | None = None,
        executor: Optional[ThreadPoolExecutor] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ) -> None:
        """Initialize with the fallback chain, a cache backend and optional prediction engine."""
        self.settings = settings or config.settings
        self.orchestrator = orchestrator
        self.cache = cache
        self.engine = engine or PredictionEngine()
        self._flights = SingleFlight()
        self._clock = clock or _utc_now
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.prediction_workers, thread_name_prefix="agroweather-predict"
        )

    @classmethod
    def from_settings(cls, settings: config.Settings | None = None) -> "WeatherService":
        """Wire providers, orchestrator, cache and models from configuration."""
        settings = settings or config.settings
        registry = build_providers(settings)
        orchestrator = FallbackOrchestrator(registry.providers(), attempt_timeout=settings.attempt_timeout_seconds)
        temperature_model, precipitation_model = load_models(settings)
        logger.info("Weather service ready", extra={"providers": registry.list(), "environment": settings.environment})
        return cls(
            orchestrator,
            build_cache(settings),
            PredictionEngine(temperature_model, precipitation_model),
            settings=settings,
        )

    def close(self) -> None:
        """Wait for in-flight predictions and release the worker pool."""
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "WeatherService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _key(self, operation: Operation, latitude: float, longitude: float, **params) -> CacheKey:
        """Cache key with coordinates rounded to the configured precision."""
        return CacheKey.build(
            operation, latitude, longitude, precision=self.settings.cache_coordinate_precision, **params
        )

    def _cached_fetch(
        self,
        key: CacheKey,
        request: FetchRequest,
        ttl_seconds: float,
        deadline: Optional[Deadline],
        extract: Callable[[ForecastBundle], P],
    ) -> Union[P, Unavailable]:
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        def load() -> Union[CachePayload, Unavailable]:
            # another caller may have filled the entry while we waited for the flight
            again = self.cache.get(key)
            if again is not None:
                return again
            result = self.orchestrator.fetch(key.operation, request, deadline=deadline)
            if isinstance(result, Unavailable):
                return result
            payload = extract(result)
            if isinstance(payload, list) and not payload:
                logger.info("Not caching empty result", extra={"key": str(key)})
            else:
                self.cache.set(key, payload, ttl_seconds)
            return payload

        return self._flights.do(str(key), load)

    def get_current_weather(
        self, latitude: float, longitude: float, *, deadline: DeadlineArg = None
    ) -> Union[ForecastBundle, Unavailable]:
        """Current conditions plus whatever short-range forecast the serving provider includes."""
        key = self._key(Operation.CURRENT, latitude, longitude)
        return self._cached_fetch(
            key,
            FetchRequest(latitude, longitude),
            self.settings.current_ttl_seconds,
            Deadline.coerce(deadline),
            lambda bundle: bundle,
        )

    def get_extended_forecast(
        self, latitude: float, longitude: float, days: int = 7, *, deadline: DeadlineArg = None
    ) -> Union[ForecastBundle, Unavailable]:
        """Multi-day forecast; `days` is clamped to 1..14 and the daily list trimmed to it."""
        days = max(MIN_FORECAST_DAYS, min(MAX_FORECAST_DAYS, int(days)))
        key = self._key(Operation.EXTENDED, latitude, longitude, days=days)
        return self._cached_fetch(
            key,
            FetchRequest(latitude, longitude, days=days),
            self.settings.extended_ttl_seconds,
            Deadline.coerce(deadline),
            lambda bundle: bundle.model_copy(update={"daily": bundle.daily[:days]}),
        )

    def _historical(
        self, latitude: float, longitude: float, start: dt.date, end: dt.date, deadline: Optional[Deadline]
    ) -> Union[List[Observation], Unavailable]:
        if isinstance(start, dt.datetime):
            start = start.date()
        if isinstance(end, dt.datetime):
            end = end.date()
        if start > end:
            raise ValueError(f"start {start} is after end {end}")
        key = self._key(Operation.HISTORICAL, latitude, longitude, start=start.isoformat(), end=end.isoformat())
        # a range that reaches today is still filling in
        still_open = end >= self._clock().date()
        ttl = self.settings.current_ttl_seconds if still_open else self.settings.historical_ttl_seconds
        return self._cached_fetch(
            key,
            FetchRequest(latitude, longitude, start=start, end=end),
            ttl,
            deadline,
            lambda bundle: list(bundle.hourly),
        )

    def get_historical_weather(
        self,
        latitude: float,
        longitude: float,
        start: dt.date,
        end: dt.date,
        *,
        deadline: DeadlineArg = None,
    ) -> List[Observation]:
        """Hourly observations for [start, end] in chronological order; empty when no provider answers."""
        result = self._historical(latitude, longitude, start, end, Deadline.coerce(deadline))
        if isinstance(result, Unavailable):
            logger.warning("Historical weather unavailable", extra={"reason": result.reason.value, "detail": result.detail})
            return []
        return result

    def get_agriculture_specific_forecast(
        self,
        latitude: float,
        longitude: float,
        crop_type: Optional[str] = None,
        *,
        deadline: DeadlineArg = None,
    ) -> List[AgronomicIndices]:
        """Agronomic indices for each day of the 7-day forecast; empty when the forecast is unavailable."""
        forecast = self.get_extended_forecast(latitude, longitude, AGRICULTURE_FORECAST_DAYS, deadline=deadline)
        if isinstance(forecast, Unavailable):
            logger.warning("Agricultural forecast unavailable", extra={"reason": forecast.reason.value})
            return []
        indices = compute_daily_indices(forecast.daily, forecast.current, crop_type=crop_type)
        logger.info(
            "Computed agronomic indices",
            extra={"days": len(indices), "crop_type": crop_type, "source": forecast.source},
        )
        return indices

    def generate_prediction(
        self,
        latitude: float,
        longitude: float,
        horizon_hours: int = 72,
        *,
        deadline: DeadlineArg = None,
    ) -> Union[PredictionBundle, Unavailable]:
        """Project the next `horizon_hours` (1..168) from the last `prediction_history_days` of history.

        History ending today is cached with the short current-weather TTL, and the
        bundle's `valid_from` says which hour the projection starts at.
        """
        if not 1 <= horizon_hours <= MAX_HORIZON_HOURS:
            raise ValueError(f"horizon_hours must be between 1 and {MAX_HORIZON_HOURS}, got {horizon_hours}")
        deadline = Deadline.coerce(deadline)

        end = self._clock().date()
        start = end - dt.timedelta(days=self.settings.prediction_history_days)
        history = self._historical(latitude, longitude, start, end, deadline)
        if isinstance(history, Unavailable):
            return history

        future = self._executor.submit(self.engine.predict, latitude, longitude, history, horizon_hours)
        try:
            return future.result(timeout=deadline.remaining() if deadline is not None else None)
        except InsufficientHistory as exc:
            logger.info("Not enough history to predict", extra={"available": exc.available, "required": exc.required})
            return Unavailable(reason=UnavailableReason.INSUFFICIENT_HISTORY, detail=str(exc))
        except FutureTimeout:
            future.cancel()
            logger.warning("Prediction exceeded deadline", extra={"horizon_hours": horizon_hours})
            return Unavailable(reason=UnavailableReason.DEADLINE_EXCEEDED, detail="model evaluation did not finish in time")


def main():
    """Manual test helper against the configured providers."""
    from utils.logging_utils import setup_logging

    setup_logging()
    lat, lon = -1.29, 36.82

    with WeatherService.from_settings() as service:
        current = service.get_current_weather(lat, lon)
        if isinstance(current, Unavailable):
            print(f"current weather unavailable: {current.reason.value} ({current.detail})")
        else:
            c = current.current
            print(f"current ({current.source}): {c.temperature:.1f} °C, {c.humidity:.0f}% RH, {c.conditions}")

        for day in service.get_agriculture_specific_forecast(lat, lon, crop_type="maize"):
            print(f"{day.date}: GDD {day.growing_degree_days:.1f} (acc {day.accumulated_gdd:.1f})\n"
                  f"    ET {day.evapotranspiration:.2f} mm, irrigation {day.irrigation.value}\n"
                  f"    disease {day.disease_pressure_index:.0f}, pest {day.pest_activity_index:.0f}\n"
                  f"    planting {day.planting.value}, spraying {day.spraying.value}, harvest {day.harvest.value}")

        prediction = service.generate_prediction(lat, lon, horizon_hours=24)
        if isinstance(prediction, Unavailable):
            print(f"prediction unavailable: {prediction.reason.value}")
        else:
            for i, (t, c) in enumerate(zip(prediction.predicted_values.temperature, prediction.confidence)):
                print(f"+{i + 1:>3}h  {t:5.1f} °C  confidence {c:.2f}")


if __name__ == "__main__":
    main()
