"""OpenWeatherMap adapter (current weather + 5 day / 3 hour forecast).

Extraction contract: requests use `units=metric`, so temperatures are °C and
wind is already m/s. Visibility arrives in metres. The forecast list is 3-hourly;
it becomes the bundle's `hourly` sequence and is grouped into daily aggregates
by UTC day, since the API only reports a UTC offset, not a zone name. Each slot
stands for three hours when counting heat-stress and chill hours.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List

from agroweather.aggregation import group_hourly_into_daily
from agroweather.domain import ForecastBundle, Location, Observation, Operation
from agroweather.errors import ParseError
from agroweather.providers.base import FetchRequest, HttpWeatherProvider, epoch_to_utc
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="providers/openweathermap")

OWM_CURRENT_URL = "https://api.openweathermap.org/data/2.5/weather"
OWM_FORECAST_URL = "https://api.openweathermap.org/data/2.5/forecast"
MAX_FORECAST_DAYS = 5
SLOTS_PER_DAY = 8
SLOT_HOURS = 3.0
DEFAULT_VISIBILITY_KM = 10.0


class OpenWeatherMapProvider(HttpWeatherProvider):
    name = "openweathermap"
    reliability = 0.85
    operations: FrozenSet[Operation] = frozenset({Operation.CURRENT, Operation.EXTENDED})

    def fetch(self, operation: Operation, request: FetchRequest, *, timeout: float) -> Dict[str, Any]:
        """Call the current-weather and forecast endpoints."""
        budget = self._budget(timeout)
        params = {
            "lat": request.latitude,
            "lon": request.longitude,
            "appid": self.api_key,
            "units": "metric",
        }
        current = self._get_json(OWM_CURRENT_URL, params, budget=budget)
        days = min(request.days or MAX_FORECAST_DAYS, MAX_FORECAST_DAYS)
        forecast = self._get_json(OWM_FORECAST_URL, {**params, "cnt": days * SLOTS_PER_DAY}, budget=budget)
        return {"current": current, "forecast": forecast}

    def _observation(self, item: Any, *, default_visibility: float) -> Observation:
        """Translate one current-weather document or forecast slot."""
        weather = self._require(item, "weather", 0)
        visibility_m = self._optional_number(item, "visibility")
        precip = self._optional_number(item, "rain", "1h")
        if precip is None:
            precip = self._number(item, "rain", "3h", default=0.0)
        return self._make(
            Observation,
            timestamp=epoch_to_utc(self._number(item, "dt")),
            temperature=self._number(item, "main", "temp"),
            feels_like=self._optional_number(item, "main", "feels_like"),
            humidity=self._number(item, "main", "humidity"),
            pressure=self._optional_number(item, "main", "pressure"),
            wind_speed=self._optional_number(item, "wind", "speed"),
            wind_direction=self._number(item, "wind", "deg", default=0.0),
            precipitation=precip,
            precipitation_probability=self._number(item, "pop", default=0.0) * 100,
            cloud_cover=self._number(item, "clouds", "all", default=0.0),
            uv_index=0.0,  # not part of the free endpoints
            visibility=visibility_m / 1000 if visibility_m is not None else default_visibility,
            conditions=str(self._optional(weather, "description", default="")),
            conditions_code=str(self._optional(weather, "id", default="")),
            source=self.name,
        )

    def _normalize(self, raw: Any) -> ForecastBundle:
        """Build a bundle from the current document and the 3-hourly forecast list."""
        if not isinstance(raw, dict):
            raise ParseError(self.name, "expected a dict with 'current' and 'forecast'")
        current_raw = self._require(raw, "current")
        forecast_raw = self._require(raw, "forecast")

        current = self._observation(current_raw, default_visibility=0.0)
        hourly: List[Observation] = [
            self._observation(item, default_visibility=DEFAULT_VISIBILITY_KM)
            for item in self._require(forecast_raw, "list")
        ]
        hourly.sort(key=lambda o: o.timestamp)

        location = self._make(
            Location,
            name=str(self._optional(current_raw, "name", default="")),
            country=str(self._optional(current_raw, "sys", "country", default="")),
            latitude=self._number(current_raw, "coord", "lat"),
            longitude=self._number(current_raw, "coord", "lon"),
            timezone="UTC",
        )
        logger.debug("Normalized OpenWeatherMap payload", extra={"hours": len(hourly)})
        return self._build_bundle(
            location=location,
            current=current,
            hourly=hourly,
            daily=group_hourly_into_daily(hourly, "UTC", interval_hours=SLOT_HOURS),
        )
