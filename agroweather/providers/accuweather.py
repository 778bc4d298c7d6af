"""AccuWeather adapter (geoposition lookup, current conditions, 5-day daily forecast).

Extraction contract: all three calls are made with metric units. Wind speeds
arrive in km/h and are converted to m/s. The daily endpoint has no hourly
detail, so bundles from this provider carry an empty `hourly` list and zero
heat-stress/chill hours.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, FrozenSet, List

from agroweather.domain import DailyAggregate, ForecastBundle, Location, Observation, Operation
from agroweather.errors import ParseError
from agroweather.providers.base import FetchRequest, HttpWeatherProvider, epoch_to_utc, kmh_to_ms
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="providers/accuweather")

ACCUWEATHER_BASE_URL = "https://dataservice.accuweather.com"
GEOPOSITION_PATH = "/locations/v1/cities/geoposition/search"
CURRENT_PATH = "/currentconditions/v1/{key}"
DAILY_PATH = "/forecasts/v1/daily/5day/{key}"


class AccuWeatherProvider(HttpWeatherProvider):
    name = "accuweather"
    reliability = 0.80
    operations: FrozenSet[Operation] = frozenset({Operation.CURRENT, Operation.EXTENDED})

    def fetch(self, operation: Operation, request: FetchRequest, *, timeout: float) -> Dict[str, Any]:
        """Resolve the location key, then fetch current conditions and the 5-day forecast."""
        budget = self._budget(timeout)
        location = self._get_json(
            ACCUWEATHER_BASE_URL + GEOPOSITION_PATH,
            {"apikey": self.api_key, "q": f"{request.latitude},{request.longitude}"},
            budget=budget,
        )
        key = self._require(location, "Key")
        current = self._get_json(
            ACCUWEATHER_BASE_URL + CURRENT_PATH.format(key=key),
            {"apikey": self.api_key, "details": "true"},
            budget=budget,
        )
        forecast = self._get_json(
            ACCUWEATHER_BASE_URL + DAILY_PATH.format(key=key),
            {"apikey": self.api_key, "details": "true", "metric": "true"},
            budget=budget,
        )
        return {"location": location, "current": current, "forecast": forecast}

    def _current(self, item: Any) -> Observation:
        """Translate the single current-conditions record."""
        wind_kmh = self._optional_number(item, "Wind", "Speed", "Metric", "Value")
        return self._make(
            Observation,
            timestamp=epoch_to_utc(self._number(item, "EpochTime")),
            temperature=self._number(item, "Temperature", "Metric", "Value"),
            feels_like=self._optional_number(item, "RealFeelTemperature", "Metric", "Value"),
            humidity=self._number(item, "RelativeHumidity"),
            pressure=self._optional_number(item, "Pressure", "Metric", "Value"),
            wind_speed=kmh_to_ms(wind_kmh) if wind_kmh is not None else None,
            wind_direction=self._number(item, "Wind", "Direction", "Degrees", default=0.0),
            precipitation=self._number(item, "PrecipitationSummary", "PastHour", "Metric", "Value", default=0.0),
            cloud_cover=self._number(item, "CloudCover", default=0.0),
            uv_index=self._number(item, "UVIndex", default=0.0),
            visibility=self._number(item, "Visibility", "Metric", "Value", default=0.0),
            conditions=str(self._optional(item, "WeatherText", default="")),
            conditions_code=str(self._optional(item, "WeatherIcon", default="")),
            source=self.name,
        )

    def _daily(self, item: Any, fallback_humidity: float) -> DailyAggregate:
        """Summarize one DailyForecasts entry from its Day and Night halves."""
        date_text = str(self._require(item, "Date"))
        try:
            date = dt.date.fromisoformat(date_text[:10])
        except ValueError:
            raise ParseError(self.name, f"bad forecast date {date_text!r}") from None

        halves = [self._optional(item, part, default={}) for part in ("Day", "Night")]
        humidities = [
            self._number(h, "RelativeHumidity", "Average")
            for h in halves
            if self._optional(h, "RelativeHumidity", "Average") is not None
        ]
        rise = self._optional_number(item, "Sun", "EpochRise")
        set_ = self._optional_number(item, "Sun", "EpochSet")
        return self._make(
            DailyAggregate,
            date=date,
            temperature_min=self._number(item, "Temperature", "Minimum", "Value"),
            temperature_max=self._number(item, "Temperature", "Maximum", "Value"),
            humidity_avg=sum(humidities) / len(humidities) if humidities else fallback_humidity,
            precipitation_total=sum(self._number(h, "TotalLiquid", "Value", default=0.0) for h in halves),
            precipitation_probability=max(self._number(h, "PrecipitationProbability", default=0.0) for h in halves),
            wind_speed_max=kmh_to_ms(max(self._number(h, "Wind", "Speed", "Value", default=0.0) for h in halves)),
            conditions=str(self._optional(item, "Day", "IconPhrase", default="")),
            sunrise=epoch_to_utc(rise) if rise is not None else None,
            sunset=epoch_to_utc(set_) if set_ is not None else None,
            moon_phase=self._optional(item, "Moon", "Phase"),
        )

    def _normalize(self, raw: Any) -> ForecastBundle:
        """Build a bundle from the location, current and daily documents."""
        if not isinstance(raw, dict):
            raise ParseError(self.name, "expected a dict with 'location', 'current' and 'forecast'")
        loc = self._require(raw, "location")
        # the current-conditions endpoint answers with a one-element list
        current = self._current(self._require(raw, "current", 0))
        daily: List[DailyAggregate] = [
            self._daily(item, current.humidity) for item in self._require(raw, "forecast", "DailyForecasts")
        ]

        location = self._make(
            Location,
            name=str(self._optional(loc, "LocalizedName", default="")),
            country=str(self._optional(loc, "Country", "ID", default="")),
            latitude=self._number(loc, "GeoPosition", "Latitude"),
            longitude=self._number(loc, "GeoPosition", "Longitude"),
            timezone=str(self._optional(loc, "TimeZone", "Name", default="UTC")),
        )
        logger.debug("Normalized AccuWeather payload", extra={"days": len(daily)})
        return self._build_bundle(location=location, current=current, hourly=[], daily=daily)
