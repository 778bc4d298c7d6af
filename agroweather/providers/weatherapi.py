"""WeatherAPI.com adapter (forecast.json for current/extended, history.json for past days).

Extraction contract: temperatures are read from the `_c` fields, wind from
`wind_kph`/`maxwind_kph` (converted to m/s), visibility from `vis_km`. Hourly
timestamps come from `time_epoch` so daylight-saving transitions cannot
reorder them. History responses carry no `current` block; the latest hour
stands in for it.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, FrozenSet, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agroweather.aggregation import chill_hours, heat_stress_hours
from agroweather.domain import (
    AlertCertainty,
    AlertSeverity,
    AlertUrgency,
    DailyAggregate,
    ForecastBundle,
    Location,
    Observation,
    Operation,
    WeatherAlert,
)
from agroweather.errors import ParseError
from agroweather.providers.base import FetchRequest, HttpWeatherProvider, epoch_to_utc, kmh_to_ms
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="providers/weatherapi")

WEATHERAPI_FORECAST_URL = "https://api.weatherapi.com/v1/forecast.json"
WEATHERAPI_HISTORY_URL = "https://api.weatherapi.com/v1/history.json"
MAX_FORECAST_DAYS = 14


def _map_enum(enum_cls, value: Any, default):
    """Map a free-text provider value onto an enum member, case-insensitively."""
    if not value:
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _parse_iso(value: Any) -> Optional[dt.datetime]:
    if not value:
        return None
    try:
        return dt.datetime.fromisoformat(str(value))
    except ValueError:
        return None


class WeatherApiProvider(HttpWeatherProvider):
    name = "weatherapi"
    reliability = 0.90
    operations: FrozenSet[Operation] = frozenset({Operation.CURRENT, Operation.EXTENDED, Operation.HISTORICAL})

    def fetch(self, operation: Operation, request: FetchRequest, *, timeout: float) -> Dict[str, Any]:
        """Call history.json for historical requests, forecast.json otherwise."""
        budget = self._budget(timeout)
        query = f"{request.latitude},{request.longitude}"
        if operation == Operation.HISTORICAL:
            if request.start is None or request.end is None:
                raise ValueError("historical fetch requires start and end dates")
            params = {
                "key": self.api_key,
                "q": query,
                "dt": request.start.isoformat(),
                "end_dt": request.end.isoformat(),
            }
            return self._get_json(WEATHERAPI_HISTORY_URL, params, budget=budget)

        days = 1 if operation == Operation.CURRENT else min(request.days or 7, MAX_FORECAST_DAYS)
        params = {
            "key": self.api_key,
            "q": query,
            "days": days,
            "aqi": "no",
            "alerts": "yes",
        }
        return self._get_json(WEATHERAPI_FORECAST_URL, params, budget=budget)

    def _observation(self, item: Any, timestamp: dt.datetime, *, chance_of_rain: float = 0.0) -> Observation:
        """Translate one `current` block or forecast hour."""
        wind_kph = self._optional_number(item, "wind_kph")
        return self._make(
            Observation,
            timestamp=timestamp,
            temperature=self._number(item, "temp_c"),
            feels_like=self._optional_number(item, "feelslike_c"),
            humidity=self._number(item, "humidity"),
            pressure=self._optional_number(item, "pressure_mb"),
            wind_speed=kmh_to_ms(wind_kph) if wind_kph is not None else None,
            wind_direction=self._number(item, "wind_degree", default=0.0),
            precipitation=self._number(item, "precip_mm", default=0.0),
            precipitation_probability=chance_of_rain,
            cloud_cover=self._number(item, "cloud", default=0.0),
            uv_index=self._number(item, "uv", default=0.0),
            visibility=self._number(item, "vis_km", default=0.0),
            conditions=str(self._optional(item, "condition", "text", default="")),
            conditions_code=str(self._optional(item, "condition", "code", default="")),
            source=self.name,
        )

    def _astro_time(self, day: str, value: Any, tz: dt.tzinfo) -> Optional[dt.datetime]:
        """Combine '2024-06-01' with '05:42 AM'; polar days report text instead of a time."""
        if not value:
            return None
        try:
            return dt.datetime.strptime(f"{day} {value}", "%Y-%m-%d %I:%M %p").replace(tzinfo=tz)
        except ValueError:
            return None

    def _alerts(self, raw: Dict[str, Any]) -> List[WeatherAlert]:
        """Map the `alerts.alert` block; entries that are not objects are dropped."""
        items = self._optional(raw, "alerts", "alert", default=[])
        if not isinstance(items, list):
            raise ParseError(self.name, "alerts.alert is not a list")
        alerts: List[WeatherAlert] = []
        for item in items:
            if not isinstance(item, dict):
                logger.warning("Skipping malformed WeatherAPI alert", extra={"alert": repr(item)[:80]})
                continue
            event = str(item.get("event") or item.get("headline") or "alert")
            effective = item.get("effective")
            alerts.append(
                self._make(
                    WeatherAlert,
                    id=f"{event}:{effective or ''}",
                    title=str(item.get("headline") or event),
                    description=str(item.get("desc") or ""),
                    severity=_map_enum(AlertSeverity, item.get("severity"), AlertSeverity.MINOR),
                    urgency=_map_enum(AlertUrgency, item.get("urgency"), AlertUrgency.EXPECTED),
                    certainty=_map_enum(AlertCertainty, item.get("certainty"), AlertCertainty.POSSIBLE),
                    areas=[a.strip() for a in str(item.get("areas") or "").split(";") if a.strip()],
                    start_time=_parse_iso(effective),
                    end_time=_parse_iso(item.get("expires")),
                    event_type=event,
                    source=self.name,
                )
            )
        return alerts

    def _normalize(self, raw: Any) -> ForecastBundle:
        """Build a bundle from the forecastday blocks, the current block and alerts."""
        if not isinstance(raw, dict):
            raise ParseError(self.name, "expected a JSON object")
        loc = self._require(raw, "location")
        tz_name = str(self._optional(loc, "tz_id", default="UTC"))
        try:
            tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown WeatherAPI timezone; using UTC", extra={"tz_id": tz_name})
            tz_name, tz = "UTC", ZoneInfo("UTC")

        hourly: List[Observation] = []
        daily: List[DailyAggregate] = []
        for day in self._require(raw, "forecast", "forecastday"):
            day_str = str(self._require(day, "date"))
            hours = self._optional(day, "hour", default=[]) or []
            for hour in hours:
                hourly.append(
                    self._observation(
                        hour,
                        epoch_to_utc(self._number(hour, "time_epoch")),
                        chance_of_rain=self._number(hour, "chance_of_rain", default=0.0),
                    )
                )
            temps = [self._number(h, "temp_c") for h in hours]
            try:
                date = dt.date.fromisoformat(day_str)
            except ValueError:
                raise ParseError(self.name, f"bad forecast date {day_str!r}") from None
            summary = self._require(day, "day")
            daily.append(
                self._make(
                    DailyAggregate,
                    date=date,
                    temperature_min=self._number(summary, "mintemp_c"),
                    temperature_max=self._number(summary, "maxtemp_c"),
                    humidity_avg=self._number(summary, "avghumidity"),
                    precipitation_total=self._number(summary, "totalprecip_mm", default=0.0),
                    precipitation_probability=self._number(summary, "daily_chance_of_rain", default=0.0),
                    wind_speed_max=kmh_to_ms(self._number(summary, "maxwind_kph", default=0.0)),
                    conditions=str(self._optional(summary, "condition", "text", default="")),
                    sunrise=self._astro_time(day_str, self._optional(day, "astro", "sunrise"), tz),
                    sunset=self._astro_time(day_str, self._optional(day, "astro", "sunset"), tz),
                    moon_phase=self._optional(day, "astro", "moon_phase"),
                    heat_stress_hours=heat_stress_hours(temps),
                    chill_hours=chill_hours(temps),
                )
            )
        hourly.sort(key=lambda o: o.timestamp)

        current_raw = self._optional(raw, "current")
        if current_raw is not None:
            current = self._observation(current_raw, epoch_to_utc(self._number(current_raw, "last_updated_epoch")))
        elif hourly:
            current = hourly[-1]
        else:
            raise ParseError(self.name, "response has neither current conditions nor hourly data")

        location = self._make(
            Location,
            name=str(self._optional(loc, "name", default="")),
            country=str(self._optional(loc, "country", default="")),
            latitude=self._number(loc, "lat"),
            longitude=self._number(loc, "lon"),
            timezone=tz_name,
        )
        logger.debug("Normalized WeatherAPI payload", extra={"hours": len(hourly), "days": len(daily)})
        return self._build_bundle(
            location=location,
            current=current,
            hourly=hourly,
            daily=daily,
            alerts=self._alerts(raw),
        )
