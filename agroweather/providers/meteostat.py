"""Meteostat adapter (RapidAPI `point/hourly`), used for historical observations only.

Extraction contract: rows carry `time` as "YYYY-MM-DD HH:MM:SS" in UTC, `temp`
in °C, `rhum` in %, `pres` in hPa, `prcp` in mm and `wspd` in km/h. Rows
missing temperature or humidity are station gaps and are skipped; missing
pressure or wind is kept as None rather than read as zero. The
response has no location block, so the request coordinates are echoed into
the raw payload by `fetch`.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, FrozenSet, List

from agroweather.aggregation import group_hourly_into_daily
from agroweather.domain import ForecastBundle, Location, Observation, Operation
from agroweather.errors import ParseError
from agroweather.providers.base import FetchRequest, HttpWeatherProvider, kmh_to_ms
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="providers/meteostat")

METEOSTAT_HOST = "meteostat.p.rapidapi.com"
METEOSTAT_HOURLY_URL = f"https://{METEOSTAT_HOST}/point/hourly"

# Meteostat weather condition codes
CONDITION_CODES = {
    1: "Clear", 2: "Fair", 3: "Cloudy", 4: "Overcast", 5: "Fog", 6: "Freezing Fog",
    7: "Light Rain", 8: "Rain", 9: "Heavy Rain", 10: "Freezing Rain", 11: "Heavy Freezing Rain",
    12: "Sleet", 13: "Heavy Sleet", 14: "Light Snowfall", 15: "Snowfall", 16: "Heavy Snowfall",
    17: "Rain Shower", 18: "Heavy Rain Shower", 19: "Sleet Shower", 20: "Heavy Sleet Shower",
    21: "Snow Shower", 22: "Heavy Snow Shower", 23: "Lightning", 24: "Hail", 25: "Thunderstorm",
    26: "Heavy Thunderstorm", 27: "Storm",
}


class MeteostatProvider(HttpWeatherProvider):
    name = "meteostat"
    reliability = 0.80
    operations: FrozenSet[Operation] = frozenset({Operation.HISTORICAL})

    def fetch(self, operation: Operation, request: FetchRequest, *, timeout: float) -> Dict[str, Any]:
        """Call point/hourly for the requested date range."""
        budget = self._budget(timeout)
        if request.start is None or request.end is None:
            raise ValueError("historical fetch requires start and end dates")
        params = {
            "lat": request.latitude,
            "lon": request.longitude,
            "start": request.start.isoformat(),
            "end": request.end.isoformat(),
            "tz": "UTC",
        }
        headers = {"x-rapidapi-key": self.api_key or "", "x-rapidapi-host": METEOSTAT_HOST}
        response = self._get_json(METEOSTAT_HOURLY_URL, params, budget=budget, headers=headers)
        return {
            "request": {"latitude": request.latitude, "longitude": request.longitude},
            "response": response,
        }

    def _row(self, row: Any) -> Observation:
        """Translate one hourly row; missing pressure or wind stays None."""
        text = str(self._require(row, "time"))
        try:
            timestamp = dt.datetime.strptime(text, "%Y-%m-%d %H:%M:%S").replace(tzinfo=dt.timezone.utc)
        except ValueError:
            raise ParseError(self.name, f"bad timestamp {text!r}") from None
        coco = self._optional_number(row, "coco")
        wspd = self._optional_number(row, "wspd")
        return self._make(
            Observation,
            timestamp=timestamp,
            temperature=self._number(row, "temp"),
            humidity=self._number(row, "rhum"),
            pressure=self._optional_number(row, "pres"),
            wind_speed=kmh_to_ms(wspd) if wspd is not None else None,
            wind_direction=self._number(row, "wdir", default=0.0),
            precipitation=self._number(row, "prcp", default=0.0),
            conditions=CONDITION_CODES.get(int(coco), "") if coco is not None else "",
            conditions_code=str(int(coco)) if coco is not None else "",
            source=self.name,
        )

    def _normalize(self, raw: Any) -> ForecastBundle:
        """Build a bundle from hourly rows, skipping station gaps."""
        if not isinstance(raw, dict):
            raise ParseError(self.name, "expected a dict with 'request' and 'response'")
        rows = self._require(raw, "response", "data")
        if not isinstance(rows, list):
            raise ParseError(self.name, "response.data is not a list")

        hourly: List[Observation] = []
        skipped = 0
        for row in rows:
            if self._optional(row, "temp") is None or self._optional(row, "rhum") is None:
                skipped += 1
                continue
            hourly.append(self._row(row))
        if not hourly:
            raise ParseError(self.name, f"no usable rows ({skipped} skipped)")
        hourly.sort(key=lambda o: o.timestamp)

        location = self._make(
            Location,
            latitude=self._number(raw, "request", "latitude"),
            longitude=self._number(raw, "request", "longitude"),
            timezone="UTC",
        )
        logger.debug("Normalized Meteostat payload", extra={"hours": len(hourly), "skipped": skipped})
        return self._build_bundle(
            location=location,
            current=hourly[-1],
            hourly=hourly,
            daily=group_hourly_into_daily(hourly, "UTC"),
        )
