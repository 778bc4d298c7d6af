"""Deterministic synthetic weather for development and tests.

Never registered in production (see `build_providers`). The same request always
produces the same series, so it is safe to assert on. Its reliability score is
0.0 so simulated bundles are distinguishable from real ones.
"""

from __future__ import annotations

import datetime as dt
import math
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from agroweather.aggregation import group_hourly_into_daily
from agroweather.domain import ForecastBundle, Location, Observation, Operation
from agroweather.errors import ParseError
from agroweather.providers.base import FetchRequest

SIMULATION_NAME = "simulation"


def _utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SimulationProvider:
    name = SIMULATION_NAME
    reliability = 0.0
    operations: FrozenSet[Operation] = frozenset({Operation.CURRENT, Operation.EXTENDED, Operation.HISTORICAL})

    def __init__(self, clock: Optional[Callable[[], dt.datetime]] = None) -> None:
        self._clock = clock or _utc_now

    def is_configured(self) -> bool:
        """Always available; gating happens in build_providers."""
        return True

    def fetch(self, operation: Operation, request: FetchRequest, *, timeout: float) -> Dict[str, Any]:
        """Describe the series to synthesize; no I/O happens here."""
        if operation == Operation.HISTORICAL:
            if request.start is None or request.end is None:
                raise ValueError("historical fetch requires start and end dates")
            start = dt.datetime.combine(request.start, dt.time(), tzinfo=dt.timezone.utc)
            hours = ((request.end - request.start).days + 1) * 24
        else:
            start = self._clock().replace(minute=0, second=0, microsecond=0)
            hours = 24 if operation == Operation.CURRENT else (request.days or 7) * 24
        return {
            "latitude": request.latitude,
            "longitude": request.longitude,
            "start": start.isoformat(),
            "hours": hours,
        }

    @staticmethod
    def _reading(lat: float, lon: float, when: dt.datetime) -> Observation:
        base = 25.0 - 0.3 * abs(lat)
        hour = when.hour + when.minute / 60
        day = when.timetuple().tm_yday
        temperature = base + 6.0 * math.sin(2 * math.pi * (hour - 9) / 24) + 2.0 * math.sin(2 * math.pi * day / 7)
        # rain on a fixed, location-dependent cadence
        wet = (int(when.timestamp() // 3600) + int(abs(lon) * 10)) % 29 < 2
        return Observation(
            timestamp=when,
            temperature=round(temperature, 2),
            humidity=round(min(95.0, max(25.0, 70.0 - 2.0 * (temperature - base) + (15.0 if wet else 0.0))), 1),
            pressure=round(1013.0 + 3.0 * math.sin(2 * math.pi * hour / 36), 1),
            wind_speed=round(3.0 + 1.5 * math.sin(2 * math.pi * (hour - 12) / 24), 2),
            wind_direction=float((day * 15) % 360),
            precipitation=2.0 if wet else 0.0,
            precipitation_probability=80.0 if wet else 10.0,
            cloud_cover=90.0 if wet else 30.0,
            visibility=6.0 if wet else 10.0,
            conditions="light rain" if wet else "partly cloudy",
            source=SIMULATION_NAME,
        )

    def normalize(self, raw: Any) -> ForecastBundle:
        try:
            lat = float(raw["latitude"])
            lon = float(raw["longitude"])
            start = dt.datetime.fromisoformat(raw["start"])
            hours = int(raw["hours"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ParseError(self.name, f"malformed simulation request: {exc}") from exc
        if hours < 1:
            raise ParseError(self.name, "simulation request covers no hours")

        hourly: List[Observation] = [
            self._reading(lat, lon, start + dt.timedelta(hours=i)) for i in range(hours)
        ]
        return ForecastBundle(
            location=Location(name="Simulated", latitude=lat, longitude=lon, timezone="UTC"),
            current=hourly[0],
            hourly=hourly,
            daily=group_hourly_into_daily(hourly, "UTC"),
            source=self.name,
            reliability_score=self.reliability,
            last_updated=start,
        )
