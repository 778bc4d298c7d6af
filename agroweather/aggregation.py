"""Roll hourly observations up into daily aggregates."""

from __future__ import annotations

import datetime as dt
from typing import Dict, Iterable, List, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agroweather.domain import DailyAggregate, Observation

HEAT_STRESS_HOUR_C = 30.0
CHILL_HOUR_RANGE_C = (0.0, 7.0)


def heat_stress_hours(temperatures: Iterable[float], interval_hours: float = 1.0) -> int:
    """Count hours above 30 °C; each reading stands for `interval_hours`."""
    return round(interval_hours * sum(1 for t in temperatures if t > HEAT_STRESS_HOUR_C))


def chill_hours(temperatures: Iterable[float], interval_hours: float = 1.0) -> int:
    """Count hours between 0 and 7 °C inclusive; each reading stands for `interval_hours`."""
    low, high = CHILL_HOUR_RANGE_C
    return round(interval_hours * sum(1 for t in temperatures if low <= t <= high))


def group_hourly_into_daily(
    hourly: Sequence[Observation],
    timezone: str = "UTC",
    interval_hours: float = 1.0,
) -> List[DailyAggregate]:
    """Group observations by local calendar day and summarize each day.

    `interval_hours` is the span each observation covers (3 for 3-hourly
    slots) and weights the heat-stress and chill hour counts. Conditions are
    taken from the middle reading of the day. Days keep the order of first
    appearance.
    """
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo("UTC")

    by_day: Dict[dt.date, List[Observation]] = {}
    for obs in hourly:
        by_day.setdefault(obs.timestamp.astimezone(tz).date(), []).append(obs)

    out: List[DailyAggregate] = []
    for day, hours in by_day.items():
        temps = [h.temperature for h in hours]
        out.append(
            DailyAggregate(
                date=day,
                temperature_min=min(temps),
                temperature_max=max(temps),
                humidity_avg=sum(h.humidity for h in hours) / len(hours),
                precipitation_total=sum(h.precipitation for h in hours),
                precipitation_probability=max(h.precipitation_probability for h in hours),
                wind_speed_max=max((h.wind_speed for h in hours if h.wind_speed is not None), default=0.0),
                conditions=hours[len(hours) // 2].conditions,
                heat_stress_hours=heat_stress_hours(temps, interval_hours),
                chill_hours=chill_hours(temps, interval_hours),
            )
        )
    return out
