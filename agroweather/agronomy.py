"""Deterministic agronomic formulas over canonical weather values.

Every scoring function here takes primitive numbers and returns a number or a
category enum. Nothing touches the network, the cache or provider state.
`compute_daily_indices` is the only function that reads canonical models, and
it just feeds their fields to the primitives.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

from agroweather.domain import (
    AgronomicIndices,
    DailyAggregate,
    HarvestSuitability,
    IrrigationTier,
    Observation,
    PlantingSuitability,
    SprayingSuitability,
)

DEFAULT_GDD_BASE_C = 10.0
HEAT_STRESS_THRESHOLD_C = 26.0

# Base temperatures (°C) commonly used for degree-day models, keyed by lowercase crop name.
CROP_BASE_TEMPERATURES_C = {
    "corn": 10.0,
    "maize": 10.0,
    "wheat": 0.0,
    "barley": 0.0,
    "rice": 10.0,
    "soybean": 10.0,
    "sorghum": 10.0,
    "cotton": 15.6,
    "potato": 7.0,
    "tomato": 10.0,
    "peanut": 13.3,
    "sunflower": 6.7,
}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def gdd_base_temperature(crop_type: Optional[str]) -> float:
    """Return the degree-day base temperature for a crop, defaulting to 10 °C."""
    if not crop_type:
        return DEFAULT_GDD_BASE_C
    return CROP_BASE_TEMPERATURES_C.get(crop_type.strip().lower(), DEFAULT_GDD_BASE_C)


def growing_degree_days(temp_min: float, temp_max: float, base: float = DEFAULT_GDD_BASE_C) -> float:
    """Average-method GDD: max(0, (min + max) / 2 - base)."""
    return max(0.0, (temp_min + temp_max) / 2 - base)


def heat_stress_index(temperature: float, humidity: float) -> float:
    """Heat-index excess over 26 °C; zero below the threshold."""
    if temperature < HEAT_STRESS_THRESHOLD_C:
        return 0.0
    t, h = temperature, humidity
    heat_index = (
        -8.78469
        + 1.61139 * t
        + 2.33854 * h
        - 0.14611 * t * h
        - 0.012308 * t * t
        - 0.0164248 * h * h
        + 0.002211 * t * t * h
        + 0.00072546 * t * h * h
        - 0.000003582 * t * t * h * h
    )
    return max(0.0, heat_index - HEAT_STRESS_THRESHOLD_C)


def evapotranspiration(temp_max: float, temp_min: float, humidity: float, wind_speed: float) -> float:
    """Hargreaves-style daily ET estimate (mm) adjusted for humidity and wind.

    The diurnal range stands in for solar radiation, so a day with no
    temperature swing yields zero.
    """
    mean_temp = (temp_max + temp_min) / 2
    temp_range = max(0.0, temp_max - temp_min)
    solar_proxy = 0.16 * math.sqrt(temp_range) * (mean_temp + 17.8)
    et0 = 0.0023 * (mean_temp + 17.8) * math.sqrt(temp_range) * (solar_proxy + 2.1)
    humidity_factor = (100 - humidity) / 100
    wind_factor = 1 + wind_speed * 0.1
    return et0 * humidity_factor * wind_factor


def soil_temperature_estimate(temp_min: float, temp_max: float) -> float:
    """Soil runs a little cooler and steadier than air: 0.9 x mean air temperature."""
    return (temp_min + temp_max) / 2 * 0.9


def soil_moisture_index(precipitation: float, et: float) -> float:
    """Water balance mapped onto 0-100 with 50 as neutral."""
    return _clamp(50 + (precipitation - et) * 2, 0.0, 100.0)


def disease_pressure_index(temperature: float, humidity: float, precipitation: float) -> float:
    """Additive fungal/bacterial pressure score in [0, 100]."""
    pressure = 0.0
    if humidity > 70:
        pressure += 30
    if humidity > 85:
        pressure += 20
    if 15 <= temperature <= 25:
        pressure += 25
    if precipitation > 5:
        pressure += 15
    if temperature >= 20 and humidity > 75:
        pressure += 10
    return _clamp(pressure, 0.0, 100.0)


def pest_activity_index(temp_max: float, temp_min: float, humidity: float) -> float:
    """Additive insect activity score in [0, 100]."""
    mean_temp = (temp_max + temp_min) / 2
    activity = 0.0
    if 20 <= mean_temp <= 30:
        activity += 40
    if mean_temp > 30:
        activity += 20
    if humidity > 60:
        activity += 30
    if temp_min > 15:
        activity += 20
    if mean_temp >= 25 and humidity > 70:
        activity += 10
    return _clamp(activity, 0.0, 100.0)


def irrigation_recommendation(precipitation: float, et: float) -> IrrigationTier:
    """Tier the day's water deficit (ET minus rain)."""
    deficit = et - precipitation
    if deficit <= 0:
        return IrrigationTier.NONE
    if deficit <= 2:
        return IrrigationTier.LIGHT
    if deficit <= 5:
        return IrrigationTier.MODERATE
    return IrrigationTier.HEAVY


def planting_suitability(
    temp_min: float,
    temp_max: float,
    precipitation_total: float,
    wind_speed: float,
    humidity: float,
) -> PlantingSuitability:
    score = 0
    if temp_min >= 10 and temp_max <= 30:
        score += 30
    elif temp_min >= 5 and temp_max <= 35:
        score += 20
    else:
        score += 10

    if 5 <= precipitation_total <= 15:
        score += 25
    elif precipitation_total < 25:
        score += 15
    else:
        score += 5

    if wind_speed <= 15:
        score += 20
    elif wind_speed <= 25:
        score += 10

    if 50 <= humidity <= 75:
        score += 15
    elif humidity >= 40:
        score += 10

    if score >= 80:
        return PlantingSuitability.EXCELLENT
    if score >= 60:
        return PlantingSuitability.GOOD
    if score >= 40:
        return PlantingSuitability.FAIR
    return PlantingSuitability.POOR


def spraying_suitability(
    temp_max: float,
    precipitation_probability: float,
    wind_speed: float,
    humidity: float,
) -> SprayingSuitability:
    """Wind above 20 m/s rules spraying out regardless of everything else."""
    score = 0
    if wind_speed <= 10:
        score += 40
    elif wind_speed <= 15:
        score += 20
    elif wind_speed <= 20:
        score += 10
    else:
        return SprayingSuitability.UNSUITABLE

    if precipitation_probability <= 10:
        score += 30
    elif precipitation_probability <= 25:
        score += 20
    elif precipitation_probability <= 50:
        score += 10

    if temp_max <= 25:
        score += 20
    elif temp_max <= 30:
        score += 15
    else:
        score += 5

    if 45 <= humidity <= 65:
        score += 10
    elif humidity <= 75:
        score += 5

    if score >= 85:
        return SprayingSuitability.EXCELLENT
    if score >= 65:
        return SprayingSuitability.GOOD
    if score >= 45:
        return SprayingSuitability.FAIR
    return SprayingSuitability.UNSUITABLE


def harvest_suitability(
    precipitation_total: float,
    humidity: float,
    wind_speed: float,
    visibility: float,
) -> HarvestSuitability:
    score = 0
    if precipitation_total <= 1:
        score += 40
    elif precipitation_total <= 5:
        score += 20
    else:
        score += 5

    if humidity <= 60:
        score += 25
    elif humidity <= 70:
        score += 15
    else:
        score += 5

    # some breeze helps drying
    if 5 <= wind_speed <= 20:
        score += 20
    elif wind_speed <= 25:
        score += 10

    if visibility >= 8:
        score += 15
    elif visibility >= 5:
        score += 10

    if score >= 85:
        return HarvestSuitability.EXCELLENT
    if score >= 65:
        return HarvestSuitability.GOOD
    if score >= 45:
        return HarvestSuitability.FAIR
    return HarvestSuitability.POOR


def compute_daily_indices(
    daily: Sequence[DailyAggregate],
    current: Observation,
    crop_type: Optional[str] = None,
) -> List[AgronomicIndices]:
    """Build one AgronomicIndices per forecast day, accumulating GDD in order.

    Wind and visibility come from the bundle's current observation; daily
    aggregates do not carry a representative value for either. Unreported wind
    is treated as calm.
    """
    base = gdd_base_temperature(crop_type)
    wind = current.wind_speed if current.wind_speed is not None else 0.0
    accumulated = 0.0
    out: List[AgronomicIndices] = []
    for day in daily:
        gdd = growing_degree_days(day.temperature_min, day.temperature_max, base)
        accumulated += gdd
        et = evapotranspiration(day.temperature_max, day.temperature_min, day.humidity_avg, wind)
        mean_temp = (day.temperature_min + day.temperature_max) / 2
        out.append(
            AgronomicIndices(
                date=day.date,
                growing_degree_days=gdd,
                accumulated_gdd=accumulated,
                gdd_base_temperature=base,
                heat_stress_index=heat_stress_index(day.temperature_max, day.humidity_avg),
                chill_hours=day.chill_hours,
                evapotranspiration=et,
                soil_temperature=soil_temperature_estimate(day.temperature_min, day.temperature_max),
                soil_moisture_index=soil_moisture_index(day.precipitation_total, et),
                disease_pressure_index=disease_pressure_index(mean_temp, day.humidity_avg, day.precipitation_total),
                pest_activity_index=pest_activity_index(day.temperature_max, day.temperature_min, day.humidity_avg),
                irrigation=irrigation_recommendation(day.precipitation_total, et),
                planting=planting_suitability(
                    day.temperature_min, day.temperature_max, day.precipitation_total, wind, day.humidity_avg
                ),
                spraying=spraying_suitability(
                    day.temperature_max, day.precipitation_probability, wind, day.humidity_avg
                ),
                harvest=harvest_suitability(day.precipitation_total, day.humidity_avg, wind, current.visibility),
                crop_type=crop_type,
            )
        )
    return out
