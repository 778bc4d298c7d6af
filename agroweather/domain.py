"""Canonical weather model shared by every provider adapter and consumer.

Adapters translate provider payloads into these models; nothing downstream
branches on where the data came from. Units are fixed: temperature in °C, wind
in m/s, pressure in hPa, precipitation in mm, visibility in km.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import List, Optional

from pydantic import (
    AwareDatetime,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


class _CanonicalModel(BaseModel):
    """Immutable base; unknown keys are dropped so cached JSON round-trips."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class Operation(str, Enum):
    """Weather operations the orchestrator and cache understand."""
    CURRENT = "current"
    EXTENDED = "extended"
    HISTORICAL = "historical"


class AlertSeverity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"
    EXTREME = "extreme"


class AlertUrgency(str, Enum):
    IMMEDIATE = "immediate"
    EXPECTED = "expected"
    FUTURE = "future"
    PAST = "past"


class AlertCertainty(str, Enum):
    OBSERVED = "observed"
    LIKELY = "likely"
    POSSIBLE = "possible"
    UNLIKELY = "unlikely"


class IrrigationTier(str, Enum):
    NONE = "none"
    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"


class PlantingSuitability(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class SprayingSuitability(str, Enum):
    UNSUITABLE = "unsuitable"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class HarvestSuitability(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class Location(_CanonicalModel):
    """Where a forecast applies, as reported by the serving provider."""
    name: str = ""
    country: str = ""
    latitude: float
    longitude: float
    timezone: str = "UTC"


class Observation(_CanonicalModel):
    """A single point-in-time weather reading."""
    timestamp: AwareDatetime
    temperature: float
    feels_like: float
    humidity: float
    pressure: Optional[float] = None  # None when the provider did not report it
    wind_speed: Optional[float] = None
    wind_direction: float = 0.0
    precipitation: float = 0.0
    precipitation_probability: float = 0.0
    cloud_cover: float = 0.0
    uv_index: float = 0.0
    visibility: float = 0.0
    conditions: str = ""
    conditions_code: str = ""
    source: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_feels_like(cls, data):
        """Providers that omit apparent temperature get the air temperature."""
        if isinstance(data, dict) and data.get("feels_like") is None and "temperature" in data:
            data = {**data, "feels_like": data["temperature"]}
        return data


class DailyAggregate(_CanonicalModel):
    """One day of weather summarized from a provider's daily or hourly data."""
    date: dt.date
    temperature_min: float
    temperature_max: float
    humidity_avg: float
    precipitation_total: float = 0.0
    precipitation_probability: float = 0.0
    wind_speed_max: float = 0.0
    conditions: str = ""
    sunrise: Optional[dt.datetime] = None
    sunset: Optional[dt.datetime] = None
    moon_phase: Optional[str] = None
    heat_stress_hours: int = 0
    chill_hours: int = 0

    @model_validator(mode="after")
    def _check_range(self) -> "DailyAggregate":
        if self.temperature_min > self.temperature_max:
            raise ValueError(
                f"temperature_min {self.temperature_min} exceeds temperature_max {self.temperature_max}"
            )
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def growing_degree_days(self) -> float:
        """GDD at the default base temperature, derived from this day's min/max."""
        from agroweather.agronomy import growing_degree_days

        return growing_degree_days(self.temperature_min, self.temperature_max)


class WeatherAlert(_CanonicalModel):
    """Provider-issued weather alert."""
    id: str
    title: str
    description: str = ""
    severity: AlertSeverity = AlertSeverity.MINOR
    urgency: AlertUrgency = AlertUrgency.EXPECTED
    certainty: AlertCertainty = AlertCertainty.POSSIBLE
    areas: List[str] = Field(default_factory=list)
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    event_type: str = ""
    source: str = ""


class ForecastBundle(_CanonicalModel):
    """Everything one provider returned for one request, in canonical form."""
    location: Location
    current: Observation
    hourly: List[Observation] = Field(default_factory=list)
    daily: List[DailyAggregate] = Field(default_factory=list)
    alerts: List[WeatherAlert] = Field(default_factory=list)
    source: str
    reliability_score: float = Field(ge=0.0, le=1.0)
    last_updated: AwareDatetime

    @model_validator(mode="after")
    def _check_hourly_order(self) -> "ForecastBundle":
        for prev, cur in zip(self.hourly, self.hourly[1:]):
            if cur.timestamp <= prev.timestamp:
                raise ValueError(
                    f"hourly observations must be strictly increasing ({prev.timestamp} -> {cur.timestamp})"
                )
        return self


class AgronomicIndices(_CanonicalModel):
    """Day-level agronomic decision indices derived from one DailyAggregate."""
    date: dt.date
    growing_degree_days: float
    accumulated_gdd: float
    gdd_base_temperature: float
    heat_stress_index: float
    chill_hours: int
    evapotranspiration: float
    soil_temperature: float
    soil_moisture_index: float
    disease_pressure_index: float
    pest_activity_index: float
    irrigation: IrrigationTier
    planting: PlantingSuitability
    spraying: SprayingSuitability
    harvest: HarvestSuitability
    crop_type: Optional[str] = None


class PredictedValues(_CanonicalModel):
    """Per-metric projections; precipitation is a probability in [0, 1]."""
    temperature: List[float]
    humidity: List[float]
    precipitation: List[float]
    wind_speed: List[float]
    pressure: List[float]


class PredictionBundle(_CanonicalModel):
    """Short-horizon projection with a confidence value per forecast hour."""
    latitude: float
    longitude: float
    horizon_hours: int = Field(ge=1)
    predicted_values: PredictedValues
    confidence: List[float]
    model_version: str
    features_used: List[str]
    valid_from: AwareDatetime  # timestamp of the first projected hour
    generated_at: AwareDatetime

    @model_validator(mode="after")
    def _check_alignment(self) -> "PredictionBundle":
        series = {
            "confidence": self.confidence,
            "temperature": self.predicted_values.temperature,
            "humidity": self.predicted_values.humidity,
            "precipitation": self.predicted_values.precipitation,
            "wind_speed": self.predicted_values.wind_speed,
            "pressure": self.predicted_values.pressure,
        }
        for name, values in series.items():
            if len(values) != self.horizon_hours:
                raise ValueError(f"{name} has {len(values)} values for a {self.horizon_hours}h horizon")
        return self


class UnavailableReason(str, Enum):
    ALL_PROVIDERS_FAILED = "all_providers_failed"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    NO_CAPABLE_PROVIDER = "no_capable_provider"
    INSUFFICIENT_HISTORY = "insufficient_history"


class ProviderAttempt(_CanonicalModel):
    """What happened when the orchestrator tried one provider."""
    provider: str
    outcome: str  # ok, unavailable, parse_error
    detail: str = ""


class Unavailable(_CanonicalModel):
    """Soft-failure result returned instead of data."""
    reason: UnavailableReason
    detail: str = ""
    attempts: List[ProviderAttempt] = Field(default_factory=list)

    def __bool__(self) -> bool:
        return False
