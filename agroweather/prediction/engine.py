"""Short-horizon prediction from recent hourly history."""

from __future__ import annotations

import datetime as dt
import math
from typing import List, Optional, Sequence

import numpy as np

from agroweather.domain import Observation, PredictedValues, PredictionBundle
from agroweather.prediction.features import TEMPERATURE_WINDOW, build_feature_windows
from agroweather.prediction.models import (
    HarmonicTemperatureModel,
    LogisticPrecipitationModel,
    WeatherModel,
)
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="prediction/engine")

MODEL_VERSION = "2.1.0"
MAX_HORIZON_HOURS = 168
BASE_CONFIDENCE = 0.9
CONFIDENCE_DECAY_PER_HOUR = 0.02
MIN_CONFIDENCE = 0.4
PRECIP_EFOLD_HOURS = 24.0
WET_HOUR_MM = 0.1


def confidence_curve(horizon_hours: int) -> List[float]:
    """0.9 for the first hour, dropping 0.02 per hour, floored at 0.4."""
    return [max(MIN_CONFIDENCE, BASE_CONFIDENCE - CONFIDENCE_DECAY_PER_HOUR * i) for i in range(horizon_hours)]


def humidity_from(temperature: float, precipitation: float) -> float:
    return max(30.0, min(90.0, 80.0 - 1.5 * temperature + 10.0 * precipitation))


class PredictionEngine:
    """Project temperature, humidity, precipitation probability, wind and pressure.

    Temperature and precipitation come from the pluggable models. Humidity is
    derived from them. Wind and pressure are a low-fidelity placeholder: the
    historical mean plus a deterministic diurnal wave scaled by the historical
    standard deviation.
    """

    def __init__(
        self,
        temperature_model: Optional[WeatherModel] = None,
        precipitation_model: Optional[WeatherModel] = None,
    ) -> None:
        self.temperature_model = temperature_model or HarmonicTemperatureModel()
        self.precipitation_model = precipitation_model or LogisticPrecipitationModel()

    def _roll_temperature(self, window: np.ndarray, horizon_hours: int) -> List[float]:
        series = [float(v) for v in window]
        out: List[float] = []
        while len(out) < horizon_hours:
            step = np.asarray(self.temperature_model.predict(np.array(series[-TEMPERATURE_WINDOW:])), dtype=float).reshape(-1)
            if step.size == 0:
                raise ValueError(f"{self.temperature_model.name} returned no values")
            out.extend(float(v) for v in step)
            series.extend(float(v) for v in step)
        return out[:horizon_hours]

    def _precipitation(self, multivariate: np.ndarray, history: Sequence[Observation], horizon_hours: int) -> List[float]:
        p0 = float(np.clip(np.asarray(self.precipitation_model.predict(multivariate)).reshape(-1)[0], 0.0, 1.0))
        climatology = sum(1 for o in history if o.precipitation > WET_HOUR_MM) / len(history)
        return [
            climatology + (p0 - climatology) * math.exp(-i / PRECIP_EFOLD_HOURS)
            for i in range(horizon_hours)
        ]

    @staticmethod
    def _diurnal(values: np.ndarray, last: dt.datetime, horizon_hours: int, phase_hours: float, scale: float) -> List[float]:
        mean, std = float(values.mean()), float(values.std())
        out = []
        for i in range(horizon_hours):
            hour = (last + dt.timedelta(hours=i + 1)).hour
            out.append(mean + scale * std * math.sin(2 * math.pi * (hour - phase_hours) / 24))
        return out

    def predict(
        self,
        latitude: float,
        longitude: float,
        history: Sequence[Observation],
        horizon_hours: int,
    ) -> PredictionBundle:
        """Raises ValueError for a horizon outside 1..168 and InsufficientHistory for short history.

        The first projected hour is one hour after the latest observation in the
        contiguous history; the bundle records it as `valid_from`.
        """
        if not 1 <= horizon_hours <= MAX_HORIZON_HOURS:
            raise ValueError(f"horizon_hours must be between 1 and {MAX_HORIZON_HOURS}, got {horizon_hours}")

        windows = build_feature_windows(history)
        run = windows.history
        temperature = self._roll_temperature(windows.temperature, horizon_hours)
        precipitation = self._precipitation(windows.multivariate, run, horizon_hours)
        humidity = [humidity_from(t, p) for t, p in zip(temperature, precipitation)]
        last = run[-1].timestamp
        wind = [max(0.0, w) for w in self._diurnal(windows.series("wind_speed"), last, horizon_hours, 9.0, 1.0)]
        pressure = self._diurnal(windows.series("pressure"), last, horizon_hours, 3.0, -0.5)

        logger.debug(
            "Prediction generated",
            extra={"horizon_hours": horizon_hours, "history_hours": len(run), "model": self.temperature_model.name},
        )
        return PredictionBundle(
            latitude=latitude,
            longitude=longitude,
            horizon_hours=horizon_hours,
            predicted_values=PredictedValues(
                temperature=temperature,
                humidity=humidity,
                precipitation=precipitation,
                wind_speed=wind,
                pressure=pressure,
            ),
            confidence=confidence_curve(horizon_hours),
            model_version=MODEL_VERSION,
            features_used=windows.features_used,
            valid_from=last + dt.timedelta(hours=1),
            generated_at=dt.datetime.now(dt.timezone.utc),
        )
