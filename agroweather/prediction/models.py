"""Pluggable prediction models.

The built-in models are small closed-form estimators with no training step.
Externally trained linear models can be dropped in from `.npz` files holding
`weights`, `bias` and optionally `activation` ("linear" or "sigmoid") and
`version`.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Protocol, Tuple, Union

import numpy as np

from agroweather import config
from agroweather.prediction.features import MULTIVARIATE_FIELDS, TEMPERATURE_WINDOW
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="prediction/models")

TEMPERATURE_STEPS = 12
MAX_TREND_C_PER_HOUR = 0.25


class WeatherModel(Protocol):
    name: str
    version: str

    def predict(self, features: np.ndarray) -> np.ndarray:
        """Map a feature window to an output vector."""
        ...


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


class HarmonicTemperatureModel:
    """Fit level + trend + one diurnal harmonic to 24 hourly temperatures, extrapolate 12 hours."""

    name = "harmonic-temperature"
    version = "1.0"

    def __init__(self, steps: int = TEMPERATURE_STEPS) -> None:
        self.steps = steps

    def predict(self, features: np.ndarray) -> np.ndarray:
        y = np.asarray(features, dtype=float).reshape(-1)
        n = y.shape[0]
        t = np.arange(n, dtype=float)
        design = np.column_stack([np.ones(n), t, np.sin(2 * math.pi * t / 24), np.cos(2 * math.pi * t / 24)])
        coef, *_ = np.linalg.lstsq(design, y, rcond=None)
        # keep repeated roll-forwards from running away on a transient trend
        coef[1] = float(np.clip(coef[1], -MAX_TREND_C_PER_HOUR, MAX_TREND_C_PER_HOUR))
        future = np.arange(n, n + self.steps, dtype=float)
        future_design = np.column_stack(
            [np.ones(self.steps), future, np.sin(2 * math.pi * future / 24), np.cos(2 * math.pi * future / 24)]
        )
        return future_design @ coef


class LogisticPrecipitationModel:
    """Fixed-coefficient logistic score over summaries of the 36-hour window.

    Inputs: mean relative humidity, pressure tendency across the window, share of
    wet hours in the last 12 hours and precipitation over the last 6 hours.
    """

    name = "logistic-precipitation"
    version = "1.0"

    INTERCEPT = -3.0
    HUMIDITY = 0.05  # per % above 60
    PRESSURE_TENDENCY = -0.3  # per hPa change across the window
    WET_SHARE = 2.5
    RECENT_PRECIP = 0.4  # per mm in the last 6 h
    WET_HOUR_MM = 0.1

    def predict(self, features: np.ndarray) -> np.ndarray:
        rows = np.asarray(features, dtype=float).reshape(-1, len(MULTIVARIATE_FIELDS))
        humidity = rows[:, MULTIVARIATE_FIELDS.index("humidity")]
        pressure = rows[:, MULTIVARIATE_FIELDS.index("pressure")]
        precip = rows[:, MULTIVARIATE_FIELDS.index("precipitation")]
        score = (
            self.INTERCEPT
            + self.HUMIDITY * (humidity.mean() - 60.0)
            + self.PRESSURE_TENDENCY * (pressure[-1] - pressure[0])
            + self.WET_SHARE * float(np.mean(precip[-12:] > self.WET_HOUR_MM))
            + self.RECENT_PRECIP * float(precip[-6:].sum())
        )
        return _sigmoid(np.array([score]))


class LinearWindowModel:
    """y = x · W + b, optionally squashed through a sigmoid."""

    name = "linear-window"

    def __init__(self, weights: np.ndarray, bias: np.ndarray, activation: str = "linear", version: str = "external") -> None:
        if activation not in ("linear", "sigmoid"):
            raise ValueError(f"unsupported activation '{activation}'")
        self.weights = np.atleast_2d(np.asarray(weights, dtype=float))
        self.bias = np.asarray(bias, dtype=float).reshape(-1)
        if self.weights.shape[1] != self.bias.shape[0]:
            raise ValueError(f"weights {self.weights.shape} do not match bias {self.bias.shape}")
        self.activation = activation
        self.version = version

    @classmethod
    def load(cls, path: Union[str, Path]) -> "LinearWindowModel":
        with np.load(path) as data:
            activation = str(data["activation"]) if "activation" in data.files else "linear"
            version = str(data["version"]) if "version" in data.files else Path(path).stem
            model = cls(data["weights"], data["bias"], activation=activation, version=version)
        logger.info("Loaded linear model", extra={"path": str(path), "shape": list(model.weights.shape)})
        return model

    def predict(self, features: np.ndarray) -> np.ndarray:
        x = np.asarray(features, dtype=float).reshape(-1)
        if x.shape[0] != self.weights.shape[0]:
            raise ValueError(f"expected {self.weights.shape[0]} features, got {x.shape[0]}")
        y = x @ self.weights + self.bias
        return _sigmoid(y) if self.activation == "sigmoid" else y


def load_models(settings: config.Settings | None = None) -> Tuple[WeatherModel, WeatherModel]:
    """Return (temperature_model, precipitation_model) from settings, defaulting to built-ins."""
    settings = settings or config.settings
    temperature: WeatherModel = (
        LinearWindowModel.load(settings.temperature_model_path)
        if settings.temperature_model_path
        else HarmonicTemperatureModel()
    )
    precipitation: WeatherModel = (
        LinearWindowModel.load(settings.precipitation_model_path)
        if settings.precipitation_model_path
        else LogisticPrecipitationModel()
    )
    logger.debug(
        "Prediction models ready",
        extra={"temperature": temperature.name, "precipitation": precipitation.name, "window": TEMPERATURE_WINDOW},
    )
    return temperature, precipitation
