"""Short-horizon prediction: feature windows, models and the engine."""

from .engine import MODEL_VERSION, PredictionEngine, confidence_curve
from .features import FeatureWindows, build_feature_windows, latest_contiguous_run
from .models import (
    HarmonicTemperatureModel,
    LinearWindowModel,
    LogisticPrecipitationModel,
    WeatherModel,
    load_models,
)

__all__ = [
    "MODEL_VERSION",
    "PredictionEngine",
    "confidence_curve",
    "FeatureWindows",
    "build_feature_windows",
    "latest_contiguous_run",
    "WeatherModel",
    "HarmonicTemperatureModel",
    "LogisticPrecipitationModel",
    "LinearWindowModel",
    "load_models",
]
