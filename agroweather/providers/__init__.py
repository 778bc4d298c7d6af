"""Weather provider adapters and the registry that orders them."""

from .accuweather import AccuWeatherProvider
from .base import FetchRequest, HttpWeatherProvider, WeatherProvider, build_session
from .factory import build_providers
from .meteostat import MeteostatProvider
from .openweathermap import OpenWeatherMapProvider
from .registry import ProviderRegistry
from .simulation import SimulationProvider
from .weatherapi import WeatherApiProvider

__all__ = [
    "build_providers",
    "build_session",
    "FetchRequest",
    "WeatherProvider",
    "HttpWeatherProvider",
    "ProviderRegistry",
    "OpenWeatherMapProvider",
    "WeatherApiProvider",
    "AccuWeatherProvider",
    "MeteostatProvider",
    "SimulationProvider",
]
