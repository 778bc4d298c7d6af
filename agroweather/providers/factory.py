"""Factory helpers for assembling the provider fallback chain at startup."""

from __future__ import annotations

from typing import Callable, Dict, Optional

import requests

from agroweather import config
from agroweather.errors import ConfigurationError
from agroweather.providers.accuweather import AccuWeatherProvider
from agroweather.providers.base import HttpWeatherProvider, build_session
from agroweather.providers.meteostat import MeteostatProvider
from agroweather.providers.openweathermap import OpenWeatherMapProvider
from agroweather.providers.registry import ProviderRegistry
from agroweather.providers.simulation import SIMULATION_NAME, SimulationProvider
from agroweather.providers.weatherapi import WeatherApiProvider
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="providers/factory")

PROVIDER_CLASSES: Dict[str, Callable[..., HttpWeatherProvider]] = {
    OpenWeatherMapProvider.name: OpenWeatherMapProvider,
    WeatherApiProvider.name: WeatherApiProvider,
    AccuWeatherProvider.name: AccuWeatherProvider,
    MeteostatProvider.name: MeteostatProvider,
}


def build_providers(
    settings: config.Settings | None = None,
    session: Optional[requests.Session] = None,
) -> ProviderRegistry:
    """Register every credentialed provider in `settings.provider_order` order."""
    settings = settings or config.settings
    if settings.enable_simulation and settings.environment == "production":
        raise ConfigurationError("simulation provider cannot be enabled in production")

    session = session or build_session(settings.http_retries)
    registry = ProviderRegistry()
    for name in settings.provider_names:
        if name == SIMULATION_NAME:
            continue
        cls = PROVIDER_CLASSES.get(name)
        if cls is None:
            raise ConfigurationError(f"Unknown weather provider '{name}'")
        api_key = settings.api_key_for(name)
        if not api_key:
            logger.info("Skipping provider without credentials", extra={"provider": name})
            continue
        registry.register(name, cls(api_key, session=session, retries=settings.http_retries))
        logger.info("Registered weather provider", extra={"provider": name})

    if settings.enable_simulation:
        registry.register(SIMULATION_NAME, SimulationProvider())
        logger.warning("Simulation provider enabled", extra={"environment": settings.environment})

    if not len(registry):
        raise ConfigurationError("No weather provider is configured; set at least one AGROWEATHER_*_API_KEY")
    return registry
