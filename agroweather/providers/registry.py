from __future__ import annotations

from typing import Dict, List

from agroweather.providers.base import WeatherProvider


class ProviderRegistry:
    """Named providers in registration order; the order is the fallback priority."""

    def __init__(self) -> None:
        self._providers: Dict[str, WeatherProvider] = {}

    def register(self, name: str, provider: WeatherProvider) -> None:
        """Add a provider at the lowest priority; duplicate names raise ValueError."""
        if name in self._providers:
            raise ValueError(f"Provider '{name}' already registered")
        self._providers[name] = provider

    def get(self, name: str) -> WeatherProvider:
        """Provider registered under `name`."""
        try:
            return self._providers[name]
        except KeyError as exc:
            raise KeyError(f"Provider '{name}' is not registered") from exc

    def list(self) -> List[str]:
        """Registered names in priority order."""
        return list(self._providers.keys())

    def providers(self) -> List[WeatherProvider]:
        """Registered providers in priority order."""
        return list(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)
