"""Error taxonomy for the weather aggregation engine.

Only ConfigurationError is meant to reach callers. Provider errors are absorbed
by the orchestrator and InsufficientHistory is turned into an Unavailable result.
"""

from __future__ import annotations


class AgroWeatherError(Exception):
    """Base class for engine errors."""


class ProviderUnavailable(AgroWeatherError):
    """Network failure, timeout or non-success HTTP status from a provider."""

    def __init__(self, provider: str, detail: str) -> None:
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.detail = detail


class ParseError(AgroWeatherError):
    """Provider response did not match the adapter's extraction contract."""

    def __init__(self, provider: str, detail: str) -> None:
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.detail = detail


class InsufficientHistory(AgroWeatherError):
    """Fewer contiguous hourly observations than a prediction needs."""

    def __init__(self, available: int, required: int) -> None:
        super().__init__(f"need {required} contiguous hours of history, have {available}")
        self.available = available
        self.required = required


class ConfigurationError(AgroWeatherError):
    """Startup configuration cannot produce a working engine."""
