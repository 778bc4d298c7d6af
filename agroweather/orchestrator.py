"""Sequential provider fallback under a per-attempt timeout and an overall deadline."""

from __future__ import annotations

import time
from typing import Callable, List, Optional, Sequence, Union

from agroweather.domain import ForecastBundle, Operation, ProviderAttempt, Unavailable, UnavailableReason
from agroweather.errors import ParseError, ProviderUnavailable
from agroweather.providers.base import FetchRequest, WeatherProvider
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="orchestrator")


class Deadline:
    """A point on the monotonic clock after which work should be abandoned."""

    def __init__(self, expires_at: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.expires_at = expires_at
        self._clock = clock

    @classmethod
    def after(cls, seconds: float, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        """Deadline `seconds` from now."""
        return cls(clock() + seconds, clock)

    @classmethod
    def coerce(cls, value: Union["Deadline", float, int, None]) -> Optional["Deadline"]:
        """Accept a Deadline, a number of seconds from now, or None."""
        if value is None or isinstance(value, Deadline):
            return value
        return cls.after(float(value))

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def clamp(self, timeout: float) -> float:
        """Shorten `timeout` so it ends no later than the deadline."""
        return min(timeout, self.remaining())


class FallbackOrchestrator:
    """Try providers one after another until one returns a usable bundle.

    Providers are never called concurrently. Transport and parse failures are
    recorded and the next provider is tried; they never escape `fetch`.
    """

    def __init__(self, providers: Sequence[WeatherProvider], attempt_timeout: float = 10.0) -> None:
        self.providers = list(providers)
        self.attempt_timeout = attempt_timeout

    def capable(self, operation: Operation) -> List[WeatherProvider]:
        return [p for p in self.providers if p.is_configured() and operation in p.operations]

    def fetch(
        self,
        operation: Operation,
        request: FetchRequest,
        deadline: Union[Deadline, float, None] = None,
    ) -> Union[ForecastBundle, Unavailable]:
        deadline = Deadline.coerce(deadline)
        candidates = self.capable(operation)
        if not candidates:
            logger.error("No configured provider supports operation", extra={"operation": operation.value})
            return Unavailable(
                reason=UnavailableReason.NO_CAPABLE_PROVIDER,
                detail=f"no configured provider supports {operation.value}",
            )

        attempts: List[ProviderAttempt] = []
        for provider in candidates:
            if deadline is not None and deadline.expired():
                logger.warning(
                    "Deadline reached before trying provider",
                    extra={"operation": operation.value, "provider": provider.name},
                )
                return Unavailable(
                    reason=UnavailableReason.DEADLINE_EXCEEDED,
                    detail=f"deadline reached after {len(attempts)} attempt(s)",
                    attempts=attempts,
                )
            timeout = deadline.clamp(self.attempt_timeout) if deadline is not None else self.attempt_timeout
            try:
                raw = provider.fetch(operation, request, timeout=timeout)
                bundle = provider.normalize(raw)
            except (ProviderUnavailable, ParseError) as exc:
                outcome = "unavailable" if isinstance(exc, ProviderUnavailable) else "parse_error"
                logger.warning(
                    "Provider attempt failed",
                    extra={"operation": operation.value, "provider": provider.name, "outcome": outcome, "detail": exc.detail},
                )
                attempts.append(ProviderAttempt(provider=provider.name, outcome=outcome, detail=exc.detail))
                continue

            logger.info(
                "Provider served request",
                extra={"operation": operation.value, "provider": provider.name, "failed_before": len(attempts)},
            )
            return bundle

        logger.error(
            "All providers failed",
            extra={"operation": operation.value, "attempts": [a.provider for a in attempts]},
        )
        return Unavailable(
            reason=UnavailableReason.ALL_PROVIDERS_FAILED,
            detail="; ".join(f"{a.provider}: {a.detail}" for a in attempts),
            attempts=attempts,
        )
