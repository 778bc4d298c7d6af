"""Adapter contract shared by every weather provider.

An adapter does two things: `fetch` talks HTTP and returns the provider's raw
payload, and `normalize` turns that payload into a canonical ForecastBundle.
`normalize` is pure structural translation plus unit conversion; any business
rule belongs downstream.
"""

from __future__ import annotations

import datetime as dt
import time
from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Mapping, Optional, Protocol

import requests
from pydantic import ValidationError
from retry_requests import retry

from agroweather.domain import ForecastBundle, Operation
from agroweather.errors import ParseError, ProviderUnavailable
from utils.logging_utils import get_tagged_logger, mask_url, redact_params

logger = get_tagged_logger(__name__, tag="providers/base")

KMH_TO_MS = 1 / 3.6
_MISSING = object()


@dataclass(frozen=True)
class FetchRequest:
    """Location plus the operation-specific parameters for one fetch."""
    latitude: float
    longitude: float
    days: Optional[int] = None
    start: Optional[dt.date] = None
    end: Optional[dt.date] = None


class WeatherProvider(Protocol):
    """Interface the orchestrator drives; see HttpWeatherProvider for the usual base."""

    name: str
    reliability: float
    operations: FrozenSet[Operation]

    def is_configured(self) -> bool:
        """Return True when the provider has the credentials it needs."""
        ...

    def fetch(self, operation: Operation, request: FetchRequest, *, timeout: float) -> Any:
        """Return the provider's raw payload, raising ProviderUnavailable on transport failures."""
        ...

    def normalize(self, raw: Any) -> ForecastBundle:
        """Translate a raw payload into a ForecastBundle, raising ParseError on shape mismatch."""
        ...


def build_session(retries: int = 1) -> requests.Session:
    """Shared HTTP session retrying transient 5xx/connection errors with backoff."""
    return retry(requests.Session(), retries=retries, backoff_factor=0.2)


def kmh_to_ms(value: float) -> float:
    """Convert km/h to m/s."""
    return value * KMH_TO_MS


def epoch_to_utc(seconds: float) -> dt.datetime:
    """Convert a Unix timestamp to an aware UTC datetime."""
    return dt.datetime.fromtimestamp(seconds, tz=dt.timezone.utc)


class RequestBudget:
    """Wall-clock allowance shared by every GET of one provider attempt.

    The retrying session may send each GET up to `tries` times, each with the
    timeout handed to requests, so every send gets an equal share of what is
    left. Adapters that chain several GETs draw from the same budget.
    """

    def __init__(self, seconds: float, tries: int = 1, clock: Callable[[], float] = time.monotonic) -> None:
        self.tries = max(1, tries)
        self._clock = clock
        self.expires_at = clock() + max(0.0, seconds)

    def remaining(self) -> float:
        """Seconds left before the attempt is over."""
        return max(0.0, self.expires_at - self._clock())

    def per_try(self) -> float:
        """Timeout for a single send of the next GET."""
        return self.remaining() / self.tries


class HttpWeatherProvider:
    """Base for HTTP-backed providers: credential check, JSON GETs, parse helpers.

    Subclasses implement `fetch` and `_normalize`; the public `normalize`
    turns any stray conversion error into ParseError.
    """

    name: str = "base"
    reliability: float = 0.0
    operations: FrozenSet[Operation] = frozenset()

    def __init__(
        self,
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
        retries: int = 1,
    ) -> None:
        """Initialize with a credential and a (usually shared) retrying session."""
        self.api_key = api_key
        self.retries = max(0, retries)
        self.session = session or build_session(self.retries)

    def is_configured(self) -> bool:
        """Return True when an API key is set."""
        return bool(self.api_key)

    def _budget(self, timeout: float) -> RequestBudget:
        """Start the budget for one `fetch` call."""
        return RequestBudget(timeout, tries=self.retries + 1)

    def normalize(self, raw: Any) -> ForecastBundle:
        """Translate a raw payload into a ForecastBundle; malformed data raises ParseError."""
        try:
            return self._normalize(raw)
        except ParseError:
            raise
        except (TypeError, ValueError, AttributeError, KeyError, IndexError, OverflowError) as exc:
            raise ParseError(self.name, f"malformed payload: {exc.__class__.__name__}: {exc}") from exc

    def _normalize(self, raw: Any) -> ForecastBundle:
        raise NotImplementedError

    def _get_json(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        *,
        budget: RequestBudget,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """GET a JSON document, mapping every transport problem to ProviderUnavailable."""
        timeout = budget.per_try()
        if timeout <= 0:
            raise ProviderUnavailable(self.name, "attempt time budget exhausted")
        logger.debug(
            "Provider request",
            extra={
                "provider": self.name,
                "url": mask_url(url),
                "params": redact_params(params),
                "timeout": round(timeout, 2),
            },
        )
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=timeout)
            resp.raise_for_status()
        except requests.Timeout as exc:
            raise ProviderUnavailable(self.name, f"timed out after {timeout:.1f}s per try") from exc
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            raise ProviderUnavailable(self.name, f"HTTP {status}") from exc
        except requests.RequestException as exc:
            raise ProviderUnavailable(self.name, f"request failed: {exc.__class__.__name__}") from exc
        try:
            return resp.json()
        except ValueError as exc:
            raise ParseError(self.name, "response body is not JSON") from exc

    def _require(self, data: Any, *path: Any) -> Any:
        """Walk nested keys/indexes, raising ParseError when any step is missing or null."""
        cur = data
        for step in path:
            try:
                cur = cur[step]
            except (KeyError, IndexError, TypeError):
                raise ParseError(self.name, f"missing field {'.'.join(str(p) for p in path)}") from None
            if cur is None:
                raise ParseError(self.name, f"null field {'.'.join(str(p) for p in path)}")
        return cur

    def _optional(self, data: Any, *path: Any, default: Any = None) -> Any:
        """Like _require, but returns `default` for missing or null fields."""
        cur = data
        for step in path:
            try:
                cur = cur[step]
            except (KeyError, IndexError, TypeError):
                return default
            if cur is None:
                return default
        return cur

    def _number(self, data: Any, *path: Any, default: Any = _MISSING) -> float:
        """Fetch a numeric field as float; required unless a default is given."""
        if default is _MISSING:
            value = self._require(data, *path)
        else:
            value = self._optional(data, *path, default=default)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ParseError(self.name, f"non-numeric field {'.'.join(str(p) for p in path)}: {value!r}") from None

    def _optional_number(self, data: Any, *path: Any) -> Optional[float]:
        """Numeric field as float, None when missing or null; non-numeric values raise ParseError."""
        if self._optional(data, *path) is None:
            return None
        return self._number(data, *path)

    def _make(self, model_cls, **fields: Any):
        """Construct a canonical model, turning validation failures into ParseError."""
        try:
            return model_cls(**fields)
        except ValidationError as exc:
            first = exc.errors()[0] if exc.errors() else {}
            raise ParseError(self.name, f"invalid {model_cls.__name__}: {first.get('msg', exc)}") from exc

    def _build_bundle(self, **fields: Any) -> ForecastBundle:
        """Stamp source, reliability and last_updated onto a validated bundle."""
        fields.setdefault("last_updated", dt.datetime.now(dt.timezone.utc))
        return self._make(ForecastBundle, source=self.name, reliability_score=self.reliability, **fields)
