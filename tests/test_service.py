import datetime as dt
import threading
import unittest

from agroweather.cache import InMemoryWeatherCache
from agroweather.config import Settings
from agroweather.domain import (
    AgronomicIndices,
    DailyAggregate,
    ForecastBundle,
    Operation,
    PredictionBundle,
    Unavailable,
    UnavailableReason,
)
from agroweather.errors import ProviderUnavailable
from agroweather.orchestrator import FallbackOrchestrator
from agroweather.service import WeatherService
from payloads import make_bundle, make_history


class CountingProvider:
    """Stub provider that counts fetches and serves a fixed bundle."""

    name = "counting"
    reliability = 0.7
    operations = frozenset(Operation)

    def __init__(self, bundle=None, fail=False, gate=None):
        self.bundle = bundle
        self.fail = fail
        self.gate = gate
        self.calls = []

    def is_configured(self):
        return True

    def fetch(self, operation, request, *, timeout):
        self.calls.append((operation, request))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail:
            raise ProviderUnavailable(self.name, "HTTP 500")
        return {}

    def normalize(self, raw):
        return self.bundle


def _daily(n):
    start = dt.date(2024, 6, 1)
    return [
        DailyAggregate(
            date=start + dt.timedelta(days=i),
            temperature_min=12.0 + i,
            temperature_max=24.0 + i,
            humidity_avg=70.0,
            precipitation_total=2.0,
            wind_speed_max=4.0,
        )
        for i in range(n)
    ]


class FakeMonotonic:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _service(provider, cache=None, clock=None, **overrides):
    settings = Settings(**overrides)
    if cache is None:
        cache = InMemoryWeatherCache()
    return WeatherService(FallbackOrchestrator([provider]), cache, settings=settings, clock=clock)


class TestWeatherService(unittest.TestCase):
    def test_current_weather_is_cached_within_ttl(self):
        provider = CountingProvider(make_bundle(source="counting"))
        service = _service(provider)
        try:
            first = service.get_current_weather(1.0, 2.0)
            second = service.get_current_weather(1.001, 2.001)
            self.assertIsInstance(first, ForecastBundle)
            self.assertEqual(first, second)
            self.assertEqual(len(provider.calls), 1)
        finally:
            service.close()

    def test_unavailable_is_returned_and_not_cached(self):
        provider = CountingProvider(fail=True)
        service = _service(provider)
        try:
            first = service.get_current_weather(1.0, 2.0)
            self.assertIsInstance(first, Unavailable)
            self.assertEqual(first.reason, UnavailableReason.ALL_PROVIDERS_FAILED)
            service.get_current_weather(1.0, 2.0)
            self.assertEqual(len(provider.calls), 2)
        finally:
            service.close()

    def test_extended_forecast_clamps_days_and_trims_daily(self):
        bundle = make_bundle().model_copy(update={"daily": _daily(16)})
        provider = CountingProvider(bundle)
        service = _service(provider)
        try:
            result = service.get_extended_forecast(1.0, 2.0, days=30)
            self.assertEqual(len(result.daily), 14)
            self.assertEqual(provider.calls[0][1].days, 14)

            result = service.get_extended_forecast(1.0, 2.0, days=0)
            self.assertEqual(len(result.daily), 1)
            self.assertEqual(len(provider.calls), 2)
        finally:
            service.close()

    def test_historical_returns_hourly_and_rejects_inverted_range(self):
        history = make_history(30)
        provider = CountingProvider(make_bundle(hourly=history))
        service = _service(provider)
        try:
            result = service.get_historical_weather(1.0, 2.0, dt.date(2024, 6, 1), dt.date(2024, 6, 2))
            self.assertEqual(result, history)
            service.get_historical_weather(1.0, 2.0, dt.date(2024, 6, 1), dt.date(2024, 6, 2))
            self.assertEqual(len(provider.calls), 1)
            with self.assertRaises(ValueError):
                service.get_historical_weather(1.0, 2.0, dt.date(2024, 6, 3), dt.date(2024, 6, 2))
        finally:
            service.close()

    def test_historical_unavailable_and_empty_results(self):
        failing = _service(CountingProvider(fail=True))
        empty_provider = CountingProvider(make_bundle(hourly=[]))
        empty = _service(empty_provider)
        try:
            self.assertEqual(failing.get_historical_weather(1, 2, dt.date(2024, 6, 1), dt.date(2024, 6, 1)), [])
            self.assertEqual(empty.get_historical_weather(1, 2, dt.date(2024, 6, 1), dt.date(2024, 6, 1)), [])
            empty.get_historical_weather(1, 2, dt.date(2024, 6, 1), dt.date(2024, 6, 1))
            # empty results are not cached
            self.assertEqual(len(empty_provider.calls), 2)
        finally:
            failing.close()
            empty.close()

    def test_agriculture_forecast_accumulates_gdd(self):
        bundle = make_bundle().model_copy(update={"daily": _daily(7)})
        service = _service(CountingProvider(bundle))
        try:
            indices = service.get_agriculture_specific_forecast(1.0, 2.0, crop_type="wheat")
            self.assertEqual(len(indices), 7)
            self.assertIsInstance(indices[0], AgronomicIndices)
            self.assertEqual(indices[0].gdd_base_temperature, 0.0)
            self.assertEqual(indices[0].growing_degree_days, 18.0)
            self.assertEqual(indices[1].accumulated_gdd, 18.0 + 19.0)
        finally:
            service.close()

    def test_agriculture_forecast_empty_when_unavailable(self):
        service = _service(CountingProvider(fail=True))
        try:
            self.assertEqual(service.get_agriculture_specific_forecast(1.0, 2.0), [])
        finally:
            service.close()

    def test_concurrent_cold_requests_fetch_once(self):
        gate = threading.Event()
        provider = CountingProvider(make_bundle(), gate=gate)
        service = _service(provider)
        results = []
        try:
            threads = [
                threading.Thread(target=lambda: results.append(service.get_current_weather(1.0, 2.0)))
                for _ in range(5)
            ]
            for t in threads:
                t.start()
            gate.set()
            for t in threads:
                t.join(timeout=5)
            self.assertEqual(len(results), 5)
            self.assertEqual(len(provider.calls), 1)
        finally:
            service.close()

    def test_range_reaching_today_uses_short_ttl(self):
        today = dt.datetime(2024, 6, 2, 15, tzinfo=dt.timezone.utc)
        monotonic = FakeMonotonic()
        provider = CountingProvider(make_bundle(hourly=make_history(30)))
        service = _service(provider, cache=InMemoryWeatherCache(clock=monotonic), clock=lambda: today)
        try:
            open_range = (dt.date(2024, 6, 1), dt.date(2024, 6, 2))
            closed_range = (dt.date(2024, 5, 30), dt.date(2024, 5, 31))
            service.get_historical_weather(1.0, 2.0, *open_range)
            service.get_historical_weather(1.0, 2.0, *closed_range)
            self.assertEqual(len(provider.calls), 2)

            monotonic.now = service.settings.current_ttl_seconds + 1
            service.get_historical_weather(1.0, 2.0, *open_range)
            service.get_historical_weather(1.0, 2.0, *closed_range)
            # only the range that includes today was refetched
            self.assertEqual(len(provider.calls), 3)
            self.assertEqual(provider.calls[-1][1].end, dt.date(2024, 6, 2))
        finally:
            service.close()


class TestPredictionThroughService(unittest.TestCase):
    def test_generate_prediction(self):
        provider = CountingProvider(make_bundle(hourly=make_history(48)))
        service = _service(provider)
        try:
            bundle = service.generate_prediction(1.0, 2.0, horizon_hours=24)
            self.assertIsInstance(bundle, PredictionBundle)
            self.assertEqual(len(bundle.predicted_values.temperature), 24)
            operation, request = provider.calls[0]
            self.assertEqual(operation, Operation.HISTORICAL)
            self.assertEqual((request.end - request.start).days, 7)
            self.assertEqual(bundle.valid_from, make_history(48)[-1].timestamp + dt.timedelta(hours=1))
        finally:
            service.close()

    def test_prediction_history_window_follows_clock(self):
        today = dt.datetime(2024, 6, 3, 8, tzinfo=dt.timezone.utc)
        provider = CountingProvider(make_bundle(hourly=make_history(48)))
        service = _service(provider, clock=lambda: today)
        try:
            service.generate_prediction(1.0, 2.0, horizon_hours=6)
            _, request = provider.calls[0]
            self.assertEqual(request.end, dt.date(2024, 6, 3))
            self.assertEqual(request.start, dt.date(2024, 5, 27))
        finally:
            service.close()

    def test_insufficient_history(self):
        service = _service(CountingProvider(make_bundle(hourly=make_history(10))))
        try:
            result = service.generate_prediction(1.0, 2.0)
            self.assertIsInstance(result, Unavailable)
            self.assertEqual(result.reason, UnavailableReason.INSUFFICIENT_HISTORY)
        finally:
            service.close()

    def test_history_unavailable_propagates(self):
        service = _service(CountingProvider(fail=True))
        try:
            result = service.generate_prediction(1.0, 2.0)
            self.assertEqual(result.reason, UnavailableReason.ALL_PROVIDERS_FAILED)
        finally:
            service.close()

    def test_horizon_out_of_range(self):
        provider = CountingProvider(make_bundle(hourly=make_history(48)))
        service = _service(provider)
        try:
            for horizon in (0, 169):
                with self.assertRaises(ValueError):
                    service.generate_prediction(1.0, 2.0, horizon_hours=horizon)
            self.assertEqual(provider.calls, [])
        finally:
            service.close()


if __name__ == "__main__":
    unittest.main()
