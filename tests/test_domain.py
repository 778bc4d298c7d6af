import datetime as dt
import unittest

from pydantic import ValidationError

from agroweather.domain import (
    DailyAggregate,
    ForecastBundle,
    Location,
    Observation,
    PredictedValues,
    PredictionBundle,
    Unavailable,
    UnavailableReason,
)

T0 = dt.datetime(2024, 6, 1, tzinfo=dt.timezone.utc)


def _obs(hour=0, **kwargs):
    fields = {"timestamp": T0 + dt.timedelta(hours=hour), "temperature": 20.0, "humidity": 50.0}
    fields.update(kwargs)
    return Observation(**fields)


class TestObservation(unittest.TestCase):
    def test_feels_like_defaults_to_temperature(self):
        self.assertEqual(_obs(temperature=17.5).feels_like, 17.5)
        self.assertEqual(_obs(temperature=17.5, feels_like=None).feels_like, 17.5)
        self.assertEqual(_obs(feels_like=15.0).feels_like, 15.0)

    def test_requires_timezone_aware_timestamp(self):
        with self.assertRaises(ValidationError):
            Observation(timestamp=dt.datetime(2024, 6, 1), temperature=1.0, humidity=1.0)

    def test_is_immutable(self):
        obs = _obs()
        with self.assertRaises(ValidationError):
            obs.temperature = 30.0


class TestDailyAggregate(unittest.TestCase):
    def test_rejects_min_above_max(self):
        with self.assertRaises(ValidationError):
            DailyAggregate(date=dt.date(2024, 6, 1), temperature_min=25, temperature_max=20, humidity_avg=50)


class TestForecastBundle(unittest.TestCase):
    def _bundle(self, hourly, reliability=0.8):
        return ForecastBundle(
            location=Location(latitude=0, longitude=0),
            current=_obs(),
            hourly=hourly,
            source="x",
            reliability_score=reliability,
            last_updated=T0,
        )

    def test_hourly_must_be_strictly_increasing(self):
        self._bundle([_obs(0), _obs(1), _obs(2)])
        with self.assertRaises(ValidationError):
            self._bundle([_obs(0), _obs(2), _obs(1)])
        with self.assertRaises(ValidationError):
            self._bundle([_obs(0), _obs(0)])

    def test_reliability_bounds(self):
        with self.assertRaises(ValidationError):
            self._bundle([], reliability=1.2)


class TestPredictionBundle(unittest.TestCase):
    def test_series_length_must_match_horizon(self):
        values = PredictedValues(
            temperature=[1.0, 2.0],
            humidity=[50.0, 50.0],
            precipitation=[0.1, 0.1],
            wind_speed=[1.0, 1.0],
            pressure=[1010.0],
        )
        with self.assertRaises(ValidationError):
            PredictionBundle(
                latitude=0,
                longitude=0,
                horizon_hours=2,
                predicted_values=values,
                confidence=[0.9, 0.88],
                model_version="2.1.0",
                features_used=[],
                valid_from=T0,
                generated_at=T0,
            )


def test_unavailable_is_falsy_and_carries_reason():
    result = Unavailable(reason=UnavailableReason.NO_CAPABLE_PROVIDER, detail="nothing configured")
    assert not result
    assert result.reason.value == "no_capable_provider"
    assert result.attempts == []


if __name__ == "__main__":
    unittest.main()
