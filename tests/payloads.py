"""Recorded-shape provider payloads and small builders shared by the tests."""

import datetime as dt

import requests

from agroweather.domain import Location, Observation, ForecastBundle

# 2024-06-01 00:00:00 UTC
DAY_START = 1717200000


class DummyResp:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class DummySession:
    """Answers GETs from a {url fragment: payload or exception} map and records each call."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {}), "timeout": timeout})
        for fragment, payload in self.routes.items():
            if fragment in url:
                if isinstance(payload, requests.RequestException):
                    raise payload
                if isinstance(payload, DummyResp):
                    return payload
                return DummyResp(payload)
        return DummyResp({}, status_code=404)


def owm_current():
    return {
        "coord": {"lon": 36.82, "lat": -1.29},
        "weather": [{"id": 803, "main": "Clouds", "description": "broken clouds"}],
        "main": {"temp": 22.5, "feels_like": 22.1, "pressure": 1018, "humidity": 60},
        "visibility": 10000,
        "wind": {"speed": 3.6, "deg": 70},
        "clouds": {"all": 75},
        "dt": DAY_START + 9 * 3600,
        "sys": {"country": "KE"},
        "name": "Nairobi",
    }


def owm_forecast():
    def slot(hour, temp, humidity, **extra):
        item = {
            "dt": DAY_START + hour * 3600,
            "main": {"temp": temp, "feels_like": temp - 0.5, "pressure": 1017, "humidity": humidity},
            "weather": [{"id": 500, "description": "light rain"}],
            "clouds": {"all": 60},
            "wind": {"speed": 4.0, "deg": 90},
            "visibility": 8000,
            "pop": 0.2,
        }
        item.update(extra)
        return item

    late = slot(18, 19.0, 75, pop=0.4, rain={"3h": 1.2})
    del late["visibility"]
    # deliberately out of order
    return {"list": [slot(15, 24.0, 55), slot(12, 23.0, 58), late]}


def weatherapi_forecast():
    def hour(offset, temp, humidity, wind_kph=10.8):
        return {
            "time_epoch": DAY_START + offset * 3600,
            "temp_c": temp,
            "feelslike_c": temp,
            "humidity": humidity,
            "pressure_mb": 1018.0,
            "wind_kph": wind_kph,
            "wind_degree": 120,
            "precip_mm": 0.0,
            "chance_of_rain": 20,
            "cloud": 40,
            "uv": 4.0,
            "vis_km": 10.0,
            "condition": {"text": "Partly cloudy", "code": 1003},
        }

    return {
        "location": {"name": "Nairobi", "country": "Kenya", "lat": -1.28, "lon": 36.82, "tz_id": "Africa/Nairobi"},
        "current": {
            "last_updated_epoch": DAY_START + 9 * 3600,
            "temp_c": 21.0,
            "feelslike_c": 21.0,
            "humidity": 65,
            "pressure_mb": 1019.0,
            "wind_kph": 18.0,
            "wind_degree": 90,
            "precip_mm": 0.0,
            "cloud": 50,
            "uv": 6.0,
            "vis_km": 10.0,
            "condition": {"text": "Partly cloudy", "code": 1003},
        },
        "forecast": {
            "forecastday": [
                {
                    "date": "2024-06-01",
                    "day": {
                        "maxtemp_c": 31.0,
                        "mintemp_c": 6.0,
                        "avghumidity": 70,
                        "totalprecip_mm": 3.5,
                        "daily_chance_of_rain": 60,
                        "maxwind_kph": 21.6,
                        "condition": {"text": "Patchy rain nearby"},
                    },
                    "astro": {"sunrise": "06:32 AM", "sunset": "06:40 PM", "moon_phase": "Waning Crescent"},
                    "hour": [hour(-3, 6.0, 90), hour(9, 21.0, 65), hour(15, 31.0, 40)],
                }
            ]
        },
        "alerts": {
            "alert": [
                {
                    "headline": "Flood Watch",
                    "severity": "Severe",
                    "urgency": "Immediate",
                    "certainty": "Likely",
                    "areas": "Nairobi; Kiambu",
                    "event": "Flood Watch",
                    "effective": "2024-06-01T06:00:00+03:00",
                    "expires": "2024-06-02T06:00:00+03:00",
                    "desc": "Heavy rain may cause flooding.",
                },
                {"headline": "Fog Advisory", "severity": "Unknown", "urgency": None, "event": "Fog"},
            ]
        },
    }


def weatherapi_history():
    payload = weatherapi_forecast()
    del payload["current"]
    del payload["alerts"]
    return payload


def accuweather_location():
    return {
        "Key": "224758",
        "LocalizedName": "Nairobi",
        "Country": {"ID": "KE", "LocalizedName": "Kenya"},
        "GeoPosition": {"Latitude": -1.283, "Longitude": 36.817},
        "TimeZone": {"Name": "Africa/Nairobi"},
    }


def accuweather_current():
    return [
        {
            "EpochTime": DAY_START + 9 * 3600,
            "WeatherText": "Mostly cloudy",
            "WeatherIcon": 6,
            "Temperature": {"Metric": {"Value": 20.0, "Unit": "C"}},
            "RealFeelTemperature": {"Metric": {"Value": 19.4, "Unit": "C"}},
            "RelativeHumidity": 68,
            "Pressure": {"Metric": {"Value": 1020.0, "Unit": "mb"}},
            "Wind": {"Direction": {"Degrees": 45}, "Speed": {"Metric": {"Value": 14.4, "Unit": "km/h"}}},
            "UVIndex": 5,
            "Visibility": {"Metric": {"Value": 16.1, "Unit": "km"}},
            "CloudCover": 80,
            "PrecipitationSummary": {"PastHour": {"Metric": {"Value": 0.0}}},
        }
    ]


def accuweather_daily():
    return {
        "DailyForecasts": [
            {
                "Date": "2024-06-01T07:00:00+03:00",
                "Temperature": {"Minimum": {"Value": 13.0}, "Maximum": {"Value": 24.0}},
                "Sun": {"EpochRise": DAY_START + 3 * 3600 + 32 * 60, "EpochSet": DAY_START + 15 * 3600 + 40 * 60},
                "Moon": {"Phase": "WaningCrescent"},
                "Day": {
                    "IconPhrase": "Showers",
                    "PrecipitationProbability": 55,
                    "TotalLiquid": {"Value": 2.0},
                    "Wind": {"Speed": {"Value": 18.0}},
                    "RelativeHumidity": {"Average": 72},
                },
                "Night": {
                    "PrecipitationProbability": 40,
                    "TotalLiquid": {"Value": 1.0},
                    "Wind": {"Speed": {"Value": 10.8}},
                    "RelativeHumidity": {"Average": 84},
                },
            }
        ]
    }


def meteostat_hourly():
    return {
        "meta": {"generated": "2024-06-02 10:00:00"},
        "data": [
            {"time": "2024-05-30 00:00:00", "temp": 14.2, "rhum": 80, "prcp": 0.0, "wspd": 7.2, "wdir": 90, "pres": 1019.1, "coco": 3},
            {"time": "2024-05-30 01:00:00", "temp": None, "rhum": None, "prcp": None, "wspd": None, "wdir": None, "pres": None, "coco": None},
            {"time": "2024-05-30 02:00:00", "temp": 13.5, "rhum": 82, "prcp": 0.4, "wspd": 3.6, "wdir": None, "pres": 1018.7, "coco": 7},
        ],
    }


def make_history(hours, start=None, temp_fn=None, precip_fn=None, step=dt.timedelta(hours=1)):
    """Hourly observations with a simple diurnal temperature cycle."""
    import math

    start = start or dt.datetime(2024, 6, 1, tzinfo=dt.timezone.utc)
    temp_fn = temp_fn or (lambda i: 18.0 + 5.0 * math.sin(2 * math.pi * (i - 9) / 24))
    precip_fn = precip_fn or (lambda i: 0.0)
    return [
        Observation(
            timestamp=start + i * step,
            temperature=temp_fn(i),
            humidity=65.0,
            pressure=1015.0 + (i % 3),
            wind_speed=3.0 + (i % 4) * 0.5,
            precipitation=precip_fn(i),
            source="test",
        )
        for i in range(hours)
    ]


def make_bundle(source="stub", reliability=0.5, temperature=20.0, hourly=None):
    now = dt.datetime(2024, 6, 1, 9, tzinfo=dt.timezone.utc)
    return ForecastBundle(
        location=Location(name="Testville", latitude=1.0, longitude=2.0),
        current=Observation(timestamp=now, temperature=temperature, humidity=50.0, source=source),
        hourly=hourly or [],
        source=source,
        reliability_score=reliability,
        last_updated=now,
    )
