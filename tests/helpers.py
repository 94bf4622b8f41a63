from __future__ import annotations

import asyncio
import json
from typing import Callable, Dict, List, Optional

import httpx

from weatherdesk.domain import CurrentConditions, ForecastDay, HourlySample, Instantaneous
from weatherdesk.weather_clients import WeatherSource


class Recorder:
    """httpx.MockTransport handler that records requests and replays canned responses."""

    def __init__(self, routes: Dict[str, Callable[[httpx.Request], httpx.Response]]):
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for fragment, respond in self.routes.items():
            if fragment in str(request.url):
                return respond(request)
        return httpx.Response(404, json={"error": {"message": "no route"}})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def json_response(payload, status: int = 200):
    return lambda request: httpx.Response(status, json=payload)


def raise_connect_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def corrupt_gzip(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all")


def make_current(temp: float = 20.0, name: str = "Town") -> CurrentConditions:
    return CurrentConditions(
        temperature=temp,
        feels_like=temp,
        humidity=50,
        condition="Sunny",
        wind_speed=5.0,
        location_name=name,
    )


def make_day(label: str, low: float, high: float, hours: Optional[Dict[int, float]] = None) -> ForecastDay:
    hourly = tuple(
        HourlySample(time=f"2025-11-28 {h}:00", temperature=Instantaneous(t))
        for h, t in (hours or {}).items()
    )
    return ForecastDay(label=label, min_temp=low, max_temp=high, condition="Sunny", hourly=hourly)


class FakeSource(WeatherSource):
    name = "fake"

    def __init__(
        self,
        current: Optional[CurrentConditions] = None,
        forecast: Optional[List[ForecastDay]] = None,
        current_error: Optional[Exception] = None,
        forecast_error: Optional[Exception] = None,
        delays: Optional[Dict[str, float]] = None,
        call_delay: float = 0,
    ):
        self.current = current or make_current()
        self.forecast = forecast if forecast is not None else [make_day("Fri", 10, 20, {9: 15.0})]
        self.current_error = current_error
        self.forecast_error = forecast_error
        self.delays = delays or {}
        self.call_delay = call_delay
        self.queries: List[str] = []
        self.forecast_queries: List[str] = []

    async def get_current_conditions(self, query):
        self.queries.append(query)
        await asyncio.sleep(self.delays.get(query, self.call_delay))
        if self.current_error is not None:
            raise self.current_error
        return self.current

    async def get_forecast(self, query, days=7):
        self.forecast_queries.append(query)
        await asyncio.sleep(self.delays.get(query, self.call_delay))
        if self.forecast_error is not None:
            raise self.forecast_error
        return list(self.forecast)


class MemoryLines:
    def __init__(self, lines=None, fail: bool = False):
        self.lines = list(lines or [])
        self.fail = fail
        self.saves = 0

    def load(self):
        if self.fail:
            raise OSError("disk gone")
        return list(self.lines)

    def save(self, lines):
        if self.fail:
            raise OSError("disk gone")
        self.saves += 1
        self.lines = [lines] if isinstance(lines, str) else list(lines)


class MemoryPrefs:
    def __init__(self, values=None):
        self.values = dict(values or {})

    def get(self, key, default):
        return self.values.get(key, default)

    def put(self, key, value):
        self.values[key] = value


def write_snapshot(path, forecast_days: int = 3) -> str:
    doc = {
        "current": {
            "temperature": 18.5,
            "feelsLike": 17.0,
            "humidity": 70,
            "condition": "Overcast",
            "windSpeed": 9.0,
        },
        "forecast": [
            {"day": f"D{i}", "minTemp": 10.0 + i, "maxTemp": 20.0 + i, "condition": f"Cond {i}"}
            for i in range(forecast_days)
        ],
    }
    path.write_text(json.dumps(doc), encoding="utf-8")
    return str(path)
