"""
Weather sources.

Two interchangeable backends expose the same capability set:
- WeatherApiClient: remote weatherapi.com JSON API (needs an API key)
- SnapshotWeatherClient: a local JSON document for offline/demo use

Which one is active is decided once by select_weather_source() from
configuration alone.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from .domain import (
    NAN,
    CurrentConditions,
    ForecastDay,
    HourlySample,
    Instantaneous,
    TempRange,
)

logger = logging.getLogger(__name__)

FORECAST_DAYS = 7


class WeatherError(RuntimeError):
    """Raised for user-facing weather lookup failures."""
    pass


class NetworkError(WeatherError):
    """Transport failure: timeout, refused connection, dropped stream."""


class ApiError(WeatherError):
    """Non-success status or a structured error payload."""


class ParseError(WeatherError):
    """The response (or snapshot file) does not have the expected shape."""


# -------------------------
# Field helpers
# -------------------------

def normalize_icon_url(url: Optional[str]) -> Optional[str]:
    """Protocol-relative icon URLs ("//cdn/x.png") get an https: scheme."""
    if url is not None and url.startswith("//"):
        return "https:" + url
    return url


def short_day_label(iso_date: str) -> str:
    """'2025-11-28' -> 'Fri'. Unparsable input is returned unchanged."""
    try:
        d = date.fromisoformat(iso_date)
    except (TypeError, ValueError):
        return iso_date
    # Fixed English abbreviations, independent of the process locale
    return ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")[d.weekday()]


def _obj(parent: Optional[Dict[str, Any]], key: str) -> Optional[Dict[str, Any]]:
    if not isinstance(parent, dict):
        return None
    value = parent.get(key)
    return value if isinstance(value, dict) else None


def _float(obj: Optional[Dict[str, Any]], key: str, fallback: float = NAN) -> float:
    if not isinstance(obj, dict) or obj.get(key) is None:
        return fallback
    try:
        return float(obj[key])
    except (TypeError, ValueError):
        return fallback


def _int(obj: Optional[Dict[str, Any]], key: str, fallback: int = -1) -> int:
    value = _float(obj, key)
    if math.isnan(value) or math.isinf(value):
        return fallback
    return int(value)


def _text(obj: Optional[Dict[str, Any]], key: str) -> Optional[str]:
    if not isinstance(obj, dict) or obj.get(key) is None:
        return None
    return str(obj[key])


# -------------------------
# Gateway contract
# -------------------------

class WeatherSource(ABC):
    """Current conditions + multi-day forecast for a place text or "lat,lon"."""

    name = "base"

    @abstractmethod
    async def get_current_conditions(self, query: str) -> CurrentConditions:
        ...

    @abstractmethod
    async def get_forecast(self, query: str, days: int = FORECAST_DAYS) -> List[ForecastDay]:
        ...


class WeatherApiClient(WeatherSource):
    """
    weatherapi.com wrapper.

    Endpoints used:
    - Current:  /v1/current.json?key=KEY&q=...&aqi=yes
    - Forecast: /v1/forecast.json?key=KEY&q=...&days=7&aqi=yes&alerts=no

    q is either free text or "lat,lon"; httpx url-encodes it.
    """

    name = "weatherapi"

    def __init__(
        self,
        api_key: str,
        timeout_s: float = 10.0,
        base: str = "https://api.weatherapi.com/v1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key.strip():
            raise ValueError("weatherapi.com client needs an API key")
        self.api_key = api_key.strip()
        self.timeout_s = timeout_s
        self.base = base
        self.transport = transport

    async def _get(self, path: str, params: Dict[str, Any], what: str) -> Dict[str, Any]:
        params = {"key": self.api_key, **params}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport) as client:
                r = await client.get(f"{self.base}/{path}", params=params)
        except httpx.DecodingError as exc:
            raise ParseError(f"Failed to decode {what}") from exc
        except httpx.RequestError as exc:
            logger.warning("Network error while fetching %s: %s", what, exc)
            raise NetworkError(f"Network error while fetching {what}") from exc

        if r.status_code != 200:
            raise self._api_error(r)

        try:
            data = r.json()
        except ValueError as exc:
            raise ParseError(f"Failed to parse {what}") from exc
        if not isinstance(data, dict):
            raise ParseError(f"Failed to parse {what}")
        return data

    @staticmethod
    def _api_error(r: httpx.Response) -> ApiError:
        """weatherapi.com reports failures as {"error": {"message": "..."}}."""
        try:
            message = r.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            message = None
        if message is not None:
            return ApiError(f"API error: {message}")
        return ApiError(f"API returned error or invalid response ({r.status_code})")

    async def get_current_conditions(self, query: str) -> CurrentConditions:
        root = await self._get("current.json", {"q": query, "aqi": "yes"}, "current weather")

        current = _obj(root, "current")
        if current is None:
            raise ParseError("Invalid API response (missing current)")
        location = _obj(root, "location")
        cond = _obj(current, "condition")

        # Humidity is clamped, cloud keeps its -1 sentinel
        humidity = _int(current, "humidity")
        return CurrentConditions(
            temperature=_float(current, "temp_c"),
            feels_like=_float(current, "feelslike_c"),
            humidity=max(humidity, 0),
            condition=_text(cond, "text"),
            wind_speed=_float(current, "wind_kph"),
            pressure_mb=_float(current, "pressure_mb"),
            visibility_km=_float(current, "vis_km"),
            uv=_float(current, "uv"),
            cloud=_int(current, "cloud"),
            location_name=_text(location, "name"),
            region=_text(location, "region"),
            country=_text(location, "country"),
            latitude=_float(location, "lat"),
            longitude=_float(location, "lon"),
            tz_id=_text(location, "tz_id"),
            local_time=_text(location, "localtime"),
            pm2_5=_float(_obj(current, "air_quality"), "pm2_5"),
            icon_url=normalize_icon_url(_text(cond, "icon")),
        )

    async def get_forecast(self, query: str, days: int = FORECAST_DAYS) -> List[ForecastDay]:
        params = {"q": query, "days": days, "aqi": "yes", "alerts": "no"}
        root = await self._get("forecast.json", params, "forecast")

        forecast = _obj(root, "forecast")
        entries = forecast.get("forecastday") if forecast else None
        if not isinstance(entries, list):
            raise ParseError("Invalid API response (missing forecast)")

        return [self._parse_day(entry) for entry in entries if isinstance(entry, dict)]

    @classmethod
    def _parse_day(cls, entry: Dict[str, Any]) -> ForecastDay:
        date_str = _text(entry, "date")
        day = _obj(entry, "day")
        cond = _obj(day, "condition")
        astro = _obj(entry, "astro")

        # Rain chance wins; snow chance only when rain is not reported
        if day is not None and "daily_chance_of_rain" in day:
            chance = _int(day, "daily_chance_of_rain")
        else:
            chance = _int(day, "daily_chance_of_snow")

        hours = entry.get("hour")
        hourly = tuple(cls._parse_hour(h) for h in hours if isinstance(h, dict)) if isinstance(hours, list) else ()

        return ForecastDay(
            label=short_day_label(date_str) if date_str is not None else "Day",
            min_temp=_float(day, "mintemp_c"),
            max_temp=_float(day, "maxtemp_c"),
            condition=_text(cond, "text"),
            avg_humidity=_int(day, "avghumidity"),
            chance_of_precip=chance,
            icon_url=normalize_icon_url(_text(cond, "icon")),
            sunrise=_text(astro, "sunrise"),
            sunset=_text(astro, "sunset"),
            moon_phase=_text(astro, "moon_phase"),
            moon_illumination=_text(astro, "moon_illumination"),
            hourly=hourly,
        )

    @staticmethod
    def _parse_hour(hour: Dict[str, Any]) -> HourlySample:
        cond = _obj(hour, "condition")
        return HourlySample(
            time=_text(hour, "time"),
            temperature=Instantaneous(_float(hour, "temp_c")),
            feels_like=_float(hour, "feelslike_c"),
            humidity=_int(hour, "humidity"),
            wind_kph=_float(hour, "wind_kph"),
            precip_mm=_float(hour, "precip_mm"),
            chance_of_rain=_int(hour, "chance_of_rain"),
            condition=_text(cond, "text"),
            icon_url=normalize_icon_url(_text(cond, "icon")),
        )


class SnapshotWeatherClient(WeatherSource):
    """
    Offline backend reading a hand-authored JSON document.

    Shape:
        {"current": {"temperature", "feelsLike", "humidity", "condition", "windSpeed", ...},
         "forecast": [{"day", "minTemp", "maxTemp", "condition", ...}, ...]}

    Values are taken as written; the query is ignored.
    """

    name = "snapshot"

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except OSError as exc:
            raise ParseError("Cannot read weather file") from exc
        except ValueError as exc:
            raise ParseError("Weather file is not valid JSON") from exc
        if not isinstance(data, dict):
            raise ParseError("Weather file must hold a JSON object")
        return data

    async def get_current_conditions(self, query: str) -> CurrentConditions:
        data = await asyncio.to_thread(self._load)
        current = _obj(data, "current")
        if current is None:
            raise ParseError("Weather file has no current block")
        location = _obj(current, "location") or {}
        try:
            return CurrentConditions(
                temperature=float(current["temperature"]),
                feels_like=float(current["feelsLike"]),
                humidity=int(current["humidity"]),
                condition=str(current["condition"]),
                wind_speed=float(current["windSpeed"]),
                pressure_mb=float(current.get("pressureMb", NAN)),
                visibility_km=float(current.get("visibilityKm", NAN)),
                uv=float(current.get("uv", NAN)),
                cloud=int(current.get("cloud", -1)),
                location_name=location.get("name"),
                region=location.get("region"),
                country=location.get("country"),
                latitude=float(location.get("lat", NAN)),
                longitude=float(location.get("lon", NAN)),
                tz_id=location.get("tzId"),
                local_time=location.get("localTime"),
                pm2_5=float(current.get("aqiPm25", NAN)),
                icon_url=current.get("iconUrl"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ParseError("Cannot load current weather from file") from exc

    async def get_forecast(self, query: str, days: int = FORECAST_DAYS) -> List[ForecastDay]:
        data = await asyncio.to_thread(self._load)
        entries = data.get("forecast")
        if not isinstance(entries, list):
            raise ParseError("Weather file has no forecast list")
        try:
            return [self._parse_day(entry) for entry in entries]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ParseError("Cannot load forecast data from file") from exc

    @staticmethod
    def _parse_day(entry: Dict[str, Any]) -> ForecastDay:
        hourly = []
        for hour in entry.get("hourly", []):
            if "tempMin" in hour and "tempMax" in hour:
                temperature = TempRange(float(hour["tempMin"]), float(hour["tempMax"]))
            else:
                temperature = Instantaneous(float(hour["temp"]))
            hourly.append(HourlySample(
                time=hour.get("time"),
                temperature=temperature,
                feels_like=float(hour.get("feelsLike", NAN)),
                humidity=int(hour.get("humidity", -1)),
                wind_kph=float(hour.get("windKph", NAN)),
                precip_mm=float(hour.get("precipMm", NAN)),
                chance_of_rain=int(hour.get("chanceOfRain", -1)),
                condition=hour.get("condition"),
                icon_url=hour.get("iconUrl"),
            ))

        return ForecastDay(
            label=str(entry["day"]),
            min_temp=float(entry["minTemp"]),
            max_temp=float(entry["maxTemp"]),
            condition=str(entry["condition"]),
            avg_humidity=int(entry.get("avgHumidity", -1)),
            chance_of_precip=int(entry.get("chanceOfRain", -1)),
            icon_url=entry.get("iconUrl"),
            sunrise=entry.get("sunrise"),
            sunset=entry.get("sunset"),
            moon_phase=entry.get("moonPhase"),
            moon_illumination=entry.get("moonIllumination"),
            hourly=tuple(hourly),
        )


def select_weather_source(
    api_key: str,
    snapshot_path: str,
    timeout_s: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> WeatherSource:
    """Remote backend when a key is configured, offline snapshot otherwise."""
    if api_key and api_key.strip():
        return WeatherApiClient(api_key, timeout_s=timeout_s, transport=transport)
    return SnapshotWeatherClient(snapshot_path)
