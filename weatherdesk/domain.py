"""
Domain records shared by the gateways, the chart builder and the orchestrator.

All records are frozen: background fetches hand them to the interactive
context, which is the only place that keeps them.

Unknown values use sentinels rather than None for numbers:
- fractional fields use NaN
- integer percentages use -1
- humidity on current conditions is clamped to >= 0 instead
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple, Union

NAN = float("nan")


@dataclass(frozen=True)
class CurrentConditions:
    temperature: float
    feels_like: float
    humidity: int
    condition: Optional[str]
    wind_speed: float
    pressure_mb: float = NAN
    visibility_km: float = NAN
    uv: float = NAN
    cloud: int = -1
    location_name: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    latitude: float = NAN
    longitude: float = NAN
    tz_id: Optional[str] = None
    local_time: Optional[str] = None
    pm2_5: float = NAN
    icon_url: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return not (math.isnan(self.latitude) or math.isnan(self.longitude))


@dataclass(frozen=True)
class Instantaneous:
    """A single reading for the hour."""
    temp: float

    def band(self, delta: float) -> Tuple[float, float]:
        return self.temp - delta, self.temp + delta


@dataclass(frozen=True)
class TempRange:
    """A native min/max for the hour."""
    min: float
    max: float

    def band(self, delta: float) -> Tuple[float, float]:
        return self.min, self.max


HourlyTemperature = Union[Instantaneous, TempRange]


@dataclass(frozen=True)
class HourlySample:
    time: Optional[str]
    temperature: HourlyTemperature
    feels_like: float = NAN
    humidity: int = -1
    wind_kph: float = NAN
    precip_mm: float = NAN
    chance_of_rain: int = -1
    condition: Optional[str] = None
    icon_url: Optional[str] = None


@dataclass(frozen=True)
class ForecastDay:
    label: str
    min_temp: float
    max_temp: float
    condition: Optional[str]
    avg_humidity: int = -1
    chance_of_precip: int = -1
    icon_url: Optional[str] = None
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    moon_phase: Optional[str] = None
    moon_illumination: Optional[str] = None
    hourly: Tuple[HourlySample, ...] = ()


@dataclass(frozen=True)
class Place:
    """One geocoder suggestion."""
    label: str
    name: Optional[str]
    lat: float
    lon: float
    region: Optional[str] = None
    country: Optional[str] = None

    @property
    def query(self) -> str:
        return f"{self.lat},{self.lon}"


@dataclass(frozen=True)
class ChartSeries:
    name: str
    categories: Tuple[str, ...]
    values: Tuple[float, ...]


@dataclass(frozen=True)
class ViewModel:
    """The last successfully assembled dashboard snapshot."""
    raw_input: str
    query: str
    current: CurrentConditions
    forecast: Tuple[ForecastDay, ...]
    daily_series: Tuple[ChartSeries, ChartSeries]
    hourly_series: Tuple[ChartSeries, ChartSeries]
    selected_day: int = 0
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class SearchOutcome:
    """What the presentation layer is notified with after a search."""
    view_model: Optional[ViewModel]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


SuggestionMap = Dict[str, Place]
