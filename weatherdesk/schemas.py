"""
Pydantic schemas.

Why:
- Validation of the shell's request bodies
- JSON-safe output: NaN sentinels are sent as null
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import ChartSeries, CurrentConditions, ForecastDay, HourlySample, TempRange, ViewModel


def _nan_to_none(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (list, tuple)):
        return [_nan_to_none(v) for v in value]
    return value


class OutModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="before")
    @classmethod
    def _no_nan(cls, value: Any) -> Any:
        return _nan_to_none(value)


# -------------------------
# Requests
# -------------------------

class SearchIn(BaseModel):
    text: str = Field(..., min_length=1, max_length=255)


class InputIn(BaseModel):
    """One keystroke worth of search-box text (may be empty)."""
    text: str = Field("", max_length=255)


class PickIn(BaseModel):
    label: str


class RefreshIn(BaseModel):
    enabled: bool


class IntervalIn(BaseModel):
    seconds: int


class FavoriteIn(BaseModel):
    name: Optional[str] = Field(None, max_length=255)


# -------------------------
# Responses
# -------------------------

class CurrentOut(OutModel):
    temperature: Optional[float]
    feels_like: Optional[float]
    humidity: int
    condition: Optional[str]
    wind_speed: Optional[float]
    pressure_mb: Optional[float]
    visibility_km: Optional[float]
    uv: Optional[float]
    cloud: int
    location_name: Optional[str]
    region: Optional[str]
    country: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    tz_id: Optional[str]
    local_time: Optional[str]
    pm2_5: Optional[float]
    icon_url: Optional[str]

    @classmethod
    def from_domain(cls, current: CurrentConditions) -> "CurrentOut":
        return cls.model_validate(current)


class HourlyOut(OutModel):
    time: Optional[str]
    temp: Optional[float] = None
    temp_min: Optional[float] = None
    temp_max: Optional[float] = None
    feels_like: Optional[float]
    humidity: int
    wind_kph: Optional[float]
    precip_mm: Optional[float]
    chance_of_rain: int
    condition: Optional[str]
    icon_url: Optional[str]

    @classmethod
    def from_domain(cls, sample: HourlySample) -> "HourlyOut":
        t = sample.temperature
        if isinstance(t, TempRange):
            temps = {"temp_min": t.min, "temp_max": t.max}
        else:
            temps = {"temp": t.temp}
        return cls(
            time=sample.time,
            feels_like=sample.feels_like,
            humidity=sample.humidity,
            wind_kph=sample.wind_kph,
            precip_mm=sample.precip_mm,
            chance_of_rain=sample.chance_of_rain,
            condition=sample.condition,
            icon_url=sample.icon_url,
            **temps,
        )


class ForecastDayOut(OutModel):
    label: str
    min_temp: Optional[float]
    max_temp: Optional[float]
    condition: Optional[str]
    avg_humidity: int
    chance_of_precip: int
    icon_url: Optional[str]
    sunrise: Optional[str]
    sunset: Optional[str]
    moon_phase: Optional[str]
    moon_illumination: Optional[str]
    hourly: List[HourlyOut]

    @classmethod
    def from_domain(cls, day: ForecastDay) -> "ForecastDayOut":
        data = {name: getattr(day, name) for name in cls.model_fields if name != "hourly"}
        return cls(**data, hourly=[HourlyOut.from_domain(h) for h in day.hourly])


class SeriesOut(OutModel):
    name: str
    categories: List[str]
    values: List[Optional[float]]


class ViewModelOut(OutModel):
    raw_input: str
    query: str
    current: CurrentOut
    forecast: List[ForecastDayOut]
    daily_series: List[SeriesOut]
    hourly_series: List[SeriesOut]
    selected_day: int
    updated_at: datetime

    @classmethod
    def from_domain(cls, vm: ViewModel) -> "ViewModelOut":
        def series(s: ChartSeries) -> SeriesOut:
            return SeriesOut(name=s.name, categories=list(s.categories), values=list(s.values))

        return cls(
            raw_input=vm.raw_input,
            query=vm.query,
            current=CurrentOut.from_domain(vm.current),
            forecast=[ForecastDayOut.from_domain(d) for d in vm.forecast],
            daily_series=[series(s) for s in vm.daily_series],
            hourly_series=[series(s) for s in vm.hourly_series],
            selected_day=vm.selected_day,
            updated_at=vm.updated_at,
        )


class RefreshOut(BaseModel):
    enabled: bool
    interval_s: float


class DashboardOut(BaseModel):
    """Everything the presentation layer needs to draw one frame."""
    view_model: Optional[ViewModelOut]
    error: Optional[str]
    input: str
    suggestions: List[str]
    recents: List[str]
    favorites: List[str]
    refresh: RefreshOut
    backend: str
    demo_mode: bool
    theme: str
