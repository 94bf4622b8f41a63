"""
Chart series for the daily and hourly temperature plots.

Both charts are Min/Max pairs over category labels. The hourly chart always
has the 24 categories "00:00".."23:00"; hours with no sample are NaN so the
plot shows a gap instead of shifting points.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .domain import NAN, ChartSeries, ForecastDay, HourlySample

HOURLY_CATEGORIES: Tuple[str, ...] = tuple(f"{h:02d}:00" for h in range(24))

# Half-width of the band drawn around a single hourly reading
HOURLY_BAND_DELTA = 1.5

_SINGLE_DIGIT_HOUR = re.compile(r"^\d:")


def hour_key(timestamp: Optional[str]) -> str:
    """'2025-11-28 14:00' -> '14:00', '2025-11-28 7:00' -> '07:00'."""
    if timestamp is None:
        return ""
    t = timestamp.rsplit(" ", 1)[-1]
    if _SINGLE_DIGIT_HOUR.match(t):
        t = "0" + t
    return t


def daily_series(forecast: Sequence[ForecastDay]) -> Tuple[ChartSeries, ChartSeries]:
    categories = tuple(day.label for day in forecast)
    return (
        ChartSeries("Min", categories, tuple(day.min_temp for day in forecast)),
        ChartSeries("Max", categories, tuple(day.max_temp for day in forecast)),
    )


def hourly_series(samples: Iterable[HourlySample]) -> Tuple[ChartSeries, ChartSeries]:
    # Later samples for the same hour win
    by_hour: Dict[str, HourlySample] = {hour_key(s.time): s for s in samples}

    mins, maxs = [], []
    for category in HOURLY_CATEGORIES:
        sample = by_hour.get(category)
        if sample is None:
            mins.append(NAN)
            maxs.append(NAN)
            continue
        low, high = sample.temperature.band(HOURLY_BAND_DELTA)
        mins.append(low)
        maxs.append(high)

    return (
        ChartSeries("Min", HOURLY_CATEGORIES, tuple(mins)),
        ChartSeries("Max", HOURLY_CATEGORIES, tuple(maxs)),
    )
