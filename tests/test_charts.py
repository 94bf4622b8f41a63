from __future__ import annotations

import math

import pytest

from weatherdesk import charts
from weatherdesk.domain import HourlySample, Instantaneous, TempRange

from tests.helpers import make_day


def sample(time, temperature):
    return HourlySample(time=time, temperature=temperature)


def test_hour_key():
    assert charts.hour_key("2025-11-28 14:00") == "14:00"
    assert charts.hour_key("2025-11-28 7:00") == "07:00"
    assert charts.hour_key("09:00") == "09:00"
    assert charts.hour_key(None) == ""


@pytest.mark.parametrize("count", [0, 1, 5, 24, 30])
def test_hourly_series_always_has_24_categories(count):
    samples = [sample(f"2025-11-28 {h % 24:02d}:00", Instantaneous(float(h))) for h in range(count)]

    low, high = charts.hourly_series(samples)

    assert low.categories == charts.HOURLY_CATEGORIES
    assert high.categories == charts.HOURLY_CATEGORIES
    assert len(low.values) == len(high.values) == 24
    assert low.categories[0] == "00:00" and low.categories[-1] == "23:00"
    assert (low.name, high.name) == ("Min", "Max")


def test_unmatched_hours_are_nan_in_both_series():
    low, high = charts.hourly_series([sample("2025-11-28 3:00", Instantaneous(10.0))])

    assert low.values[3] == pytest.approx(8.5)
    assert high.values[3] == pytest.approx(11.5)
    gaps = [i for i in range(24) if i != 3]
    assert all(math.isnan(low.values[i]) and math.isnan(high.values[i]) for i in gaps)


def test_native_range_is_used_as_is():
    low, high = charts.hourly_series([sample("2025-11-28 12:00", TempRange(20.0, 23.0))])

    assert (low.values[12], high.values[12]) == (20.0, 23.0)


def test_later_sample_for_same_hour_wins():
    low, _ = charts.hourly_series([
        sample("2025-11-28 05:00", Instantaneous(1.0)),
        sample("2025-11-29 05:00", Instantaneous(5.0)),
    ])

    assert low.values[5] == pytest.approx(3.5)


def test_unparseable_times_do_not_match():
    low, _ = charts.hourly_series([sample(None, Instantaneous(1.0)), sample("noon", Instantaneous(2.0))])

    assert all(math.isnan(v) for v in low.values)


def test_daily_series_in_day_order():
    forecast = [make_day("Fri", 10, 20), make_day("Sat", 8, 18), make_day("Sun", 9, 21)]

    low, high = charts.daily_series(forecast)

    assert low.categories == ("Fri", "Sat", "Sun")
    assert low.values == (10, 8, 9)
    assert high.values == (20, 18, 21)
