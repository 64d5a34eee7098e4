"""Tests for hour/day/week/month energy aggregation."""

import pandas as pd
import pytest

from loadcurvelogic.analytics import aggregate as agg
from loadcurvelogic.core import utils
from loadcurvelogic.core.exceptions import AggregationError
from loadcurvelogic.core.normalize import normalize_frame
from loadcurvelogic.core.types import RawSample
from loadcurvelogic.io.adapter import from_daily_consumption

TZ = "Europe/Paris"


def _frame_from_starts(starts, values, flags=None):
    starts = list(starts)
    return utils.build_sample_frame(
        starts,
        [s + pd.Timedelta(minutes=30) for s in starts],
        values,
        [30] * len(starts),
        flags if flags is not None else [None] * len(starts),
        tz=TZ,
    )


def test_constant_1kw_day_is_24kwh(monday_frame):
    """48 half-hours at 1 kW: 48 * 1 * 0.5 = 24 kWh."""
    days = agg.aggregate(monday_frame, "day")
    assert len(days) == 1
    assert days[0]["key"] == "2024-01-01"
    assert days[0]["energy_kwh"] == pytest.approx(24.0)
    assert days[0]["sample_count"] == 48
    assert days[0]["max_power_kw"] == days[0]["min_power_kw"] == days[0]["avg_power_kw"] == 1.0


def test_constant_2kw_day_is_48kwh(raw_day):
    df = normalize_frame(raw_day("2024-01-01", kw=2.0), TZ)
    assert agg.aggregate(df, "day")[0]["energy_kwh"] == pytest.approx(48.0)


def test_hours_sum_to_day_and_days_to_month(raw_day):
    raw = raw_day("2024-01-01", kw=1.0) + raw_day("2024-01-02", kw=2.5)
    df = normalize_frame(raw, TZ)
    hours = agg.aggregate(df, "hour")
    days = agg.aggregate(df, "day")
    months = agg.aggregate(df, "month")
    assert len(hours) == 48
    assert agg.total_energy(hours) == pytest.approx(agg.total_energy(days))
    assert months[0]["energy_kwh"] == pytest.approx(24.0 + 60.0)


def test_buckets_ordered_chronologically(raw_day):
    raw = raw_day("2024-02-01") + raw_day("2024-01-15")
    keys = [b["key"] for b in agg.aggregate(normalize_frame(raw, TZ), "month")]
    assert keys == ["2024-01", "2024-02"]


def test_iso_week_keys():
    """2021-01-03 is in ISO week 2020-W53; week 1 of 2021 starts Monday 2021-01-04."""
    df = normalize_frame(
        [
            RawSample(end_timestamp="2021-01-03 12:30:00", value=1.0),
            RawSample(end_timestamp="2021-01-04 00:30:00", value=1.0),
        ],
        TZ,
    )
    keys = [b["key"] for b in agg.aggregate(df, "week")]
    assert keys == ["2020-W53", "2021-W01"]


def test_empty_input_yields_empty_list():
    empty = utils.empty_sample_frame(TZ)
    for g in ("hour", "day", "week", "month"):
        assert agg.aggregate(empty, g) == []
        assert agg.aggregate_energy(empty, g) == []


def test_unknown_granularity_raises(monday_frame):
    with pytest.raises(AggregationError):
        agg.aggregate(monday_frame, "year")


def test_dst_fall_back_hours_stay_distinct():
    """On 2024-10-27 02:00-03:00 occurs twice in Paris; both hours are kept apart."""
    starts = pd.date_range(pd.Timestamp("2024-10-26 23:00", tz="UTC"), periods=8, freq="30min").tz_convert(TZ)
    df = _frame_from_starts(starts, [1.0] * 8)
    hours = agg.aggregate(df, "hour")
    keys = [h["key"] for h in hours]
    assert len(hours) == 4
    assert keys[1] == "2024-10-27T02:00:00+02:00"
    assert keys[2] == "2024-10-27T02:00:00+01:00"
    assert all(h["energy_kwh"] == pytest.approx(1.0) for h in hours)
    # day bucket still holds all of it
    assert agg.aggregate(df, "day")[0]["energy_kwh"] == pytest.approx(4.0)


def test_off_peak_flag_is_and_folded_per_hour():
    starts = pd.date_range("2024-01-01 00:00", periods=6, freq="30min", tz=TZ)
    flags = [True, True, True, False, None, None]
    df = _frame_from_starts(starts, [2.0] * 6, flags)
    hours = agg.aggregate(df, "hour")
    assert [h["off_peak"] for h in hours] == [True, False, None]
    mixed = hours[1]
    assert mixed["off_peak_energy_kwh"] == pytest.approx(1.0)
    assert mixed["peak_energy_kwh"] == pytest.approx(1.0)
    assert mixed["energy_kwh"] == pytest.approx(mixed["peak_energy_kwh"] + mixed["off_peak_energy_kwh"])


def test_peak_plus_off_peak_equals_energy_when_flagged(raw_day):
    df = normalize_frame(raw_day("2024-01-01", kw=1.0, off_peak=False), TZ)
    day = agg.aggregate(df, "day")[0]
    assert day["peak_energy_kwh"] + day["off_peak_energy_kwh"] == pytest.approx(day["energy_kwh"])
    assert day["off_peak"] is False


def test_energy_entry_point_skips_duration_multiplication():
    raw = from_daily_consumption(
        [
            {"date": "2024-01-01", "value": 10.0},
            {"date": "2024-01-02", "value": 12.5},
        ]
    )
    df = normalize_frame(raw, TZ)
    days = agg.aggregate_energy(df, "day")
    assert [d["key"] for d in days] == ["2024-01-01", "2024-01-02"]
    months = agg.aggregate_energy(df, "month")
    assert months[0]["energy_kwh"] == pytest.approx(22.5)
    assert months[0]["max_power_kw"] is None


def test_hourly_series(monday_frame):
    pts = agg.hourly_series(monday_frame)
    assert len(pts) == 24
    assert pts[0]["date"] == "2024-01-01"
    assert pts[0]["time"] == "00:00:00"
    assert pts[0]["energy_kwh"] == pytest.approx(1.0)
    assert pts[0]["off_peak"] is False
