"""Tests for interval normalization and the cutoff filter."""

import math

import pandas as pd
import pytest

from loadcurvelogic.core import normalize as nz
from loadcurvelogic.core import utils
from loadcurvelogic.core.config import EngineConfig
from loadcurvelogic.core.exceptions import MalformedTimestampError
from loadcurvelogic.core.types import RawSample, SampleFrame

TZ = "Europe/Paris"


def test_start_is_end_minus_interval():
    """End-of-interval stamp is the end; start sits one interval earlier."""
    n = nz.normalize(RawSample(end_timestamp="2024-01-02 00:00:00", interval_min=30, value=1.2), TZ)
    assert n.end == pd.Timestamp("2024-01-02 00:00", tz=TZ)
    assert n.start == pd.Timestamp("2024-01-01 23:30", tz=TZ)
    assert n.end - n.start == pd.Timedelta(minutes=30)
    assert n.value == 1.2


def test_missing_or_invalid_interval_defaults_to_30():
    for step in (None, 0, -5, "abc"):
        s = RawSample(end_timestamp="2024-01-02 00:00:00", interval_min=step, value=1.0)
        assert s.interval_min == 30
        n = nz.normalize(s, TZ)
        assert n.end - n.start == pd.Timedelta(minutes=30)


def test_other_interval_lengths_are_honoured():
    n = nz.normalize(RawSample(end_timestamp="2024-01-02 00:00:00", interval_min=10, value=1.0), TZ)
    assert n.start == pd.Timestamp("2024-01-01 23:50", tz=TZ)


def test_iso_fallback_matches_broker_format():
    """An ISO-8601 stamp with offset parses to the same instant."""
    a = nz.parse_end_timestamp("2024-01-02 00:00:00", TZ)
    b = nz.parse_end_timestamp("2024-01-02T00:00:00+01:00", TZ)
    c = nz.parse_end_timestamp("2024-01-01T23:00:00Z", TZ)
    assert a == b == c
    assert str(b.tz) == TZ


@pytest.mark.parametrize("text", ["", "   ", "not a date", "2024-13-45 99:99:99", "now", "today"])
def test_malformed_timestamp_raises(text):
    with pytest.raises(MalformedTimestampError):
        nz.parse_end_timestamp(text, TZ)


def test_malformed_sample_is_skipped_not_fatal():
    raw = [
        RawSample(end_timestamp="2024-01-01 00:30:00", value=1.0),
        RawSample(end_timestamp="garbage", value=1.0),
    ]
    df = nz.normalize_frame(raw, TZ)
    assert len(df) == 1
    assert df.index[0] == pd.Timestamp("2024-01-01 00:00", tz=TZ)


def test_cutoff_uses_sample_start(now_paris):
    """With now on Jan 10, anything starting on Jan 10 is dropped."""
    raw = [
        RawSample(end_timestamp="2024-01-09 23:30:00", value=1.0),
        RawSample(end_timestamp="2024-01-10 00:00:00", value=1.0),  # starts 23:30 Jan 9
        RawSample(end_timestamp="2024-01-10 00:30:00", value=1.0),  # starts 00:00 Jan 10
    ]
    df = nz.filter_valid(raw, tz=TZ, now=now_paris)
    assert len(df) == 2
    assert pd.DatetimeIndex(df.index).max() == pd.Timestamp("2024-01-09 23:30", tz=TZ)


def test_default_cutoff_is_end_of_yesterday(now_paris):
    cut = nz.default_cutoff(TZ, now_paris)
    assert cut == pd.Timestamp("2024-01-10 00:00", tz=TZ) - pd.Timedelta(milliseconds=1)


def test_invalid_values_are_dropped(now_paris):
    raw = [
        RawSample(end_timestamp="2024-01-01 00:30:00", value=1.0),
        RawSample(end_timestamp="2024-01-01 01:00:00", value=None),
        RawSample(end_timestamp="2024-01-01 01:30:00", value=float("nan")),
        RawSample(end_timestamp="2024-01-01 02:00:00", value=-0.5),
        RawSample(end_timestamp="2024-01-01 02:30:00", value=float("inf")),
        RawSample(end_timestamp="2024-01-01 03:00:00", value=0.0),
    ]
    df = nz.filter_valid(raw, tz=TZ, now=now_paris)
    assert list(df["value"]) == [1.0, 0.0]
    assert all(math.isfinite(v) and v >= 0 for v in df["value"])


def test_filter_is_idempotent(monday_raw, now_paris):
    once = nz.filter_valid(monday_raw, tz=TZ, now=now_paris)
    twice = nz.filter_valid(once, tz=TZ, now=now_paris)
    assert isinstance(twice, SampleFrame)
    assert list(twice.index) == list(once.index)
    assert list(twice["value"]) == list(once["value"])


def test_all_invalid_yields_empty_frame(now_paris):
    raw = [RawSample(end_timestamp="2024-01-01 00:30:00", value=None)]
    df = nz.filter_valid(raw, tz=TZ, now=now_paris)
    assert isinstance(df, SampleFrame)
    assert df.empty
    assert df.index.name == "t_start"


def test_empty_input_yields_empty_frame(now_paris):
    assert nz.filter_valid([], tz=TZ, now=now_paris).empty
    assert nz.filter_valid(utils.empty_sample_frame(TZ), tz=TZ, now=now_paris).empty


def test_iter_samples_round_trips_records(monday_frame):
    recs = list(nz.iter_samples(monday_frame))
    assert len(recs) == 48
    assert recs[0].start == pd.Timestamp("2024-01-01 00:00", tz=TZ)
    assert recs[-1].end == pd.Timestamp("2024-01-02 00:00", tz=TZ)
    assert recs[0].off_peak is None


def test_config_supplies_cutoff_lag(now_paris):
    """A two-day lag also drops everything starting on Jan 9."""
    raw = [
        RawSample(end_timestamp="2024-01-08 23:30:00", value=1.0),
        RawSample(end_timestamp="2024-01-09 12:30:00", value=1.0),
    ]
    df = nz.filter_valid(raw, now=now_paris, config=EngineConfig(cutoff_lag_days=2))
    assert len(df) == 1
