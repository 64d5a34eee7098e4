import pandas as pd
import pytest

from loadcurvelogic.core.normalize import normalize_frame
from loadcurvelogic.core.types import RawSample

TZ = "Europe/Paris"


def _raw_day(day="2024-01-01", kw=1.0, off_peak=None):
    """48 half-hour readings covering one civil day, stamped at interval end."""
    ends = pd.date_range(f"{day} 00:30", periods=48, freq="30min")
    return [
        RawSample(end_timestamp=e.strftime("%Y-%m-%d %H:%M:%S"), interval_min=30, value=kw, off_peak=off_peak)
        for e in ends
    ]


@pytest.fixture
def raw_day():
    return _raw_day


@pytest.fixture
def monday_raw():
    # 2024-01-01 is a Monday
    return _raw_day("2024-01-01")


@pytest.fixture
def monday_frame(monday_raw):
    return normalize_frame(monday_raw, TZ)


@pytest.fixture
def now_paris():
    return pd.Timestamp("2024-01-10 12:00", tz=TZ)
