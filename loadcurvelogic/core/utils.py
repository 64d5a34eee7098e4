# loadcurvelogic/core/utils.py
from __future__ import annotations
import math
import numpy as np
import pandas as pd
from zoneinfo import ZoneInfo
from datetime import date, time as _time, timedelta
from typing import Iterable, cast

from . import canon
from .types import SampleFrame


def ensure_tz_aware_index(df: pd.DataFrame, tz: str) -> pd.DataFrame:
    if df.index.name != canon.INDEX_NAME:
        raise ValueError(f"Index must be '{canon.INDEX_NAME}', got {df.index.name}")
    idx = pd.DatetimeIndex(df.index)
    if idx.tz is None:
        df = df.tz_localize(ZoneInfo(tz))
    else:
        df = df.tz_convert(ZoneInfo(tz))
    return df


def to_civil(ts: pd.Timestamp, tz: str) -> pd.Timestamp:
    """
    Localise a naive timestamp in tz, or convert an aware one.

    Naive wall times inside a DST gap shift forward; repeated fall-back
    times resolve to the first (summer-time) occurrence.
    """
    ts = pd.Timestamp(ts)
    if ts.tz is None:
        return ts.tz_localize(ZoneInfo(tz), ambiguous=True, nonexistent="shift_forward")
    return ts.tz_convert(ZoneInfo(tz))


def start_of_day(d: date, tz: str) -> pd.Timestamp:
    return pd.Timestamp(d).tz_localize(ZoneInfo(tz))


def end_of_day(d: date, tz: str) -> pd.Timestamp:
    """Last millisecond of the civil day (DST-safe: built from the next midnight)."""
    return start_of_day(d + timedelta(days=1), tz) - pd.Timedelta(milliseconds=1)


def parse_time_str(tstr: str) -> _time:
    """Allow '24:00' → '00:00' rollover safely."""
    s = tstr.strip()
    if s == "24:00":
        return _time(0, 0)
    return pd.to_datetime(s, format="%H:%M").time()


def time_in_range(times: pd.Series, start: _time, end: _time) -> pd.Series:
    """Return mask for times within [start, end). Handles wrap-around."""
    if start < end:
        return (times >= start) & (times < end)
    else:
        # e.g. 22:00 → 06:00 next day
        return (times >= start) | (times < end)


def local_time_series(idx: pd.DatetimeIndex) -> pd.Series:
    """
    Return a Series of local wall-clock times (datetime.time) indexed by idx.
    Assumes idx is tz-aware.
    """
    if idx.tz is None:
        raise ValueError("Index must be tz-aware for local_time_series.")
    return pd.Series(idx.time, index=idx)


def iso_weekday(idx: pd.DatetimeIndex) -> np.ndarray:
    """ISO weekday of each timestamp (1=Monday..7=Sunday)."""
    return np.asarray(idx.dayofweek) + 1


def hour_label(idx: pd.DatetimeIndex) -> list[str]:
    """ISO string (with offset) of the civil hour containing each timestamp."""
    idx = pd.DatetimeIndex(idx)
    seconds = np.asarray(idx.minute) * 60 + np.asarray(idx.second)
    starts = idx - pd.to_timedelta(seconds, unit="s")
    return [t.isoformat() for t in starts]


def day_label(idx: pd.DatetimeIndex) -> list[str]:
    return list(pd.DatetimeIndex(idx).strftime("%Y-%m-%d"))


def month_label(idx: pd.DatetimeIndex) -> list[str]:
    """Return YYYY-MM month labels from a tz-aware index."""
    return list(pd.DatetimeIndex(idx).strftime("%Y-%m"))


def iso_week_label(idx: pd.DatetimeIndex) -> list[str]:
    """ISO 8601 week labels ('YYYY-Www'): Monday start, week 1 holds the first Thursday."""
    iso = pd.DatetimeIndex(idx).isocalendar()
    return [f"{int(y)}-W{int(w):02d}" for y, w in zip(iso["year"], iso["week"])]


def safe_pct(part: float, total: float) -> float:
    """Percentage of total, 0.0 when total is zero/invalid."""
    if not total or not math.isfinite(total) or total <= 0:
        return 0.0
    return float(part) / float(total) * 100.0


def is_valid_number(v: object) -> bool:
    if isinstance(v, bool) or v is None:
        return False
    try:
        f = float(cast(float, v))
    except (TypeError, ValueError):
        return False
    return math.isfinite(f)


def build_sample_frame(
    starts: Iterable[pd.Timestamp],
    ends: Iterable[pd.Timestamp],
    values: Iterable[float | None],
    interval_min: Iterable[int],
    off_peak: Iterable[bool | None],
    *,
    tz: str = canon.DEFAULT_TZ,
) -> SampleFrame:
    starts = list(starts)
    if not starts:
        return empty_sample_frame(tz)
    df = pd.DataFrame(
        {
            canon.INDEX_NAME: pd.DatetimeIndex(starts).tz_convert(ZoneInfo(tz)),
            "t_end": pd.DatetimeIndex(list(ends)).tz_convert(ZoneInfo(tz)),
            "value": pd.to_numeric(pd.Series(list(values), dtype="object"), errors="coerce").astype(float),
            "interval_min": np.asarray(list(interval_min), dtype=int),
            "off_peak": pd.array(list(off_peak), dtype="boolean"),
        }
    ).set_index(canon.INDEX_NAME)
    out = df.sort_index(kind="stable")
    out.__class__ = SampleFrame
    return cast(SampleFrame, out)


def empty_sample_frame(tz: str = canon.DEFAULT_TZ) -> SampleFrame:
    """
    Return an empty SampleFrame with the correct tz-aware index and required columns.
    """
    idx = pd.DatetimeIndex([], tz=ZoneInfo(tz), name=canon.INDEX_NAME)
    out = pd.DataFrame(
        {
            "t_end": pd.DatetimeIndex([], tz=ZoneInfo(tz)),
            "value": pd.Series([], dtype=float),
            "interval_min": pd.Series([], dtype=int),
            "off_peak": pd.array([], dtype="boolean"),
        },
        index=idx,
    )
    out.__class__ = SampleFrame
    return cast(SampleFrame, out)


def as_sample_frame(df: pd.DataFrame) -> SampleFrame:
    """Re-tag a filtered/copied frame as SampleFrame without copying."""
    df.__class__ = SampleFrame
    return cast(SampleFrame, df)
