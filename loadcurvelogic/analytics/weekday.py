from __future__ import annotations

import pandas as pd

from ..core import canon, utils
from ..core.types import SampleFrame
from .types import CompletenessRecord


def bucket_by_weekday(df: SampleFrame) -> dict[int, SampleFrame]:
    """
    Group samples by ISO weekday (1=Monday..7=Sunday) of their *start*.

    A half-hour ending at 00:00 Tuesday started 23:30 Monday and belongs to
    Monday. All seven keys are always present.
    """
    idx = pd.DatetimeIndex(df.index)
    dow = utils.iso_weekday(idx)
    return {d: utils.as_sample_frame(df.loc[dow == d].copy()) for d in canon.WEEKDAYS}


def audit_completeness(buckets: dict[int, SampleFrame]) -> dict[int, CompletenessRecord]:
    """Per weekday: sample count and earliest/latest start time-of-day."""
    out: dict[int, CompletenessRecord] = {}
    for d in canon.WEEKDAYS:
        g = buckets.get(d)
        if g is None or g.empty:
            out[d] = {
                "weekday": d,
                "count": 0,
                "min_time": canon.EMPTY_TIME,
                "max_time": canon.EMPTY_TIME,
            }
            continue
        times = utils.local_time_series(pd.DatetimeIndex(g.index))
        out[d] = {
            "weekday": d,
            "count": int(len(g)),
            "min_time": times.min().strftime("%H:%M"),
            "max_time": times.max().strftime("%H:%M"),
        }
    return out


def weekday_hour_profile(df: SampleFrame) -> pd.DataFrame:
    """
    Mean power per (civil hour of start, ISO weekday).

    Returns a frame indexed by 'HH:00' (24 rows) with columns 1..7;
    combinations without samples are 0.0.
    """
    hours = [f"{h:02d}:00" for h in range(24)]
    if df.empty:
        return pd.DataFrame(0.0, index=pd.Index(hours, name="hour"), columns=list(canon.WEEKDAYS))

    idx = pd.DatetimeIndex(df.index)
    s = pd.DataFrame(
        {
            "hour": idx.strftime("%H:00"),
            "weekday": utils.iso_weekday(idx),
            "value": df["value"].to_numpy(dtype=float),
        }
    )
    out = (
        s.groupby(["hour", "weekday"])["value"]
        .mean()
        .unstack("weekday")
        .reindex(index=hours, columns=list(canon.WEEKDAYS))
        .fillna(0.0)
    )
    out.index.name = "hour"
    out.columns.name = None
    return out
