from __future__ import annotations

from typing import Callable, cast

import numpy as np
import pandas as pd

from ..core import canon, utils
from ..core.exceptions import AggregationError, require
from ..core.types import SampleFrame
from .types import AggregateBucket, Granularity, HourlyPoint

_LABELS: dict[str, Callable[[pd.DatetimeIndex], list[str]]] = {
    "hour": utils.hour_label,
    "day": utils.day_label,
    "week": utils.iso_week_label,
    "month": utils.month_label,
}


def _check_granularity(granularity: str) -> None:
    require(
        granularity in canon.GRANULARITIES,
        f"Unknown granularity {granularity!r}; expected one of {canon.GRANULARITIES}",
        AggregationError,
    )


def _bucket_frame(df: SampleFrame, granularity: str, *, from_power: bool) -> pd.DataFrame:
    """
    Per-bucket sums and stats, ordered by the earliest start in each bucket.

    from_power=True: values are kW and energy = kW * interval_min / 60.
    from_power=False: values are already kWh.
    """
    d = df[df["value"].notna()]
    if d.empty:
        return pd.DataFrame()
    idx = pd.DatetimeIndex(d.index)
    values = d["value"].to_numpy(dtype=float)

    if from_power:
        energy = values * d["interval_min"].to_numpy(dtype=float) / 60.0
        power = values
    else:
        energy = values
        power = np.full(len(values), np.nan)

    flag = d["off_peak"].astype("boolean")
    flagged = flag.notna().to_numpy(dtype=bool)
    is_off = flag.fillna(False).to_numpy(dtype=bool)

    s = pd.DataFrame(
        {
            "key": _LABELS[granularity](idx),
            "t": idx,
            "energy": energy,
            "peak": np.where(flagged & ~is_off, energy, 0.0),
            "off": np.where(flagged & is_off, energy, 0.0),
            "power": power,
            "flagged": flagged,
            "is_off": is_off,
        }
    )
    out = (
        s.groupby("key", sort=False)
        .agg(
            t=("t", "min"),
            energy_kwh=("energy", "sum"),
            peak_energy_kwh=("peak", "sum"),
            off_peak_energy_kwh=("off", "sum"),
            sample_count=("energy", "size"),
            max_power_kw=("power", "max"),
            min_power_kw=("power", "min"),
            avg_power_kw=("power", "mean"),
            any_flag=("flagged", "any"),
            all_off=("is_off", "all"),
        )
        .sort_values("t", kind="stable")
    )
    return out


def _opt(v) -> float | None:
    return None if pd.isna(v) else float(v)


def _to_buckets(out: pd.DataFrame) -> list[AggregateBucket]:
    buckets: list[AggregateBucket] = []
    for key, row in out.iterrows():
        buckets.append(
            {
                "key": str(key),
                "energy_kwh": float(row["energy_kwh"]),
                "peak_energy_kwh": float(row["peak_energy_kwh"]),
                "off_peak_energy_kwh": float(row["off_peak_energy_kwh"]),
                "sample_count": int(row["sample_count"]),
                "max_power_kw": _opt(row["max_power_kw"]),
                "min_power_kw": _opt(row["min_power_kw"]),
                "avg_power_kw": _opt(row["avg_power_kw"]),
                # Mixed hours must not pass as purely cheap
                "off_peak": bool(row["all_off"]) if bool(row["any_flag"]) else None,
            }
        )
    return buckets


def aggregate(df: SampleFrame, granularity: Granularity) -> list[AggregateBucket]:
    """
    Roll power samples (kW) into energy buckets at hour/day/week/month.

    - energy_kwh += value_kw * interval_min / 60
    - peak/off-peak split from each sample's flag; bucket flag is an AND-fold
    - hour keys are the civil hour start with offset (DST hours stay distinct),
      week keys follow ISO 8601 ('YYYY-Www'), day 'YYYY-MM-DD', month 'YYYY-MM'
    - empty input yields []
    """
    _check_granularity(granularity)
    if df.empty:
        return []
    return _to_buckets(_bucket_frame(df, granularity, from_power=True))


def aggregate_energy(df: SampleFrame, granularity: Granularity) -> list[AggregateBucket]:
    """
    Roll energy samples (kWh, e.g. daily consumption) into buckets.

    No duration multiplication is applied; power columns are None.
    """
    _check_granularity(granularity)
    if df.empty:
        return []
    return _to_buckets(_bucket_frame(df, granularity, from_power=False))


def hourly_series(df: SampleFrame) -> list[HourlyPoint]:
    """Annual load-curve view: kWh per civil hour with an AND-folded off-peak flag."""
    points: list[HourlyPoint] = []
    for b in aggregate(df, "hour"):
        start = pd.Timestamp(b["key"])
        points.append(
            {
                "hour": b["key"],
                "date": start.strftime("%Y-%m-%d"),
                "time": start.strftime("%H:%M:%S"),
                "energy_kwh": b["energy_kwh"],
                "off_peak": b["off_peak"] is True,
            }
        )
    return points


def total_energy(buckets: list[AggregateBucket]) -> float:
    return float(sum(cast(float, b["energy_kwh"]) for b in buckets))
