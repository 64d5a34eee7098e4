from __future__ import annotations
from typing import Mapping, Optional, Sequence, cast

import pandas as pd

from ..core import canon
from ..core.config import EngineConfig, default_config
from ..core.types import SampleFrame
from . import aggregate, hphc, weekday
from .types import HpHcMonthly, HpHcTotals, HpHcWeekly, SummaryPayload


def summarise(
    df: SampleFrame,
    *,
    config: Optional[EngineConfig] = None,
    precomputed_total: HpHcTotals | Mapping | None = None,
    precomputed_monthly: Sequence[HpHcMonthly | Mapping] | None = None,
    precomputed_weekly: Sequence[HpHcWeekly | Mapping] | None = None,
) -> SummaryPayload:
    """
    Chart-ready payload for a filtered load curve (kW samples).

    The HP/HC split prefers the precomputed views when given, then the
    frame's own off-peak flags, then the heuristic ratio on its total energy.
    A weekly view, when given, is passed through as per-week shares.
    """
    cfg = config or default_config()
    idx = pd.DatetimeIndex(df.index)
    start = idx.min() if len(idx) else None
    end = idx.max() if len(idx) else None
    days = int(pd.Series(idx.strftime("%Y-%m-%d")).nunique()) if len(idx) else 0

    buckets = weekday.bucket_by_weekday(df)
    completeness = weekday.audit_completeness(buckets)

    day_buckets = aggregate.aggregate(df, "day")
    week_buckets = aggregate.aggregate(df, "week")
    month_buckets = aggregate.aggregate(df, "month")

    prof = weekday.weekday_hour_profile(df)
    prof = prof.rename(columns={d: canon.WEEKDAY_NAMES[d] for d in canon.WEEKDAYS}).reset_index()
    prof_records: list[dict[str, float | str]] = prof.to_dict(orient="records")  # type: ignore[assignment]

    split = hphc.resolve_split(
        precomputed_total=precomputed_total,
        precomputed_monthly=precomputed_monthly,
        raw_samples=df,
        total_consumption_kwh=aggregate.total_energy(day_buckets),
        config=cfg,
    )

    payload: SummaryPayload = cast(
        SummaryPayload,
        {
            "meta": {
                "tz": cfg.tz,
                "start": start.isoformat() if start is not None else "",
                "end": end.isoformat() if end is not None else "",
                "samples": int(len(df)),
                "days": days,
                "interval_min": sorted(int(v) for v in df["interval_min"].unique()),
            },
            "completeness": [completeness[d] for d in canon.WEEKDAYS],
            "datasets": {
                "days": day_buckets,
                "weeks": week_buckets,
                "months": month_buckets,
                "weekday_profile": prof_records,
                "hphc_weeks": hphc.split_by_week(precomputed_weekly),
            },
            "hphc": {
                "peak_kwh": split.peak_kwh,
                "off_peak_kwh": split.off_peak_kwh,
                "peak_pct": split.peak_pct,
                "off_peak_pct": split.off_peak_pct,
                "source_tier": split.source_tier.value,
                "low_confidence": split.low_confidence,
            },
        },
    )
    return payload
