from __future__ import annotations

import logging
from typing import Callable, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..core import utils
from ..core.config import EngineConfig, default_config
from ..core.exceptions import MalformedTimestampError
from ..core.normalize import normalize
from ..core.types import NormalizedSample, RawSample, SampleFrame
from . import aggregate as agg
from .types import HpHcMonthly, HpHcSplit, HpHcTotals, HpHcWeekly, SourceTier, WeeklySplit

logger = logging.getLogger(__name__)

SplitObserver = Callable[[HpHcSplit], None]


def _split(peak: float, off_peak: float, total: float, tier: SourceTier) -> HpHcSplit:
    return HpHcSplit(
        peak_kwh=float(peak),
        off_peak_kwh=float(off_peak),
        peak_pct=utils.safe_pct(peak, total),
        off_peak_pct=utils.safe_pct(off_peak, total),
        source_tier=tier,
    )


def _as_totals(v: HpHcTotals | Mapping | None) -> Optional[HpHcTotals]:
    if v is None:
        return None
    return v if isinstance(v, HpHcTotals) else HpHcTotals.model_validate(v)


def _as_monthly(rows: Sequence[HpHcMonthly | Mapping] | None) -> list[HpHcMonthly]:
    if not rows:
        return []
    return [r if isinstance(r, HpHcMonthly) else HpHcMonthly.model_validate(r) for r in rows]


def _as_weekly(rows: Sequence[HpHcWeekly | Mapping] | None) -> list[HpHcWeekly]:
    if not rows:
        return []
    return [r if isinstance(r, HpHcWeekly) else HpHcWeekly.model_validate(r) for r in rows]


def split_by_week(rows: Sequence[HpHcWeekly | Mapping] | None) -> list[WeeklySplit]:
    """Per-week HP/HC shares from a precomputed weekly view, ordered by week."""
    out: list[WeeklySplit] = []
    for w in sorted(_as_weekly(rows), key=lambda w: w.week):
        total = w.peak_kwh + w.off_peak_kwh
        out.append(
            {
                "week": w.week,
                "peak_kwh": float(w.peak_kwh),
                "off_peak_kwh": float(w.off_peak_kwh),
                "peak_pct": utils.safe_pct(w.peak_kwh, total),
                "off_peak_pct": utils.safe_pct(w.off_peak_kwh, total),
            }
        )
    return out


def _usable(sample: RawSample) -> bool:
    return (
        utils.is_valid_number(sample.value)
        and float(sample.value) >= 0  # type: ignore[arg-type]
        and isinstance(sample.off_peak, bool)
    )


def _fold(frame: SampleFrame) -> tuple[float, float, int]:
    peak = off = 0.0
    valid = 0
    for b in agg.aggregate(frame, "month"):
        peak += b["peak_energy_kwh"]
        off += b["off_peak_energy_kwh"]
        valid += b["sample_count"]
    return peak, off, valid


def split_from_raw(
    samples: Iterable[RawSample] | SampleFrame,
    *,
    tz: str,
    batch_size: int = 1000,
) -> tuple[float, float, int]:
    """
    Recompute (peak_kwh, off_peak_kwh, valid_points) from load-curve samples.

    Works in fixed-size batches through the aggregator; unusable samples
    (non-numeric, negative, unflagged, malformed timestamp) are skipped.
    """
    peak = off = 0.0
    valid = 0

    if isinstance(samples, pd.DataFrame):
        values = samples["value"].to_numpy(dtype=float)
        with np.errstate(invalid="ignore"):
            keep = np.isfinite(values) & (values >= 0) & samples["off_peak"].notna().to_numpy(dtype=bool)
        frame = samples.loc[keep]
        for i in range(0, len(frame), batch_size):
            p, o, v = _fold(utils.as_sample_frame(frame.iloc[i : i + batch_size].copy()))
            peak, off, valid = peak + p, off + o, valid + v
        return peak, off, valid

    batch: list[NormalizedSample] = []

    def _flush() -> None:
        nonlocal peak, off, valid
        frame = utils.build_sample_frame(
            [n.start for n in batch],
            [n.end for n in batch],
            [n.value for n in batch],
            [n.interval_min for n in batch],
            [n.off_peak for n in batch],
            tz=tz,
        )
        p, o, v = _fold(frame)
        peak, off, valid = peak + p, off + o, valid + v
        batch.clear()

    for s in samples:
        if not _usable(s):
            continue
        try:
            batch.append(normalize(s, tz))
        except MalformedTimestampError as err:
            logger.debug("Skipping raw sample: %s", err)
            continue
        if len(batch) >= batch_size:
            _flush()
    if batch:
        _flush()
    return peak, off, valid


def resolve_split(
    *,
    precomputed_total: HpHcTotals | Mapping | None = None,
    precomputed_monthly: Sequence[HpHcMonthly | Mapping] | None = None,
    raw_samples: Sequence[RawSample] | SampleFrame | None = None,
    total_consumption_kwh: float | None = None,
    config: EngineConfig | None = None,
    on_resolved: SplitObserver | None = None,
) -> HpHcSplit:
    """
    Pick the HP/HC split from the first available source, never blending tiers.

    1. PRECOMPUTED_TOTAL   - totals view with total_kwh > 0
    2. PRECOMPUTED_MONTHLY - sum of the monthly view
    3. COMPUTED_FROM_RAW   - recomputed from flagged load-curve samples
    4. HEURISTIC_FALLBACK  - total consumption split by a fixed ratio (low confidence)

    Missing sources are expected; this never raises for absent tiers.
    """
    cfg = config or default_config()

    split = _resolve(cfg, precomputed_total, precomputed_monthly, raw_samples, total_consumption_kwh)
    logger.debug(
        "HP/HC resolved via %s: HP=%.2f kWh (%.1f%%) HC=%.2f kWh (%.1f%%)",
        split.source_tier.value,
        split.peak_kwh,
        split.peak_pct,
        split.off_peak_kwh,
        split.off_peak_pct,
    )
    if on_resolved is not None:
        on_resolved(split)
    return split


def _resolve(
    cfg: EngineConfig,
    precomputed_total,
    precomputed_monthly,
    raw_samples,
    total_consumption_kwh,
) -> HpHcSplit:
    totals = _as_totals(precomputed_total)
    if totals is not None and (totals.total_kwh or 0.0) > 0:
        return _split(
            totals.peak_kwh,
            totals.off_peak_kwh,
            float(totals.total_kwh or 0.0),
            SourceTier.PRECOMPUTED_TOTAL,
        )

    monthly = _as_monthly(precomputed_monthly)
    if monthly:
        peak = sum(m.peak_kwh for m in monthly)
        off = sum(m.off_peak_kwh for m in monthly)
        return _split(peak, off, peak + off, SourceTier.PRECOMPUTED_MONTHLY)

    if raw_samples is not None and len(raw_samples) > 0:
        peak, off, valid = split_from_raw(raw_samples, tz=cfg.tz, batch_size=cfg.batch_size)
        if valid > 0 and peak + off > 0:
            return _split(peak, off, peak + off, SourceTier.COMPUTED_FROM_RAW)
        logger.warning(
            "Load curve unusable for HP/HC (%d valid of %d points); using heuristic split",
            valid,
            len(raw_samples),
        )

    total = float(total_consumption_kwh) if utils.is_valid_number(total_consumption_kwh) else 0.0
    total = max(total, 0.0)
    peak = total * cfg.heuristic_peak_ratio
    off = total - peak
    return _split(peak, off, total, SourceTier.HEURISTIC_FALLBACK)
