from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Iterator, Optional

import numpy as np
import pandas as pd

from . import canon, utils
from .config import EngineConfig
from .exceptions import MalformedTimestampError
from .types import NormalizedSample, RawSample, SampleFrame

logger = logging.getLogger(__name__)


def parse_end_timestamp(text: str, tz: str = canon.DEFAULT_TZ) -> pd.Timestamp:
    """
    Parse a broker end-of-interval timestamp in the civil tz.

    Tries the broker's explicit 'YYYY-MM-DD HH:MM:SS' first, then any ISO-8601
    form. Offset-aware inputs are converted to tz; naive ones are localised.
    """
    if not isinstance(text, str) or not text.strip():
        raise MalformedTimestampError(f"Empty or non-string timestamp: {text!r}")
    s = text.strip()
    try:
        return utils.to_civil(pd.Timestamp(datetime.strptime(s, canon.BROKER_TS_FORMAT)), tz)
    except ValueError:
        pass
    # pandas also reads words such as 'now' or 'today'
    if not s[0].isdigit():
        raise MalformedTimestampError(f"Unparseable timestamp: {text!r}")
    try:
        ts = pd.Timestamp(s)
    except (TypeError, ValueError) as err:
        raise MalformedTimestampError(f"Unparseable timestamp: {text!r}") from err
    if pd.isna(ts):
        raise MalformedTimestampError(f"Unparseable timestamp: {text!r}")
    return utils.to_civil(ts, tz)


def normalize(
    sample: RawSample,
    tz: str = canon.DEFAULT_TZ,
    *,
    default_interval_min: int = canon.DEFAULT_INTERVAL_MIN,
) -> NormalizedSample:
    """End-of-interval reading → {start, end, value} in the civil tz."""
    end = parse_end_timestamp(sample.end_timestamp, tz)
    step = int(sample.interval_min or default_interval_min)
    start = end - pd.Timedelta(minutes=step)
    return NormalizedSample(
        start=start,
        end=end,
        value=sample.value,
        interval_min=step,
        off_peak=sample.off_peak,
    )


def normalize_frame(
    samples: Iterable[RawSample],
    tz: str = canon.DEFAULT_TZ,
    *,
    default_interval_min: int = canon.DEFAULT_INTERVAL_MIN,
) -> SampleFrame:
    """Normalize many samples; malformed timestamps are skipped, not fatal."""
    starts, ends, values, steps, flags = [], [], [], [], []
    skipped = 0
    for s in samples:
        try:
            n = normalize(s, tz, default_interval_min=default_interval_min)
        except MalformedTimestampError as err:
            skipped += 1
            logger.debug("Skipping sample: %s", err)
            continue
        starts.append(n.start)
        ends.append(n.end)
        values.append(n.value)
        steps.append(n.interval_min)
        flags.append(n.off_peak)
    if skipped:
        logger.warning("Dropped %d sample(s) with malformed timestamps", skipped)
    return utils.build_sample_frame(starts, ends, values, steps, flags, tz=tz)


def default_cutoff(tz: str = canon.DEFAULT_TZ, now: Optional[datetime] = None, lag_days: int = 1) -> pd.Timestamp:
    """End of the day `lag_days` before today, in the civil tz (end of yesterday by default)."""
    ref = utils.to_civil(pd.Timestamp(now) if now is not None else pd.Timestamp.now(tz="UTC"), tz)
    return utils.end_of_day(ref.date() - timedelta(days=lag_days), tz)


def filter_valid(
    samples: Iterable[RawSample] | SampleFrame,
    cutoff: Optional[datetime] = None,
    *,
    tz: str = canon.DEFAULT_TZ,
    now: Optional[datetime] = None,
    config: Optional[EngineConfig] = None,
) -> SampleFrame:
    """
    Keep samples with a usable value whose start is not after the cutoff.

    - Accepts raw samples or an already normalized SampleFrame (idempotent).
    - Drops null/NaN/infinite/negative values and malformed timestamps.
    - Never raises on all-invalid input: returns an empty SampleFrame.
    - A config, when given, supplies tz, cutoff lag and default interval.
    """
    lag_days, step = 1, canon.DEFAULT_INTERVAL_MIN
    if config is not None:
        tz, lag_days, step = config.tz, config.cutoff_lag_days, config.default_interval_min

    if isinstance(samples, pd.DataFrame):
        missing = [c for c in canon.REQUIRED_COLS if c not in samples.columns]
        if missing:
            raise ValueError(f"Sample frame missing columns: {missing}")
        frame = samples if len(samples) else utils.empty_sample_frame(tz)
        frame = utils.ensure_tz_aware_index(frame, tz)
    else:
        frame = normalize_frame(samples, tz, default_interval_min=step)

    limit = default_cutoff(tz, now, lag_days) if cutoff is None else utils.to_civil(pd.Timestamp(cutoff), tz)

    if frame.empty:
        return utils.empty_sample_frame(tz)

    values = frame["value"].to_numpy(dtype=float)
    with np.errstate(invalid="ignore"):
        usable = np.isfinite(values) & (values >= 0)
    in_window = np.asarray(pd.DatetimeIndex(frame.index) <= limit)

    out = frame.loc[usable & in_window].copy()
    dropped = len(frame) - len(out)
    if dropped:
        logger.debug("filter_valid dropped %d of %d sample(s)", dropped, len(frame))
    if out.empty:
        return utils.empty_sample_frame(tz)
    return utils.as_sample_frame(out.sort_index(kind="stable"))


def iter_samples(frame: SampleFrame) -> Iterator[NormalizedSample]:
    """Yield NormalizedSample records back out of a SampleFrame."""
    for start, row in zip(frame.index, frame.itertuples(index=False)):
        flag = row.off_peak
        yield NormalizedSample(
            start=start,
            end=row.t_end,
            value=None if pd.isna(row.value) else float(row.value),
            interval_min=int(row.interval_min),
            off_peak=None if pd.isna(flag) else bool(flag),
        )
