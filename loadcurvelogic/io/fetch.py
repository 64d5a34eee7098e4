from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from typing import Awaitable, Callable, Mapping, Optional

import pandas as pd

from ..core import utils
from ..core.config import EngineConfig, default_config
from ..core.exceptions import FetchCancelledError, MalformedTimestampError, NoDataRetrievedError, require
from ..core.normalize import normalize
from ..core.types import RawSample
from .adapter import from_broker_reading
from .types import ProgressEvent, Provider, Segment, SegmentRows

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]
Sleep = Callable[[float], Awaitable[None]]


def period_window(tz: str, today: Optional[date] = None, days: int = 365) -> tuple[pd.Timestamp, pd.Timestamp]:
    """
    The fetch window ending at the end of yesterday in tz.

    Covers `days` calendar days: start of (yesterday - days + 1) to the last
    millisecond of yesterday.
    """
    require(days > 0, "days must be > 0")
    if today is None:
        today = pd.Timestamp.now(tz=tz).date()
    last = today - timedelta(days=1)
    first = last - timedelta(days=days - 1)
    return utils.start_of_day(first, tz), utils.end_of_day(last, tz)


def plan_segments(start: date | pd.Timestamp, end: date | pd.Timestamp, max_days: int = 7) -> list[Segment]:
    """Consecutive inclusive day ranges of at most max_days covering [start, end]."""
    require(max_days > 0, "max_days must be > 0")
    first = start.date() if isinstance(start, pd.Timestamp) else start
    last = end.date() if isinstance(end, pd.Timestamp) else end
    segments: list[Segment] = []
    cur = first
    while cur <= last:
        seg_end = min(cur + timedelta(days=max_days - 1), last)
        segments.append(Segment(start=cur, end=seg_end))
        cur = seg_end + timedelta(days=1)
    return segments


def _as_sample(row: RawSample | Mapping) -> RawSample:
    return row if isinstance(row, RawSample) else from_broker_reading(row)


def _segment_samples(rows: SegmentRows) -> list[tuple[tuple[str, int], RawSample]]:
    """
    Adapt one segment's rows, keyed by (end text, occurrence within the segment).

    A wall-clock stamp seen twice in one segment (autumn DST change) is two
    readings; the same key from a later segment is an edge repeat.
    """
    seen: dict[str, int] = {}
    out: list[tuple[tuple[str, int], RawSample]] = []
    for row in rows:
        sample = _as_sample(row)
        n = seen.get(sample.end_timestamp, 0)
        seen[sample.end_timestamp] = n + 1
        out.append(((sample.end_timestamp, n), sample))
    return out


def _in_window(sample: RawSample, start: pd.Timestamp, end: pd.Timestamp, tz: str) -> bool:
    """Interval start inside [start, end]; unparseable stamps are left out."""
    try:
        n = normalize(sample, tz)
    except MalformedTimestampError as err:
        logger.debug("Dropping fetched reading: %s", err)
        return False
    return start <= n.start <= end


def _check_cancel(cancel: Optional[asyncio.Event], meter_id: str, done: int, total: int) -> None:
    if cancel is not None and cancel.is_set():
        logger.info("Fetch for %s cancelled after %d of %d segment(s)", meter_id, done, total)
        raise FetchCancelledError(f"Fetch cancelled after {done} of {total} segment(s)")


async def fetch_year(
    meter_id: str,
    provider: Provider,
    *,
    config: Optional[EngineConfig] = None,
    today: Optional[date] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel: Optional[asyncio.Event] = None,
    sleep: Sleep = asyncio.sleep,
) -> list[RawSample]:
    """
    Fetch a year of readings in bounded segments, sequentially.

    A failing segment (broker error or unusable payload) is logged and skipped;
    callers get whatever the other segments returned, clipped to the period
    window. A reading repeated on a segment edge keeps the last copy; repeated
    wall-clock stamps inside one segment are all kept. Raises
    NoDataRetrievedError when no segment succeeded and FetchCancelledError
    when `cancel` is set between segments.
    """
    cfg = config or default_config()
    start, end = period_window(cfg.tz, today=today, days=cfg.window_days)
    segments = plan_segments(start, end, cfg.segment_days)
    total = len(segments)

    readings: dict[tuple[str, int], RawSample] = {}
    succeeded = 0

    for i, seg in enumerate(segments):
        _check_cancel(cancel, meter_id, i, total)
        if i > 0 and cfg.pause_seconds > 0:
            await sleep(cfg.pause_seconds)
            _check_cancel(cancel, meter_id, i, total)

        try:
            rows = await provider.fetch_segment(meter_id, seg)
            batch = _segment_samples(rows)
        except asyncio.CancelledError:
            raise
        except Exception as err:  # broker failures are per segment
            logger.warning("Segment %s..%s failed for %s: %s", seg.start, seg.end, meter_id, err)
        else:
            succeeded += 1
            readings.update(batch)
            logger.debug("Segment %s..%s: %d reading(s)", seg.start, seg.end, len(batch))

        # strictly increasing as long as there are at most 100 segments
        pct = (i + 1) * 100 // total
        if on_progress is not None:
            on_progress(ProgressEvent(percent=pct, stage_label=f"Segment {i + 1}/{total} ({seg.start} → {seg.end})"))

    if succeeded == 0:
        raise NoDataRetrievedError(f"No data retrieved for {meter_id}: all {total} segment(s) failed")
    if succeeded < total:
        logger.warning("Partial fetch for %s: %d of %d segment(s) succeeded", meter_id, succeeded, total)

    out = [s for s in readings.values() if _in_window(s, start, end, cfg.tz)]
    if len(out) < len(readings):
        logger.debug("Dropped %d reading(s) outside %s..%s", len(readings) - len(out), start, end)
    return out
