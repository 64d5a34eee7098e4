from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Iterable, Literal, Mapping, Optional

import pandas as pd

from ..core import canon, utils
from ..core.types import RawSample
from ..analytics.types import OffPeakWindow
from ..core.exceptions import MalformedTimestampError
from ..core.normalize import parse_end_timestamp
from .types import MaxPowerPoint

logger = logging.getLogger(__name__)

PowerUnit = Literal["kW", "W"]

# ISO-8601 durations as sent in interval_length, e.g. "PT30M", "PT1H", "PT10M"
_DURATION_RE = re.compile(r"^P(?:T(?:(\d+)H)?(?:(\d+)M)?)$", re.IGNORECASE)

_TRUE = {"true", "1", "yes", "hc", "off_peak", "offpeak"}
_FALSE = {"false", "0", "no", "hp", "peak"}

# max-power readings above this are W, not kW
_MAX_POWER_KW = 100.0


def parse_interval(v) -> int:
    """Interval length in minutes from an int, a numeric string or an ISO duration."""
    if v is None or isinstance(v, bool):
        return canon.DEFAULT_INTERVAL_MIN
    if isinstance(v, (int, float)):
        return int(v) if v > 0 else canon.DEFAULT_INTERVAL_MIN
    s = str(v).strip()
    if s.isdigit():
        return int(s) if int(s) > 0 else canon.DEFAULT_INTERVAL_MIN
    m = _DURATION_RE.match(s)
    if m and (m.group(1) or m.group(2)):
        minutes = int(m.group(1) or 0) * 60 + int(m.group(2) or 0)
        if minutes > 0:
            return minutes
    logger.debug("Unrecognised interval length %r; assuming %d min", v, canon.DEFAULT_INTERVAL_MIN)
    return canon.DEFAULT_INTERVAL_MIN


def _first(row: Mapping, names: Iterable[str]):
    for n in names:
        if n in row and row[n] is not None:
            return row[n]
    return None


def _to_flag(v) -> Optional[bool]:
    if v is None:
        return None
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    return None


def _to_value(v, *, scale: float) -> Optional[float]:
    if not utils.is_valid_number(v):
        if v is not None:
            logger.debug("Non-numeric reading %r treated as missing", v)
        return None
    return float(v) * scale


def _end_as_text(v) -> str:
    if isinstance(v, (datetime, pd.Timestamp)):
        return pd.Timestamp(v).isoformat()
    return str(v)


def _window_flag(end_text: str, step: int, windows: list[OffPeakWindow]) -> Optional[bool]:
    """Off-peak by the time-of-day of the interval *start*; None when unparseable."""
    try:
        end = pd.Timestamp(datetime.strptime(end_text.strip(), canon.BROKER_TS_FORMAT))
    except ValueError:
        end = pd.Timestamp(end_text)
        if pd.isna(end):
            return None
    start = (end - pd.Timedelta(minutes=step)).time()
    times = pd.Series([start])
    for w in windows:
        a, b = utils.parse_time_str(w.start), utils.parse_time_str(w.end)
        if a != b and bool(utils.time_in_range(times, a, b).iloc[0]):
            return True
    return False


def from_broker_reading(
    row: Mapping,
    *,
    unit: PowerUnit = "W",
    windows: Optional[Iterable[OffPeakWindow]] = None,
) -> RawSample:
    """
    Map one loosely shaped load-curve row onto a RawSample.

    - end timestamp from 'date_time', 'end_timestamp' or 'date'
    - interval from 'interval_length' / 'interval_min' (int or 'PT30M')
    - value in W is converted to kW
    - off-peak from an explicit flag, else from the contract windows when given
    """
    end = _first(row, canon.COMMON_END_NAMES)
    step = parse_interval(_first(row, ("interval_length", "interval_min", "interval")))
    scale = 1 / 1000 if unit == "W" else 1.0
    value = _to_value(row.get("value"), scale=scale)
    end_text = "" if end is None else _end_as_text(end)

    flag = _to_flag(_first(row, canon.COMMON_FLAG_NAMES))
    if flag is None and windows is not None and end_text:
        try:
            flag = _window_flag(end_text, step, list(windows))
        except ValueError as err:
            logger.debug("Cannot classify %r against windows: %s", end_text, err)

    return RawSample(end_timestamp=end_text, interval_min=step, value=value, off_peak=flag)


def from_broker_readings(
    rows: Iterable[Mapping],
    *,
    unit: PowerUnit = "W",
    windows: Optional[Iterable[OffPeakWindow]] = None,
) -> list[RawSample]:
    wins = list(windows) if windows is not None else None
    return [from_broker_reading(r, unit=unit, windows=wins) for r in rows]


def from_daily_consumption(rows: Iterable[Mapping], *, unit: Literal["kWh", "Wh"] = "kWh") -> list[RawSample]:
    """
    Daily energy rows {'date': 'YYYY-MM-DD', 'value': kWh} → 1440-min samples.

    Each day ends at the following civil midnight so its start is the day itself.
    """
    scale = 1 / 1000 if unit == "Wh" else 1.0
    out: list[RawSample] = []
    for row in rows:
        d = _first(row, ("date", "day", "date_time"))
        if d is None:
            logger.debug("Daily row without a date skipped: %r", row)
            continue
        try:
            day = pd.Timestamp(str(d)[:10]).date()
        except ValueError as err:
            logger.debug("Daily row with bad date %r skipped: %s", d, err)
            continue
        end = datetime.combine(day + timedelta(days=1), datetime.min.time())
        out.append(
            RawSample(
                end_timestamp=end.strftime(canon.BROKER_TS_FORMAT),
                interval_min=24 * 60,
                value=_to_value(_first(row, ("value", "energy_kwh", "kwh")), scale=scale),
            )
        )
    return out


def from_max_power(
    rows: Iterable[Mapping],
    *,
    tz: str = canon.DEFAULT_TZ,
    window: Optional[tuple[pd.Timestamp, pd.Timestamp]] = None,
) -> list[MaxPowerPoint]:
    """
    Daily max-power rows {'date', 'max_power' | 'value'} → kW points.

    Values above 100 are taken as W and scaled to kW; a missing value is 0.0.
    With a window (see fetch.period_window) rows outside [start, end] are dropped.
    """
    points: list[tuple[pd.Timestamp, MaxPowerPoint]] = []
    for row in rows:
        try:
            ts = parse_end_timestamp(_end_as_text(_first(row, ("date", "date_time"))), tz)
        except MalformedTimestampError as err:
            logger.debug("Max-power row skipped: %s", err)
            continue
        if window is not None and not window[0] <= ts <= window[1]:
            continue
        v = _first(row, ("max_power", "value"))
        kw = float(v) if utils.is_valid_number(v) else 0.0
        if kw > _MAX_POWER_KW:
            kw /= 1000
        points.append((ts, {"date": ts.strftime("%Y-%m-%d"), "timestamp": ts.isoformat(), "max_power_kw": kw}))
    return [p for _, p in sorted(points, key=lambda tp: tp[0])]
