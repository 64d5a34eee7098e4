from __future__ import annotations

import re
from typing import Iterable

import numpy as np
import pandas as pd

from ..core import utils
from ..core.types import SampleFrame
from .types import OffPeakWindow

# "22H00-06H00", "12h30-14h30", "22:00-06:00"
_WINDOW_RE = re.compile(r"(\d{1,2})\s*[Hh:]\s*(\d{2})\s*-\s*(\d{1,2})\s*[Hh:]\s*(\d{2})")


def parse_offpeak_windows(text: str | None) -> list[OffPeakWindow]:
    """
    Extract HC windows from a contract string such as 'HC (22H00-6H00;12H30-14H30)'.

    Unrecognised text yields no windows.
    """
    if not text:
        return []
    out: list[OffPeakWindow] = []
    for h1, m1, h2, m2 in _WINDOW_RE.findall(text):
        out.append(OffPeakWindow(start=f"{int(h1):02d}:{m1}", end=f"{int(h2):02d}:{m2}"))
    return out


def offpeak_mask(idx: pd.DatetimeIndex, windows: Iterable[OffPeakWindow]) -> np.ndarray:
    """True where the local time of idx falls inside any [start, end) window (wrap-around aware)."""
    times = utils.local_time_series(idx)
    mask = np.zeros(len(idx), dtype=bool)
    for w in windows:
        start = utils.parse_time_str(w.start)
        end = utils.parse_time_str(w.end)
        if start == end:
            continue
        mask |= utils.time_in_range(times, start, end).to_numpy(dtype=bool)
    return mask


def flag_off_peak(
    df: SampleFrame,
    windows: Iterable[OffPeakWindow],
    *,
    overwrite: bool = False,
) -> SampleFrame:
    """
    Classify samples as off-peak by the time-of-day of their *start*.

    Existing flags are kept unless overwrite=True. With no known windows every
    unflagged sample is peak.
    """
    out = df.copy()
    if out.empty:
        return utils.as_sample_frame(out)
    computed = pd.array(offpeak_mask(pd.DatetimeIndex(out.index), list(windows)), dtype="boolean")
    current = out["off_peak"].astype("boolean")
    if overwrite:
        out["off_peak"] = computed
    else:
        out["off_peak"] = current.where(current.notna(), pd.Series(computed, index=out.index))
    return utils.as_sample_frame(out)
