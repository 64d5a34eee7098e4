from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Protocol, Sequence, TypedDict, Union

from ..core.types import RawSample

SegmentRows = Sequence[Union[RawSample, Mapping]]


@dataclass(frozen=True)
class Segment:
    """Inclusive calendar-day range requested from the broker in one call."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class ProgressEvent:
    percent: int  # 0-100
    stage_label: str


class Provider(Protocol):
    """Broker client returning the readings of one segment."""

    async def fetch_segment(self, meter_id: str, segment: Segment) -> SegmentRows: ...


class MaxPowerPoint(TypedDict):
    date: str  # civil day, YYYY-MM-DD
    timestamp: str  # ISO instant of the daily peak
    max_power_kw: float
