from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TypedDict, Literal, Mapping, Optional, List, Dict

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

Granularity = Literal["hour", "day", "week", "month"]


###
### WEEKDAY / COMPLETENESS
###


class CompletenessRecord(TypedDict):
    weekday: int  # ISO 1=Monday..7=Sunday
    count: int
    min_time: str  # "HH:MM" of earliest start, or "—"
    max_time: str  # "HH:MM" of latest start, or "—"


###
### AGGREGATION
###


class AggregateBucket(TypedDict):
    key: str
    energy_kwh: float
    peak_energy_kwh: float
    off_peak_energy_kwh: float
    sample_count: int
    max_power_kw: Optional[float]
    min_power_kw: Optional[float]
    avg_power_kw: Optional[float]
    off_peak: Optional[bool]  # AND-fold; None when no sample carries a flag


class HourlyPoint(TypedDict):
    hour: str  # civil hour start, ISO with offset
    date: str
    time: str
    energy_kwh: float
    off_peak: bool


###
### HP/HC
###


class SourceTier(str, Enum):
    PRECOMPUTED_TOTAL = "PRECOMPUTED_TOTAL"
    PRECOMPUTED_MONTHLY = "PRECOMPUTED_MONTHLY"
    COMPUTED_FROM_RAW = "COMPUTED_FROM_RAW"
    HEURISTIC_FALLBACK = "HEURISTIC_FALLBACK"


@dataclass(frozen=True)
class HpHcSplit:
    peak_kwh: float
    off_peak_kwh: float
    peak_pct: float
    off_peak_pct: float
    source_tier: SourceTier

    @property
    def total_kwh(self) -> float:
        return self.peak_kwh + self.off_peak_kwh

    @property
    def low_confidence(self) -> bool:
        return self.source_tier is SourceTier.HEURISTIC_FALLBACK


_TOTAL_KEYS = ("total_kwh", "totalKwh", "kwh_total", "total")
_PEAK_KEYS = ("peak_kwh", "peakKwh", "hp_kwh", "kwh_hp", "hp")
_OFF_PEAK_KEYS = ("off_peak_kwh", "offPeakKwh", "hc_kwh", "kwh_hc", "hc")
_FIGURE_KEYS = frozenset(_TOTAL_KEYS + _PEAK_KEYS + _OFF_PEAK_KEYS)


class _HpHcFigures(BaseModel):
    """Pre-aggregated HP/HC figures; tolerant to the view column spellings."""

    total_kwh: Optional[float] = Field(default=None, validation_alias=AliasChoices(*_TOTAL_KEYS))
    peak_kwh: float = Field(default=0.0, validation_alias=AliasChoices(*_PEAK_KEYS))
    off_peak_kwh: float = Field(default=0.0, validation_alias=AliasChoices(*_OFF_PEAK_KEYS))

    @model_validator(mode="before")
    @classmethod
    def _warn_unrecognised(cls, data):
        if isinstance(data, Mapping) and not _FIGURE_KEYS.intersection(data):
            logger.warning("%s row has no recognised HP/HC figures: %s", cls.__name__, sorted(map(str, data)))
        return data

    @field_validator("peak_kwh", "off_peak_kwh", mode="before")
    @classmethod
    def _null_is_zero(cls, v):
        return 0.0 if v is None else v

    @model_validator(mode="after")
    def _default_total(self):
        if self.total_kwh is None:
            self.total_kwh = self.peak_kwh + self.off_peak_kwh
        return self


class HpHcTotals(_HpHcFigures):
    """Whole-period totals view."""


class HpHcMonthly(_HpHcFigures):
    """One month of a monthly view."""

    month: str  # YYYY-MM

    @field_validator("month", mode="before")
    @classmethod
    def _month_prefix(cls, v):
        # views return 'YYYY-MM-01' or a date
        return str(v)[:7]


class HpHcWeekly(_HpHcFigures):
    """One ISO week of a weekly view."""

    week: str


###
### OFF-PEAK WINDOWS
###


@dataclass(frozen=True)
class OffPeakWindow:
    start: str  # "HH:MM"
    end: str  # "HH:MM"; may wrap past midnight


###
### SUMMARY
###


class SummaryMeta(TypedDict):
    tz: str
    start: str
    end: str
    samples: int
    days: int
    interval_min: List[int]


class SummaryDatasets(TypedDict, total=False):
    days: List[AggregateBucket]
    weeks: List[AggregateBucket]
    months: List[AggregateBucket]
    weekday_profile: List[Dict[str, float | str]]
    hphc_weeks: List[WeeklySplit]


class SummarySplit(TypedDict):
    peak_kwh: float
    off_peak_kwh: float
    peak_pct: float
    off_peak_pct: float
    source_tier: str
    low_confidence: bool


class WeeklySplit(TypedDict):
    week: str
    peak_kwh: float
    off_peak_kwh: float
    peak_pct: float
    off_peak_pct: float


class SummaryPayload(TypedDict, total=False):
    meta: SummaryMeta
    completeness: List[CompletenessRecord]
    datasets: SummaryDatasets
    hphc: SummarySplit
