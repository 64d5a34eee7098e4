from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, field_validator

from . import canon


class RawSample(BaseModel):
    """One end-of-interval reading as delivered by the broker.

    - end_timestamp: civil end of the interval ("2024-01-02 00:00:00" or ISO-8601)
    - interval_min: interval length in minutes
    - value: kW for the load curve, kWh for daily consumption; may be null
    - off_peak: tariff flag when the broker (or a window lookup) provides one
    """

    model_config = ConfigDict(frozen=True)

    end_timestamp: str
    interval_min: int = canon.DEFAULT_INTERVAL_MIN
    value: Optional[float] = None
    off_peak: Optional[bool] = None

    @field_validator("interval_min", mode="before")
    @classmethod
    def _default_interval(cls, v):
        # Broker sometimes sends 0, "" or null here
        try:
            step = int(v)
        except (TypeError, ValueError):
            return canon.DEFAULT_INTERVAL_MIN
        return step if step > 0 else canon.DEFAULT_INTERVAL_MIN


@dataclass(frozen=True)
class NormalizedSample:
    start: pd.Timestamp
    end: pd.Timestamp
    value: Optional[float]
    interval_min: int = canon.DEFAULT_INTERVAL_MIN
    off_peak: Optional[bool] = None


class SampleFrame(pd.DataFrame):
    """
    Vectorised normalized samples.

    Expected:
      - DatetimeIndex named 't_start', tz-aware (civil tz)
      - Columns: ['t_end', 'value', 'interval_min', 'off_peak']
      - 'off_peak' is a nullable boolean
    """

    @property
    def _constructor(self):
        return SampleFrame

    @property
    def t_end(self) -> pd.Series:
        return self["t_end"]

    @property
    def value(self) -> pd.Series:
        return self["value"]

    @property
    def interval_min(self) -> pd.Series:
        return self["interval_min"]

    @property
    def off_peak(self) -> pd.Series:
        return self["off_peak"]
