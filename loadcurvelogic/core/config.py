from __future__ import annotations

from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from . import canon
from .exceptions import ConfigError, require


@dataclass
class EngineConfig:
    # Civil timezone for every boundary and weekday decision
    tz: str = canon.DEFAULT_TZ
    default_interval_min: int = canon.DEFAULT_INTERVAL_MIN

    # Provider publishes with at least one full day of lag
    cutoff_lag_days: int = 1

    # Segmented fetch
    window_days: int = 365
    segment_days: int = 7
    pause_seconds: float = 0.2

    # HP/HC recompute from raw samples
    batch_size: int = 1000
    heuristic_peak_ratio: float = 0.70  # historical HP share when nothing better exists

    def validate(self) -> "EngineConfig":
        try:
            ZoneInfo(self.tz)
        except (ZoneInfoNotFoundError, ValueError) as err:
            raise ConfigError(f"Unknown timezone {self.tz!r}") from err
        require(self.default_interval_min > 0, "default_interval_min must be > 0", ConfigError)
        require(self.cutoff_lag_days >= 0, "cutoff_lag_days must be >= 0", ConfigError)
        require(self.window_days > 0, "window_days must be > 0", ConfigError)
        require(self.segment_days > 0, "segment_days must be > 0", ConfigError)
        require(self.pause_seconds >= 0, "pause_seconds must be >= 0", ConfigError)
        require(self.batch_size > 0, "batch_size must be > 0", ConfigError)
        require(
            0.0 <= self.heuristic_peak_ratio <= 1.0,
            "heuristic_peak_ratio must be within [0, 1]",
            ConfigError,
        )
        return self


def default_config() -> EngineConfig:
    return EngineConfig()
