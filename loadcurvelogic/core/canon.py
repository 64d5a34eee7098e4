from __future__ import annotations
from typing import Final

INDEX_NAME: Final[str] = "t_start"
REQUIRED_COLS: Final[list[str]] = ["t_end", "value", "interval_min", "off_peak"]
DEFAULT_TZ: Final[str] = "Europe/Paris"
DEFAULT_INTERVAL_MIN: Final[int] = 30

# Broker end-of-interval format, e.g. "2024-01-02 00:00:00"
BROKER_TS_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Completeness sentinel for weekdays without samples
EMPTY_TIME: Final[str] = "—"

GRANULARITIES: Final[tuple[str, ...]] = ("hour", "day", "week", "month")

# ISO weekday (1=Monday..7=Sunday)
WEEKDAYS: Final[tuple[int, ...]] = (1, 2, 3, 4, 5, 6, 7)
WEEKDAY_NAMES: Final[dict[int, str]] = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}

# Keys seen on loosely shaped broker rows
COMMON_END_NAMES = ("date_time", "end_timestamp", "date")
COMMON_FLAG_NAMES = ("is_off_peak", "off_peak", "offpeak")
