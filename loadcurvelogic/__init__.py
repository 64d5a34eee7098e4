from . import (
    core,
    analytics,
    io,
)
from .core import canon, config, exceptions, normalize, types, utils
from .analytics import aggregate, hphc, offpeak, summary, weekday
from .io import adapter, fetch

__all__ = [
    "core",
    "analytics",
    "io",
    "canon",
    "config",
    "exceptions",
    "normalize",
    "types",
    "utils",
    "aggregate",
    "hphc",
    "offpeak",
    "summary",
    "weekday",
    "adapter",
    "fetch",
]
