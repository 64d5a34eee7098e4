"""Bucketing, aggregation and HP/HC analysis."""

from . import aggregate, hphc, offpeak, summary, weekday

__all__ = ["aggregate", "hphc", "offpeak", "summary", "weekday"]
