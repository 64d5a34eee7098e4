"""Core data structures and operations."""

from . import canon, config, exceptions, normalize, types, utils

__all__ = ["canon", "config", "exceptions", "normalize", "types", "utils"]
