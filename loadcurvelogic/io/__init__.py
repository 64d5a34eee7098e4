"""Broker-facing adapters and the segmented fetch driver."""

from . import adapter, fetch, types

__all__ = ["adapter", "fetch", "types"]
