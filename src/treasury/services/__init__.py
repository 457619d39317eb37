"""Service module exports."""

from . import cache, debounce, ledger_service, selection, series, timeline, window
from .timeline import TimelineEngine

__all__ = [
    "TimelineEngine",
    "cache",
    "debounce",
    "ledger_service",
    "selection",
    "series",
    "timeline",
    "window",
]
