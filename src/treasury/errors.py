"""
Exception hierarchy for the treasury timeline engine.

Callers can catch ``TimelineError`` for anything raised by the engine, or the
narrower classes below to distinguish caller mistakes from store failures.
"""

from __future__ import annotations

from typing import Any


class TimelineError(Exception):
    """Base class for every error raised by the timeline engine."""


class InvalidWindow(TimelineError, ValueError):
    """
    Raised when a requested day window cannot be honoured.

    The controller that rejects the window keeps its previous valid window.

    Attributes:
        start: Requested start offset
        end: Requested end offset
        max_offset: Largest offset available for the current dataset, if known
    """

    def __init__(self, start: int, end: int, *, max_offset: int | None = None, reason: str = ""):
        self.start = start
        self.end = end
        self.max_offset = max_offset
        message = reason or f"invalid window [{start}, {end}]"
        if max_offset is not None:
            message = f"{message} (max offset {max_offset})"
        super().__init__(message)


class SourceError(TimelineError):
    """
    Raised when the transaction source cannot answer a query.

    The original exception, if any, is chained as ``__cause__``.

    Attributes:
        account_id: Account whose data was being read
    """

    def __init__(self, message: str, *, account_id: Any = None):
        self.account_id = account_id
        super().__init__(message)


class NothingToUndo(TimelineError):
    """Raised by undo/redo when the journal has no entry in that direction."""
