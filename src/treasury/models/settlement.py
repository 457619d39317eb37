"""Settlement lifecycle of a transaction."""

from __future__ import annotations

from enum import Enum


class SettlementState(str, Enum):
    """Clearing stage of a transaction; exactly one per transaction."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    EXECUTED = "executed"
