"""SQLModel definition for ledger transactions."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy import Column, DateTime
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

from .settlement import SettlementState

if TYPE_CHECKING:  # pragma: no cover - import guard for circular dependency
    from .account import Account


class Transaction(SQLModel, table=True):
    """A single ledger transaction, hand-entered or imported."""

    __tablename__: ClassVar[str] = "transaction"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    account_id: uuid.UUID = Field(foreign_key="account.id", nullable=False, index=True)
    # Naive local timestamps; the engine only uses the calendar day.
    settled_at: datetime = Field(sa_column=Column(DateTime(), nullable=False, index=True))
    operated_on: Optional[date] = Field(default=None)
    amount: Decimal = Field(
        max_digits=14,
        decimal_places=2,
        description="Positive for inflow, negative for outflow",
    )
    settlement_state: SettlementState = Field(default=SettlementState.PLANNED, nullable=False)
    memo: str = Field(default="", max_length=255)

    account: "Account | None" = Relationship(
        back_populates="transactions",
        sa_relationship=relationship("Account", back_populates="transactions"),
    )
