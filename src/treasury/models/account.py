"""Account model carrying opening balances and the mutation generation."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .transaction import Transaction


class Account(SQLModel, table=True):
    __tablename__: ClassVar[str] = "account"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(nullable=False, max_length=128)
    currency: str = Field(default="EUR", max_length=3)

    # Balances before the first transaction, one per settlement state.
    opening_executed: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    opening_in_progress: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)
    opening_planned: Decimal = Field(default=Decimal("0"), max_digits=14, decimal_places=2)

    # Bumped by the repository on every persisted mutation touching this account.
    generation: int = Field(default=0, nullable=False)

    transactions: list["Transaction"] = Relationship(
        back_populates="account",
        sa_relationship=relationship("Transaction", back_populates="account"),
    )
