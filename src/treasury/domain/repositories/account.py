"""Account repository protocol."""

from __future__ import annotations

import uuid
from typing import Optional, Protocol

from ...models.account import Account


class AccountRepository(Protocol):
    """Repository for managing account entities."""

    def get_by_id(self, account_id: uuid.UUID) -> Optional[Account]:
        """Retrieve an account by ID."""
        ...

    def list_all(self) -> list[Account]:
        """List all accounts ordered by name."""
        ...

    def create(self, account: Account) -> Account:
        """Create a new account."""
        ...

    def update(self, account: Account) -> Account:
        """Update an account; opening balance changes bump its generation."""
        ...

    def delete(self, account_id: uuid.UUID) -> None:
        """Delete an account and its transactions."""
        ...
