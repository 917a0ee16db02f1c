"""Account repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.account import Account


class AccountRepository(Protocol):
    """Read access and metadata edits for accounts.

    Balances are not writable here; the ledger owns them.
    """

    def get_by_id(self, account_id: int) -> Optional[Account]:
        """Retrieve an account by ID."""
        ...

    def list_all(self, *, user_id: int) -> list[Account]:
        """List a user's accounts in display order."""
        ...

    def update_metadata(self, account: Account) -> Account:
        """Persist name/type/flag edits, leaving balances untouched."""
        ...

    def delete(self, account_id: int) -> None:
        """Delete an account that nothing references."""
        ...
