"""Asset repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.asset import Asset


class AssetRepository(Protocol):
    """Repository for managing asset entities."""

    def get_by_id(self, asset_id: int) -> Optional[Asset]:
        """Retrieve an asset by ID."""
        ...

    def get_by_symbol(self, symbol: str, *, user_id: int) -> Optional[Asset]:
        """Retrieve a user's asset by ticker symbol."""
        ...

    def list_all(self, *, user_id: int) -> list[Asset]:
        """List a user's assets."""
        ...

    def create(self, asset: Asset) -> Asset:
        """Create a new asset."""
        ...

    def update(self, asset: Asset) -> Asset:
        """Update an existing asset."""
        ...

    def delete(self, asset_id: int) -> None:
        """Delete an asset by ID."""
        ...
