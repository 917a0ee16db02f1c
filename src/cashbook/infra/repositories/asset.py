"""SQLModel implementation of Asset repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import select

from ...models.asset import Asset
from ..database import SessionFactory


class SQLModelAssetRepository:
    """SQLModel-based asset repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, asset_id: int) -> Optional[Asset]:
        with self.session_factory() as session:
            return session.get(Asset, asset_id)

    def get_by_symbol(self, symbol: str, *, user_id: int) -> Optional[Asset]:
        with self.session_factory() as session:
            statement = (
                select(Asset)
                .where(Asset.user_id == user_id)
                .where(Asset.symbol == symbol.upper())
            )
            return session.exec(statement).first()

    def list_all(self, *, user_id: int) -> list[Asset]:
        with self.session_factory() as session:
            statement = select(Asset).where(Asset.user_id == user_id).order_by(Asset.symbol)  # type: ignore
            return list(session.exec(statement).all())

    def create(self, asset: Asset) -> Asset:
        with self.session_factory() as session:
            asset.symbol = asset.symbol.upper()
            session.add(asset)
            session.commit()
            session.refresh(asset)
            return asset

    def update(self, asset: Asset) -> Asset:
        with self.session_factory() as session:
            merged = session.merge(asset)
            session.commit()
            session.refresh(merged)
            return merged

    def delete(self, asset_id: int) -> None:
        with self.session_factory() as session:
            asset = session.get(Asset, asset_id)
            if asset:
                session.delete(asset)
                session.commit()


__all__ = ["SQLModelAssetRepository"]
