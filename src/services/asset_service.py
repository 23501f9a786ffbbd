from __future__ import annotations

import logging
from datetime import date
from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from db.db import atomic
from db.repositories import AssetDividendRepository, AssetPriceRepository, AssetRepository
from domain.asset import Asset
from domain.errors import ReferentialError
from domain.pricing import PriceHistory, PriceQuote

from .base import LedgerServiceBase

logger = logging.getLogger(__name__)


class AssetService(LedgerServiceBase):
    """Asset lookup and price/dividend history on behalf of a principal.

    Global assets are readable by everyone and writable by nobody here;
    they are maintained through the command line loader.
    """

    def search_assets(self, principal: UUID | None, prefix: str) -> list[Asset]:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            return AssetRepository(session).search(prefix, principal, limit=self._settings.asset_search_limit)

    def list_assets(self, principal: UUID | None) -> list[Asset]:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            return AssetRepository(session).list_by_owner(principal)

    def get_asset(self, principal: UUID | None, asset_id: UUID) -> Asset:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            asset = self._visible_asset(session, principal, asset_id)
        return asset

    def create_asset(self, principal: UUID | None, asset: Asset) -> Asset:
        principal = self._require_principal(principal)
        self._access.require(self._access.authorize_asset(principal, asset), action="creation of a shared asset")
        with self._session_factory() as session, atomic(session):
            created = AssetRepository(session).create(asset)
        logger.info("Created asset %s (%s) for user %s", created.id, created.asset_id, created.owner)
        return created

    def delete_asset(self, principal: UUID | None, asset_id: UUID) -> None:
        principal = self._require_principal(principal)
        with self._session_factory() as session, atomic(session):
            repository = AssetRepository(session)
            current = repository.get(asset_id)
            if current is None:
                logger.info("Asset %s already absent, nothing to delete", asset_id)
                return
            self._access.require(self._access.authorize_asset(principal, current), action=f"deletion of {asset_id}")
            repository.delete(asset_id)

    def record_prices(self, principal: UUID | None, asset_id: UUID, quotes: Iterable[PriceQuote]) -> int:
        return self._record(principal, asset_id, quotes, AssetPriceRepository)

    def record_dividends(self, principal: UUID | None, asset_id: UUID, quotes: Iterable[PriceQuote]) -> int:
        return self._record(principal, asset_id, quotes, AssetDividendRepository)

    def price_as_of(self, principal: UUID | None, asset_id: UUID, day: date) -> PriceQuote | None:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            self._visible_asset(session, principal, asset_id)
            return AssetPriceRepository(session).as_of(asset_id, day)

    def dividend_as_of(self, principal: UUID | None, asset_id: UUID, day: date) -> PriceQuote | None:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            self._visible_asset(session, principal, asset_id)
            return AssetDividendRepository(session).as_of(asset_id, day)

    def price_history(self, principal: UUID | None, asset_id: UUID, start: date, end: date) -> list[PriceQuote]:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            self._visible_asset(session, principal, asset_id)
            return AssetPriceRepository(session).history(asset_id, start, end)

    def _record(
        self,
        principal: UUID | None,
        asset_id: UUID,
        quotes: Iterable[PriceQuote],
        history_type: type[AssetPriceRepository] | type[AssetDividendRepository],
    ) -> int:
        principal = self._require_principal(principal)
        with self._session_factory() as session, atomic(session):
            asset = AssetRepository(session).get(asset_id)
            if asset is None:
                raise ReferentialError("asset does not exist")
            self._access.require(self._access.authorize_asset(principal, asset), action=f"history update of {asset_id}")
            history: PriceHistory = history_type(session)
            written = history.upsert_many(asset_id, quotes)
        logger.info("Recorded %d observations for asset %s", written, asset_id)
        return written

    def _visible_asset(self, session: Session, principal: UUID, asset_id: UUID) -> Asset:
        asset = AssetRepository(session).get(asset_id)
        if asset is None:
            raise ReferentialError("asset does not exist")
        self._access.require(self._access.can_view_asset(principal, asset), action=f"read of asset {asset_id}")
        return asset


__all__ = ["AssetService"]
