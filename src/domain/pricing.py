from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Protocol
from uuid import UUID

from .asset_id import AssetId


@dataclass(frozen=True)
class PriceQuote:
    """A single dated observation of an asset's price or dividend."""

    date: date
    amount: Decimal
    currency: AssetId


class PriceHistory(Protocol):
    """Date-keyed observations per asset; one observation per (asset, date)."""

    def upsert(self, asset: UUID, day: date, amount: Decimal, currency: AssetId) -> None: ...

    def upsert_many(self, asset: UUID, rows: Iterable[PriceQuote]) -> int: ...

    def as_of(self, asset: UUID, day: date) -> PriceQuote | None: ...

    def history(self, asset: UUID, start: date, end: date) -> list[PriceQuote]: ...

    def delete_all(self, asset: UUID) -> None: ...


__all__ = ["PriceHistory", "PriceQuote"]
