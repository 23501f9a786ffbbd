from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Integer, LargeBinary, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from domain.asset_id import AssetId
from domain.transaction import ActionUnion, TxnAction, decode_action, encode_action


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class AssetIdAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: AssetId | str | None, dialect: object) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            # LIKE patterns and raw filters are bound as plain text.
            return value
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> AssetId | None:
        if value is None:
            return None
        return AssetId.parse(value)


class VersionedAction(TypeDecorator):
    """Stores a TxnAction as a versioned JSON document."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: TxnAction | None, dialect: object) -> str | None:
        if value is None:
            return None
        return encode_action(value)

    def process_result_value(self, value: str | None, dialect: object) -> TxnAction | None:
        if value is None:
            return None
        return decode_action(value)


class Base(DeclarativeBase):
    pass


class UserOrm(Base):
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    username: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    password: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    login_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class AccountOrm(Base):
    __tablename__ = "accounts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    alias: Mapped[str] = mapped_column(String, nullable=False)
    owner: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String, nullable=False)


class TransactionOrm(Base):
    __tablename__ = "transactions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    account: Mapped[UUID] = mapped_column(Uuid, ForeignKey("accounts.id"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    action: Mapped[ActionUnion] = mapped_column(VersionedAction, nullable=False)


class AssetOrm(Base):
    __tablename__ = "assets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    asset_id: Mapped[AssetId] = mapped_column(AssetIdAsString, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    owner: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True, index=True)

    # NULL owners never collide in SQL, so global duplicates are also checked by the repository.
    __table_args__ = (UniqueConstraint("asset_id", "owner", name="uq_assets_asset_id_owner"),)


class AssetPriceOrm(Base):
    __tablename__ = "asset_prices"

    asset: Mapped[UUID] = mapped_column(Uuid, ForeignKey("assets.id"), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    price: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    currency: Mapped[AssetId] = mapped_column(AssetIdAsString, nullable=False)


class AssetDividendOrm(Base):
    __tablename__ = "asset_dividends"

    asset: Mapped[UUID] = mapped_column(Uuid, ForeignKey("assets.id"), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    dividend: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    currency: Mapped[AssetId] = mapped_column(AssetIdAsString, nullable=False)
