from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import Select, delete, or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from db import models
from db.db import atomic
from domain.account import Account, AccountKind
from domain.asset import Asset
from domain.asset_id import SEPARATOR, AssetId
from domain.base_types import AccountId, AssetRowId, TransactionId, UserId, is_nil, new_id
from domain.errors import DuplicateEntry, ForeignKeyViolation, InvalidEntity, ReferentialError
from domain.pricing import PriceHistory, PriceQuote
from domain.transaction import Transaction
from domain.user import User, effective_attempts

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 10


def _require_unsaved(entity_id: UUID, table: str) -> None:
    if not is_nil(entity_id):
        raise InvalidEntity(f"{table} id must be nil on insert, got {entity_id}")


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops the offset; stored values are always UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _require_aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidEntity(f"timestamp must be timezone-aware, got {value.isoformat()}")
    return value.astimezone(timezone.utc)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class UserRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, user: User) -> User:
        _require_unsaved(user.id, "users")
        with atomic(self._session) as session:
            if self._username_taken(user.username):
                raise DuplicateEntry(table="users", key=user.username)
            orm_user = models.UserOrm(
                id=new_id(),
                username=user.username,
                password=user.password,
                attempts=0,
                login_at=None,
            )
            session.add(orm_user)
            created = user.model_copy(update={"id": UserId(orm_user.id), "attempts": 0, "login_at": None})
        return created

    def get(self, user_id: UUID) -> User | None:
        orm_user = self._session.get(models.UserOrm, user_id)
        if orm_user is None:
            return None
        return self._to_domain(orm_user)

    def get_by_username(self, username: str) -> User | None:
        orm_user = self._session.scalars(
            select(models.UserOrm).where(models.UserOrm.username == username)
        ).one_or_none()
        if orm_user is None:
            return None
        return self._to_domain(orm_user)

    def update(self, user: User) -> None:
        with atomic(self._session) as session:
            orm_user = session.get(models.UserOrm, user.id)
            if orm_user is None:
                raise ReferentialError(f"user {user.id} does not exist")
            if user.username != orm_user.username and self._username_taken(user.username):
                raise DuplicateEntry(table="users", key=user.username)
            orm_user.username = user.username
            orm_user.password = user.password

    def delete(self, user_id: UUID) -> None:
        """Delete a user and everything it owns, innermost rows first."""
        owned_accounts = select(models.AccountOrm.id).where(models.AccountOrm.owner == user_id)
        private_assets = select(models.AssetOrm.id).where(models.AssetOrm.owner == user_id)

        with atomic(self._session) as session:
            transactions = session.execute(
                delete(models.TransactionOrm).where(models.TransactionOrm.account.in_(owned_accounts))
            ).rowcount
            accounts = session.execute(delete(models.AccountOrm).where(models.AccountOrm.owner == user_id)).rowcount
            session.execute(delete(models.AssetPriceOrm).where(models.AssetPriceOrm.asset.in_(private_assets)))
            session.execute(delete(models.AssetDividendOrm).where(models.AssetDividendOrm.asset.in_(private_assets)))
            assets = session.execute(delete(models.AssetOrm).where(models.AssetOrm.owner == user_id)).rowcount
            users = session.execute(delete(models.UserOrm).where(models.UserOrm.id == user_id)).rowcount

        if users:
            logger.info(
                "Deleted user %s with %d accounts, %d transactions and %d private assets",
                user_id,
                accounts,
                transactions,
                assets,
            )

    def login_attempts(self, user_id: UUID, now: datetime, window: timedelta) -> int:
        now = _require_aware_utc(now)
        orm_user = self._session.get(models.UserOrm, user_id)
        if orm_user is None:
            return 0
        return effective_attempts(orm_user.attempts, _as_utc(orm_user.login_at), now, window)

    def record_failed_login(self, user_id: UUID, now: datetime, window: timedelta) -> int:
        now = _require_aware_utc(now)
        with atomic(self._session) as session:
            orm_user = session.get(models.UserOrm, user_id)
            if orm_user is None:
                raise ReferentialError(f"user {user_id} does not exist")
            attempts = effective_attempts(orm_user.attempts, _as_utc(orm_user.login_at), now, window) + 1
            orm_user.attempts = attempts
            orm_user.login_at = now
        return attempts

    def reset_login_attempts(self, user_id: UUID) -> None:
        with atomic(self._session) as session:
            orm_user = session.get(models.UserOrm, user_id)
            if orm_user is not None:
                orm_user.attempts = 0
                orm_user.login_at = None

    def _username_taken(self, username: str) -> bool:
        stmt = select(models.UserOrm.id).where(models.UserOrm.username == username)
        return self._session.scalar(stmt) is not None

    @staticmethod
    def _to_domain(orm_user: models.UserOrm) -> User:
        return User(
            id=UserId(orm_user.id),
            username=orm_user.username,
            password=orm_user.password,
            attempts=orm_user.attempts,
            login_at=_as_utc(orm_user.login_at),
        )


class AccountRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, account: Account) -> Account:
        _require_unsaved(account.id, "accounts")
        with atomic(self._session) as session:
            if session.get(models.UserOrm, account.owner) is None:
                raise ForeignKeyViolation(table="accounts", column="owner", value=account.owner)
            orm_account = models.AccountOrm(
                id=new_id(),
                name=account.name,
                alias=account.alias,
                owner=account.owner,
                kind=account.kind.value,
            )
            session.add(orm_account)
            created = account.model_copy(update={"id": AccountId(orm_account.id)})
        return created

    def get(self, account_id: UUID) -> Account | None:
        orm_account = self._session.get(models.AccountOrm, account_id)
        if orm_account is None:
            return None
        return self._to_domain(orm_account)

    def list_by_owner(self, owner: UUID) -> list[Account]:
        orm_accounts = self._session.scalars(
            select(models.AccountOrm).where(models.AccountOrm.owner == owner).order_by(models.AccountOrm.name)
        ).all()
        return [self._to_domain(account) for account in orm_accounts]

    def update(self, account: Account) -> None:
        with atomic(self._session) as session:
            orm_account = session.get(models.AccountOrm, account.id)
            if orm_account is None:
                raise ReferentialError(f"account {account.id} does not exist")
            if session.get(models.UserOrm, account.owner) is None:
                raise ForeignKeyViolation(table="accounts", column="owner", value=account.owner)
            orm_account.name = account.name
            orm_account.alias = account.alias
            orm_account.owner = account.owner
            orm_account.kind = account.kind.value

    def delete(self, account_id: UUID) -> None:
        with atomic(self._session) as session:
            transactions = session.execute(
                delete(models.TransactionOrm).where(models.TransactionOrm.account == account_id)
            ).rowcount
            accounts = session.execute(delete(models.AccountOrm).where(models.AccountOrm.id == account_id)).rowcount

        if accounts:
            logger.info("Deleted account %s with %d transactions", account_id, transactions)

    @staticmethod
    def _to_domain(orm_account: models.AccountOrm) -> Account:
        return Account(
            id=AccountId(orm_account.id),
            name=orm_account.name,
            alias=orm_account.alias,
            owner=UserId(orm_account.owner),
            kind=AccountKind(orm_account.kind),
        )


class TransactionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, transaction: Transaction) -> Transaction:
        _require_unsaved(transaction.id, "transactions")
        with atomic(self._session) as session:
            if session.get(models.AccountOrm, transaction.account) is None:
                raise ForeignKeyViolation(table="transactions", column="account", value=transaction.account)
            orm_transaction = models.TransactionOrm(
                id=new_id(),
                account=transaction.account,
                date=transaction.date,
                action=transaction.action,
            )
            session.add(orm_transaction)
            created = transaction.model_copy(update={"id": TransactionId(orm_transaction.id)})
        return created

    def get(self, transaction_id: UUID) -> Transaction | None:
        orm_transaction = self._session.get(models.TransactionOrm, transaction_id)
        if orm_transaction is None:
            return None
        return self._to_domain(orm_transaction)

    def list_by_account(self, account_id: UUID) -> list[Transaction]:
        orm_transactions = self._session.scalars(
            select(models.TransactionOrm)
            .where(models.TransactionOrm.account == account_id)
            .order_by(models.TransactionOrm.date.asc(), models.TransactionOrm.id)
        ).all()
        return [self._to_domain(transaction) for transaction in orm_transactions]

    def update(self, transaction: Transaction) -> None:
        with atomic(self._session) as session:
            orm_transaction = session.get(models.TransactionOrm, transaction.id)
            if orm_transaction is None:
                raise ReferentialError(f"transaction {transaction.id} does not exist")
            if session.get(models.AccountOrm, transaction.account) is None:
                raise ForeignKeyViolation(table="transactions", column="account", value=transaction.account)
            orm_transaction.account = transaction.account
            orm_transaction.date = transaction.date
            orm_transaction.action = transaction.action

    def delete(self, transaction_id: UUID) -> None:
        with atomic(self._session) as session:
            session.execute(delete(models.TransactionOrm).where(models.TransactionOrm.id == transaction_id))

    @staticmethod
    def _to_domain(orm_transaction: models.TransactionOrm) -> Transaction:
        return Transaction(
            id=TransactionId(orm_transaction.id),
            account=AccountId(orm_transaction.account),
            date=orm_transaction.date,
            action=orm_transaction.action,
        )


class AssetRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, asset: Asset) -> Asset:
        _require_unsaved(asset.id, "assets")
        with atomic(self._session) as session:
            if asset.owner is not None and session.get(models.UserOrm, asset.owner) is None:
                raise ForeignKeyViolation(table="assets", column="owner", value=asset.owner)
            if self._find(asset.asset_id, asset.owner) is not None:
                raise DuplicateEntry(table="assets", key=f"{asset.asset_id} (owner={asset.owner})")
            orm_asset = models.AssetOrm(
                id=new_id(),
                asset_id=asset.asset_id,
                name=asset.name,
                owner=asset.owner,
            )
            session.add(orm_asset)
            created = asset.model_copy(update={"id": AssetRowId(orm_asset.id)})
        return created

    def get(self, asset_id: UUID) -> Asset | None:
        orm_asset = self._session.get(models.AssetOrm, asset_id)
        if orm_asset is None:
            return None
        return self._to_domain(orm_asset)

    def get_by_asset_id(self, asset_id: AssetId, owner: UUID | None) -> Asset | None:
        orm_asset = self._find(asset_id, owner)
        if orm_asset is None:
            return None
        return self._to_domain(orm_asset)

    def list_by_owner(self, owner: UUID) -> list[Asset]:
        orm_assets = self._session.scalars(
            select(models.AssetOrm).where(models.AssetOrm.owner == owner).order_by(models.AssetOrm.asset_id)
        ).all()
        return [self._to_domain(asset) for asset in orm_assets]

    def search(self, prefix: str, owner: UUID | None, limit: int = DEFAULT_SEARCH_LIMIT) -> list[Asset]:
        """Assets visible to `owner` whose symbol starts with `prefix`.

        Symbols never contain the tag separator, so ``%:<prefix>%`` only
        matches at the start of the symbol.
        """
        visible = [models.AssetOrm.owner.is_(None)]
        if owner is not None:
            visible.append(models.AssetOrm.owner == owner)

        pattern = f"%{SEPARATOR}{_escape_like(prefix)}%"
        orm_assets = self._session.scalars(
            select(models.AssetOrm)
            .where(or_(*visible), models.AssetOrm.asset_id.like(pattern, escape="\\"))
            .order_by(models.AssetOrm.asset_id, models.AssetOrm.id)
            .limit(limit)
        ).all()
        return [self._to_domain(asset) for asset in orm_assets]

    def delete(self, asset_id: UUID) -> None:
        """Delete an asset with its price and dividend history.

        Transactions naming the asset hold its AssetId by value and are kept.
        """
        with atomic(self._session) as session:
            prices = session.execute(
                delete(models.AssetPriceOrm).where(models.AssetPriceOrm.asset == asset_id)
            ).rowcount
            dividends = session.execute(
                delete(models.AssetDividendOrm).where(models.AssetDividendOrm.asset == asset_id)
            ).rowcount
            assets = session.execute(delete(models.AssetOrm).where(models.AssetOrm.id == asset_id)).rowcount

        if assets:
            logger.info("Deleted asset %s with %d prices and %d dividends", asset_id, prices, dividends)

    def _find(self, asset_id: AssetId, owner: UUID | None) -> models.AssetOrm | None:
        owner_clause = models.AssetOrm.owner.is_(None) if owner is None else models.AssetOrm.owner == owner
        stmt = select(models.AssetOrm).where(models.AssetOrm.asset_id == asset_id, owner_clause)
        return self._session.scalars(stmt).first()

    @staticmethod
    def _to_domain(orm_asset: models.AssetOrm) -> Asset:
        return Asset(
            id=AssetRowId(orm_asset.id),
            asset_id=orm_asset.asset_id,
            name=orm_asset.name,
            owner=UserId(orm_asset.owner) if orm_asset.owner is not None else None,
        )


class _DatedObservationRepository(PriceHistory):
    """One observation per (asset, date); a later write for the same date replaces the earlier one.

    The key does not include the currency, so observations in two currencies
    for the same day overwrite each other.
    """

    _orm: type[models.AssetPriceOrm] | type[models.AssetDividendOrm]
    _amount_field: str

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert(self, asset: UUID, day: date, amount: Decimal, currency: AssetId) -> None:
        self.upsert_many(asset, [PriceQuote(date=day, amount=amount, currency=currency)])

    def upsert_many(self, asset: UUID, rows: Iterable[PriceQuote]) -> int:
        records = [
            {"asset": asset, "date": row.date, self._amount_field: row.amount, "currency": row.currency}
            for row in rows
        ]
        if not records:
            return 0

        with atomic(self._session) as session:
            if session.get(models.AssetOrm, asset) is None:
                raise ForeignKeyViolation(table=self._orm.__tablename__, column="asset", value=asset)
            stmt = sqlite_insert(self._orm).values(records)
            stmt = stmt.on_conflict_do_update(
                index_elements=["asset", "date"],
                set_={
                    self._amount_field: stmt.excluded[self._amount_field],
                    "currency": stmt.excluded.currency,
                },
            )
            session.execute(stmt)
        return len(records)

    def as_of(self, asset: UUID, day: date) -> PriceQuote | None:
        row = self._session.execute(
            self._select_quotes()
            .where(self._orm.asset == asset, self._orm.date <= day)
            .order_by(self._orm.date.desc())
            .limit(1)
        ).first()
        if row is None:
            return None
        return PriceQuote(date=row[0], amount=row[1], currency=row[2])

    def history(self, asset: UUID, start: date, end: date) -> list[PriceQuote]:
        rows = self._session.execute(
            self._select_quotes()
            .where(self._orm.asset == asset, self._orm.date >= start, self._orm.date <= end)
            .order_by(self._orm.date.asc())
        ).all()
        return [PriceQuote(date=row[0], amount=row[1], currency=row[2]) for row in rows]

    def delete_all(self, asset: UUID) -> None:
        with atomic(self._session) as session:
            session.execute(delete(self._orm).where(self._orm.asset == asset))

    def _select_quotes(self) -> Select[tuple[date, Decimal, AssetId]]:
        return select(self._orm.date, getattr(self._orm, self._amount_field), self._orm.currency)


class AssetPriceRepository(_DatedObservationRepository):
    _orm = models.AssetPriceOrm
    _amount_field = "price"


class AssetDividendRepository(_DatedObservationRepository):
    _orm = models.AssetDividendOrm
    _amount_field = "dividend"


__all__ = [
    "AccountRepository",
    "AssetDividendRepository",
    "AssetPriceRepository",
    "AssetRepository",
    "DEFAULT_SEARCH_LIMIT",
    "TransactionRepository",
    "UserRepository",
]
