from __future__ import annotations

import logging
from uuid import UUID

from db.db import atomic
from db.repositories import AccountRepository, TransactionRepository
from domain.account import Account
from domain.errors import ReferentialError
from domain.transaction import Transaction

from .base import LedgerServiceBase

logger = logging.getLogger(__name__)


class AccountService(LedgerServiceBase):
    """Account operations on behalf of an authenticated principal."""

    def list_accounts(self, principal: UUID | None) -> list[Account]:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            return AccountRepository(session).list_by_owner(principal)

    def get_account(self, principal: UUID | None, account_id: UUID) -> Account:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            account = AccountRepository(session).get(account_id)
        if account is None:
            raise ReferentialError("account does not exist")
        self._access.require(self._access.authorize(principal, account), action=f"read of account {account_id}")
        return account

    def create_account(self, principal: UUID | None, account: Account) -> Account:
        principal = self._require_principal(principal)
        self._access.require(self._access.authorize(principal, account), action="account creation for another user")
        self._validation.validate_account(account)
        with self._session_factory() as session, atomic(session):
            created = AccountRepository(session).create(account)
        logger.info("Created %s account %s for user %s", created.kind, created.id, created.owner)
        return created

    def update_account(self, principal: UUID | None, account: Account) -> None:
        principal = self._require_principal(principal)
        with self._session_factory() as session, atomic(session):
            repository = AccountRepository(session)
            current = repository.get(account.id)
            if current is None:
                raise ReferentialError("account does not exist")
            self._access.require(self._access.authorize(principal, current), action=f"update of account {account.id}")
            self._validation.validate_account_update(current, account)
            repository.update(account)

    def delete_account(self, principal: UUID | None, account_id: UUID) -> None:
        principal = self._require_principal(principal)
        with self._session_factory() as session, atomic(session):
            repository = AccountRepository(session)
            current = repository.get(account_id)
            if current is None:
                logger.info("Account %s already absent, nothing to delete", account_id)
                return
            self._access.require(self._access.authorize(principal, current), action=f"deletion of account {account_id}")
            repository.delete(account_id)


class TransactionService(LedgerServiceBase):
    """Transaction operations; ownership is resolved through the owning account."""

    def list_transactions(self, principal: UUID | None, account_id: UUID) -> list[Transaction]:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            account = AccountRepository(session).get(account_id)
            if account is None:
                raise ReferentialError("account does not exist")
            self._access.require(
                self._access.authorize(principal, account), action=f"read of transactions in {account_id}"
            )
            return TransactionRepository(session).list_by_account(account_id)

    def get_transaction(self, principal: UUID | None, transaction_id: UUID) -> Transaction:
        principal = self._require_principal(principal)
        with self._session_factory() as session:
            transaction = TransactionRepository(session).get(transaction_id)
            if transaction is None:
                raise ReferentialError("transaction does not exist")
            account = AccountRepository(session).get(transaction.account)
        self._access.require(
            self._access.authorize_transaction(principal, transaction, account),
            action=f"read of transaction {transaction_id}",
        )
        return transaction

    def create_transaction(self, principal: UUID | None, transaction: Transaction) -> Transaction:
        principal = self._require_principal(principal)
        with self._session_factory() as session, atomic(session):
            account = AccountRepository(session).get(transaction.account)
            if account is not None:
                self._access.require(
                    self._access.authorize(principal, account), action=f"transaction insert into {account.id}"
                )
            self._validation.validate_transaction(transaction, account)
            return TransactionRepository(session).create(transaction)

    def update_transaction(self, principal: UUID | None, transaction: Transaction) -> None:
        principal = self._require_principal(principal)
        with self._session_factory() as session, atomic(session):
            repository = TransactionRepository(session)
            current = repository.get(transaction.id)
            if current is None:
                raise ReferentialError("transaction does not exist")
            account = AccountRepository(session).get(current.account)
            self._access.require(
                self._access.authorize_transaction(principal, current, account),
                action=f"update of transaction {transaction.id}",
            )
            self._validation.validate_transaction_update(current, transaction)
            self._validation.validate_transaction(transaction, account)
            repository.update(transaction)

    def delete_transaction(self, principal: UUID | None, transaction_id: UUID) -> None:
        principal = self._require_principal(principal)
        with self._session_factory() as session, atomic(session):
            repository = TransactionRepository(session)
            current = repository.get(transaction_id)
            if current is None:
                logger.info("Transaction %s already absent, nothing to delete", transaction_id)
                return
            account = AccountRepository(session).get(current.account)
            self._access.require(
                self._access.authorize_transaction(principal, current, account),
                action=f"deletion of transaction {transaction_id}",
            )
            repository.delete(transaction_id)


__all__ = ["AccountService", "TransactionService"]
