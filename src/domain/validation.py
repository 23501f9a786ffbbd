from __future__ import annotations

import logging
from typing import Callable, Mapping, Sequence

from .account import Account, AccountKind
from .asset_id import AssetId
from .errors import InvalidEntity, PolicyViolation, ReferentialError
from .transaction import Deposit, LegRole, Transaction, Withdrawal

logger = logging.getLogger(__name__)

MIN_ACCOUNT_LABEL_LENGTH = 4
MIN_USERNAME_LENGTH = 6

# A rule returns a rejection reason, or None when the transaction passes.
TransactionRule = Callable[[Transaction, AssetId], str | None]


def home_currency_cash_movement(transaction: Transaction, home_currency: AssetId) -> str | None:
    """Cash may only enter or leave the account in the home currency."""
    action = transaction.action
    if not isinstance(action, (Deposit, Withdrawal)):
        return None

    for leg in action.legs():
        if leg.role == LegRole.VALUE and leg.asset_id != home_currency:
            verb = "deposit" if isinstance(action, Deposit) else "withdraw"
            return f"registered account can only {verb} {home_currency}, got {leg.asset_id}"
    return None


_REGISTERED_ACCOUNT_RULES: tuple[TransactionRule, ...] = (home_currency_cash_movement,)

DEFAULT_RULES: dict[AccountKind, tuple[TransactionRule, ...]] = {
    AccountKind.NRA: (),
    AccountKind.TFSA: _REGISTERED_ACCOUNT_RULES,
    AccountKind.RRSP: _REGISTERED_ACCOUNT_RULES,
    AccountKind.FHSA: _REGISTERED_ACCOUNT_RULES,
}


class ValidationEngine:
    """Single-shot business checks run before anything reaches the store."""

    def __init__(
        self,
        *,
        home_currency: AssetId,
        rules: Mapping[AccountKind, Sequence[TransactionRule]] | None = None,
    ) -> None:
        self.home_currency = home_currency
        self._rules = dict(DEFAULT_RULES if rules is None else rules)

    def validate_transaction(self, transaction: Transaction, account: Account | None) -> None:
        if account is None:
            raise ReferentialError("no account exists")

        for rule in self._rules.get(account.kind, ()):
            reason = rule(transaction, self.home_currency)
            if reason is not None:
                logger.warning("Rejected transaction on %s account %s: %s", account.kind, account.id, reason)
                raise PolicyViolation(reason)

    def validate_transaction_update(self, current: Transaction, candidate: Transaction) -> None:
        if candidate.account != current.account:
            raise InvalidEntity("account cannot be modified")

    def validate_account(self, account: Account) -> None:
        if len(account.name) < MIN_ACCOUNT_LABEL_LENGTH:
            raise InvalidEntity("account name too short")
        if len(account.alias) < MIN_ACCOUNT_LABEL_LENGTH:
            raise InvalidEntity("account alias too short")

    def validate_account_update(self, current: Account, candidate: Account) -> None:
        self.validate_account(candidate)
        if candidate.owner != current.owner:
            raise InvalidEntity("owner cannot be modified")

    def validate_username(self, username: str) -> None:
        if len(username) < MIN_USERNAME_LENGTH:
            raise InvalidEntity("username too short")


__all__ = [
    "DEFAULT_RULES",
    "MIN_ACCOUNT_LABEL_LENGTH",
    "MIN_USERNAME_LENGTH",
    "TransactionRule",
    "ValidationEngine",
    "home_currency_cash_movement",
]
