import datetime as dt
from decimal import Decimal
from uuid import uuid4

import pytest

from domain.account import Account, AccountKind
from domain.asset_id import AssetId
from domain.base_types import new_id
from domain.errors import InvalidEntity, PolicyViolation, ReferentialError
from domain.transaction import Buy, Deposit, Transaction, Withdrawal
from domain.validation import ValidationEngine

CAD = AssetId.currency("CAD")
USD = AssetId.currency("USD")
BTC = AssetId.crypto("BTC")


def _account(kind: AccountKind) -> Account:
    return Account(id=new_id(), name="Savings", alias="SAVE", owner=uuid4(), kind=kind)


def _deposit(account: Account, asset: AssetId) -> Transaction:
    return Transaction(
        account=account.id,
        date=dt.date(2024, 1, 15),
        action=Deposit(value=(Decimal("100"), asset), fee=(Decimal("0"), CAD)),
    )


@pytest.fixture()
def engine() -> ValidationEngine:
    return ValidationEngine(home_currency=CAD)


@pytest.mark.parametrize("kind", [AccountKind.TFSA, AccountKind.RRSP, AccountKind.FHSA])
def test_registered_account_rejects_foreign_deposit(engine: ValidationEngine, kind: AccountKind) -> None:
    account = _account(kind)

    with pytest.raises(PolicyViolation) as exc_info:
        engine.validate_transaction(_deposit(account, BTC), account)

    assert "CRYPTO:BTC" in exc_info.value.message


def test_registered_account_accepts_home_currency_deposit(engine: ValidationEngine) -> None:
    account = _account(AccountKind.TFSA)

    engine.validate_transaction(_deposit(account, CAD), account)


def test_registered_account_rejects_foreign_withdrawal(engine: ValidationEngine) -> None:
    account = _account(AccountKind.RRSP)
    transaction = Transaction(
        account=account.id,
        date=dt.date(2024, 1, 15),
        action=Withdrawal(value=(Decimal("-100"), USD), fee=(Decimal("0"), CAD)),
    )

    with pytest.raises(PolicyViolation, match="withdraw"):
        engine.validate_transaction(transaction, account)


def test_non_registered_account_accepts_any_currency(engine: ValidationEngine) -> None:
    account = _account(AccountKind.NRA)

    engine.validate_transaction(_deposit(account, BTC), account)


def test_registered_account_allows_trading_other_assets(engine: ValidationEngine) -> None:
    account = _account(AccountKind.TFSA)
    transaction = Transaction(
        account=account.id,
        date=dt.date(2024, 1, 15),
        action=Buy(asset=(Decimal("1"), BTC), cash=(Decimal("-50"), USD), fee=(Decimal("0"), USD)),
    )

    engine.validate_transaction(transaction, account)


def test_missing_account_is_referential_error(engine: ValidationEngine) -> None:
    transaction = _deposit(_account(AccountKind.NRA), CAD)

    with pytest.raises(ReferentialError, match="no account exists"):
        engine.validate_transaction(transaction, None)


def test_transaction_update_cannot_move_account(engine: ValidationEngine) -> None:
    current = _deposit(_account(AccountKind.NRA), CAD)
    moved = current.model_copy(update={"account": new_id()})

    with pytest.raises(InvalidEntity, match="account cannot be modified"):
        engine.validate_transaction_update(current, moved)


@pytest.mark.parametrize(
    "name, alias, message",
    [("abc", "ALIAS", "account name too short"), ("Savings", "AB", "account alias too short")],
)
def test_account_labels_have_minimum_length(engine: ValidationEngine, name: str, alias: str, message: str) -> None:
    account = _account(AccountKind.NRA).model_copy(update={"name": name, "alias": alias})

    with pytest.raises(InvalidEntity, match=message):
        engine.validate_account(account)


def test_account_update_cannot_change_owner(engine: ValidationEngine) -> None:
    current = _account(AccountKind.NRA)
    candidate = current.model_copy(update={"owner": uuid4()})

    with pytest.raises(InvalidEntity, match="owner cannot be modified"):
        engine.validate_account_update(current, candidate)


def test_username_minimum_length(engine: ValidationEngine) -> None:
    engine.validate_username("investor")
    with pytest.raises(InvalidEntity):
        engine.validate_username("bob")


def test_custom_rules_replace_defaults() -> None:
    account = _account(AccountKind.NRA)
    engine = ValidationEngine(home_currency=CAD, rules={AccountKind.NRA: [lambda txn, home: "frozen"]})

    with pytest.raises(PolicyViolation, match="frozen"):
        engine.validate_transaction(_deposit(account, CAD), account)
