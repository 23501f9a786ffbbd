import datetime as dt
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session, sessionmaker

from config import AppSettings
from domain.account import Account, AccountKind
from domain.asset_id import AssetId
from domain.errors import AuthorizationDenied, DuplicateEntry, InvalidEntity, ReferentialError
from domain.transaction import Deposit, Transaction
from services.ledger_service import AccountService, TransactionService
from services.user_service import UserService

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def users(session_factory: sessionmaker[Session], settings: AppSettings) -> UserService:
    return UserService(session_factory, settings=settings)


def test_register_and_verify(users: UserService) -> None:
    user = users.register("investor", b"verifier")

    assert users.verify_credentials("investor", b"verifier", NOW) == user.id


def test_register_rejects_short_or_taken_username(users: UserService) -> None:
    users.register("investor", b"verifier")

    with pytest.raises(InvalidEntity):
        users.register("bob", b"verifier")
    with pytest.raises(DuplicateEntry):
        users.register("investor", b"other")


def test_unknown_username(users: UserService) -> None:
    with pytest.raises(ReferentialError):
        users.verify_credentials("nobody-here", b"verifier", NOW)


def test_login_throttled_after_max_attempts(users: UserService) -> None:
    user = users.register("investor", b"verifier")

    for second in range(3):
        with pytest.raises(AuthorizationDenied, match="incorrect password"):
            users.verify_credentials("investor", b"wrong", NOW + timedelta(seconds=second))

    with pytest.raises(AuthorizationDenied, match="try again later"):
        users.verify_credentials("investor", b"verifier", NOW + timedelta(seconds=10))

    assert users.verify_credentials("investor", b"verifier", NOW + timedelta(seconds=70)) == user.id


def test_successful_login_clears_failures(users: UserService) -> None:
    users.register("investor", b"verifier")
    for second in range(2):
        with pytest.raises(AuthorizationDenied):
            users.verify_credentials("investor", b"wrong", NOW + timedelta(seconds=second))

    users.verify_credentials("investor", b"verifier", NOW + timedelta(seconds=5))

    with pytest.raises(AuthorizationDenied, match="incorrect password"):
        users.verify_credentials("investor", b"wrong", NOW + timedelta(seconds=6))
    with pytest.raises(AuthorizationDenied, match="incorrect password"):
        users.verify_credentials("investor", b"wrong", NOW + timedelta(seconds=7))


def test_update_user_requires_current_password(users: UserService) -> None:
    user = users.register("investor", b"verifier")

    with pytest.raises(AuthorizationDenied):
        users.update_user(user.id, password=(b"wrong", b"new-verifier"))

    users.update_user(user.id, username="renamed-investor", password=(b"verifier", b"new-verifier"))

    assert users.verify_credentials("renamed-investor", b"new-verifier", NOW) == user.id


def test_delete_user_only_self(
    users: UserService, session_factory: sessionmaker[Session], settings: AppSettings
) -> None:
    alice = users.register("alice-investor", b"verifier").id
    bob = users.register("bob-investor", b"verifier").id
    accounts = AccountService(session_factory, settings=settings)
    transactions = TransactionService(session_factory, settings=settings)
    account = accounts.create_account(alice, Account(name="Margin", alias="MRGN", owner=alice, kind=AccountKind.NRA))
    transactions.create_transaction(
        alice,
        Transaction(
            account=account.id,
            date=dt.date(2024, 1, 1),
            action=Deposit(value=(Decimal("10"), AssetId.currency("CAD")), fee=(Decimal("0"), AssetId.currency("CAD"))),
        ),
    )

    with pytest.raises(AuthorizationDenied):
        users.delete_user(bob, alice)

    users.delete_user(alice, alice)
    users.delete_user(alice, alice)

    assert accounts.list_accounts(alice) == []
    with pytest.raises(ReferentialError):
        users.verify_credentials("alice-investor", b"verifier", NOW)


def test_throttle_window_elapses_for_non_utc_clock(users: UserService) -> None:
    user = users.register("investor", b"verifier")
    local_now = datetime(2024, 6, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    for second in range(3):
        with pytest.raises(AuthorizationDenied, match="incorrect password"):
            users.verify_credentials("investor", b"wrong", local_now + timedelta(seconds=second))
    with pytest.raises(AuthorizationDenied, match="try again later"):
        users.verify_credentials("investor", b"verifier", local_now + timedelta(seconds=30))

    assert users.verify_credentials("investor", b"verifier", local_now + timedelta(minutes=10)) == user.id


def test_naive_clock_rejected(users: UserService) -> None:
    users.register("investor", b"verifier")

    with pytest.raises(InvalidEntity):
        users.verify_credentials("investor", b"verifier", datetime(2024, 6, 1, 12, 0))
