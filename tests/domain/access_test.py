import datetime as dt
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from domain.access import AccessPolicy, resolve_principal
from domain.account import Account, AccountKind
from domain.asset import Asset
from domain.asset_id import AssetId
from domain.base_types import new_id
from domain.errors import AuthorizationDenied
from domain.transaction import Income, Transaction

CAD = AssetId.currency("CAD")


class StaticAuthenticator:
    def __init__(self, tokens: dict[str, UUID]) -> None:
        self._tokens = tokens

    def authenticate(self, token: str) -> UUID | None:
        return self._tokens.get(token)


def _account(owner: UUID) -> Account:
    return Account(id=new_id(), name="Margin", alias="MRGN", owner=owner, kind=AccountKind.NRA)


def _income(account: Account) -> Transaction:
    return Transaction(
        id=new_id(),
        account=account.id,
        date=dt.date(2024, 5, 1),
        action=Income(value=(Decimal("1.25"), CAD), reason="interest"),
    )


def test_owner_is_authorized() -> None:
    owner = uuid4()

    assert AccessPolicy().authorize(owner, _account(owner))


def test_unresolved_inputs_are_never_authorized() -> None:
    owner = uuid4()
    account = _account(owner)
    policy = AccessPolicy()

    assert not policy.authorize(None, account)
    assert not policy.authorize(owner, None)
    assert not policy.authorize(uuid4(), account)


def test_transaction_must_belong_to_given_account() -> None:
    owner = uuid4()
    account = _account(owner)
    other = _account(owner)
    policy = AccessPolicy()

    assert policy.authorize_transaction(owner, _income(account), account)
    assert not policy.authorize_transaction(owner, _income(other), account)
    assert not policy.authorize_transaction(owner, None, account)
    assert not policy.authorize_transaction(owner, _income(account), None)


def test_global_assets_are_visible_but_not_mutable() -> None:
    principal = uuid4()
    shared = Asset(id=new_id(), asset_id=AssetId.stock("TSE", "DLR"), name="Horizons USD")
    private = Asset(id=new_id(), asset_id=AssetId.unknown("TDB627"), name="TD fund", owner=principal)
    policy = AccessPolicy()

    assert policy.can_view_asset(principal, shared)
    assert not policy.authorize_asset(principal, shared)
    assert policy.authorize_asset(principal, private)
    assert not policy.can_view_asset(uuid4(), private)
    assert not policy.can_view_asset(None, shared)


def test_require_raises_on_denial() -> None:
    policy = AccessPolicy()

    policy.require(True, action="anything")
    with pytest.raises(AuthorizationDenied):
        policy.require(False, action="anything")


def test_resolve_principal() -> None:
    user_id = uuid4()
    authenticator = StaticAuthenticator({"good": user_id})

    assert resolve_principal(authenticator, "good") == user_id
    assert resolve_principal(authenticator, "bad") is None
    assert resolve_principal(authenticator, None) is None
    assert resolve_principal(authenticator, "") is None
