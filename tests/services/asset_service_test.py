import datetime as dt
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session, sessionmaker

from config import AppSettings
from db.db import atomic
from db.repositories import AssetPriceRepository, AssetRepository
from domain.asset import Asset
from domain.asset_id import AssetId
from domain.errors import AuthorizationDenied, ReferentialError
from domain.pricing import PriceQuote
from services.asset_service import AssetService
from services.user_service import UserService

CAD = AssetId.currency("CAD")
DLR = AssetId.stock("TSE", "DLR")


@pytest.fixture()
def assets(session_factory: sessionmaker[Session], settings: AppSettings) -> AssetService:
    return AssetService(session_factory, settings=settings)


@pytest.fixture()
def alice(session_factory: sessionmaker[Session], settings: AppSettings) -> UUID:
    return UserService(session_factory, settings=settings).register("alice-investor", b"verifier").id


@pytest.fixture()
def bob(session_factory: sessionmaker[Session], settings: AppSettings) -> UUID:
    return UserService(session_factory, settings=settings).register("bob-investor", b"verifier").id


@pytest.fixture()
def shared_asset(session_factory: sessionmaker[Session]) -> Asset:
    with session_factory() as session, atomic(session):
        asset = AssetRepository(session).create(Asset(asset_id=DLR, name="Horizons USD"))
        AssetPriceRepository(session).upsert(asset.id, dt.date(2024, 1, 2), Decimal("13.50"), CAD)
    return asset


def _private(owner: UUID, symbol: str = "TDB627") -> Asset:
    return Asset(asset_id=AssetId.unknown(symbol), name="TD fund", owner=owner)


def test_private_asset_lifecycle(assets: AssetService, alice: UUID) -> None:
    created = assets.create_asset(alice, _private(alice))

    written = assets.record_prices(
        alice,
        created.id,
        [
            PriceQuote(date=dt.date(2024, 1, 1), amount=Decimal("10.00"), currency=CAD),
            PriceQuote(date=dt.date(2024, 2, 1), amount=Decimal("10.40"), currency=CAD),
        ],
    )

    assert written == 2
    assert assets.list_assets(alice) == [created]
    quote = assets.price_as_of(alice, created.id, dt.date(2024, 1, 20))
    assert quote is not None and quote.amount == Decimal("10.00")
    assert len(assets.price_history(alice, created.id, dt.date(2024, 1, 1), dt.date(2024, 12, 31))) == 2

    assets.delete_asset(alice, created.id)
    assets.delete_asset(alice, created.id)
    with pytest.raises(ReferentialError):
        assets.get_asset(alice, created.id)


def test_cannot_create_shared_asset(assets: AssetService, alice: UUID) -> None:
    with pytest.raises(AuthorizationDenied):
        assets.create_asset(alice, Asset(asset_id=DLR, name="Horizons USD"))


def test_cannot_create_asset_for_another_user(assets: AssetService, alice: UUID, bob: UUID) -> None:
    with pytest.raises(AuthorizationDenied):
        assets.create_asset(alice, _private(bob))


def test_shared_asset_readable_but_immutable(assets: AssetService, alice: UUID, shared_asset: Asset) -> None:
    assert assets.get_asset(alice, shared_asset.id) == shared_asset
    quote = assets.price_as_of(alice, shared_asset.id, dt.date(2024, 3, 1))
    assert quote is not None and quote.amount == Decimal("13.50")

    with pytest.raises(AuthorizationDenied):
        assets.record_prices(
            alice, shared_asset.id, [PriceQuote(date=dt.date(2024, 3, 1), amount=Decimal("1"), currency=CAD)]
        )
    with pytest.raises(AuthorizationDenied):
        assets.delete_asset(alice, shared_asset.id)


def test_private_asset_hidden_from_other_users(assets: AssetService, alice: UUID, bob: UUID) -> None:
    created = assets.create_asset(alice, _private(alice))

    with pytest.raises(AuthorizationDenied):
        assets.get_asset(bob, created.id)
    with pytest.raises(AuthorizationDenied):
        assets.dividend_as_of(bob, created.id, dt.date(2024, 1, 1))
    assert assets.search_assets(bob, "TDB") == []
    assert assets.search_assets(alice, "TDB") == [created]


def test_search_includes_shared_assets(assets: AssetService, alice: UUID, shared_asset: Asset) -> None:
    assert assets.search_assets(alice, "dl") == [shared_asset]


def test_record_for_missing_asset(assets: AssetService, alice: UUID) -> None:
    with pytest.raises(ReferentialError):
        assets.record_dividends(alice, uuid4(), [])
