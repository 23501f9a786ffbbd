from typing import Generator

import pytest
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import AppSettings
from db.db import create_db_engine
from db.models import Base

engine: Engine = create_db_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
test_session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with test_session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def session_factory() -> sessionmaker[Session]:
    return test_session_factory


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def settings() -> AppSettings:
    return AppSettings(
        database_url="sqlite:///:memory:",
        home_currency="CURRENCY:CAD",
        asset_search_limit=10,
        max_login_attempts=3,
        login_attempt_window_seconds=60,
        _env_file=None,
    )
