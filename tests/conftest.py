from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db.models import Base
from tests.helpers.quotes import StubQuoteFetcher, make_quote

# One shared connection so the scheduler thread and TestClient's threadpool see the same in-memory DB.
engine: Engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session_factory() -> sessionmaker[Session]:
    return session_factory


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def stub_fetcher() -> StubQuoteFetcher:
    return StubQuoteFetcher(make_quote())
