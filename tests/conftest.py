import os
from datetime import datetime, timedelta, timezone

# Keep the application engine off Postgres while the app modules import.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

from db import get_session, get_store
from main import app
from otp import OTPIssuer
from store import InMemoryDonationStore, SqlDonationStore


class FakeClock:
    def __init__(
        self, start: datetime = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
    ) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def issuer(clock):
    return OTPIssuer(clock=clock)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'handoff.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryDonationStore()
    return SqlDonationStore(request.getfixturevalue("engine"))


@pytest.fixture
def make_client(engine):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_store] = lambda: SqlDonationStore(engine)

    yield lambda: TestClient(app)

    app.dependency_overrides.clear()
