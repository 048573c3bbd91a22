"""Shared fixtures: fake collaborators, an in-memory SQLite database and an HTTP client"""
import os

# Must be set before app.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

import copy
import dataclasses
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.domain.alpaca import Alpaca
from app.services.alpaca_service import AlpacaService
from app.services.security import BcryptHasher


T0 = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Deterministic clock, advanced by hand"""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemoryAlpacaStore:
    """Store that keeps deep copies, like a database would"""

    def __init__(self, alpacas: Optional[List[Alpaca]] = None):
        self.alpacas: Dict[int, Alpaca] = {}
        self.save_calls = 0
        self.locked_loads: List[int] = []
        self.next_record_id = 1
        self.fail_on_save: Optional[Exception] = None
        for alpaca in alpacas or []:
            self.alpacas[alpaca.id] = copy.deepcopy(alpaca)

    async def get_by_id(self, alpaca_id: int, for_update: bool = False) -> Optional[Alpaca]:
        if for_update:
            self.locked_loads.append(alpaca_id)
        alpaca = self.alpacas.get(alpaca_id)
        return copy.deepcopy(alpaca) if alpaca else None

    async def get_all(self) -> List[Alpaca]:
        return [copy.deepcopy(a) for _, a in sorted(self.alpacas.items())]

    async def save(self, alpaca: Alpaca) -> Alpaca:
        if self.fail_on_save:
            raise self.fail_on_save
        self.save_calls += 1

        ledger = []
        for record in reversed(alpaca.ledger):
            if record.id is None:
                record = dataclasses.replace(record, id=self.next_record_id)
                self.next_record_id += 1
            ledger.insert(0, record)

        stored = copy.deepcopy(alpaca)
        stored.ledger = ledger
        self.alpacas[alpaca.id] = stored
        return copy.deepcopy(stored)


class FakePaymentGateway:
    def __init__(self, verified: bool = True):
        self.verified = verified
        self.verified_references: List[str] = []
        self.intents: List[dict] = []

    async def verify_payment(self, reference: str) -> bool:
        self.verified_references.append(reference)
        return self.verified

    async def create_payment_intent(self, amount: Decimal, metadata: Dict[str, str]) -> Dict[str, str]:
        self.intents.append({"amount": amount, **metadata})
        return {"client_secret": "pi_test_secret_abc", "payment_intent_id": "pi_test"}


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def hasher():
    # Minimum bcrypt cost keeps the suite fast
    return BcryptHasher(rounds=4)


@pytest.fixture
def system_alpaca(clock):
    """System-owned alpaca last traded 10 minutes ago"""
    alpaca = Alpaca.provision(1, Decimal("100.00"))
    alpaca.last_transfer_at = clock() - timedelta(minutes=10)
    return alpaca


@pytest.fixture
def store(system_alpaca):
    return InMemoryAlpacaStore([system_alpaca])


@pytest.fixture
def service(store, hasher, clock):
    return AlpacaService(
        store=store,
        hasher=hasher,
        clock=clock,
        cooldown=timedelta(minutes=5),
        max_unverified_bid=Decimal("1000000"),
    )


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP client bound to the app with the test database and a fast hasher"""
    from app.main import app
    from app.api.v1.alpacas import get_hasher, get_payment_gateway

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_hasher] = lambda: BcryptHasher(rounds=4)
    app.dependency_overrides[get_payment_gateway] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
