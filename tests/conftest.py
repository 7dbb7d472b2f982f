import os

# Mandatory settings must exist before any studio module is imported.
os.environ.setdefault("ADMIN_EMAIL", "admin@studio.test")
os.environ.setdefault("ADMIN_SECRET", "admin-secret-for-tests")
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-unit-tests")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from studio.services.account_store import AccountRecord


class FakeRedis:
    """In-memory stand-in for the subset of redis.asyncio used by sessions."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, key):
        existed = key in self.data
        self.data.pop(key, None)
        self.ttls.pop(key, None)
        return int(existed)

    async def ping(self):
        return True

    async def close(self):
        pass


class FakeLedger:
    """Account rows keyed by identifier, standing in for the SQL store."""

    def __init__(self):
        self.accounts: dict[str, dict] = {}

    def add(self, identifier: str, **fields) -> AccountRecord:
        record = AccountRecord(
            identifier=identifier,
            display_name=identifier.split("@")[0],
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            **fields,
        )
        self.accounts[identifier] = record.model_dump()
        return record

    def record(self, identifier: str) -> AccountRecord:
        return AccountRecord.model_validate(self.accounts[identifier])

    async def get_account(self, db, identifier):
        row = self.accounts.get(identifier)
        return AccountRecord.model_validate(row) if row is not None else None

    async def increment_field(
        self, db, identifier, field, amount, *, require_at_least=None, also_set=None
    ):
        row = self.accounts.get(identifier)
        if row is None:
            return None
        if require_at_least is not None and row[field] < require_at_least:
            return None
        row[field] += amount
        row.update(also_set or {})
        return row[field]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def ledger(monkeypatch):
    """Route account reads and counter increments through a FakeLedger."""
    fake = FakeLedger()
    monkeypatch.setattr("studio.services.session_service.get_account", fake.get_account)
    monkeypatch.setattr("studio.services.quota_service.increment_field", fake.increment_field)
    return fake


@pytest.fixture
def mock_db():
    """An AsyncMock that behaves like an AsyncSession."""
    return AsyncMock()


@pytest_asyncio.fixture
async def client(fake_redis, mock_db):
    from studio.database import get_db
    from studio.main import app

    async def _override_get_db():
        yield mock_db

    previous = getattr(app.state, "redis", None)
    app.state.redis = fake_redis
    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.redis = previous


@pytest_asyncio.fixture
async def db_session():
    """An in-memory SQLite session with the accounts table created."""
    from studio.models import Account, Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=[Account.__table__])

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
    await engine.dispose()
