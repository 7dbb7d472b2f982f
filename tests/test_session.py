"""Tests for session snapshots and their Redis-backed store."""

from __future__ import annotations

import pytest

from studio.config import settings
from studio.services.account_store import synthesize_admin
from studio.services.session_service import SessionContext, SessionStore, mirror, refresh


USER = "member@example.com"


# ---------------------------------------------------------------------------
# SessionStore
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_then_load_round_trips_snapshot(fake_redis, ledger):
    account = ledger.add(USER, balance=2)
    store = SessionStore(fake_redis)

    session = await store.create(account)
    loaded = await store.load(session.session_id)

    assert loaded is not None
    assert loaded.account == account
    assert fake_redis.ttls[f"session:{session.session_id}"] == settings.SESSION_TTL_SECONDS


@pytest.mark.asyncio
async def test_sessions_get_distinct_ids(fake_redis, ledger):
    account = ledger.add(USER)
    store = SessionStore(fake_redis)

    first = await store.create(account)
    second = await store.create(account)

    assert first.session_id != second.session_id


@pytest.mark.asyncio
async def test_destroy_ends_session(fake_redis, ledger):
    store = SessionStore(fake_redis, ttl_seconds=60)
    session = await store.create(ledger.add(USER))

    await store.destroy(session.session_id)

    assert await store.load(session.session_id) is None


@pytest.mark.asyncio
async def test_load_unknown_session_returns_none(fake_redis):
    assert await SessionStore(fake_redis).load("missing") is None


# ---------------------------------------------------------------------------
# mirror / refresh
# ---------------------------------------------------------------------------

def test_mirror_patches_only_matching_identifier(ledger):
    session = SessionContext(session_id="sid", account=ledger.add(USER, balance=2))

    assert mirror(session, USER, balance=1) is True
    assert session.account.balance == 1
    assert mirror(session, "other@example.com", balance=99) is False
    assert session.account.balance == 1
    assert mirror(None, USER, balance=0) is False


@pytest.mark.asyncio
async def test_refresh_overwrites_stale_snapshot(ledger, mock_db):
    session = SessionContext(session_id="sid", account=ledger.add(USER, balance=2))
    ledger.accounts[USER]["balance"] = 12

    await refresh(mock_db, session)

    assert session.account.balance == 12


@pytest.mark.asyncio
async def test_refresh_deleted_account_raises(ledger, mock_db):
    session = SessionContext(session_id="sid", account=ledger.add(USER))
    del ledger.accounts[USER]

    with pytest.raises(LookupError):
        await refresh(mock_db, session)


@pytest.mark.asyncio
async def test_refresh_admin_never_reads_store(ledger, mock_db):
    session = SessionContext(session_id="sid", account=synthesize_admin())

    await refresh(mock_db, session)

    assert session.account.is_admin
    mock_db.execute.assert_not_awaited()
