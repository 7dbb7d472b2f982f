"""Session snapshots of the signed-in account, cached in Redis.

A session is created at sign-in and destroyed at sign-out (or when its TTL
lapses). Handlers receive it as an explicit :class:`SessionContext`.

Consistency contract: after a mutating quota call succeeds, the caller either
patches the snapshot with the value it already knows (:func:`mirror`, the
usual path) or re-reads the account and overwrites the snapshot
(:func:`refresh`). The patch is optimistic: if another session mutated the
same account, this snapshot stays stale until its next refresh. There is no
cross-session invalidation.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from studio.config import settings
from studio.services.account_store import AccountRecord, get_account, synthesize_admin

log = structlog.get_logger()

_KEY_PREFIX = "session:"


@dataclass
class SessionContext:
    session_id: str
    account: AccountRecord

    @property
    def identifier(self) -> str:
        return self.account.identifier


def mirror(session: SessionContext | None, identifier: str, **fields: Any) -> bool:
    """Patch the snapshot in place if it belongs to *identifier*."""
    if session is None or session.identifier != identifier:
        return False
    session.account = session.account.model_copy(update=fields)
    return True


async def refresh(db: AsyncSession, session: SessionContext) -> SessionContext:
    """Overwrite the snapshot with the authoritative account."""
    if session.account.is_admin:
        session.account = synthesize_admin()
        return session

    account = await get_account(db, session.identifier)
    if account is None:
        raise LookupError(f"Account {session.identifier} no longer exists")
    session.account = account
    return session


class SessionStore:
    """Redis-backed session cache keyed by session id."""

    def __init__(self, redis: Any, ttl_seconds: int | None = None) -> None:
        self._redis = redis
        self._ttl = ttl_seconds or settings.SESSION_TTL_SECONDS

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{_KEY_PREFIX}{session_id}"

    async def create(self, account: AccountRecord) -> SessionContext:
        session = SessionContext(session_id=secrets.token_urlsafe(24), account=account)
        await self.save(session)
        log.info("session_created", identifier=account.identifier)
        return session

    async def load(self, session_id: str) -> SessionContext | None:
        raw = await self._redis.get(self._key(session_id))
        if raw is None:
            return None
        return SessionContext(
            session_id=session_id,
            account=AccountRecord.model_validate_json(raw),
        )

    async def save(self, session: SessionContext) -> None:
        await self._redis.set(
            self._key(session.session_id),
            session.account.model_dump_json(),
            ex=self._ttl,
        )

    async def destroy(self, session_id: str) -> None:
        await self._redis.delete(self._key(session_id))
