"""Quota service -- admission checks, deductions, top-ups, and activity counters.

Ordering contract for every credit-consuming action:

1. ``admit`` must return True before the action is attempted.
2. ``deduct`` (then ``record_activity``) runs only after the action succeeded.

Accounting writes happen after an irreversible third-party call, so a failed
write is logged and swallowed rather than raised. A crash between a
successful action and ``deduct`` leaves the action uncharged.
"""

from __future__ import annotations

from enum import Enum

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from studio.services.account_store import AccountRecord, increment_field, is_admin
from studio.services.audit_logger import audit
from studio.services.session_service import SessionContext, mirror

log = structlog.get_logger()

FREE_MODES = frozenset({"brand_sheet"})


class ActivityKind(str, Enum):
    GENERATION = "generation"
    EDIT = "edit"


_ACTIVITY_FIELDS = {
    ActivityKind.GENERATION: "generation_count",
    ActivityKind.EDIT: "edit_count",
}


# ---------------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------------

def admit(account: AccountRecord) -> bool:
    """Return True if *account* may start a credit-consuming action."""
    if account.is_admin:
        return True
    return account.balance > 0


def can_use_mode(account: AccountRecord, mode: str) -> bool:
    """Premium modes need at least one past top-up."""
    if mode in FREE_MODES or account.is_admin:
        return True
    return account.has_ever_purchased


def needs_brand_sheet_reference(account: AccountRecord, mode: str) -> bool:
    """Premium modes build on a saved brand sheet for character consistency."""
    return mode not in FREE_MODES and not account.is_admin


# ---------------------------------------------------------------------------
# Balance mutations
# ---------------------------------------------------------------------------

async def deduct(
    db: AsyncSession,
    identifier: str,
    amount: int = 1,
    session: SessionContext | None = None,
) -> int | None:
    """Atomically subtract *amount* from the stored balance.

    Returns the new balance, or None when nothing was charged (administrator,
    store failure, or a balance already too low).
    """
    if is_admin(identifier):
        return None

    try:
        new_balance = await increment_field(
            db, identifier, "balance", -amount, require_at_least=amount,
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        log.error("deduct_failed", identifier=identifier, amount=amount, error=str(exc))
        return None

    if new_balance is None:
        log.warning("deduct_skipped", identifier=identifier, amount=amount)
        return None

    mirror(session, identifier, balance=new_balance)
    audit.log_credit_event(identifier, -amount, "spend", new_balance)
    return new_balance


async def credit(
    db: AsyncSession,
    identifier: str,
    amount: int,
    session: SessionContext | None = None,
) -> int | None:
    """Add *amount* credits and mark the account as having purchased.

    Returns the new balance, or None if the write failed.
    """
    if amount <= 0:
        raise ValueError("Credit amount must be positive")

    try:
        new_balance = await increment_field(
            db, identifier, "balance", amount,
            also_set={"has_ever_purchased": True},
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        log.error("credit_failed", identifier=identifier, amount=amount, error=str(exc))
        return None

    if new_balance is None:
        log.warning("credit_unknown_account", identifier=identifier, amount=amount)
        return None

    mirror(session, identifier, balance=new_balance, has_ever_purchased=True)
    audit.log_credit_event(identifier, amount, "top_up", new_balance)
    return new_balance


async def record_activity(
    db: AsyncSession,
    identifier: str,
    kind: ActivityKind,
    session: SessionContext | None = None,
) -> int | None:
    """Bump the per-kind usage counter. Never raises on store errors."""
    if is_admin(identifier):
        return None

    kind = ActivityKind(kind)
    field = _ACTIVITY_FIELDS[kind]
    try:
        count = await increment_field(db, identifier, field, 1)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        log.error("record_activity_failed", identifier=identifier, kind=kind.value, error=str(exc))
        return None

    if count is not None:
        mirror(session, identifier, **{field: count})
    return count
