"""Account store -- point reads/writes, atomic increments, and full scans.

Every read goes through :func:`migrate_account_row`, so callers always get a
fully populated :class:`AccountRecord` regardless of which schema version the
stored row was written with.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from studio.config import settings

log = structlog.get_logger()

CURRENT_SCHEMA_VERSION = 2

# Defaults for fields the fixed-quota scheme (schema v1) never wrote.
LEGACY_DEFAULTS: dict[str, Any] = {
    "plan_group": "basic",
    "max_generations": 1,
    "max_edits": 1,
    "generation_count": 0,
    "edit_count": 0,
}

_COLUMNS = (
    "identifier, display_name, role, balance, has_ever_purchased, created_at, "
    "sign_in_count, plan_group, max_generations, max_edits, generation_count, "
    "edit_count, schema_version"
)

PATCHABLE_FIELDS = frozenset({
    "display_name",
    "balance",
    "has_ever_purchased",
    "plan_group",
    "max_generations",
    "max_edits",
    "generation_count",
    "edit_count",
    "schema_version",
})

COUNTER_FIELDS = frozenset({"balance", "sign_in_count", "generation_count", "edit_count"})


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class Role(str, Enum):
    STANDARD = "standard"
    ADMINISTRATOR = "administrator"


class AccountRecord(BaseModel):
    identifier: str
    display_name: str
    role: Role = Role.STANDARD
    balance: int = 0
    has_ever_purchased: bool = False
    created_at: datetime
    sign_in_count: int = 0
    plan_group: str = "basic"
    max_generations: int = 1
    max_edits: int = 1
    generation_count: int = 0
    edit_count: int = 0

    model_config = {"from_attributes": True}

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMINISTRATOR


def is_admin(identifier: str) -> bool:
    return identifier.strip().lower() == settings.ADMIN_EMAIL


def synthesize_admin() -> AccountRecord:
    """Build the in-memory administrator account; it is never persisted."""
    return AccountRecord(
        identifier=settings.ADMIN_EMAIL,
        display_name="Administrator",
        role=Role.ADMINISTRATOR,
        balance=0,
        has_ever_purchased=True,
        created_at=datetime.now(timezone.utc),
        plan_group="admin",
        max_generations=9999,
        max_edits=9999,
    )


# ---------------------------------------------------------------------------
# Read-time migration
# ---------------------------------------------------------------------------

def migrate_account_row(row: Mapping[str, Any]) -> tuple[AccountRecord, dict[str, Any]]:
    """Fill fields missing from older rows.

    Returns the populated record and the column values that must be written
    back (empty when the row is already current).
    """
    data = dict(row)
    updates: dict[str, Any] = {}

    for field, default in LEGACY_DEFAULTS.items():
        if data.get(field) is None:
            updates[field] = default
    if data.get("balance") is None:
        updates["balance"] = settings.STARTING_BALANCE
    if (data.get("schema_version") or 1) < CURRENT_SCHEMA_VERSION:
        updates["schema_version"] = CURRENT_SCHEMA_VERSION

    data.update(updates)
    data.pop("schema_version", None)
    data.pop("password_hash", None)
    return AccountRecord.model_validate(data), updates


# ---------------------------------------------------------------------------
# Point operations
# ---------------------------------------------------------------------------

async def get_account(db: AsyncSession, identifier: str) -> AccountRecord | None:
    """Point read by identifier. Migrates and writes back legacy rows once."""
    result = await db.execute(
        text(f"SELECT {_COLUMNS} FROM accounts WHERE identifier = :identifier"),
        {"identifier": identifier},
    )
    row = result.mappings().first()
    if row is None:
        return None

    record, updates = migrate_account_row(row)
    if updates:
        await patch_account(db, identifier, updates)
        await db.commit()
        log.info("account_migrated", identifier=identifier, fields=sorted(updates))
    return record


async def get_password_hash(db: AsyncSession, identifier: str) -> str | None:
    result = await db.execute(
        text("SELECT password_hash FROM accounts WHERE identifier = :identifier"),
        {"identifier": identifier},
    )
    row = result.fetchone()
    return row[0] if row is not None else None


async def account_exists(db: AsyncSession, identifier: str) -> bool:
    result = await db.execute(
        text("SELECT 1 FROM accounts WHERE identifier = :identifier"),
        {"identifier": identifier},
    )
    return result.fetchone() is not None


async def insert_account(
    db: AsyncSession, record: AccountRecord, password_hash: str
) -> None:
    """Insert a new row. Raises IntegrityError if the identifier exists."""
    await db.execute(
        text(
            "INSERT INTO accounts (identifier, display_name, password_hash, role, "
            "balance, has_ever_purchased, created_at, sign_in_count, plan_group, "
            "max_generations, max_edits, generation_count, edit_count, schema_version) "
            "VALUES (:identifier, :display_name, :password_hash, :role, :balance, "
            ":has_ever_purchased, :created_at, :sign_in_count, :plan_group, "
            ":max_generations, :max_edits, :generation_count, :edit_count, "
            ":schema_version)"
        ),
        {
            **record.model_dump(),
            "role": record.role.value,
            "password_hash": password_hash,
            "schema_version": CURRENT_SCHEMA_VERSION,
        },
    )


async def patch_account(
    db: AsyncSession, identifier: str, fields: Mapping[str, Any]
) -> bool:
    """Overwrite the given fields (last write wins). Returns False if no row."""
    unknown = set(fields) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot patch account fields: {sorted(unknown)}")
    if not fields:
        return True

    assignments = ", ".join(f"{name} = :{name}" for name in fields)
    result = await db.execute(
        text(f"UPDATE accounts SET {assignments} WHERE identifier = :identifier"),
        {**fields, "identifier": identifier},
    )
    return result.rowcount > 0


async def increment_field(
    db: AsyncSession,
    identifier: str,
    field: str,
    amount: int,
    *,
    require_at_least: int | None = None,
    also_set: Mapping[str, Any] | None = None,
) -> int | None:
    """Atomically add *amount* to a counter column and return the new value.

    With *require_at_least*, the update only applies while the current value
    is at least that much. Returns None when no row matched.
    """
    if field not in COUNTER_FIELDS:
        raise ValueError(f"Not a counter field: {field}")

    extra = dict(also_set or {})
    unknown = set(extra) - PATCHABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot patch account fields: {sorted(unknown)}")

    assignments = [f"{field} = COALESCE({field}, 0) + :amount"]
    assignments.extend(f"{name} = :{name}" for name in extra)
    sql = f"UPDATE accounts SET {', '.join(assignments)} WHERE identifier = :identifier"
    params: dict[str, Any] = {**extra, "identifier": identifier, "amount": amount}
    if require_at_least is not None:
        sql += f" AND {field} >= :require_at_least"
        params["require_at_least"] = require_at_least
    sql += f" RETURNING {field}"

    result = await db.execute(text(sql), params)
    row = result.fetchone()
    return row[0] if row is not None else None


async def delete_account(db: AsyncSession, identifier: str) -> bool:
    result = await db.execute(
        text("DELETE FROM accounts WHERE identifier = :identifier"),
        {"identifier": identifier},
    )
    return result.rowcount > 0


async def scan_accounts(db: AsyncSession) -> list[AccountRecord]:
    """Full scan, newest first. Legacy rows are filled in memory only."""
    result = await db.execute(
        text(f"SELECT {_COLUMNS} FROM accounts ORDER BY created_at DESC")
    )
    return [migrate_account_row(row)[0] for row in result.mappings().all()]
