"""Administrative overrides -- direct writes that bypass the quota service."""

from __future__ import annotations

from fastapi import HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from studio.services import account_store
from studio.services.account_store import AccountRecord, Role
from studio.services.audit_logger import audit
from studio.services.message_service import MessageResponse, send_message


class PlanUpdateRequest(BaseModel):
    plan_group: str = Field(..., min_length=1, max_length=30)
    max_generations: int = Field(..., ge=0)
    max_edits: int = Field(..., ge=0)


async def list_accounts(db: AsyncSession) -> list[AccountRecord]:
    return await account_store.scan_accounts(db)


async def _require_account(db: AsyncSession, identifier: str) -> AccountRecord:
    account = await account_store.get_account(db, identifier)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


async def update_plan(
    db: AsyncSession, admin: str, identifier: str, request: PlanUpdateRequest
) -> AccountRecord:
    """Overwrite the plan tier and legacy maximums."""
    account = await _require_account(db, identifier)
    fields = request.model_dump()
    await account_store.patch_account(db, identifier, fields)
    await db.commit()

    audit.log_admin_action(admin, "update_plan", identifier, **fields)
    return account.model_copy(update=fields)


async def reset_usage(db: AsyncSession, admin: str, identifier: str) -> AccountRecord:
    """Zero the legacy activity counters."""
    account = await _require_account(db, identifier)
    fields = {"generation_count": 0, "edit_count": 0}
    await account_store.patch_account(db, identifier, fields)
    await db.commit()

    audit.log_admin_action(admin, "reset_usage", identifier)
    return account.model_copy(update=fields)


async def delete_account(db: AsyncSession, admin: str, identifier: str) -> None:
    """Remove the account row. Its artifacts and messages are left in place."""
    if not await account_store.delete_account(db, identifier):
        raise HTTPException(status_code=404, detail="Account not found")
    await db.commit()

    audit.log_admin_action(admin, "delete_account", identifier)


async def reply(
    db: AsyncSession, admin: str, identifier: str, body: str
) -> MessageResponse:
    message = await send_message(db, admin, identifier, Role.ADMINISTRATOR, body)
    audit.log_admin_action(admin, "reply", identifier)
    return message
