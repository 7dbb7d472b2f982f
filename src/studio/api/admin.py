"""Administrator endpoints -- accounts, artifacts, support inbox, SEO."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio.api.dependencies import require_admin
from studio.database import get_db
from studio.services import admin_service, artifact_service, message_service
from studio.services.account_store import AccountRecord
from studio.services.admin_service import PlanUpdateRequest
from studio.services.artifact_service import ArtifactSummary
from studio.services.message_service import MessageResponse, SendMessageRequest
from studio.services.session_service import SessionContext
from studio.services.site_config_service import SeoConfig, save_seo

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@router.get("/accounts", response_model=list[AccountRecord])
async def list_accounts(
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.list_accounts(db)


@router.patch("/accounts/{identifier}/plan", response_model=AccountRecord)
async def update_plan(
    identifier: str,
    body: PlanUpdateRequest,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.update_plan(db, admin.identifier, identifier, body)


@router.post("/accounts/{identifier}/reset-usage", response_model=AccountRecord)
async def reset_usage(
    identifier: str,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.reset_usage(db, admin.identifier, identifier)


@router.delete("/accounts/{identifier}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    identifier: str,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await admin_service.delete_account(db, admin.identifier, identifier)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------

@router.get("/artifacts", response_model=list[ArtifactSummary])
async def list_artifacts(
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await artifact_service.list_all(db)


# ---------------------------------------------------------------------------
# Support inbox
# ---------------------------------------------------------------------------

@router.get("/messages/senders", response_model=list[str])
async def list_senders(
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await message_service.get_unique_senders(db)


@router.get("/messages/{identifier}", response_model=list[MessageResponse])
async def read_conversation(
    identifier: str,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await message_service.get_conversation(db, identifier)


@router.post(
    "/messages/{identifier}",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def reply(
    identifier: str,
    body: SendMessageRequest,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_service.reply(db, admin.identifier, identifier, body.body)


@router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: uuid.UUID,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await message_service.delete_message(db, message_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# SEO
# ---------------------------------------------------------------------------

@router.put("/seo", response_model=SeoConfig)
async def update_seo(
    body: SeoConfig,
    admin: SessionContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await save_seo(db, body)
