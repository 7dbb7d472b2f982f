"""Support chat endpoints for standard accounts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio.api.dependencies import get_current_session
from studio.database import get_db
from studio.services.message_service import (
    MessageResponse,
    SendMessageRequest,
    get_conversation,
    send_to_admin,
)
from studio.services.session_service import SessionContext

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


@router.get("", response_model=list[MessageResponse])
async def read_conversation(
    session: SessionContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    """Return the conversation with the administrator, oldest first."""
    return await get_conversation(db, session.identifier)


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def post_message(
    body: SendMessageRequest,
    session: SessionContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    if session.account.is_admin:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Administrators reply through /api/v1/admin/messages",
        )
    return await send_to_admin(db, session.identifier, body.body)
