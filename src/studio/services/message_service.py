"""Support chat between standard accounts and the administrator."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from fastapi import HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from studio.config import settings
from studio.services.account_store import Role


class SendMessageRequest(BaseModel):
    body: str = Field(..., min_length=1, max_length=4000)


class MessageResponse(BaseModel):
    message_id: uuid.UUID
    sender_identifier: str
    recipient_identifier: str
    sender_role: Role
    body: str
    created_at: datetime


async def send_message(
    db: AsyncSession,
    sender: str,
    recipient: str,
    sender_role: Role,
    body: str,
) -> MessageResponse:
    """Append one chat turn."""
    message = MessageResponse(
        message_id=uuid.uuid4(),
        sender_identifier=sender,
        recipient_identifier=recipient,
        sender_role=sender_role,
        body=body,
        created_at=datetime.now(timezone.utc),
    )
    await db.execute(
        text(
            "INSERT INTO support_messages "
            "(message_id, sender_identifier, recipient_identifier, sender_role, body, created_at) "
            "VALUES (:message_id, :sender_identifier, :recipient_identifier, "
            ":sender_role, :body, :created_at)"
        ),
        {**message.model_dump(), "sender_role": sender_role.value},
    )
    await db.commit()
    return message


async def send_to_admin(db: AsyncSession, sender: str, body: str) -> MessageResponse:
    return await send_message(db, sender, settings.ADMIN_EMAIL, Role.STANDARD, body)


async def _scan(db: AsyncSession) -> list[MessageResponse]:
    result = await db.execute(
        text(
            "SELECT message_id, sender_identifier, recipient_identifier, sender_role, "
            "body, created_at FROM support_messages ORDER BY created_at"
        )
    )
    return [MessageResponse.model_validate(dict(row)) for row in result.mappings().all()]


async def get_conversation(db: AsyncSession, identifier: str) -> list[MessageResponse]:
    """Messages sent by or to *identifier*, oldest first."""
    return [
        m for m in await _scan(db)
        if m.sender_identifier == identifier or m.recipient_identifier == identifier
    ]


async def get_unique_senders(db: AsyncSession) -> list[str]:
    """Standard accounts that have written at least once, in first-contact order."""
    senders: dict[str, None] = {}
    for message in await _scan(db):
        if message.sender_role == Role.STANDARD:
            senders.setdefault(message.sender_identifier, None)
    return list(senders)


async def delete_message(db: AsyncSession, message_id: uuid.UUID) -> None:
    result = await db.execute(
        text("DELETE FROM support_messages WHERE message_id = :message_id"),
        {"message_id": message_id},
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Message not found")
    await db.commit()
