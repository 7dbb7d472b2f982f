"""Saved artifacts -- one row per successful generation or edit."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from studio.config import settings
from studio.integrations.gemini_client import GeneratedImage

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class ArtifactSummary(BaseModel):
    artifact_id: uuid.UUID
    owner_identifier: str
    mime_type: str
    prompt: str
    mode: str
    created_at: datetime


class StoredArtifact(ArtifactSummary):
    image_data: bytes

    def to_image(self) -> GeneratedImage:
        return GeneratedImage(data=self.image_data, mime_type=self.mime_type)

    def download_filename(self) -> str:
        extension = self.mime_type.split("/")[-1] or "png"
        return f"character-{self.mode}-{int(self.created_at.timestamp() * 1000)}.{extension}"


class SaveResult(BaseModel):
    artifact_id: uuid.UUID
    evicted: int = 0

    @property
    def warning(self) -> str | None:
        if not self.evicted:
            return None
        return (
            f"Storage limit reached: the {self.evicted} oldest saved "
            f"image(s) were removed."
        )


_SUMMARY_COLUMNS = "artifact_id, owner_identifier, mime_type, prompt, mode, created_at"


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------

async def save_artifact(
    db: AsyncSession,
    owner_identifier: str,
    image: GeneratedImage,
    prompt: str,
    mode: str,
) -> SaveResult:
    """Insert an artifact, evicting the owner's oldest ones past the cap."""
    artifact_id = uuid.uuid4()
    await db.execute(
        text(
            "INSERT INTO saved_artifacts "
            "(artifact_id, owner_identifier, image_data, mime_type, prompt, mode, created_at) "
            "VALUES (:artifact_id, :owner, :image_data, :mime_type, :prompt, :mode, :created_at)"
        ),
        {
            "artifact_id": artifact_id,
            "owner": owner_identifier,
            "image_data": image.data,
            "mime_type": image.mime_type,
            "prompt": prompt,
            "mode": mode,
            "created_at": datetime.now(timezone.utc),
        },
    )
    evicted = await _evict_oldest(db, owner_identifier, settings.MAX_ARTIFACTS_PER_ACCOUNT)
    await db.commit()
    return SaveResult(artifact_id=artifact_id, evicted=evicted)


async def _evict_oldest(db: AsyncSession, owner_identifier: str, keep: int) -> int:
    result = await db.execute(
        text(
            "SELECT artifact_id FROM saved_artifacts WHERE owner_identifier = :owner "
            "ORDER BY created_at DESC OFFSET :keep"
        ),
        {"owner": owner_identifier, "keep": keep},
    )
    stale = [row[0] for row in result.fetchall()]
    for artifact_id in stale:
        await db.execute(
            text("DELETE FROM saved_artifacts WHERE artifact_id = :artifact_id"),
            {"artifact_id": artifact_id},
        )
    if stale:
        log.warning(
            "artifacts_evicted",
            owner_identifier=owner_identifier,
            evicted=len(stale),
            limit=keep,
        )
    return len(stale)


async def list_for_owner(db: AsyncSession, owner_identifier: str) -> list[ArtifactSummary]:
    """Return the owner's artifacts, newest first."""
    result = await db.execute(
        text(
            f"SELECT {_SUMMARY_COLUMNS} FROM saved_artifacts "
            "WHERE owner_identifier = :owner ORDER BY created_at DESC"
        ),
        {"owner": owner_identifier},
    )
    return [ArtifactSummary.model_validate(dict(row)) for row in result.mappings().all()]


async def list_all(db: AsyncSession) -> list[ArtifactSummary]:
    result = await db.execute(
        text(f"SELECT {_SUMMARY_COLUMNS} FROM saved_artifacts ORDER BY created_at DESC")
    )
    return [ArtifactSummary.model_validate(dict(row)) for row in result.mappings().all()]


async def get_artifact(
    db: AsyncSession, artifact_id: uuid.UUID, requester: str, is_admin: bool = False
) -> StoredArtifact:
    """Load an artifact the requester may see. Raises 404 otherwise."""
    result = await db.execute(
        text(
            f"SELECT {_SUMMARY_COLUMNS}, image_data FROM saved_artifacts "
            "WHERE artifact_id = :artifact_id"
        ),
        {"artifact_id": artifact_id},
    )
    row = result.mappings().first()
    if row is None or (not is_admin and row["owner_identifier"] != requester):
        raise HTTPException(status_code=404, detail="Artifact not found")
    return StoredArtifact.model_validate(dict(row))


async def delete_artifact(
    db: AsyncSession, artifact_id: uuid.UUID, requester: str, is_admin: bool = False
) -> None:
    """Delete an artifact owned by the requester (any artifact for admins)."""
    sql = "DELETE FROM saved_artifacts WHERE artifact_id = :artifact_id"
    params: dict = {"artifact_id": artifact_id}
    if not is_admin:
        sql += " AND owner_identifier = :owner"
        params["owner"] = requester

    result = await db.execute(text(sql), params)
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Artifact not found")
    await db.commit()
