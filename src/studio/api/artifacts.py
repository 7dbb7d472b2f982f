"""Saved artifact endpoints -- list, download, delete."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio.api.dependencies import get_current_session
from studio.database import get_db
from studio.services.artifact_service import (
    ArtifactSummary,
    delete_artifact,
    get_artifact,
    list_for_owner,
)
from studio.services.session_service import SessionContext

router = APIRouter(prefix="/api/v1/artifacts", tags=["artifacts"])


@router.get("", response_model=list[ArtifactSummary])
async def list_artifacts(
    session: SessionContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    """Return the signed-in account's saved artifacts, newest first."""
    return await list_for_owner(db, session.identifier)


@router.get("/{artifact_id}/download")
async def download_artifact(
    artifact_id: uuid.UUID,
    session: SessionContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    artifact = await get_artifact(db, artifact_id, session.identifier, session.account.is_admin)
    return Response(
        content=artifact.image_data,
        media_type=artifact.mime_type,
        headers={
            "Content-Disposition": f'attachment; filename="{artifact.download_filename()}"',
        },
    )


@router.delete("/{artifact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_artifact(
    artifact_id: uuid.UUID,
    session: SessionContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    await delete_artifact(db, artifact_id, session.identifier, session.account.is_admin)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
