"""Generation and edit endpoints -- the credit-consuming actions.

Flow for both endpoints: refresh the session from the store, admission check,
generative API call, save the artifact, then deduct and record activity.
A denied admission answers 402 with a pointer to the top-up surface instead
of raising.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from studio.api.dependencies import get_current_session, get_gemini_client, get_session_store
from studio.database import get_db
from studio.integrations.gemini_client import (
    GeminiClient,
    GeneratedImage,
    GenerationError,
    GenerationMode,
)
from studio.services.artifact_service import get_artifact, save_artifact
from studio.services.quota_service import (
    ActivityKind,
    admit,
    can_use_mode,
    deduct,
    needs_brand_sheet_reference,
    record_activity,
)
from studio.services.session_service import SessionContext, SessionStore, refresh

log = structlog.get_logger()

router = APIRouter(prefix="/api/v1/generations", tags=["generations"])

TOP_UP_URL = "/api/v1/credits/packs"
BRAND_SHEET_FIRST = "Generate a brand sheet first, then use it as the reference image."


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=2000)
    mode: GenerationMode = GenerationMode.BRAND_SHEET
    reference_artifact_id: uuid.UUID | None = None


class EditRequest(BaseModel):
    artifact_id: uuid.UUID
    prompt: str = Field(..., min_length=1, max_length=2000)


class GenerationResponse(BaseModel):
    artifact_id: uuid.UUID
    mode: GenerationMode
    prompt: str
    mime_type: str
    image_base64: str
    balance: int
    charged: bool
    warning: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _top_up_response() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        content={
            "admitted": False,
            "detail": "You are out of credits. Top up to keep creating.",
            "top_up_url": TOP_UP_URL,
        },
    )


async def _admit(db: AsyncSession, session: SessionContext) -> bool:
    try:
        await refresh(db, session)
    except LookupError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
        )
    admitted = admit(session.account)
    if not admitted:
        log.info("admission_denied", identifier=session.identifier)
    return admitted


async def _settle(
    db: AsyncSession,
    sessions: SessionStore,
    session: SessionContext,
    image: GeneratedImage,
    prompt: str,
    mode: GenerationMode,
    kind: ActivityKind,
) -> GenerationResponse:
    """Save the artifact, then charge and count the finished action."""
    saved = await save_artifact(db, session.identifier, image, prompt, mode.value)

    new_balance = await deduct(db, session.identifier, 1, session=session)
    await record_activity(db, session.identifier, kind, session=session)
    await sessions.save(session)

    return GenerationResponse(
        artifact_id=saved.artifact_id,
        mode=mode,
        prompt=prompt,
        mime_type=image.mime_type,
        image_base64=image.to_base64(),
        balance=session.account.balance,
        charged=new_balance is not None,
        warning=saved.warning,
    )


def _generation_failed(exc: GenerationError, action: str) -> HTTPException:
    log.warning(f"{action}_failed", error=str(exc), error_type=type(exc).__name__)
    if action == "edit":
        detail = (
            "Something went wrong while editing the image. "
            "Try describing the change more specifically."
        )
    else:
        detail = "Something went wrong while generating the image. Please try again shortly."
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


# ---------------------------------------------------------------------------
# POST /api/v1/generations
# ---------------------------------------------------------------------------

@router.post("", response_model=GenerationResponse)
async def create_generation(
    body: GenerateRequest,
    session: SessionContext = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
    db: AsyncSession = Depends(get_db),
    gemini: GeminiClient = Depends(get_gemini_client),
):
    """Generate a new character sheet for one credit."""
    if not await _admit(db, session):
        return _top_up_response()

    if not can_use_mode(session.account, body.mode):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This mode unlocks after your first credit purchase.",
        )

    needs_sheet = needs_brand_sheet_reference(session.account, body.mode)
    if needs_sheet and body.reference_artifact_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail=BRAND_SHEET_FIRST,
        )

    reference = None
    if body.reference_artifact_id is not None:
        artifact = await get_artifact(
            db, body.reference_artifact_id, session.identifier, session.account.is_admin,
        )
        if needs_sheet and artifact.mode != GenerationMode.BRAND_SHEET.value:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail=BRAND_SHEET_FIRST,
            )
        reference = artifact.to_image()

    try:
        image = await gemini.generate(body.prompt, body.mode, reference)
    except GenerationError as exc:
        raise _generation_failed(exc, "generation")

    return await _settle(
        db, sessions, session, image, body.prompt, body.mode, ActivityKind.GENERATION,
    )


# ---------------------------------------------------------------------------
# POST /api/v1/generations/edit
# ---------------------------------------------------------------------------

@router.post("/edit", response_model=GenerationResponse)
async def edit_generation(
    body: EditRequest,
    session: SessionContext = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
    db: AsyncSession = Depends(get_db),
    gemini: GeminiClient = Depends(get_gemini_client),
):
    """Edit a saved artifact for one credit; the result is saved as a new artifact."""
    if not await _admit(db, session):
        return _top_up_response()

    artifact = await get_artifact(
        db, body.artifact_id, session.identifier, session.account.is_admin,
    )
    mode = GenerationMode(artifact.mode)

    try:
        image = await gemini.edit(artifact.to_image(), body.prompt, mode)
    except GenerationError as exc:
        raise _generation_failed(exc, "edit")

    return await _settle(
        db, sessions, session, image, f"{artifact.prompt} (Edited)", mode, ActivityKind.EDIT,
    )
