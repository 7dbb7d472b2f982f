"""Authentication API router -- /api/v1/auth/*."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from studio.api.dependencies import get_current_session, get_session_store
from studio.config import settings
from studio.database import get_db
from studio.services.account_store import AccountRecord
from studio.services.auth_service import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    authenticate,
    create_access_token,
    register_account,
)
from studio.services.session_service import SessionContext, SessionStore, refresh

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _set_token_cookie(response: Response, token: str) -> None:
    """Set an httpOnly, SameSite=Lax cookie for the access token.

    Lax (not Strict) so the cookie survives the redirect back from checkout.
    Secure everywhere except development, which runs on plain http.
    """
    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        secure=settings.APP_ENV != "development",
        samesite="lax",
        max_age=settings.SESSION_TTL_SECONDS,
        path="/",
    )


async def _open_session(
    account: AccountRecord, response: Response, sessions: SessionStore
) -> TokenResponse:
    session = await sessions.create(account)
    token = create_access_token(session)
    _set_token_cookie(response, token)
    return TokenResponse(access_token=token, account=session.account)


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
) -> TokenResponse:
    """Register a new account and sign it in."""
    account = await register_account(db, request)
    return await _open_session(account, response, sessions)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
) -> TokenResponse:
    """Authenticate and open a session (also sets an httpOnly cookie)."""
    account = await authenticate(db, request.email, request.password)
    return await _open_session(account, response, sessions)


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(
    response: Response,
    session: SessionContext = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
) -> dict:
    """End the session and clear the cookie."""
    await sessions.destroy(session.session_id)
    response.delete_cookie("access_token", path="/")
    return {"detail": "Successfully logged out"}


@router.get("/me", response_model=AccountRecord)
async def me(
    session: SessionContext = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
    db: AsyncSession = Depends(get_db),
) -> AccountRecord:
    """Re-read the account from the store and return the refreshed snapshot."""
    try:
        await refresh(db, session)
    except LookupError:
        await sessions.destroy(session.session_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
        )
    await sessions.save(session)
    return session.account
