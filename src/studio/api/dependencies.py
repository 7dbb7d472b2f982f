"""Shared FastAPI dependencies for authenticated routes."""

from __future__ import annotations

from fastapi import Cookie, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from studio.integrations.gemini_client import GeminiClient
from studio.services.auth_service import verify_token
from studio.services.session_service import SessionContext, SessionStore

# Optional bearer scheme -- auto_error=False so we can fall back to cookies
_bearer_scheme = HTTPBearer(auto_error=False)


def get_session_store(request: Request) -> SessionStore:
    return SessionStore(request.app.state.redis)


def get_gemini_client() -> GeminiClient:
    return GeminiClient()


async def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    access_token: str | None = Cookie(default=None),
    sessions: SessionStore = Depends(get_session_store),
) -> SessionContext:
    """Resolve the access token to its live session.

    Token sources (checked in order):
      1. Authorization: Bearer <token> header
      2. ``access_token`` cookie

    Raises HTTPException(401) if no valid token is found or the session has
    ended (sign-out or expiry).
    """
    token: str | None = None

    if credentials is not None:
        token = credentials.credentials
    elif access_token is not None:
        token = access_token

    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(token)
    session = await sessions.load(payload["sid"])

    if session is None or session.identifier != payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has ended",
        )

    return session


async def require_admin(
    session: SessionContext = Depends(get_current_session),
) -> SessionContext:
    if not session.account.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return session
