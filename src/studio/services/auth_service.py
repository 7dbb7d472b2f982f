"""Authentication gate: administrator check, registration, sign-in, tokens."""

from __future__ import annotations

import hmac
import re
from datetime import datetime, timedelta, timezone
from enum import Enum

import bcrypt
from fastapi import HTTPException, status
from jose import JWTError, jwt
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studio.config import settings
from studio.services.account_store import (
    LEGACY_DEFAULTS,
    AccountRecord,
    account_exists,
    get_account,
    get_password_hash,
    increment_field,
    insert_account,
    is_admin,
    synthesize_admin,
)
from studio.services.audit_logger import audit
from studio.services.session_service import SessionContext

# ---------------------------------------------------------------------------
# Password hashing helpers (bcrypt, cost 12)
# ---------------------------------------------------------------------------

_BCRYPT_ROUNDS = 12
MIN_SECRET_LENGTH = 6


def hash_password(password: str) -> str:
    """Hash a plaintext password with bcrypt (cost 12)."""
    salt = bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a bcrypt hash."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        hashed_password.encode("utf-8"),
    )


# ---------------------------------------------------------------------------
# Failure kinds
# ---------------------------------------------------------------------------

class AuthFailure(str, Enum):
    UNREGISTERED = "unregistered"
    BAD_CREDENTIAL = "bad_credential"
    DUPLICATE_IDENTIFIER = "duplicate_identifier"
    WEAK_SECRET = "weak_secret"


_FAILURES = {
    AuthFailure.UNREGISTERED: (
        status.HTTP_404_NOT_FOUND,
        "This email is not registered. Please sign up first.",
    ),
    AuthFailure.BAD_CREDENTIAL: (
        status.HTTP_401_UNAUTHORIZED,
        "The password does not match.",
    ),
    AuthFailure.DUPLICATE_IDENTIFIER: (
        status.HTTP_409_CONFLICT,
        "This email is already registered. Please sign in instead.",
    ),
    AuthFailure.WEAK_SECRET: (
        status.HTTP_400_BAD_REQUEST,
        f"Password must be at least {MIN_SECRET_LENGTH} characters.",
    ),
}


class AuthError(HTTPException):
    """HTTP error tagged with the failure kind the client should show."""

    def __init__(self, kind: AuthFailure) -> None:
        status_code, message = _FAILURES[kind]
        super().__init__(
            status_code=status_code,
            detail=message,
            headers={"X-Auth-Error": kind.value},
        )
        self.kind = kind


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

_EMAIL_PATTERN = r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$"


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str
    display_name: str | None = Field(None, min_length=1, max_length=80)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not re.match(_EMAIL_PATTERN, v):
            raise ValueError("Invalid email address")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountRecord


# ---------------------------------------------------------------------------
# Service functions
# ---------------------------------------------------------------------------

def default_display_name(identifier: str) -> str:
    """Derive a display name from the local part of the email."""
    return identifier.split("@", 1)[0][:80] or "member"


async def register_account(db: AsyncSession, request: RegisterRequest) -> AccountRecord:
    """Create a standard account with the starting balance.

    An existing identifier (including the administrator's) is rejected
    without touching the stored row.
    """
    identifier = request.email

    if is_admin(identifier) or await account_exists(db, identifier):
        raise AuthError(AuthFailure.DUPLICATE_IDENTIFIER)

    if len(request.password) < MIN_SECRET_LENGTH:
        raise AuthError(AuthFailure.WEAK_SECRET)

    record = AccountRecord(
        identifier=identifier,
        display_name=request.display_name or default_display_name(identifier),
        balance=settings.STARTING_BALANCE,
        has_ever_purchased=False,
        created_at=datetime.now(timezone.utc),
        sign_in_count=1,
        **LEGACY_DEFAULTS,
    )

    try:
        await insert_account(db, record, hash_password(request.password))
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email.
        await db.rollback()
        raise AuthError(AuthFailure.DUPLICATE_IDENTIFIER)

    audit.log_sign_in(identifier, record.role.value, registered=True)
    return record


async def authenticate(db: AsyncSession, identifier: str, secret: str) -> AccountRecord:
    """Resolve an identifier/secret pair to an account or raise AuthError."""
    identifier = identifier.strip().lower()

    if is_admin(identifier):
        if not hmac.compare_digest(
            secret.encode("utf-8"), settings.ADMIN_SECRET.encode("utf-8")
        ):
            raise AuthError(AuthFailure.BAD_CREDENTIAL)
        account = synthesize_admin()
        audit.log_sign_in(identifier, account.role.value)
        return account

    password_hash = await get_password_hash(db, identifier)
    if password_hash is None:
        raise AuthError(AuthFailure.UNREGISTERED)

    if not verify_password(secret, password_hash):
        raise AuthError(AuthFailure.BAD_CREDENTIAL)

    await increment_field(db, identifier, "sign_in_count", 1)
    await db.commit()

    account = await get_account(db, identifier)
    if account is None:
        raise AuthError(AuthFailure.UNREGISTERED)

    audit.log_sign_in(identifier, account.role.value)
    return account


def create_access_token(session: SessionContext) -> str:
    """Sign a JWT binding the account identifier to its session id."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": session.identifier,
        "sid": session.session_id,
        "type": "access",
        "exp": now + timedelta(seconds=settings.SESSION_TTL_SECONDS),
        "iat": now,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm="HS256")


def verify_token(token: str) -> dict:
    """Decode and validate an access token.

    Raises:
        HTTPException(401) if the token is invalid, expired, or malformed.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=["HS256"])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    if payload.get("type") != "access" or not payload.get("sid"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed access token",
        )

    return payload
