"""Credit pack, balance, checkout, and payment-return endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from studio.api.dependencies import get_current_session, get_session_store
from studio.database import get_db
from studio.services.payment_service import (
    CREDIT_PACKS,
    CheckoutRequest,
    CreditPack,
    create_checkout_session,
    handle_payment_return,
    stripped_redirect_url,
)
from studio.services.session_service import SessionContext, SessionStore, refresh

router = APIRouter(prefix="/api/v1/credits", tags=["credits"])


class CreditBalanceResponse(BaseModel):
    identifier: str
    balance: int
    has_ever_purchased: bool
    unlimited: bool


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/packs", response_model=list[CreditPack])
async def list_packs():
    """Return the credit packs available for purchase."""
    return list(CREDIT_PACKS.values())


@router.get("/balance", response_model=CreditBalanceResponse)
async def read_balance(
    session: SessionContext = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
    db: AsyncSession = Depends(get_db),
):
    """Return the authoritative balance and resync the session with it."""
    try:
        await refresh(db, session)
    except LookupError:
        await sessions.destroy(session.session_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
        )
    await sessions.save(session)
    account = session.account
    return CreditBalanceResponse(
        identifier=account.identifier,
        balance=account.balance,
        has_ever_purchased=account.has_ever_purchased,
        unlimited=account.is_admin,
    )


@router.post("/checkout")
async def checkout(
    body: CheckoutRequest,
    session: SessionContext = Depends(get_current_session),
):
    """Create a Stripe Checkout Session for the requested credit pack."""
    url = await create_checkout_session(session.identifier, body.pack_id)
    return {"checkout_url": url}


@router.get("/payment-return")
async def payment_return(
    request: Request,
    session: SessionContext = Depends(get_current_session),
    sessions: SessionStore = Depends(get_session_store),
    db: AsyncSession = Depends(get_db),
):
    """Credit once on a successful checkout, then redirect without the marker."""
    query = dict(request.query_params)
    new_balance = await handle_payment_return(db, session, query)
    if new_balance is not None:
        await sessions.save(session)
    return RedirectResponse(
        url=stripped_redirect_url(query),
        status_code=status.HTTP_303_SEE_OTHER,
    )
