"""Credit top-ups -- Stripe checkout sessions and the payment-return marker."""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import urlencode

import stripe
import structlog
from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from studio.config import settings
from studio.services.quota_service import credit
from studio.services.session_service import SessionContext

log = structlog.get_logger()

stripe.api_key = settings.STRIPE_SECRET_KEY

PAYMENT_MARKER = "payment_success"
PACK_PARAM = "pack_id"


class CreditPack(BaseModel):
    pack_id: str
    name: str
    price_cents: int
    credit_amount: int
    popular: bool = False


CREDIT_PACKS: dict[str, CreditPack] = {
    "starter": CreditPack(
        pack_id="starter", name="Starter Pack", price_cents=500, credit_amount=10,
    ),
    "pro": CreditPack(
        pack_id="pro", name="Pro Pack", price_cents=2000, credit_amount=50, popular=True,
    ),
}


class CheckoutRequest(BaseModel):
    pack_id: str


def get_pack(pack_id: str) -> CreditPack:
    pack = CREDIT_PACKS.get(pack_id)
    if pack is None:
        raise HTTPException(status_code=404, detail="Credit pack not found")
    return pack


# ---------------------------------------------------------------------------
# Checkout session creation
# ---------------------------------------------------------------------------

def _return_url(**params: str) -> str:
    base = settings.PUBLIC_BASE_URL.rstrip("/")
    return f"{base}/api/v1/credits/payment-return?{urlencode(params)}"


async def create_checkout_session(identifier: str, pack_id: str) -> str:
    """Create a Stripe Checkout Session for a credit pack.

    Returns the Stripe Checkout Session URL.
    """
    pack = get_pack(pack_id)

    session = stripe.checkout.Session.create(
        line_items=[
            {
                "price_data": {
                    "currency": "usd",
                    "unit_amount": pack.price_cents,
                    "product_data": {"name": pack.name},
                },
                "quantity": 1,
            }
        ],
        mode="payment",
        customer_email=identifier,
        metadata={"identifier": identifier, "pack_id": pack.pack_id},
        success_url=_return_url(**{PAYMENT_MARKER: "true", PACK_PARAM: pack.pack_id}),
        cancel_url=settings.PUBLIC_BASE_URL.rstrip("/") + "/",
    )

    return session.url


# ---------------------------------------------------------------------------
# Payment return
# ---------------------------------------------------------------------------

def stripped_redirect_url(query: Mapping[str, str]) -> str:
    """Landing URL with the payment marker removed so a refresh cannot replay it."""
    kept = {k: v for k, v in query.items() if k not in (PAYMENT_MARKER, PACK_PARAM)}
    base = settings.PUBLIC_BASE_URL.rstrip("/") + "/"
    return f"{base}?{urlencode(kept)}" if kept else base


async def handle_payment_return(
    db: AsyncSession,
    session: SessionContext,
    query: Mapping[str, str],
) -> int | None:
    """Credit the signed-in account once if the success marker is present.

    Returns the new balance, or None when nothing was credited. The marker is
    the only replay guard and it is best effort: re-entering the URL by hand
    credits again.
    """
    if query.get(PAYMENT_MARKER) != "true":
        return None

    pack = CREDIT_PACKS.get(query.get(PACK_PARAM, ""))
    amount = pack.credit_amount if pack else settings.DEFAULT_TOPUP_CREDITS

    new_balance = await credit(db, session.identifier, amount, session=session)
    log.info(
        "payment_return_processed",
        identifier=session.identifier,
        amount=amount,
        credited=new_balance is not None,
    )
    return new_balance
