from __future__ import annotations

import logging

import sentry_sdk
import stripe
from fastapi import APIRouter, HTTPException, Request, status

from ..config import settings
from ..metrics import stripe_webhook_events_total
from ..services import checkout_service, subscription_service

router = APIRouter(prefix="/webhooks", tags=["stripe-webhooks"])
logger = logging.getLogger(__name__)

CHECKOUT_EVENTS = frozenset(
    {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
)
SUBSCRIPTION_EVENTS = frozenset(
    {
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
        "invoice.payment_failed",
    }
)


@router.post("/stripe", status_code=status.HTTP_200_OK)
async def stripe_webhook(request: Request):
    if not settings.stripe_webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stripe webhook secret missing",
        )

    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe signature",
        )

    try:
        event = stripe.Webhook.construct_event(
            payload=payload.decode("utf-8"),
            sig_header=signature,
            secret=settings.stripe_webhook_secret,
        )
    except ValueError as exc:
        logger.warning("Invalid Stripe payload: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload"
        ) from exc
    except stripe.SignatureVerificationError as exc:
        logger.warning("Invalid Stripe signature: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature"
        ) from exc

    event_type = event.get("type") or "unknown"
    data_object = event.get("data", {}).get("object", {})
    stripe_webhook_events_total.labels(event_type=event_type).inc()

    try:
        if event_type in CHECKOUT_EVENTS:
            await checkout_service.handle_checkout_session_completed(data_object)
        elif event_type in SUBSCRIPTION_EVENTS:
            await subscription_service.process_event(event)
        else:
            logger.info("Unhandled Stripe event %s", event_type)
    except Exception as exc:
        logger.exception("Failed to process Stripe event %s (%s)", event.get("id"), event_type)
        sentry_sdk.capture_exception(exc)
        raise

    return {"status": "ok"}
