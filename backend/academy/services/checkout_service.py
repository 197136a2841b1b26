from __future__ import annotations

import logging
from typing import Any, Mapping

import stripe
from fastapi import HTTPException, status
from starlette.concurrency import run_in_threadpool

from .. import schemas, stripe_mode
from ..config import settings
from ..repositories import courses as courses_repo
from ..repositories import entitlements as entitlements_repo
from ..repositories import orders as orders_repo

logger = logging.getLogger(__name__)

RETURN_PATH = "checkout/return?session_id={CHECKOUT_SESSION_ID}"
CANCEL_PATH = "checkout/cancel"


def _default_checkout_urls() -> tuple[str, str]:
    base = (settings.frontend_base_url or "").rstrip("/")
    success_url = settings.checkout_success_url or f"{base}/{RETURN_PATH}"
    cancel_url = settings.checkout_cancel_url or f"{base}/{CANCEL_PATH}"
    return success_url, cancel_url


def _require_stripe() -> None:
    try:
        stripe_mode.configure_stripe()
    except stripe_mode.StripeConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc


async def _load_course(request: schemas.CourseCheckoutRequest) -> dict[str, Any]:
    if request.course_id:
        course = await courses_repo.get_course(request.course_id)
    else:
        course = await courses_repo.get_course_by_slug(request.slug or "")
    if not course or not course.get("is_published"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="course not found")
    return course


async def create_course_checkout(
    user: Mapping[str, Any],
    request: schemas.CourseCheckoutRequest,
) -> schemas.CheckoutCreateResponse:
    _require_stripe()
    course = await _load_course(request)

    amount_cents = int(course.get("price_cents") or 0)
    if amount_cents <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="course is not sold through checkout",
        )
    currency = (course.get("currency") or settings.default_currency).lower()

    user_id = str(user["id"])
    course_id = str(course["id"])
    existing = await entitlements_repo.get_active_course_entitlement(user_id, course_id)
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="already enrolled in this course",
        )

    metadata: dict[str, Any] = {
        "user_id": user_id,
        "course_id": course_id,
        "course_slug": course.get("slug"),
        "checkout_type": "course",
    }
    order = await orders_repo.create_order(
        user_id=user_id,
        course_id=course_id,
        amount_cents=amount_cents,
        currency=currency,
        metadata=metadata,
    )
    metadata["order_id"] = str(order["id"])

    success_url, cancel_url = _default_checkout_urls()
    checkout_kwargs: dict[str, Any] = {
        "mode": "payment",
        "line_items": [
            {
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": course.get("title") or course.get("slug")},
                    "unit_amount": amount_cents,
                },
                "quantity": 1,
            }
        ],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "client_reference_id": str(order["id"]),
        "customer_email": user.get("email"),
        "metadata": metadata,
    }

    try:
        session = await run_in_threadpool(lambda: stripe.checkout.Session.create(**checkout_kwargs))
    except stripe.StripeError as exc:
        logger.warning("Stripe checkout creation failed for order %s: %s", order["id"], exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create Stripe checkout session",
        ) from exc

    await orders_repo.set_order_checkout_reference(order["id"], session.get("id"))

    url = session.get("url")
    if not isinstance(url, str) or not url:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Stripe session missing checkout url",
        )

    return schemas.CheckoutCreateResponse(
        url=url,
        session_id=session.get("id"),
        order_id=str(order["id"]),
    )


async def handle_checkout_session_completed(session: Mapping[str, Any]) -> dict[str, Any] | None:
    """Mark the order paid and grant the course; replays of the same event are no-ops."""
    metadata = session.get("metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}
    order_id = metadata.get("order_id") or session.get("client_reference_id")
    if not order_id:
        logger.info("Checkout session %s has no order reference", session.get("id"))
        return None

    order = await orders_repo.get_order(order_id)
    if not order:
        logger.warning("Checkout session %s references unknown order %s", session.get("id"), order_id)
        return None

    payment_intent = session.get("payment_intent")
    checkout_id = session.get("id")
    updated = await orders_repo.mark_order_paid(
        order_id,
        payment_intent=str(payment_intent) if payment_intent else None,
        checkout_id=checkout_id if isinstance(checkout_id, str) else None,
    )
    if updated is None:
        logger.info("Order %s already paid; skipping duplicate checkout event", order_id)
        return order

    user_id = metadata.get("user_id") or order.get("user_id")
    course_id = metadata.get("course_id") or order.get("course_id")
    if user_id and course_id:
        await entitlements_repo.grant_course_entitlement(str(user_id), str(course_id))
    return updated


__all__ = ["create_course_checkout", "handle_checkout_session_completed"]
