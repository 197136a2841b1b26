from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..repositories import entitlements as entitlements_repo
from ..repositories import subscriptions as subscriptions_repo

logger = logging.getLogger(__name__)

ENTITLED_STATUSES = frozenset({"active", "trialing"})


async def process_event(event: Mapping[str, Any]) -> None:
    event_type = event.get("type", "")
    data_object = event.get("data", {}).get("object", {})

    if event_type in {
        "customer.subscription.created",
        "customer.subscription.updated",
    }:
        await _handle_subscription_event(data_object)
    elif event_type == "customer.subscription.deleted":
        await _handle_subscription_deleted(data_object)
    elif event_type == "invoice.payment_failed":
        await _handle_invoice_payment_failed(data_object)
    else:
        logger.debug("Unhandled subscription event: %s", event_type)


async def _handle_subscription_event(payload: Mapping[str, Any]) -> None:
    subscription_id = payload.get("id")
    if not isinstance(subscription_id, str):
        logger.warning("Subscription event without id")
        return
    status = str(payload.get("status") or "incomplete")
    user_id = await _resolve_user_id(payload, subscription_id)
    if not user_id:
        logger.warning("Subscription event missing user mapping (subscription=%s)", subscription_id)
        return

    period_end = _to_datetime(payload.get("current_period_end"))
    customer_id = payload.get("customer")
    await subscriptions_repo.upsert_subscription(
        user_id=user_id,
        stripe_subscription_id=subscription_id,
        stripe_customer_id=customer_id if isinstance(customer_id, str) else None,
        price_id=_extract_price_id(payload),
        status=status,
        current_period_end=period_end,
        cancel_at_period_end=bool(payload.get("cancel_at_period_end")),
    )
    if status in ENTITLED_STATUSES:
        await entitlements_repo.upsert_membership_entitlement(
            user_id, subscription_id, expires_at=period_end
        )
    else:
        await entitlements_repo.expire_membership_entitlement(subscription_id)


async def _handle_subscription_deleted(payload: Mapping[str, Any]) -> None:
    subscription_id = payload.get("id")
    if not isinstance(subscription_id, str):
        return
    updated = await subscriptions_repo.set_subscription_status(subscription_id, "canceled")
    if updated is None:
        logger.info("Deleted subscription %s was never recorded", subscription_id)
    await entitlements_repo.expire_membership_entitlement(subscription_id)


async def _handle_invoice_payment_failed(payload: Mapping[str, Any]) -> None:
    subscription_id = payload.get("subscription")
    if not isinstance(subscription_id, str):
        logger.info("Invoice %s failed without a subscription", payload.get("id"))
        return
    await subscriptions_repo.set_subscription_status(subscription_id, "past_due")


async def _resolve_user_id(payload: Mapping[str, Any], subscription_id: str) -> str | None:
    metadata = payload.get("metadata")
    if isinstance(metadata, Mapping):
        user_id = metadata.get("user_id")
        if isinstance(user_id, str) and user_id:
            return user_id
    existing = await subscriptions_repo.get_subscription(subscription_id)
    if existing and existing.get("user_id"):
        return str(existing["user_id"])
    return None


def _extract_price_id(payload: Mapping[str, Any]) -> str | None:
    items = payload.get("items", {})
    data = items.get("data") if isinstance(items, Mapping) else None
    if isinstance(data, list) and data:
        price = data[0].get("price") or {}
        price_id = price.get("id") if isinstance(price, Mapping) else None
        return price_id if isinstance(price_id, str) else None
    plan = payload.get("plan")
    if isinstance(plan, Mapping) and isinstance(plan.get("id"), str):
        return plan["id"]
    return None


def _to_datetime(value: Any) -> datetime | None:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


__all__ = ["process_event", "ENTITLED_STATUSES"]
