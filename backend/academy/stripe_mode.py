from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import stripe

from .config import settings


class StripeMode(str, Enum):
    test = "test"
    live = "live"


class StripeConfigurationError(RuntimeError):
    """Raised when the Stripe secret cannot be resolved safely."""


@dataclass
class StripeContext:
    secret_key: str
    mode: StripeMode


def resolve_stripe_context() -> StripeContext:
    secret_key = (settings.stripe_secret_key or "").strip()
    if not secret_key:
        raise StripeConfigurationError("Stripe secret key is missing (set STRIPE_SECRET_KEY)")
    if secret_key.startswith(("sk_test_", "rk_test_")):
        mode = StripeMode.test
    elif secret_key.startswith(("sk_live_", "rk_live_")):
        mode = StripeMode.live
    else:
        raise StripeConfigurationError("STRIPE_SECRET_KEY must start with sk_test_ or sk_live_")
    return StripeContext(secret_key=secret_key, mode=mode)


def configure_stripe() -> StripeContext:
    context = resolve_stripe_context()
    stripe.api_key = context.secret_key
    return context


__all__ = [
    "StripeMode",
    "StripeConfigurationError",
    "StripeContext",
    "resolve_stripe_context",
    "configure_stripe",
]
