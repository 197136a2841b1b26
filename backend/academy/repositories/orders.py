from __future__ import annotations

from typing import Any
from uuid import UUID

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..db import get_conn, pool

ORDER_COLUMNS = """
    id,
    user_id,
    course_id,
    amount_cents,
    currency,
    status,
    stripe_checkout_id,
    stripe_payment_intent,
    metadata,
    created_at,
    updated_at
"""


async def create_order(
    *,
    user_id: str | UUID,
    course_id: str | UUID,
    amount_cents: int,
    currency: str,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.orders (
                    user_id, course_id, amount_cents, currency, status, metadata
                )
                VALUES (%s, %s, %s, %s, 'pending', %s)
                RETURNING {cols}
                """.format(cols=ORDER_COLUMNS),
                (user_id, course_id, amount_cents, currency, Jsonb(metadata or {})),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def get_order(order_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.orders WHERE id = %s LIMIT 1".format(cols=ORDER_COLUMNS),
            (order_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def set_order_checkout_reference(
    order_id: str | UUID, checkout_id: str
) -> dict[str, Any] | None:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.orders
                   SET stripe_checkout_id = %s, updated_at = now()
                 WHERE id = %s
                 RETURNING {cols}
                """.format(cols=ORDER_COLUMNS),
                (checkout_id, order_id),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


async def mark_order_paid(
    order_id: str | UUID,
    *,
    payment_intent: str | None,
    checkout_id: str | None,
) -> dict[str, Any] | None:
    """Flip a pending order to paid; returns None when it was not pending."""
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.orders
                   SET status = 'paid',
                       stripe_payment_intent = COALESCE(%s, stripe_payment_intent),
                       stripe_checkout_id = COALESCE(%s, stripe_checkout_id),
                       updated_at = now()
                 WHERE id = %s
                   AND status <> 'paid'
                 RETURNING {cols}
                """.format(cols=ORDER_COLUMNS),
                (payment_intent, checkout_id, order_id),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


__all__ = ["create_order", "get_order", "set_order_checkout_reference", "mark_order_paid"]
