from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from psycopg.rows import dict_row

from ..db import get_conn, pool

SUBSCRIPTION_COLUMNS = """
    id,
    user_id,
    stripe_subscription_id,
    stripe_customer_id,
    price_id,
    status,
    current_period_end,
    cancel_at_period_end,
    created_at,
    updated_at
"""


async def upsert_subscription(
    *,
    user_id: str | UUID,
    stripe_subscription_id: str,
    stripe_customer_id: str | None,
    price_id: str | None,
    status: str,
    current_period_end: datetime | None,
    cancel_at_period_end: bool = False,
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.subscriptions (
                    user_id,
                    stripe_subscription_id,
                    stripe_customer_id,
                    price_id,
                    status,
                    current_period_end,
                    cancel_at_period_end
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (stripe_subscription_id)
                DO UPDATE SET
                    stripe_customer_id = COALESCE(EXCLUDED.stripe_customer_id, app.subscriptions.stripe_customer_id),
                    price_id = COALESCE(EXCLUDED.price_id, app.subscriptions.price_id),
                    status = EXCLUDED.status,
                    current_period_end = EXCLUDED.current_period_end,
                    cancel_at_period_end = EXCLUDED.cancel_at_period_end,
                    updated_at = now()
                RETURNING {cols}
                """.format(cols=SUBSCRIPTION_COLUMNS),
                (
                    user_id,
                    stripe_subscription_id,
                    stripe_customer_id,
                    price_id,
                    status,
                    current_period_end,
                    cancel_at_period_end,
                ),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def get_subscription(stripe_subscription_id: str) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.subscriptions
             WHERE stripe_subscription_id = %s
             LIMIT 1
            """.format(cols=SUBSCRIPTION_COLUMNS),
            (stripe_subscription_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def set_subscription_status(
    stripe_subscription_id: str, status: str
) -> dict[str, Any] | None:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.subscriptions
                   SET status = %s, updated_at = now()
                 WHERE stripe_subscription_id = %s
                 RETURNING {cols}
                """.format(cols=SUBSCRIPTION_COLUMNS),
                (status, stripe_subscription_id),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


__all__ = ["upsert_subscription", "get_subscription", "set_subscription_status"]
