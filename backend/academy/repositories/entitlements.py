from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from psycopg.rows import dict_row

from ..db import get_conn, pool

ENTITLEMENT_COLUMNS = """
    id,
    user_id,
    course_id,
    kind,
    status,
    source,
    stripe_subscription_id,
    expires_at,
    created_at,
    updated_at
"""


async def grant_course_entitlement(
    user_id: str | UUID,
    course_id: str | UUID,
    *,
    source: str = "purchase",
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.entitlements (user_id, course_id, kind, status, source)
                VALUES (%s, %s, 'course', 'active', %s)
                ON CONFLICT (user_id, course_id) WHERE kind = 'course'
                DO UPDATE SET status = 'active', updated_at = now()
                RETURNING {cols}
                """.format(cols=ENTITLEMENT_COLUMNS),
                (user_id, course_id, source),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def get_active_course_entitlement(
    user_id: str | UUID, course_id: str | UUID
) -> dict[str, Any] | None:
    """Course entitlement or an active membership; ``created_at`` is the enrollment date."""
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.entitlements
             WHERE user_id = %s
               AND status = 'active'
               AND (expires_at IS NULL OR expires_at > now())
               AND (course_id = %s OR kind = 'membership')
             ORDER BY (kind = 'course') DESC, created_at ASC
             LIMIT 1
            """.format(cols=ENTITLEMENT_COLUMNS),
            (user_id, course_id),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def list_user_entitlements(user_id: str | UUID) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.entitlements
             WHERE user_id = %s
             ORDER BY created_at DESC
            """.format(cols=ENTITLEMENT_COLUMNS),
            (user_id,),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def upsert_membership_entitlement(
    user_id: str | UUID,
    stripe_subscription_id: str,
    *,
    expires_at: datetime | None,
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.entitlements (
                    user_id, kind, status, source, stripe_subscription_id, expires_at
                )
                VALUES (%s, 'membership', 'active', 'subscription', %s, %s)
                ON CONFLICT (stripe_subscription_id) WHERE kind = 'membership'
                DO UPDATE SET status = 'active',
                              expires_at = EXCLUDED.expires_at,
                              updated_at = now()
                RETURNING {cols}
                """.format(cols=ENTITLEMENT_COLUMNS),
                (user_id, stripe_subscription_id, expires_at),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def expire_membership_entitlement(stripe_subscription_id: str) -> int:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.entitlements
                   SET status = 'expired', expires_at = now(), updated_at = now()
                 WHERE stripe_subscription_id = %s
                   AND kind = 'membership'
                   AND status = 'active'
                """,
                (stripe_subscription_id,),
            )
            affected = cur.rowcount
            await conn.commit()
            return affected


__all__ = [
    "grant_course_entitlement",
    "get_active_course_entitlement",
    "list_user_entitlements",
    "upsert_membership_entitlement",
    "expire_membership_entitlement",
]
