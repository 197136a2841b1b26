from __future__ import annotations

from typing import Any
from uuid import UUID

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..db import get_conn, pool

AUDIENCE_COLUMNS = """
    id,
    name,
    description,
    audience_type,
    config,
    meta_audience_id,
    last_sync_at,
    sync_status,
    sync_error,
    user_count,
    is_active,
    created_by,
    created_at,
    updated_at
"""

AUDIENCE_TYPES = (
    "purchasers",
    "course_completers",
    "engaged_users",
    "abandoned_checkouts",
    "high_value",
    "custom",
)

_ENTITLED_EMAILS = """
    SELECT DISTINCT u.email
      FROM auth.users AS u
      JOIN app.entitlements AS e ON e.user_id = u.id
     WHERE e.status = 'active'
"""

_EMAIL_QUERIES: dict[str, str] = {
    "purchasers": _ENTITLED_EMAILS,
    "course_completers": _ENTITLED_EMAILS,
    "engaged_users": """
        SELECT DISTINCT u.email
          FROM auth.users AS u
          JOIN app.streak_activity_log AS s ON s.user_id = u.id
         WHERE s.activity_date > current_date - %(days)s::int
    """,
    "abandoned_checkouts": """
        SELECT DISTINCT u.email
          FROM auth.users AS u
          JOIN app.orders AS o ON o.user_id = u.id
         WHERE o.status = 'pending'
           AND o.created_at > now() - interval '7 days'
           AND NOT EXISTS (
               SELECT 1
                 FROM app.orders AS paid
                WHERE paid.user_id = u.id
                  AND paid.status = 'paid'
                  AND paid.created_at > o.created_at
           )
    """,
    "high_value": """
        SELECT u.email
          FROM auth.users AS u
          JOIN app.orders AS o ON o.user_id = u.id
         WHERE o.status = 'paid'
         GROUP BY u.email
        HAVING sum(o.amount_cents) >= %(min_spend)s
    """,
    "custom": """
        SELECT DISTINCT u.email
          FROM auth.users AS u
          JOIN app.custom_audience_members AS m ON m.user_id = u.id
         WHERE m.audience_id = %(audience_id)s
    """,
}


async def list_audiences() -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.custom_audiences
             ORDER BY created_at DESC
            """.format(cols=AUDIENCE_COLUMNS)
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_audience(audience_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.custom_audiences WHERE id = %s LIMIT 1".format(
                cols=AUDIENCE_COLUMNS
            ),
            (audience_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def create_audience(
    *,
    name: str,
    description: str | None,
    audience_type: str,
    config: dict[str, Any],
    meta_audience_id: str | None,
    sync_status: str,
    sync_error: str | None,
    created_by: str | UUID,
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.custom_audiences (
                    name,
                    description,
                    audience_type,
                    config,
                    meta_audience_id,
                    sync_status,
                    sync_error,
                    created_by
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING {cols}
                """.format(cols=AUDIENCE_COLUMNS),
                (
                    name,
                    description,
                    audience_type,
                    Jsonb(config),
                    meta_audience_id,
                    sync_status,
                    sync_error,
                    created_by,
                ),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def update_audience(
    audience_id: str | UUID, fields: dict[str, Any]
) -> dict[str, Any] | None:
    if not fields:
        return await get_audience(audience_id)
    sets = []
    params: list[Any] = []
    for column, value in fields.items():
        sets.append(f"{column} = %s")
        params.append(Jsonb(value) if column == "config" else value)
    params.append(audience_id)
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.custom_audiences
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                 RETURNING {cols}
                """.format(sets=", ".join(sets), cols=AUDIENCE_COLUMNS),
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


async def delete_audience(audience_id: str | UUID) -> bool:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute("DELETE FROM app.custom_audiences WHERE id = %s", (audience_id,))
            deleted = cur.rowcount > 0
            await conn.commit()
            return deleted


async def list_audience_emails(audience: dict[str, Any]) -> list[str]:
    query = _EMAIL_QUERIES.get(audience.get("audience_type") or "")
    if query is None:
        return []
    config = audience.get("config") or {}
    params = {
        "audience_id": audience["id"],
        "days": int(config.get("days", 30)),
        "min_spend": int(config.get("min_spend", 10000)),
    }
    async with get_conn() as cur:
        await cur.execute(query, params)
        rows = await cur.fetchall()
    return [row["email"] for row in rows if row.get("email")]


async def start_sync_history(audience_id: str | UUID) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.custom_audience_sync_history (audience_id, status)
                VALUES (%s, 'started')
                RETURNING id, audience_id, status, sync_started_at
                """,
                (audience_id,),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def finish_sync_history(
    history_id: str | UUID,
    *,
    status: str,
    users_sent: int | None,
    error_message: str | None = None,
) -> None:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.custom_audience_sync_history
                   SET status = %s,
                       users_sent = %s,
                       error_message = %s,
                       sync_completed_at = now()
                 WHERE id = %s
                """,
                (status, users_sent, error_message, history_id),
            )
            await conn.commit()


async def list_sync_history(audience_id: str | UUID, *, limit: int = 20) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id, audience_id, status, users_sent, error_message,
                   sync_started_at, sync_completed_at
              FROM app.custom_audience_sync_history
             WHERE audience_id = %s
             ORDER BY sync_started_at DESC
             LIMIT %s
            """,
            (audience_id, limit),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


__all__ = [
    "AUDIENCE_TYPES",
    "list_audiences",
    "get_audience",
    "create_audience",
    "update_audience",
    "delete_audience",
    "list_audience_emails",
    "start_sync_history",
    "finish_sync_history",
    "list_sync_history",
]
