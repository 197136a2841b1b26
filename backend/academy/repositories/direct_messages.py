from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from psycopg.rows import dict_row

from ..db import get_conn, pool

MESSAGE_COLUMNS = """
    id,
    thread_id,
    sender_id,
    content,
    is_read,
    read_at,
    created_at
"""


def ordered_pair(user_a: str | UUID, user_b: str | UUID) -> tuple[str, str]:
    first, second = sorted((str(user_a), str(user_b)))
    return first, second


async def get_or_create_thread(user_a: str | UUID, user_b: str | UUID) -> dict[str, Any]:
    user1_id, user2_id = ordered_pair(user_a, user_b)
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.dm_threads (user1_id, user2_id)
                VALUES (%s, %s)
                ON CONFLICT (user1_id, user2_id)
                DO UPDATE SET user1_id = EXCLUDED.user1_id
                RETURNING id, user1_id, user2_id, created_at, updated_at
                """,
                (user1_id, user2_id),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def get_thread(thread_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id, user1_id, user2_id, created_at, updated_at
              FROM app.dm_threads
             WHERE id = %s
             LIMIT 1
            """,
            (thread_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def list_threads_for_user(user_id: str | UUID) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT t.id,
                   t.user1_id,
                   t.user2_id,
                   t.created_at,
                   t.updated_at,
                   CASE WHEN t.user1_id = %(uid)s THEN t.user2_id ELSE t.user1_id END
                       AS other_user_id,
                   last.content AS last_message,
                   last.created_at AS last_message_at,
                   (SELECT count(*)
                      FROM app.dm_messages AS m
                     WHERE m.thread_id = t.id
                       AND m.sender_id <> %(uid)s
                       AND m.is_read = false) AS unread_count
              FROM app.dm_threads AS t
              LEFT JOIN LATERAL (
                  SELECT content, created_at
                    FROM app.dm_messages
                   WHERE thread_id = t.id
                   ORDER BY created_at DESC
                   LIMIT 1
              ) AS last ON true
             WHERE t.user1_id = %(uid)s OR t.user2_id = %(uid)s
             ORDER BY t.updated_at DESC
            """,
            {"uid": user_id},
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def list_messages(
    thread_id: str | UUID,
    *,
    limit: int = 50,
    before: datetime | None = None,
) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.dm_messages
             WHERE thread_id = %s
               AND deleted_at IS NULL
               AND (%s::timestamptz IS NULL OR created_at < %s::timestamptz)
             ORDER BY created_at DESC
             LIMIT %s
            """.format(cols=MESSAGE_COLUMNS),
            (thread_id, before, before, limit),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def create_message(
    thread_id: str | UUID, sender_id: str | UUID, content: str
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.dm_messages (thread_id, sender_id, content)
                VALUES (%s, %s, %s)
                RETURNING {cols}
                """.format(cols=MESSAGE_COLUMNS),
                (thread_id, sender_id, content),
            )
            row = await cur.fetchone()
            await cur.execute(
                "UPDATE app.dm_threads SET updated_at = now() WHERE id = %s",
                (thread_id,),
            )
            await conn.commit()
            return dict(row)


async def mark_thread_read(thread_id: str | UUID, reader_id: str | UUID) -> int:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.dm_messages
                   SET is_read = true, read_at = now(), updated_at = now()
                 WHERE thread_id = %s
                   AND sender_id <> %s
                   AND is_read = false
                """,
                (thread_id, reader_id),
            )
            affected = cur.rowcount
            await conn.commit()
            return affected


__all__ = [
    "ordered_pair",
    "get_or_create_thread",
    "get_thread",
    "list_threads_for_user",
    "list_messages",
    "create_message",
    "mark_thread_read",
]
