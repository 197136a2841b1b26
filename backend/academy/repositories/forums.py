from __future__ import annotations

from typing import Any
from uuid import UUID

from psycopg.rows import dict_row

from ..db import get_conn, pool

FORUM_COLUMNS = """
    id,
    course_id,
    title,
    description,
    slug,
    icon,
    is_locked,
    is_archived,
    sort_order,
    created_at,
    updated_at
"""

THREAD_COLUMNS = """
    id,
    forum_id,
    user_id,
    title,
    content,
    slug,
    is_pinned,
    is_locked,
    is_solved,
    view_count,
    upvote_count,
    reply_count,
    last_reply_at,
    last_reply_by,
    created_at,
    updated_at
"""

REPLY_COLUMNS = """
    id,
    thread_id,
    user_id,
    parent_reply_id,
    content,
    is_solution,
    upvote_count,
    created_at,
    updated_at
"""


async def list_forums(*, course_id: str | UUID | None = None) -> list[dict[str, Any]]:
    where = "is_archived = false"
    params: tuple[Any, ...] = ()
    if course_id is not None:
        where += " AND course_id = %s"
        params = (course_id,)
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.forums
             WHERE {where}
             ORDER BY sort_order ASC, title ASC
            """.format(cols=FORUM_COLUMNS, where=where),
            params,
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_forum(forum_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.forums WHERE id = %s LIMIT 1".format(cols=FORUM_COLUMNS),
            (forum_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def list_threads(
    forum_id: str | UUID,
    *,
    limit: int = 50,
    offset: int = 0,
) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.forum_threads
             WHERE forum_id = %s
               AND is_deleted = false
             ORDER BY is_pinned DESC,
                      COALESCE(last_reply_at, created_at) DESC
             LIMIT %s OFFSET %s
            """.format(cols=THREAD_COLUMNS),
            (forum_id, limit, offset),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def create_thread(
    *,
    forum_id: str | UUID,
    user_id: str | UUID,
    title: str,
    content: str,
    slug: str,
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.forum_threads (forum_id, user_id, title, content, slug)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING {cols}
                """.format(cols=THREAD_COLUMNS),
                (forum_id, user_id, title, content, slug),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def get_thread(thread_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.forum_threads
             WHERE id = %s
               AND is_deleted = false
             LIMIT 1
            """.format(cols=THREAD_COLUMNS),
            (thread_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def increment_view_count(thread_id: str | UUID) -> None:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                "UPDATE app.forum_threads SET view_count = view_count + 1 WHERE id = %s",
                (thread_id,),
            )
            await conn.commit()


async def list_replies(thread_id: str | UUID) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.forum_replies
             WHERE thread_id = %s
               AND is_deleted = false
             ORDER BY created_at ASC
            """.format(cols=REPLY_COLUMNS),
            (thread_id,),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def create_reply(
    *,
    thread_id: str | UUID,
    user_id: str | UUID,
    content: str,
    parent_reply_id: str | UUID | None = None,
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.forum_replies (thread_id, user_id, parent_reply_id, content)
                VALUES (%s, %s, %s, %s)
                RETURNING {cols}
                """.format(cols=REPLY_COLUMNS),
                (thread_id, user_id, parent_reply_id, content),
            )
            reply = await cur.fetchone()
            await cur.execute(
                """
                UPDATE app.forum_threads
                   SET reply_count = reply_count + 1,
                       last_reply_at = %s,
                       last_reply_by = %s,
                       updated_at = now()
                 WHERE id = %s
                """,
                (reply["created_at"], user_id, thread_id),
            )
            await conn.commit()
            return dict(reply)


async def toggle_thread_upvote(
    thread_id: str | UUID, user_id: str | UUID
) -> tuple[bool, int]:
    """Add the user's upvote or take it back; returns (upvoted, new count)."""
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                DELETE FROM app.forum_thread_upvotes
                 WHERE thread_id = %s AND user_id = %s
                """,
                (thread_id, user_id),
            )
            if cur.rowcount:
                upvoted = False
                delta = -1
            else:
                await cur.execute(
                    """
                    INSERT INTO app.forum_thread_upvotes (thread_id, user_id)
                    VALUES (%s, %s)
                    """,
                    (thread_id, user_id),
                )
                upvoted = True
                delta = 1
            await cur.execute(
                """
                UPDATE app.forum_threads
                   SET upvote_count = greatest(0, upvote_count + %s)
                 WHERE id = %s
                 RETURNING upvote_count
                """,
                (delta, thread_id),
            )
            row = await cur.fetchone()
            await conn.commit()
            return upvoted, int(row["upvote_count"]) if row else 0


async def moderate_thread(thread_id: str | UUID, fields: dict[str, Any]) -> dict[str, Any] | None:
    sets = [f"{column} = %s" for column in fields]
    params: list[Any] = [*fields.values(), thread_id]
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.forum_threads
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                 RETURNING {cols}
                """.format(sets=", ".join(sets), cols=THREAD_COLUMNS),
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


__all__ = [
    "list_forums",
    "get_forum",
    "list_threads",
    "create_thread",
    "get_thread",
    "increment_view_count",
    "list_replies",
    "create_reply",
    "toggle_thread_upvote",
    "moderate_thread",
]
