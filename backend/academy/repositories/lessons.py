from __future__ import annotations

from typing import Any
from uuid import UUID

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..db import get_conn, pool

LESSON_COLUMNS = """
    id,
    course_id,
    title,
    lesson_type,
    position,
    content_html,
    video_url,
    duration_minutes,
    is_published,
    is_preview,
    drip_type,
    drip_value,
    created_at,
    updated_at
"""


async def list_course_lessons(
    course_id: str | UUID,
    *,
    published_only: bool = True,
) -> list[dict[str, Any]]:
    where = "course_id = %s"
    if published_only:
        where += " AND is_published = true"
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.lessons
             WHERE {where}
             ORDER BY position ASC, created_at ASC
            """.format(cols=LESSON_COLUMNS, where=where),
            (course_id,),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_lesson(lesson_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.lessons WHERE id = %s LIMIT 1".format(cols=LESSON_COLUMNS),
            (lesson_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def create_lesson(
    *,
    course_id: str | UUID,
    title: str,
    lesson_type: str,
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.lessons (course_id, title, lesson_type, position, drip_type)
                VALUES (
                    %s,
                    %s,
                    %s,
                    COALESCE(
                        (SELECT max(position) FROM app.lessons WHERE course_id = %s), 0
                    ) + 1000,
                    'immediate'
                )
                RETURNING {cols}
                """.format(cols=LESSON_COLUMNS),
                (course_id, title, lesson_type, course_id),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def update_lesson(lesson_id: str | UUID, fields: dict[str, Any]) -> dict[str, Any] | None:
    if not fields:
        return await get_lesson(lesson_id)
    sets = []
    params: list[Any] = []
    for column, value in fields.items():
        sets.append(f"{column} = %s")
        params.append(Jsonb(value) if column == "drip_value" else value)
    params.append(lesson_id)
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.lessons
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                 RETURNING {cols}
                """.format(sets=", ".join(sets), cols=LESSON_COLUMNS),
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


__all__ = ["list_course_lessons", "get_lesson", "create_lesson", "update_lesson"]
