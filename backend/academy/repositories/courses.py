from __future__ import annotations

from typing import Any
from uuid import UUID

from ..db import get_conn, pool
from psycopg.rows import dict_row

COURSE_COLUMNS = """
    id,
    slug,
    title,
    description,
    cover_url,
    price_cents,
    currency,
    is_published,
    created_by,
    created_at,
    updated_at
"""


async def list_published_courses(
    *,
    search: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    clauses = ["is_published = true"]
    params: list[Any] = []
    if search:
        clauses.append("(title ILIKE %s OR description ILIKE %s)")
        pattern = f"%{search}%"
        params.extend([pattern, pattern])
    params.append(limit)
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.courses
             WHERE {where}
             ORDER BY created_at DESC
             LIMIT %s
            """.format(cols=COURSE_COLUMNS, where=" AND ".join(clauses)),
            params,
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_course(course_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.courses WHERE id = %s LIMIT 1".format(cols=COURSE_COLUMNS),
            (course_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def get_course_by_slug(slug: str) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.courses WHERE slug = %s LIMIT 1".format(cols=COURSE_COLUMNS),
            (slug,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def create_course(
    *,
    created_by: str | UUID,
    slug: str,
    title: str,
    description: str | None,
    cover_url: str | None,
    price_cents: int,
    currency: str,
) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.courses (
                    slug, title, description, cover_url, price_cents, currency, created_by
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING {cols}
                """.format(cols=COURSE_COLUMNS),
                (slug, title, description, cover_url, price_cents, currency, created_by),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def update_course(course_id: str | UUID, fields: dict[str, Any]) -> dict[str, Any] | None:
    if not fields:
        return await get_course(course_id)
    sets = [f"{column} = %s" for column in fields]
    params: list[Any] = [*fields.values(), course_id]
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.courses
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                 RETURNING {cols}
                """.format(sets=", ".join(sets), cols=COURSE_COLUMNS),
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


__all__ = [
    "list_published_courses",
    "get_course",
    "get_course_by_slug",
    "create_course",
    "update_course",
]
