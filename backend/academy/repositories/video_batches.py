from __future__ import annotations

from typing import Any
from uuid import UUID

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..db import get_conn, pool

BATCH_COLUMNS = """
    id,
    name,
    status,
    briefs,
    results,
    total_count,
    processed_count,
    failed_count,
    error_message,
    created_by,
    created_at,
    updated_at,
    started_at,
    completed_at
"""

ITEM_COLUMNS = """
    id,
    batch_id,
    brief,
    status,
    result,
    error_message,
    sort_order,
    created_at,
    updated_at,
    started_at,
    completed_at
"""

_JSON_COLUMNS = frozenset({"briefs", "results", "brief", "result"})


def _assignments(fields: dict[str, Any]) -> tuple[list[str], list[Any]]:
    sets: list[str] = []
    params: list[Any] = []
    for column, value in fields.items():
        sets.append(f"{column} = %s")
        params.append(Jsonb(value) if column in _JSON_COLUMNS and value is not None else value)
    return sets, params


async def create_batch(
    *,
    name: str,
    briefs: list[dict[str, Any]],
    created_by: str | UUID,
) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    """Insert the batch and one pending item per brief in a single transaction."""
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.video_batch_jobs (name, status, briefs, total_count, created_by)
                VALUES (%s, 'pending', %s, %s, %s)
                RETURNING {cols}
                """.format(cols=BATCH_COLUMNS),
                (name, Jsonb(briefs), len(briefs), created_by),
            )
            batch = dict(await cur.fetchone())
            items: list[dict[str, Any]] = []
            for index, brief in enumerate(briefs):
                await cur.execute(
                    """
                    INSERT INTO app.video_batch_items (batch_id, brief, status, sort_order)
                    VALUES (%s, %s, 'pending', %s)
                    RETURNING {cols}
                    """.format(cols=ITEM_COLUMNS),
                    (batch["id"], Jsonb(brief), index),
                )
                items.append(dict(await cur.fetchone()))
            await conn.commit()
            return batch, items


async def list_batches(*, created_by: str | UUID | None = None) -> list[dict[str, Any]]:
    where = ""
    params: tuple[Any, ...] = ()
    if created_by is not None:
        where = "WHERE created_by = %s"
        params = (created_by,)
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.video_batch_jobs
              {where}
             ORDER BY created_at DESC
            """.format(cols=BATCH_COLUMNS, where=where),
            params,
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_batch(batch_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.video_batch_jobs WHERE id = %s LIMIT 1".format(
                cols=BATCH_COLUMNS
            ),
            (batch_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def get_batch_status(batch_id: str | UUID) -> str | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT status FROM app.video_batch_jobs WHERE id = %s", (batch_id,)
        )
        row = await cur.fetchone()
        return row["status"] if row else None


async def update_batch(batch_id: str | UUID, fields: dict[str, Any]) -> dict[str, Any] | None:
    sets, params = _assignments(fields)
    params.append(batch_id)
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.video_batch_jobs
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                 RETURNING {cols}
                """.format(sets=", ".join(sets), cols=BATCH_COLUMNS),
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


async def finish_batch(batch_id: str | UUID, fields: dict[str, Any]) -> dict[str, Any] | None:
    """Write the final status unless the batch was cancelled or deleted meanwhile."""
    sets, params = _assignments(fields)
    params.append(batch_id)
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.video_batch_jobs
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                   AND status <> 'cancelled'
                 RETURNING {cols}
                """.format(sets=", ".join(sets), cols=BATCH_COLUMNS),
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


async def delete_batch(batch_id: str | UUID) -> bool:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute("DELETE FROM app.video_batch_jobs WHERE id = %s", (batch_id,))
            deleted = cur.rowcount > 0
            await conn.commit()
            return deleted


async def list_items(batch_id: str | UUID) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.video_batch_items
             WHERE batch_id = %s
             ORDER BY sort_order ASC
            """.format(cols=ITEM_COLUMNS),
            (batch_id,),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def update_item(item_id: str | UUID, fields: dict[str, Any]) -> None:
    sets, params = _assignments(fields)
    params.append(item_id)
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.video_batch_items
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                """.format(sets=", ".join(sets)),
                params,
            )
            await conn.commit()


async def count_item_statuses(batch_id: str | UUID) -> dict[str, int]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT status, count(*) AS total
              FROM app.video_batch_items
             WHERE batch_id = %s
             GROUP BY status
            """,
            (batch_id,),
        )
        rows = await cur.fetchall()
    return {row["status"]: int(row["total"]) for row in rows}


__all__ = [
    "create_batch",
    "list_batches",
    "get_batch",
    "get_batch_status",
    "update_batch",
    "finish_batch",
    "delete_batch",
    "list_items",
    "update_item",
    "count_item_statuses",
]
