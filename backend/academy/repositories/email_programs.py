from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..db import get_conn, pool

PROGRAM_COLUMNS = """
    id,
    name,
    description,
    type,
    status,
    schedule_text,
    schedule_cron,
    timezone,
    next_run_at,
    last_run_at,
    audience_type,
    audience_filter_json,
    prompt_base,
    prompt_current,
    created_by,
    created_at,
    updated_at
"""

_JSON_COLUMNS = frozenset({"audience_filter_json"})


def _adapt(column: str, value: Any) -> Any:
    return Jsonb(value) if column in _JSON_COLUMNS and value is not None else value


async def list_programs() -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.email_programs
             ORDER BY created_at DESC
            """.format(cols=PROGRAM_COLUMNS)
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_program(program_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.email_programs WHERE id = %s LIMIT 1".format(
                cols=PROGRAM_COLUMNS
            ),
            (program_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def create_program(fields: dict[str, Any]) -> dict[str, Any]:
    columns = list(fields)
    placeholders = ", ".join(["%s"] * len(columns))
    params = [_adapt(column, fields[column]) for column in columns]
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.email_programs ({columns})
                VALUES ({placeholders})
                RETURNING {cols}
                """.format(
                    columns=", ".join(columns),
                    placeholders=placeholders,
                    cols=PROGRAM_COLUMNS,
                ),
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def update_program(
    program_id: str | UUID, fields: dict[str, Any]
) -> dict[str, Any] | None:
    if not fields:
        return await get_program(program_id)
    sets = []
    params: list[Any] = []
    for column, value in fields.items():
        sets.append(f"{column} = %s")
        params.append(_adapt(column, value))
    params.append(program_id)
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.email_programs
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                 RETURNING {cols}
                """.format(sets=", ".join(sets), cols=PROGRAM_COLUMNS),
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


async def delete_program(program_id: str | UUID) -> bool:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute("DELETE FROM app.email_runs WHERE program_id = %s", (program_id,))
            await cur.execute(
                "DELETE FROM app.email_versions WHERE program_id = %s", (program_id,)
            )
            await cur.execute("DELETE FROM app.email_programs WHERE id = %s", (program_id,))
            deleted = cur.rowcount > 0
            await conn.commit()
            return deleted


async def list_versions(program_id: str | UUID) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id, program_id, version_number, subject, body_html, prompt_used, created_at
              FROM app.email_versions
             WHERE program_id = %s
             ORDER BY version_number DESC
            """,
            (program_id,),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def list_recent_runs(program_id: str | UUID, *, limit: int = 10) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id, program_id, version_id, status, scheduled_for, sent_count,
                   error_message, created_at, completed_at
              FROM app.email_runs
             WHERE program_id = %s
             ORDER BY created_at DESC
             LIMIT %s
            """,
            (program_id, limit),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def list_due_programs(now: datetime) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.email_programs
             WHERE status = 'active'
               AND next_run_at IS NOT NULL
               AND next_run_at <= %s
             ORDER BY next_run_at ASC
            """.format(cols=PROGRAM_COLUMNS),
            (now,),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def enqueue_run(
    program_id: str | UUID,
    *,
    scheduled_for: datetime,
    next_run_at: datetime | None,
) -> dict[str, Any] | None:
    """Claim a due program and queue its run in one transaction.

    The schedule only advances while ``next_run_at`` still equals ``scheduled_for``,
    so overlapping dispatchers queue a given slot once; the loser gets ``None``.
    """
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.email_programs
                   SET next_run_at = %s, last_run_at = %s, updated_at = now()
                 WHERE id = %s
                   AND status = 'active'
                   AND next_run_at = %s
                 RETURNING id
                """,
                (next_run_at, scheduled_for, program_id, scheduled_for),
            )
            if await cur.fetchone() is None:
                await conn.rollback()
                return None
            await cur.execute(
                """
                INSERT INTO app.email_runs (program_id, version_id, status, scheduled_for)
                VALUES (
                    %s,
                    (SELECT id FROM app.email_versions
                      WHERE program_id = %s
                      ORDER BY version_number DESC
                      LIMIT 1),
                    'queued',
                    %s
                )
                RETURNING id, program_id, version_id, status, scheduled_for, created_at
                """,
                (program_id, program_id, scheduled_for),
            )
            run = await cur.fetchone()
            await conn.commit()
            return dict(run)


__all__ = [
    "list_programs",
    "get_program",
    "create_program",
    "update_program",
    "delete_program",
    "list_versions",
    "list_recent_runs",
    "list_due_programs",
    "enqueue_run",
]
