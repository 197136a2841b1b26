from __future__ import annotations

from typing import Any
from uuid import UUID

from psycopg.types.json import Jsonb

from ..db import pool


async def log_action(
    user_id: str | UUID,
    action: str,
    details: dict[str, Any] | None = None,
) -> None:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.admin_actions (user_id, action, details)
                VALUES (%s, %s, %s)
                """,
                (user_id, action, Jsonb(details or {})),
            )
            await conn.commit()


__all__ = ["log_action"]
