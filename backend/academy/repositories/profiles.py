from __future__ import annotations

from typing import Any
from uuid import UUID

from ..db import get_conn


async def get_user(user_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT u.id,
                   u.email,
                   COALESCE(p.role, 'student') AS role,
                   p.display_name,
                   p.avatar_url
              FROM auth.users AS u
              LEFT JOIN app.profiles AS p ON p.user_id = u.id
             WHERE u.id = %s
             LIMIT 1
            """,
            (user_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def user_exists(user_id: str | UUID) -> bool:
    async with get_conn() as cur:
        await cur.execute("SELECT 1 FROM auth.users WHERE id = %s", (user_id,))
        return await cur.fetchone() is not None


__all__ = ["get_user", "user_exists"]
