from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from psycopg.rows import dict_row

from ..db import get_conn, pool

STREAK_COLUMNS = """
    user_id,
    current_streak,
    longest_streak,
    last_activity_date,
    streak_started_at,
    total_learning_days,
    created_at,
    updated_at
"""


async def get_streak(user_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.learning_streaks WHERE user_id = %s".format(
                cols=STREAK_COLUMNS
            ),
            (user_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def save_streak(user_id: str | UUID, record: dict[str, Any]) -> dict[str, Any]:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.learning_streaks (
                    user_id,
                    current_streak,
                    longest_streak,
                    last_activity_date,
                    streak_started_at,
                    total_learning_days
                )
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (user_id)
                DO UPDATE SET
                    current_streak = EXCLUDED.current_streak,
                    longest_streak = EXCLUDED.longest_streak,
                    last_activity_date = EXCLUDED.last_activity_date,
                    streak_started_at = EXCLUDED.streak_started_at,
                    total_learning_days = EXCLUDED.total_learning_days,
                    updated_at = now()
                RETURNING {cols}
                """.format(cols=STREAK_COLUMNS),
                (
                    user_id,
                    record["current_streak"],
                    record["longest_streak"],
                    record["last_activity_date"],
                    record["streak_started_at"],
                    record["total_learning_days"],
                ),
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def log_activity(
    user_id: str | UUID,
    activity_date: date,
    *,
    lessons_completed: int = 1,
    minutes_studied: int = 0,
) -> None:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.streak_activity_log (
                    user_id, activity_date, lessons_completed, minutes_studied
                )
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (user_id, activity_date)
                DO UPDATE SET
                    lessons_completed = app.streak_activity_log.lessons_completed + EXCLUDED.lessons_completed,
                    minutes_studied = app.streak_activity_log.minutes_studied + EXCLUDED.minutes_studied
                """,
                (user_id, activity_date, lessons_completed, minutes_studied),
            )
            await conn.commit()


async def count_active_days(user_id: str | UUID, since: date) -> int:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT count(DISTINCT activity_date) AS total
              FROM app.streak_activity_log
             WHERE user_id = %s
               AND activity_date >= %s
            """,
            (user_id, since),
        )
        row = await cur.fetchone()
    return int(row["total"]) if row else 0


__all__ = ["get_streak", "save_streak", "log_activity", "count_active_days"]
