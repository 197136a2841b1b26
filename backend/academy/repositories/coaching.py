from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..db import get_conn, pool

SLOT_COLUMNS = """
    id,
    coach_id,
    title,
    description,
    duration_minutes,
    slot_type,
    max_participants,
    current_participants,
    price_cents,
    start_time,
    end_time,
    timezone,
    location,
    location_type,
    status,
    is_published,
    video_call_url,
    metadata,
    created_at,
    updated_at
"""

BOOKING_COLUMNS = """
    id,
    slot_id,
    student_id,
    coach_id,
    status,
    notes,
    coach_notes,
    booking_confirmed_at,
    amount_paid_cents,
    video_call_url,
    completed_at,
    cancelled_at,
    cancellation_reason,
    created_at,
    updated_at
"""


class SlotFullError(RuntimeError):
    """Raised when a confirmation finds no free seat left on the slot."""


_TAKE_SEAT = """
    UPDATE app.coaching_slots
       SET current_participants = current_participants + 1,
           status = CASE WHEN current_participants + 1 >= max_participants
                         THEN 'booked' ELSE status END,
           updated_at = now()
     WHERE id = %s
       AND current_participants < max_participants
"""

_FREE_SEAT = """
    UPDATE app.coaching_slots
       SET current_participants = greatest(0, current_participants - 1),
           status = CASE WHEN status = 'booked' THEN 'available' ELSE status END,
           updated_at = now()
     WHERE id = %s
"""


async def list_available_slots(
    *,
    now: datetime,
    coach_id: str | UUID | None = None,
) -> list[dict[str, Any]]:
    clauses = ["status = 'available'", "is_published = true", "start_time > %s"]
    params: list[Any] = [now]
    if coach_id is not None:
        clauses.append("coach_id = %s")
        params.append(coach_id)
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.coaching_slots
             WHERE {where}
             ORDER BY start_time ASC
            """.format(cols=SLOT_COLUMNS, where=" AND ".join(clauses)),
            params,
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def list_coach_slots(coach_id: str | UUID) -> list[dict[str, Any]]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.coaching_slots
             WHERE coach_id = %s
             ORDER BY start_time DESC
            """.format(cols=SLOT_COLUMNS),
            (coach_id,),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_slot(slot_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.coaching_slots WHERE id = %s LIMIT 1".format(
                cols=SLOT_COLUMNS
            ),
            (slot_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def has_overlapping_slot(
    coach_id: str | UUID,
    start_time: datetime,
    end_time: datetime,
    *,
    exclude_slot_id: str | UUID | None = None,
) -> bool:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT 1
              FROM app.coaching_slots
             WHERE coach_id = %s
               AND status <> 'cancelled'
               AND start_time < %s
               AND end_time > %s
               AND (%s::uuid IS NULL OR id <> %s::uuid)
             LIMIT 1
            """,
            (coach_id, end_time, start_time, exclude_slot_id, exclude_slot_id),
        )
        return await cur.fetchone() is not None


async def create_slot(coach_id: str | UUID, fields: dict[str, Any]) -> dict[str, Any]:
    data = {**fields, "coach_id": coach_id}
    if "metadata" in data:
        data["metadata"] = Jsonb(data["metadata"] or {})
    columns = list(data)
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.coaching_slots ({columns})
                VALUES ({placeholders})
                RETURNING {cols}
                """.format(
                    columns=", ".join(columns),
                    placeholders=", ".join(["%s"] * len(columns)),
                    cols=SLOT_COLUMNS,
                ),
                [data[column] for column in columns],
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row)


async def update_slot(slot_id: str | UUID, fields: dict[str, Any]) -> dict[str, Any] | None:
    if not fields:
        return await get_slot(slot_id)
    sets = []
    params: list[Any] = []
    for column, value in fields.items():
        sets.append(f"{column} = %s")
        params.append(Jsonb(value) if column == "metadata" else value)
    params.append(slot_id)
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.coaching_slots
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                 RETURNING {cols}
                """.format(sets=", ".join(sets), cols=SLOT_COLUMNS),
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
            return dict(row) if row else None


async def find_active_booking(
    slot_id: str | UUID, student_id: str | UUID
) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT {cols}
              FROM app.coaching_bookings
             WHERE slot_id = %s
               AND student_id = %s
               AND status IN ('pending', 'confirmed')
             LIMIT 1
            """.format(cols=BOOKING_COLUMNS),
            (slot_id, student_id),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def create_booking(
    *,
    slot: dict[str, Any],
    student_id: str | UUID,
    status: str,
    notes: str | None,
    confirmed_at: datetime | None,
) -> dict[str, Any]:
    """Insert a booking; a confirmed booking takes a seat on the slot."""
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO app.coaching_bookings (
                    slot_id,
                    student_id,
                    coach_id,
                    status,
                    notes,
                    booking_confirmed_at,
                    amount_paid_cents,
                    video_call_url
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (slot_id, student_id)
                DO UPDATE SET status = EXCLUDED.status,
                              notes = EXCLUDED.notes,
                              booking_confirmed_at = EXCLUDED.booking_confirmed_at,
                              cancelled_at = NULL,
                              cancellation_reason = NULL,
                              updated_at = now()
                RETURNING {cols}
                """.format(cols=BOOKING_COLUMNS),
                (
                    slot["id"],
                    student_id,
                    slot["coach_id"],
                    status,
                    notes,
                    confirmed_at,
                    slot.get("price_cents") or 0,
                    slot.get("video_call_url"),
                ),
            )
            booking = await cur.fetchone()
            if status == "confirmed":
                await cur.execute(_TAKE_SEAT, (slot["id"],))
                if cur.rowcount == 0:
                    await conn.rollback()
                    raise SlotFullError(str(slot["id"]))
            await conn.commit()
            return dict(booking)


async def get_booking(booking_id: str | UUID) -> dict[str, Any] | None:
    async with get_conn() as cur:
        await cur.execute(
            "SELECT {cols} FROM app.coaching_bookings WHERE id = %s LIMIT 1".format(
                cols=BOOKING_COLUMNS
            ),
            (booking_id,),
        )
        row = await cur.fetchone()
        return dict(row) if row else None


async def list_bookings(
    *,
    student_id: str | UUID | None = None,
    coach_id: str | UUID | None = None,
    status: str | None = None,
) -> list[dict[str, Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if student_id is not None:
        clauses.append("b.student_id = %s")
        params.append(student_id)
    if coach_id is not None:
        clauses.append("b.coach_id = %s")
        params.append(coach_id)
    if status:
        clauses.append("b.status = %s")
        params.append(status)
    where = "WHERE " + " AND ".join(clauses) if clauses else ""
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT b.*, s.title AS slot_title, s.start_time, s.end_time
              FROM app.coaching_bookings AS b
              JOIN app.coaching_slots AS s ON s.id = b.slot_id
              {where}
             ORDER BY b.created_at DESC
            """.format(where=where),
            params,
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def update_booking(
    booking: dict[str, Any], fields: dict[str, Any]
) -> dict[str, Any] | None:
    """Update a booking and keep the slot's seat count in step with confirmations."""
    sets = [f"{column} = %s" for column in fields]
    params: list[Any] = [*fields.values(), booking["id"]]
    was_confirmed = booking.get("status") == "confirmed"
    new_status = fields.get("status", booking.get("status"))
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE app.coaching_bookings
                   SET {sets}, updated_at = now()
                 WHERE id = %s
                 RETURNING {cols}
                """.format(sets=", ".join(sets), cols=BOOKING_COLUMNS),
                params,
            )
            row = await cur.fetchone()
            if row is not None:
                if was_confirmed and new_status != "confirmed":
                    await cur.execute(_FREE_SEAT, (booking["slot_id"],))
                elif not was_confirmed and new_status == "confirmed":
                    await cur.execute(_TAKE_SEAT, (booking["slot_id"],))
                    if cur.rowcount == 0:
                        await conn.rollback()
                        raise SlotFullError(str(booking["slot_id"]))
            await conn.commit()
            return dict(row) if row else None


__all__ = [
    "SlotFullError",
    "list_available_slots",
    "list_coach_slots",
    "get_slot",
    "has_overlapping_slot",
    "create_slot",
    "update_slot",
    "find_active_booking",
    "create_booking",
    "get_booking",
    "list_bookings",
    "update_booking",
]
