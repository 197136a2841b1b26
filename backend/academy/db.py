from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from psycopg import AsyncCursor
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .config import settings

pool = AsyncConnectionPool(
    conninfo=str(settings.database_url),
    min_size=settings.db_pool_min_size,
    max_size=settings.db_pool_max_size,
    open=False,
    kwargs={"autocommit": False},
)


@asynccontextmanager
async def get_conn() -> AsyncIterator[AsyncCursor]:
    """Yield a dict-row cursor; the transaction is committed on clean exit."""

    async with pool.connection() as conn:
        async with conn.cursor(row_factory=dict_row) as cur:
            yield cur


__all__ = ["pool", "get_conn"]
