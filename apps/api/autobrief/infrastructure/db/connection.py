from typing import Optional

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from autobrief.config import get_settings

pool: Optional[ConnectionPool] = None


def init_pool(database_url: Optional[str] = None) -> ConnectionPool:
    global pool
    if pool is not None:
        return pool
    conninfo = database_url or get_settings().database_url
    if not conninfo:
        raise RuntimeError("DATABASE_URL is not set")

    # Small pool; the worker holds one connection per task.
    pool = ConnectionPool(
        conninfo=conninfo,
        min_size=1,
        max_size=5,
        max_idle=5,
        timeout=10,
        # Dict rows keep the row mappers simple.
        kwargs={"row_factory": dict_row},
    )
    return pool


def close_pool() -> None:
    global pool
    if pool is not None:
        pool.close()
        pool = None


def get_pool() -> ConnectionPool:
    if pool is None:
        raise RuntimeError("Database pool is not initialized")
    return pool
