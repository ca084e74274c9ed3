"""
Connection pooling for PostgreSQL.

The pool is built from an explicit DatabaseConfig (no ambient config lookup)
and owned by whoever created it, normally the PostgresStore.

Usage:
    from solidclaw.db.connection import create_pool, get_connection

    pool = create_pool(cfg.db)
    with get_connection(pool) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager

import psycopg2
import psycopg2.pool

from solidclaw.config import DatabaseConfig

logger = logging.getLogger(__name__)


def create_pool(
    cfg: DatabaseConfig, minconn: int = 1, maxconn: int = 10
) -> psycopg2.pool.ThreadedConnectionPool:
    """Open a thread-safe connection pool for the given database."""
    logger.info(
        "Creating connection pool: %s@%s:%s/%s (min=%d, max=%d)",
        cfg.user,
        cfg.host or "<socket>",
        cfg.port,
        cfg.name,
        minconn,
        maxconn,
    )
    try:
        return psycopg2.pool.ThreadedConnectionPool(
            minconn=minconn,
            maxconn=maxconn,
            **cfg.dict,
        )
    except psycopg2.OperationalError as e:
        raise ConnectionError(
            f"Cannot connect to PostgreSQL at {cfg.host}:{cfg.port}/{cfg.name}: {e}\n"
            f"Check SOLIDCLAW_DB_* environment variables and ensure PostgreSQL is running."
        ) from e


@contextmanager
def get_connection(
    pool: psycopg2.pool.ThreadedConnectionPool,
) -> Generator[psycopg2.extensions.connection, None, None]:
    """Borrow a connection from the pool.

    The transaction is committed when the block exits cleanly and rolled back
    on exception. The connection is always returned to the pool.
    """
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)
