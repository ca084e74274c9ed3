"""
SQL migration runner for the broker schema.

Migrations are ``solidclaw/migrations/NNN_name.sql`` files applied in
version order, each in its own transaction, and recorded in
``schema_migrations`` with a SHA-256 of the file so later edits show up as
drift in ``solidclaw migrate --status``.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import NamedTuple

from psycopg2.extras import RealDictCursor

from solidclaw.db.connection import get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"

_FILENAME_RE = re.compile(r"^(?P<version>\d+[a-z]?)_[\w.-]+\.sql$")

_CREATE_LEDGER = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version     TEXT PRIMARY KEY,
        filename    TEXT NOT NULL,
        checksum    TEXT,
        applied_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""

_RECORD = (
    "INSERT INTO schema_migrations (version, filename, checksum) VALUES (%s, %s, %s) "
    "ON CONFLICT (version) DO NOTHING"
)


class Migration(NamedTuple):
    version: str
    path: Path

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.path.read_bytes()).hexdigest()


def discover(migrations_dir: Path | None = None) -> list[Migration]:
    """Migration files in version order; other files are ignored."""
    found = []
    for path in sorted((migrations_dir or MIGRATIONS_DIR).glob("*.sql")):
        match = _FILENAME_RE.match(path.name)
        if match:
            found.append(Migration(match["version"], path))
    return found


def _ledger(conn) -> dict[str, dict]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(_CREATE_LEDGER)
        cur.execute("SELECT version, filename, checksum, applied_at FROM schema_migrations")
        return {row["version"]: dict(row) for row in cur.fetchall()}


def status(pool, migrations_dir: Path | None = None) -> list[dict]:
    """One row per migration file: version, filename, status, applied_at.

    Status is ``applied``, ``pending`` or ``DRIFT`` (file changed after it
    was applied).
    """
    with get_connection(pool) as conn:
        ledger = _ledger(conn)

    rows = []
    for m in discover(migrations_dir):
        entry = ledger.get(m.version)
        if entry is None:
            state = "pending"
        elif entry.get("checksum") and entry["checksum"] != m.checksum:
            state = "DRIFT"
        else:
            state = "applied"
        rows.append({
            "version": m.version,
            "filename": m.path.name,
            "status": state,
            "applied_at": entry["applied_at"] if entry else None,
        })
    return rows


def apply(pool, dry_run: bool = False, migrations_dir: Path | None = None) -> list[str]:
    """Apply every pending migration; returns the versions applied (or due, on dry run).

    A failing migration is rolled back and re-raised; earlier ones stay applied.
    """
    with get_connection(pool) as conn:
        ledger = _ledger(conn)
        conn.commit()

        pending = [m for m in discover(migrations_dir) if m.version not in ledger]
        if not pending:
            logger.info("Schema is up to date")
            return []
        if dry_run:
            for m in pending:
                logger.info("[dry-run] %s is pending", m.path.name)
            return [m.version for m in pending]

        done = []
        for m in pending:
            try:
                with conn.cursor() as cur:
                    cur.execute(m.path.read_text(encoding="utf-8"))
                    cur.execute(_RECORD, (m.version, m.path.name, m.checksum))
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.error("Migration %s failed: %s", m.path.name, e)
                raise
            logger.info("Applied migration %s", m.path.name)
            done.append(m.version)
        return done
