"""
PostgreSQL store — psycopg2 DAL over the tables in migrations/001_init.sql.

All writes are single statements (or one transaction for token rotation).
Reads return the dataclasses from solidclaw.models.
"""

from __future__ import annotations

import logging
from typing import Any

from psycopg2.extras import Json, RealDictCursor

from solidclaw.config import DatabaseConfig
from solidclaw.db.connection import create_pool, get_connection
from solidclaw.models import (
    AuditEvent,
    CredentialRecord,
    DeviceSession,
    DeviceStatus,
    TokenRecord,
)

logger = logging.getLogger(__name__)

_DEVICE_COLUMNS = (
    "device_code, user_code, status, created_at, expires_at, approved_at, account_id, scopes"
)
_TOKEN_COLUMNS = "access_token, refresh_token, account_id, scopes, created_at, expires_at"


def _device(row: dict | None) -> DeviceSession | None:
    if not row:
        return None
    return DeviceSession(
        device_code=row["device_code"],
        user_code=row["user_code"],
        status=DeviceStatus(row["status"]),
        created_at=int(row["created_at"]),
        expires_at=int(row["expires_at"]),
        approved_at=int(row["approved_at"]) if row["approved_at"] is not None else None,
        account_id=row["account_id"],
        scopes=row["scopes"],
    )


def _token(row: dict | None) -> TokenRecord | None:
    if not row:
        return None
    return TokenRecord(
        access_token=row["access_token"],
        refresh_token=row["refresh_token"],
        account_id=row["account_id"],
        scopes=row["scopes"],
        created_at=int(row["created_at"]),
        expires_at=int(row["expires_at"]),
    )


def _audit(row: dict) -> AuditEvent:
    return AuditEvent(
        id=int(row["id"]),
        action=row["action"],
        tool=row["tool"],
        account_id=row["account_id"],
        created_at=int(row["created_at"]),
        meta=row["meta"],
    )


class PostgresStore:
    """Store backed by a psycopg2 connection pool."""

    def __init__(self, db: DatabaseConfig | None = None, *, pool=None) -> None:
        if pool is None and db is None:
            raise ValueError("PostgresStore needs a DatabaseConfig or a pool")
        self._db = db
        self._pool = pool

    @property
    def pool(self):
        if self._pool is None:
            self._pool = create_pool(self._db)
        return self._pool

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    def _fetchone(self, sql: str, params: tuple) -> dict | None:
        with get_connection(self.pool) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                return cur.fetchone()

    def _execute(self, sql: str, params: tuple) -> int:
        with get_connection(self.pool) as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                return cur.rowcount

    # ── Credentials ──

    def upsert_credential(self, record: CredentialRecord) -> None:
        self._execute(
            """
            INSERT INTO credentials (tool, payload, metadata, updated_at)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (tool)
            DO UPDATE SET payload = EXCLUDED.payload,
                          metadata = EXCLUDED.metadata,
                          updated_at = EXCLUDED.updated_at
            """,
            (
                record.tool,
                record.ciphertext,
                Json(record.metadata) if record.metadata is not None else None,
                record.updated_at,
            ),
        )

    def get_credential(self, tool: str) -> CredentialRecord | None:
        row = self._fetchone(
            "SELECT tool, payload, metadata, updated_at FROM credentials WHERE tool = %s",
            (tool,),
        )
        if not row:
            return None
        return CredentialRecord(
            tool=row["tool"],
            ciphertext=row["payload"],
            metadata=row["metadata"],
            updated_at=int(row["updated_at"]),
        )

    def has_credential(self, tool: str) -> bool:
        row = self._fetchone("SELECT 1 AS present FROM credentials WHERE tool = %s LIMIT 1", (tool,))
        return row is not None

    # ── Device sessions ──

    def insert_device_session(self, session: DeviceSession) -> None:
        self._execute(
            f"INSERT INTO device_sessions ({_DEVICE_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)",
            (
                session.device_code,
                session.user_code,
                session.status.value,
                session.created_at,
                session.expires_at,
                session.approved_at,
                session.account_id,
                session.scopes,
            ),
        )

    def get_device_session(self, device_code: str) -> DeviceSession | None:
        return _device(
            self._fetchone(
                f"SELECT {_DEVICE_COLUMNS} FROM device_sessions WHERE device_code = %s",
                (device_code,),
            )
        )

    def get_device_session_by_user_code(self, user_code: str) -> DeviceSession | None:
        # Codes are only unique among live sessions; the newest row wins.
        return _device(
            self._fetchone(
                f"SELECT {_DEVICE_COLUMNS} FROM device_sessions WHERE user_code = %s "
                "ORDER BY created_at DESC LIMIT 1",
                (user_code,),
            )
        )

    def update_device_status(
        self, device_code: str, status: DeviceStatus, approved_at: int | None
    ) -> None:
        self._execute(
            "UPDATE device_sessions SET status = %s, approved_at = %s WHERE device_code = %s",
            (status.value, approved_at, device_code),
        )

    def delete_expired_device_sessions(self, now_ms: int) -> int:
        return self._execute("DELETE FROM device_sessions WHERE expires_at <= %s", (now_ms,))

    # ── Tokens ──

    def insert_token(self, record: TokenRecord) -> None:
        self._execute(
            f"INSERT INTO tokens ({_TOKEN_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s)",
            (
                record.access_token,
                record.refresh_token,
                record.account_id,
                record.scopes,
                record.created_at,
                record.expires_at,
            ),
        )

    def get_token(self, access_token: str) -> TokenRecord | None:
        return _token(
            self._fetchone(
                f"SELECT {_TOKEN_COLUMNS} FROM tokens WHERE access_token = %s", (access_token,)
            )
        )

    def get_token_by_refresh(self, refresh_token: str) -> TokenRecord | None:
        return _token(
            self._fetchone(
                f"SELECT {_TOKEN_COLUMNS} FROM tokens WHERE refresh_token = %s", (refresh_token,)
            )
        )

    def rotate_token(self, old_refresh_token: str, record: TokenRecord) -> bool:
        with get_connection(self.pool) as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM tokens WHERE refresh_token = %s", (old_refresh_token,))
                if cur.rowcount == 0:
                    return False
                cur.execute(
                    f"INSERT INTO tokens ({_TOKEN_COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s)",
                    (
                        record.access_token,
                        record.refresh_token,
                        record.account_id,
                        record.scopes,
                        record.created_at,
                        record.expires_at,
                    ),
                )
        return True

    # ── Audit ──

    def append_audit(
        self,
        action: str,
        created_at: int,
        *,
        tool: str | None = None,
        account_id: str | None = None,
        meta: Any = None,
    ) -> AuditEvent:
        row = self._fetchone(
            """
            INSERT INTO audit_log (action, tool, account_id, created_at, meta)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING id, action, tool, account_id, created_at, meta
            """,
            (action, tool, account_id, created_at, Json(meta) if meta is not None else None),
        )
        return _audit(row)

    def list_audit(self, limit: int = 50, action: str | None = None) -> list[AuditEvent]:
        query = "SELECT id, action, tool, account_id, created_at, meta FROM audit_log"
        params: list = []
        if action:
            query += " WHERE action = %s"
            params.append(action)
        query += " ORDER BY id DESC LIMIT %s"
        params.append(limit)
        with get_connection(self.pool) as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, tuple(params))
                return [_audit(r) for r in cur.fetchall()]
