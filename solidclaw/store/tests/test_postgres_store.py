"""Tests for the PostgreSQL store with a mocked psycopg2 pool."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from solidclaw.models import CredentialRecord, DeviceStatus, TokenRecord
from solidclaw.store.postgres import PostgresStore


@pytest.fixture
def db():
    """(store, pool, conn, cur) wired so every cursor() returns ``cur``."""
    cur = MagicMock()
    conn = MagicMock()
    conn.cursor.return_value.__enter__ = MagicMock(return_value=cur)
    conn.cursor.return_value.__exit__ = MagicMock(return_value=False)
    pool = MagicMock()
    pool.getconn.return_value = conn
    return PostgresStore(pool=pool), pool, conn, cur


def _sql(cur, index=-1) -> str:
    return " ".join(cur.execute.call_args_list[index][0][0].split())


class TestConstruction:
    def test_requires_config_or_pool(self):
        with pytest.raises(ValueError):
            PostgresStore()

    def test_close_closes_pool(self, db):
        store, pool, _, _ = db
        store.close()
        pool.closeall.assert_called_once()


class TestCredentials:
    def test_upsert_uses_on_conflict(self, db):
        store, pool, conn, cur = db
        store.upsert_credential(CredentialRecord("env", "nonce.ct", updated_at=42))
        assert "ON CONFLICT (tool)" in _sql(cur)
        params = cur.execute.call_args[0][1]
        assert params == ("env", "nonce.ct", None, 42)
        conn.commit.assert_called_once()
        pool.putconn.assert_called_once_with(conn)

    def test_get_credential(self, db):
        store, _, _, cur = db
        cur.fetchone.return_value = {
            "tool": "env",
            "payload": "nonce.ct",
            "metadata": None,
            "updated_at": 42,
        }
        record = store.get_credential("env")
        assert record == CredentialRecord("env", "nonce.ct", updated_at=42)

    def test_get_missing_credential(self, db):
        store, _, _, cur = db
        cur.fetchone.return_value = None
        assert store.get_credential("env") is None
        assert store.has_credential("env") is False


class TestDeviceSessions:
    def test_user_code_lookup_orders_newest_first(self, db):
        store, _, _, cur = db
        cur.fetchone.return_value = {
            "device_code": "d" * 32,
            "user_code": "ABCD-1234",
            "status": "approved",
            "created_at": 1,
            "expires_at": 600_001,
            "approved_at": 5,
            "account_id": None,
            "scopes": "models",
        }
        session = store.get_device_session_by_user_code("ABCD-1234")
        assert "ORDER BY created_at DESC LIMIT 1" in _sql(cur)
        assert session.status is DeviceStatus.APPROVED
        assert session.approved_at == 5
        assert session.scope_list == ["models"]

    def test_delete_expired_returns_rowcount(self, db):
        store, _, _, cur = db
        cur.rowcount = 3
        assert store.delete_expired_device_sessions(1000) == 3
        assert "expires_at <= %s" in _sql(cur)


class TestTokens:
    def _record(self):
        return TokenRecord("a2", "r2", created_at=0, expires_at=1000)

    def test_rotate_deletes_then_inserts_in_one_transaction(self, db):
        store, pool, conn, cur = db
        cur.rowcount = 1
        assert store.rotate_token("r1", self._record()) is True
        assert _sql(cur, 0).startswith("DELETE FROM tokens WHERE refresh_token")
        assert _sql(cur, 1).startswith("INSERT INTO tokens")
        assert pool.getconn.call_count == 1
        conn.commit.assert_called_once()

    def test_rotate_unknown_refresh(self, db):
        store, _, _, cur = db
        cur.rowcount = 0
        assert store.rotate_token("missing", self._record()) is False
        assert cur.execute.call_count == 1

    def test_insert_failure_rolls_back(self, db):
        store, pool, conn, cur = db
        cur.rowcount = 1
        cur.execute.side_effect = [None, RuntimeError("unique violation")]
        with pytest.raises(RuntimeError):
            store.rotate_token("r1", self._record())
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.putconn.assert_called_once_with(conn)


class TestAudit:
    def test_append_returns_event(self, db):
        store, _, _, cur = db
        cur.fetchone.return_value = {
            "id": 7,
            "action": "secrets.update",
            "tool": "env",
            "account_id": None,
            "created_at": 99,
            "meta": {"keys": ["A"]},
        }
        event = store.append_audit("secrets.update", 99, tool="env", meta={"keys": ["A"]})
        assert event.id == 7
        assert "RETURNING" in _sql(cur)

    def test_list_filters_by_action(self, db):
        store, _, _, cur = db
        cur.fetchall.return_value = []
        store.list_audit(limit=5, action="device.approve")
        assert "WHERE action = %s" in _sql(cur)
        assert cur.execute.call_args[0][1] == ("device.approve", 5)
