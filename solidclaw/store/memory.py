"""In-process store for development servers and tests.

Everything lives in dicts guarded by one lock; nothing survives a restart.
"""

from __future__ import annotations

import copy
import itertools
import threading
from dataclasses import replace
from typing import Any

from solidclaw.models import (
    AuditEvent,
    CredentialRecord,
    DeviceSession,
    DeviceStatus,
    TokenRecord,
)


class MemoryStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._credentials: dict[str, CredentialRecord] = {}
        self._devices: dict[str, DeviceSession] = {}
        self._tokens: dict[str, TokenRecord] = {}
        self._refresh_index: dict[str, str] = {}
        self._audit: list[AuditEvent] = []
        self._audit_seq = itertools.count(1)

    # ── Credentials ──

    def upsert_credential(self, record: CredentialRecord) -> None:
        with self._lock:
            self._credentials[record.tool] = record

    def get_credential(self, tool: str) -> CredentialRecord | None:
        with self._lock:
            return self._credentials.get(tool)

    def has_credential(self, tool: str) -> bool:
        with self._lock:
            return tool in self._credentials

    # ── Device sessions ──

    def insert_device_session(self, session: DeviceSession) -> None:
        with self._lock:
            if session.device_code in self._devices:
                raise KeyError(f"duplicate device code {session.device_code[:6]}...")
            self._devices[session.device_code] = session

    def get_device_session(self, device_code: str) -> DeviceSession | None:
        with self._lock:
            return self._devices.get(device_code)

    def get_device_session_by_user_code(self, user_code: str) -> DeviceSession | None:
        with self._lock:
            matches = [s for s in self._devices.values() if s.user_code == user_code]
        if not matches:
            return None
        return max(matches, key=lambda s: s.created_at)

    def update_device_status(
        self, device_code: str, status: DeviceStatus, approved_at: int | None
    ) -> None:
        with self._lock:
            session = self._devices.get(device_code)
            if session is not None:
                self._devices[device_code] = replace(
                    session, status=status, approved_at=approved_at
                )

    def delete_expired_device_sessions(self, now_ms: int) -> int:
        with self._lock:
            expired = [c for c, s in self._devices.items() if s.is_expired(now_ms)]
            for code in expired:
                del self._devices[code]
            return len(expired)

    # ── Tokens ──

    def insert_token(self, record: TokenRecord) -> None:
        with self._lock:
            self._insert_token_locked(record)

    def _insert_token_locked(self, record: TokenRecord) -> None:
        if record.access_token in self._tokens or record.refresh_token in self._refresh_index:
            raise KeyError("duplicate token")
        self._tokens[record.access_token] = record
        self._refresh_index[record.refresh_token] = record.access_token

    def get_token(self, access_token: str) -> TokenRecord | None:
        with self._lock:
            return self._tokens.get(access_token)

    def get_token_by_refresh(self, refresh_token: str) -> TokenRecord | None:
        with self._lock:
            access = self._refresh_index.get(refresh_token)
            return self._tokens.get(access) if access else None

    def rotate_token(self, old_refresh_token: str, record: TokenRecord) -> bool:
        with self._lock:
            access = self._refresh_index.pop(old_refresh_token, None)
            if access is None:
                return False
            self._tokens.pop(access, None)
            self._insert_token_locked(record)
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
        with self._lock:
            event = AuditEvent(
                id=next(self._audit_seq),
                action=action,
                created_at=created_at,
                tool=tool,
                account_id=account_id,
                meta=copy.deepcopy(meta),
            )
            self._audit.append(event)
            return event

    def list_audit(self, limit: int = 50, action: str | None = None) -> list[AuditEvent]:
        with self._lock:
            events = [e for e in self._audit if action is None or e.action == action]
        return list(reversed(events))[:limit]
