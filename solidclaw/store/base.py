"""Storage contract shared by the PostgreSQL and in-memory backends."""

from __future__ import annotations

from typing import Any, Protocol

from solidclaw.models import (
    AuditEvent,
    CredentialRecord,
    DeviceSession,
    DeviceStatus,
    TokenRecord,
)


class Store(Protocol):
    """Atomic single-row operations over the four broker collections.

    Lookups are by primary key plus one secondary key per collection
    (user_code for device sessions, refresh_token for tokens).
    """

    # Credentials
    def upsert_credential(self, record: CredentialRecord) -> None: ...

    def get_credential(self, tool: str) -> CredentialRecord | None: ...

    def has_credential(self, tool: str) -> bool: ...

    # Device sessions
    def insert_device_session(self, session: DeviceSession) -> None: ...

    def get_device_session(self, device_code: str) -> DeviceSession | None: ...

    def get_device_session_by_user_code(self, user_code: str) -> DeviceSession | None: ...

    def update_device_status(
        self, device_code: str, status: DeviceStatus, approved_at: int | None
    ) -> None: ...

    def delete_expired_device_sessions(self, now_ms: int) -> int: ...

    # Tokens
    def insert_token(self, record: TokenRecord) -> None: ...

    def get_token(self, access_token: str) -> TokenRecord | None: ...

    def get_token_by_refresh(self, refresh_token: str) -> TokenRecord | None: ...

    def rotate_token(self, old_refresh_token: str, record: TokenRecord) -> bool:
        """Delete the row holding ``old_refresh_token`` and insert ``record``.

        Both happen in one transaction. Returns False (and inserts nothing)
        when the old row is already gone.
        """
        ...

    # Audit
    def append_audit(
        self,
        action: str,
        created_at: int,
        *,
        tool: str | None = None,
        account_id: str | None = None,
        meta: Any = None,
    ) -> AuditEvent: ...

    def list_audit(self, limit: int = 50, action: str | None = None) -> list[AuditEvent]: ...
