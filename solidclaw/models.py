"""
Data models for the broker's four persisted entities.

All models are plain dataclasses matching the frozen-dataclass pattern in
solidclaw.config. Timestamps are epoch milliseconds. Request/response bodies
for the HTTP API live in solidclaw.api.schemas (Pydantic).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class DeviceStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


@dataclass(frozen=True)
class CredentialRecord:
    """One encrypted blob per tool. Never leaves the vault/store layer."""

    tool: str
    ciphertext: str
    updated_at: int
    metadata: Any = None


@dataclass(frozen=True)
class DeviceSession:
    device_code: str
    user_code: str
    status: DeviceStatus
    created_at: int
    expires_at: int
    approved_at: int | None = None
    account_id: str | None = None
    scopes: str | None = None

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at

    @property
    def scope_list(self) -> list[str] | None:
        return split_scopes(self.scopes)


@dataclass(frozen=True)
class TokenRecord:
    access_token: str
    refresh_token: str
    created_at: int
    expires_at: int
    account_id: str | None = None
    scopes: str | None = None

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at

    @property
    def scope_list(self) -> list[str] | None:
        return split_scopes(self.scopes)


@dataclass(frozen=True)
class AuditEvent:
    id: int
    action: str
    created_at: int
    tool: str | None = None
    account_id: str | None = None
    meta: Any = None


def join_scopes(scopes: list[str] | None) -> str | None:
    if scopes is None:
        return None
    return " ".join(scopes)


def split_scopes(scopes: str | None) -> list[str] | None:
    if not scopes:
        return None
    return [s for s in scopes.split() if s]
