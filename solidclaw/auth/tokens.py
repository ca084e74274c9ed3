"""
Access/refresh token lifecycle.

Tokens are opaque random hex strings; possessing one is the authorization.
Refresh rotates: the superseded pair is deleted and a brand-new pair stored
in the same transaction, so an old refresh or access token never works again.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from solidclaw.config import Config
from solidclaw.models import TokenRecord, join_scopes
from solidclaw.store.base import Store

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def random_token(nbytes: int = TOKEN_BYTES) -> str:
    return secrets.token_hex(nbytes)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    refresh_token: str
    expires_at: int
    expires_in: int
    token_type: str = "bearer"

    def to_response(self) -> dict:
        """Wire shape shared by /device/poll and /token/refresh."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
            "token_type": self.token_type,
        }


class TokenService:
    """Issue, validate and rotate token pairs."""

    def __init__(self, store: Store, config: Config, clock: Callable[[], int] = now_ms) -> None:
        self.store = store
        self.access_ttl_ms = config.access_ttl_seconds * 1000
        self._clock = clock

    def _new_record(self, account_id: str | None, scopes: str | None) -> TokenRecord:
        now = self._clock()
        return TokenRecord(
            access_token=random_token(),
            refresh_token=random_token(),
            account_id=account_id,
            scopes=scopes,
            created_at=now,
            expires_at=now + self.access_ttl_ms,
        )

    def _issued(self, record: TokenRecord) -> IssuedToken:
        return IssuedToken(
            access_token=record.access_token,
            refresh_token=record.refresh_token,
            expires_at=record.expires_at,
            expires_in=(record.expires_at - record.created_at) // 1000,
        )

    def issue(self, account_id: str | None = None, scopes: list[str] | None = None) -> IssuedToken:
        record = self._new_record(account_id, join_scopes(scopes))
        self.store.insert_token(record)
        logger.info("Issued token pair (account=%s)", account_id or "-")
        return self._issued(record)

    def validate(self, access_token: str) -> TokenRecord | None:
        """Return the record if the token is known and unexpired. Never extends TTL."""
        if not access_token:
            return None
        record = self.store.get_token(access_token)
        if record is None or record.is_expired(self._clock()):
            return None
        return record

    def refresh(self, refresh_token: str) -> IssuedToken | None:
        """Rotate ``refresh_token`` into a new pair, preserving account and scopes."""
        if not refresh_token:
            return None
        existing = self.store.get_token_by_refresh(refresh_token)
        if existing is None:
            return None
        record = self._new_record(existing.account_id, existing.scopes)
        if not self.store.rotate_token(refresh_token, record):
            # Lost a race with a concurrent refresh of the same token
            logger.warning("Refresh token already rotated")
            return None
        logger.info("Rotated token pair (account=%s)", existing.account_id or "-")
        return self._issued(record)
