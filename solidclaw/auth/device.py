"""
Device authorization flow.

    start()   → pending session with a device code (for the caller) and a
                user code (for the approver)
    approve() / deny() → terminal decision by an operator
    poll()    → invalid | expired | pending | denied | approved(+token)

Expiry is checked lazily on read; nothing sweeps sessions in the background.
``purge_expired`` is there for operators who want to reap old rows.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import StrEnum

from solidclaw.auth.tokens import IssuedToken, TokenService, now_ms
from solidclaw.config import Config
from solidclaw.models import DeviceSession, DeviceStatus, join_scopes
from solidclaw.store.base import Store

logger = logging.getLogger(__name__)

DEVICE_CODE_LENGTH = 32
DEVICE_CODE_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
USER_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
SESSION_TTL_MS = 10 * 60_000
POLL_INTERVAL = 5


def random_code(length: int, alphabet: str = USER_CODE_ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def new_user_code() -> str:
    return f"{random_code(4)}-{random_code(4)}"


def normalize_user_code(user_code: str) -> str:
    return user_code.strip().upper()


class PollStatus(StrEnum):
    INVALID = "invalid"
    EXPIRED = "expired"
    PENDING = "pending"
    DENIED = "denied"
    APPROVED = "approved"


@dataclass(frozen=True)
class DeviceGrant:
    device_code: str
    user_code: str
    verification_url: str
    expires_in: int
    interval: int = POLL_INTERVAL

    def to_response(self) -> dict:
        return {
            "device_code": self.device_code,
            "user_code": self.user_code,
            "verification_url": self.verification_url,
            "expires_in": self.expires_in,
            "interval": self.interval,
        }


@dataclass(frozen=True)
class PollResult:
    status: PollStatus
    token: IssuedToken | None = None


class DeviceAuthorizer:
    """Pairing state machine; approved polls mint tokens via TokenService."""

    def __init__(
        self,
        store: Store,
        tokens: TokenService,
        config: Config,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.verification_url = config.verification_url
        self._clock = clock

    def _unique_user_code(self, now: int) -> str:
        # User codes must not collide with a live session
        for _ in range(10):
            code = new_user_code()
            existing = self.store.get_device_session_by_user_code(code)
            if existing is None or existing.is_expired(now):
                return code
        raise RuntimeError("Could not allocate a unique user code")

    def start(self, account_id: str | None = None, scopes: list[str] | None = None) -> DeviceGrant:
        now = self._clock()
        session = DeviceSession(
            device_code=random_code(DEVICE_CODE_LENGTH, DEVICE_CODE_ALPHABET),
            user_code=self._unique_user_code(now),
            status=DeviceStatus.PENDING,
            created_at=now,
            expires_at=now + SESSION_TTL_MS,
            account_id=account_id,
            scopes=join_scopes(scopes),
        )
        self.store.insert_device_session(session)
        logger.info("Device session started (user code %s)", session.user_code)
        return DeviceGrant(
            device_code=session.device_code,
            user_code=session.user_code,
            verification_url=self.verification_url,
            expires_in=(session.expires_at - now) // 1000,
        )

    def approve(self, user_code: str) -> DeviceSession | None:
        """Approve a live session. Returns None if unknown or expired."""
        now = self._clock()
        session = self.store.get_device_session_by_user_code(normalize_user_code(user_code))
        if session is None or session.is_expired(now):
            return None
        self.store.update_device_status(session.device_code, DeviceStatus.APPROVED, now)
        logger.info("Device session approved (user code %s)", session.user_code)
        return replace(session, status=DeviceStatus.APPROVED, approved_at=now)

    def deny(self, user_code: str) -> DeviceSession | None:
        """Deny a session. Expired sessions may still be denied."""
        session = self.store.get_device_session_by_user_code(normalize_user_code(user_code))
        if session is None:
            return None
        self.store.update_device_status(session.device_code, DeviceStatus.DENIED, None)
        logger.info("Device session denied (user code %s)", session.user_code)
        return replace(session, status=DeviceStatus.DENIED, approved_at=None)

    def poll(self, device_code: str) -> PollResult:
        """Resolve the caller's view of a session.

        Each approved poll issues a new token pair; callers stop polling once
        they see a non-pending result.
        """
        session = self.store.get_device_session(device_code)
        if session is None:
            return PollResult(PollStatus.INVALID)
        if session.is_expired(self._clock()):
            return PollResult(PollStatus.EXPIRED)
        if session.status == DeviceStatus.PENDING:
            return PollResult(PollStatus.PENDING)
        if session.status == DeviceStatus.DENIED:
            return PollResult(PollStatus.DENIED)
        token = self.tokens.issue(account_id=session.account_id, scopes=session.scope_list)
        return PollResult(PollStatus.APPROVED, token=token)

    def purge_expired(self) -> int:
        deleted = self.store.delete_expired_device_sessions(self._clock())
        if deleted:
            logger.info("Purged %d expired device sessions", deleted)
        return deleted
