"""
Solidclaw Vault — one encrypted JSON blob per tool.

Public API:
    vault.upsert(tool, payload)   → encrypt and replace
    vault.read(tool)              → decrypted payload or None
    vault.exists(tool)            → presence check without decrypting

The vault never writes audit entries; callers that upsert pair the write with
``solidclaw.audit.log_event``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from solidclaw.config import Config
from solidclaw.errors import AuthenticationError, DecryptionError
from solidclaw.models import CredentialRecord
from solidclaw.store.base import Store
from solidclaw.vault.crypto import decrypt_json, derive_key, encrypt_json

logger = logging.getLogger(__name__)

ENV_TOOL = "env"
MODEL_PROXY_TOOL = "model-proxy"


def _now_ms() -> int:
    return int(time.time() * 1000)


class CredentialVault:
    """Keyed store of encrypted payloads."""

    def __init__(self, store: Store, key: bytes, clock=_now_ms) -> None:
        self.store = store
        self._key = key
        self._clock = clock

    @classmethod
    def from_config(cls, config: Config, store: Store) -> CredentialVault:
        """Build a vault from the configured master key (ConfigurationError if unset)."""
        return cls(store, derive_key(config.master_key))

    def upsert(self, tool: str, payload: Any, metadata: Any = None) -> None:
        """Encrypt ``payload`` and replace any existing record for ``tool``."""
        record = CredentialRecord(
            tool=tool,
            ciphertext=encrypt_json(self._key, payload),
            metadata=metadata,
            updated_at=self._clock(),
        )
        self.store.upsert_credential(record)
        logger.info("Vault record updated: %s", tool)

    def read(self, tool: str) -> Any | None:
        """Decrypt and return the payload for ``tool``, or None if absent.

        Decryption failures propagate; they are never reported as absence.
        """
        record = self.store.get_credential(tool)
        if record is None:
            return None
        try:
            return decrypt_json(self._key, record.ciphertext)
        except (AuthenticationError, DecryptionError) as e:
            logger.error("Vault record %s could not be decrypted: %s", tool, e.code)
            raise

    def exists(self, tool: str) -> bool:
        return self.store.has_credential(tool)


__all__ = ["CredentialVault", "ENV_TOOL", "MODEL_PROXY_TOOL", "derive_key"]
