"""
Persistence backends for the broker.

    store.upsert_credential(record)      credentials (ciphertext only)
    store.get_device_session(code)       device sessions
    store.get_token(access)              tokens
    store.append_audit(action, ...)      audit log
"""

from __future__ import annotations

from solidclaw.config import Config
from solidclaw.errors import ConfigurationError
from solidclaw.store.base import Store
from solidclaw.store.memory import MemoryStore


def open_store(config: Config) -> Store:
    """Create the backend named by ``config.store``."""
    if config.store == "memory":
        return MemoryStore()
    if config.store == "postgres":
        from solidclaw.store.postgres import PostgresStore

        return PostgresStore(config.db)
    raise ConfigurationError(f"Unknown store backend: {config.store!r} (expected postgres or memory)")


__all__ = ["MemoryStore", "Store", "open_store"]
