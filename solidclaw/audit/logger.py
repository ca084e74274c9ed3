"""
Solidclaw Audit Log — append-only record of credential and auth mutations.

Actions:
  - secrets.update — vault record replaced (tool = env, model-proxy, ...)
  - openclaw.allowlist.update — OpenClaw allowed-models list rewritten
  - device.approve, device.deny — approver decisions on device sessions
  - token.refresh — access/refresh pair rotated

Usage:
    from solidclaw.audit.logger import log_event
    log_event(store, "secrets.update", tool="env")
"""

from __future__ import annotations

import logging
import time
from typing import Any

from solidclaw.store.base import Store

logger = logging.getLogger(__name__)


def log_event(
    store: Store,
    action: str,
    *,
    tool: str | None = None,
    account_id: str | None = None,
    meta: Any = None,
) -> dict | None:
    """Append an audit event.

    Returns {"id": int, "created_at": int} on success, None on failure.
    Failures are logged but never raise — audit must not break callers.
    """
    try:
        event = store.append_audit(
            action,
            int(time.time() * 1000),
            tool=tool,
            account_id=account_id,
            meta=meta,
        )
        return {"id": event.id, "created_at": event.created_at}
    except Exception as e:
        logger.warning("Audit log_event failed: %s", e)
        return None


def query_log(store: Store, limit: int = 50, action: str | None = None) -> list[dict]:
    """Return the most recent audit events, newest first."""
    try:
        events = store.list_audit(limit=limit, action=action)
    except Exception as e:
        logger.warning("Audit query_log failed: %s", e)
        return []
    return [
        {
            "id": e.id,
            "action": e.action,
            "tool": e.tool,
            "account_id": e.account_id,
            "created_at": e.created_at,
            "meta": e.meta,
        }
        for e in events
    ]
