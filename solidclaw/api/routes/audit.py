"""Admin read access to the audit log."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from solidclaw.api.deps import get_store, require_admin
from solidclaw.audit import query_log
from solidclaw.store.base import Store

router = APIRouter(prefix="/admin", tags=["audit"], dependencies=[Depends(require_admin)])


@router.get("/audit")
async def get_audit(
    action: str | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    store: Store = Depends(get_store),
):
    events = query_log(store, limit=limit, action=action)
    return {"events": events, "count": len(events)}
