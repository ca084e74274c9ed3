"""Admin routes for the OpenClaw allowed-models list."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from solidclaw import openclaw_config
from solidclaw.api.deps import get_store, require_admin
from solidclaw.api.schemas import AllowedModelsRequest
from solidclaw.audit import log_event
from solidclaw.store.base import Store

router = APIRouter(prefix="/admin/openclaw", tags=["openclaw"], dependencies=[Depends(require_admin)])


@router.get("/allowed-models")
async def get_allowed_models(request: Request):
    return openclaw_config.read_allowed_models(request.app.state.config.openclaw_state_dir)


@router.post("/allowed-models")
async def set_allowed_models(
    body: AllowedModelsRequest,
    request: Request,
    store: Store = Depends(get_store),
):
    result = openclaw_config.update_allowed_models(
        request.app.state.config.openclaw_state_dir, body.models, body.mode
    )
    log_event(
        store,
        "openclaw.allowlist.update",
        tool="openclaw",
        meta={"mode": body.mode, "count": len(result["allowed"])},
    )
    return {"ok": True, **result}
