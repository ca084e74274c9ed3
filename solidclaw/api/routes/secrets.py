"""Vault routes: env values for launchers, admin management of env and model-proxy records."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from solidclaw.api.deps import get_store, get_vault, require_access_token, require_admin
from solidclaw.api.schemas import EnvSecretsRequest, ModelProxyConfig
from solidclaw.audit import log_event
from solidclaw.store.base import Store
from solidclaw.vault import ENV_TOOL, MODEL_PROXY_TOOL, CredentialVault

router = APIRouter(tags=["secrets"])


def _env_values(vault: CredentialVault) -> dict[str, str]:
    payload = vault.read(ENV_TOOL) or {}
    values = payload.get("values") if isinstance(payload, dict) else None
    return values if isinstance(values, dict) else {}


@router.get("/secrets/env", dependencies=[Depends(require_access_token)])
async def get_env(
    keys: str | None = Query(None),
    vault: CredentialVault = Depends(get_vault),
):
    values = _env_values(vault)
    wanted = [k.strip() for k in (keys or "").split(",") if k.strip()]
    if not wanted:
        return {"values": values}
    return {"values": {k: values[k] for k in wanted if isinstance(values.get(k), str)}}


@router.get("/admin/secrets/env", dependencies=[Depends(require_admin)])
async def admin_get_env(vault: CredentialVault = Depends(get_vault)):
    return {"values": _env_values(vault)}


@router.post("/admin/secrets/env", dependencies=[Depends(require_admin)])
async def admin_set_env(
    body: EnvSecretsRequest,
    vault: CredentialVault = Depends(get_vault),
    store: Store = Depends(get_store),
):
    vault.upsert(ENV_TOOL, body.model_dump())
    log_event(store, "secrets.update", tool=ENV_TOOL, meta={"keys": sorted(body.values)})
    return {"ok": True}


@router.get("/admin/secrets/model-proxy", dependencies=[Depends(require_admin)])
async def admin_get_model_proxy(vault: CredentialVault = Depends(get_vault)):
    payload = vault.read(MODEL_PROXY_TOOL)
    if payload is None:
        return JSONResponse({"error": "not_configured"}, status_code=404)
    return payload


@router.get("/admin/secrets/model-proxy/status", dependencies=[Depends(require_admin)])
async def admin_model_proxy_status(vault: CredentialVault = Depends(get_vault)):
    return {"exists": vault.exists(MODEL_PROXY_TOOL)}


@router.post("/admin/secrets/model-proxy", dependencies=[Depends(require_admin)])
async def admin_set_model_proxy(
    body: ModelProxyConfig,
    vault: CredentialVault = Depends(get_vault),
    store: Store = Depends(get_store),
):
    vault.upsert(MODEL_PROXY_TOOL, body.model_dump(exclude_none=True))
    log_event(store, "secrets.update", tool=MODEL_PROXY_TOOL)
    return {"ok": True}
