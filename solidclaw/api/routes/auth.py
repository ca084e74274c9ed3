"""Device authorization and token refresh routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from solidclaw.api.deps import get_devices, get_store, get_tokens, require_admin
from solidclaw.api.schemas import (
    DevicePollRequest,
    DeviceStartRequest,
    RefreshRequest,
    UserCodeRequest,
)
from solidclaw.audit import log_event
from solidclaw.auth import DeviceAuthorizer, PollStatus, TokenService
from solidclaw.store.base import Store

router = APIRouter(tags=["auth"])

_POLL_ERRORS = {
    PollStatus.PENDING: (202, "authorization_pending"),
    PollStatus.DENIED: (403, "access_denied"),
    PollStatus.EXPIRED: (410, "expired_token"),
    PollStatus.INVALID: (400, "invalid_device_code"),
}


@router.post("/device/start")
async def device_start(
    body: DeviceStartRequest | None = None,
    devices: DeviceAuthorizer = Depends(get_devices),
):
    body = body or DeviceStartRequest()
    grant = devices.start(account_id=body.accountId, scopes=body.scopes)
    return grant.to_response()


@router.post("/device/poll")
async def device_poll(body: DevicePollRequest, devices: DeviceAuthorizer = Depends(get_devices)):
    result = devices.poll(body.device_code)
    if result.status in _POLL_ERRORS:
        status_code, error = _POLL_ERRORS[result.status]
        return JSONResponse({"error": error}, status_code=status_code)
    return result.token.to_response()


@router.post("/device/approve", dependencies=[Depends(require_admin)])
async def device_approve(
    body: UserCodeRequest,
    devices: DeviceAuthorizer = Depends(get_devices),
    store: Store = Depends(get_store),
):
    session = devices.approve(body.user_code)
    if session is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    log_event(store, "device.approve", account_id=session.account_id, meta={"user_code": session.user_code})
    return {"ok": True}


@router.post("/device/deny", dependencies=[Depends(require_admin)])
async def device_deny(
    body: UserCodeRequest,
    devices: DeviceAuthorizer = Depends(get_devices),
    store: Store = Depends(get_store),
):
    session = devices.deny(body.user_code)
    if session is None:
        return JSONResponse({"error": "not_found"}, status_code=404)
    log_event(store, "device.deny", account_id=session.account_id, meta={"user_code": session.user_code})
    return {"ok": True}


@router.post("/token/refresh")
async def token_refresh(
    body: RefreshRequest,
    tokens: TokenService = Depends(get_tokens),
    store: Store = Depends(get_store),
):
    issued = tokens.refresh(body.refresh_token)
    if issued is None:
        return JSONResponse({"error": "invalid_refresh_token"}, status_code=401)
    log_event(store, "token.refresh")
    return issued.to_response()
