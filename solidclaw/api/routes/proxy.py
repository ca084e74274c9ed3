"""Model proxy: forward ``/v1/*`` to the configured upstream with the stored API key."""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from solidclaw.api.deps import get_vault, require_access_token
from solidclaw.errors import UpstreamError
from solidclaw.vault import MODEL_PROXY_TOOL, CredentialVault

logger = logging.getLogger(__name__)

router = APIRouter(tags=["proxy"])

# Not forwarded upstream; httpx recomputes framing headers itself
_DROP_HEADERS = {"host", "content-length", "transfer-encoding", "connection"}
PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def upstream_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def upstream_headers(request: Request, proxy: dict) -> dict[str, str]:
    headers = {k: v for k, v in request.headers.items() if k.lower() not in _DROP_HEADERS}
    headers.pop("authorization", None)
    headers["Authorization"] = f"Bearer {proxy['apiKey']}"
    for key, value in (proxy.get("headers") or {}).items():
        headers[key] = value
    return headers


@router.api_route(
    "/v1/{path:path}", methods=PROXY_METHODS, dependencies=[Depends(require_access_token)]
)
async def forward(path: str, request: Request, vault: CredentialVault = Depends(get_vault)):
    proxy = vault.read(MODEL_PROXY_TOOL)
    if not proxy:
        return JSONResponse({"error": "model_proxy_not_configured"}, status_code=503)

    url = upstream_url(proxy["baseUrl"], f"v1/{path}")
    body = None if request.method in ("GET", "HEAD") else await request.body()
    client: httpx.AsyncClient = request.app.state.http_client
    try:
        resp = await client.request(
            request.method,
            url,
            params=request.query_params,
            headers=upstream_headers(request, proxy),
            content=body,
        )
    except httpx.HTTPError as e:
        logger.warning("Model proxy request to %s failed: %s", url, e)
        raise UpstreamError(str(e)) from e

    headers = {}
    if "content-type" in resp.headers:
        headers["content-type"] = resp.headers["content-type"]
    return Response(content=resp.content, status_code=resp.status_code, headers=headers)
