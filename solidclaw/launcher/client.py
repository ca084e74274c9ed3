"""HTTP client for the broker's bearer-token endpoints."""

from __future__ import annotations

import logging

import httpx

from solidclaw.errors import UpstreamError

logger = logging.getLogger(__name__)


class EnvClient:
    """Fetch injected env values from ``GET /secrets/env``."""

    def __init__(
        self,
        base_url: str,
        token: str,
        keys: list[str] | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.keys = [k for k in (keys or []) if k]
        self.timeout = timeout
        self._transport = transport

    async def fetch(self) -> dict[str, str]:
        """Return the current value set. Raises UpstreamError on any failure."""
        params = {"keys": ",".join(self.keys)} if self.keys else None
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(
                    f"{self.base_url}/secrets/env",
                    params=params,
                    headers={"Authorization": f"Bearer {self.token}"},
                )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Solidclaw env fetch failed: {e}") from e

        if resp.status_code >= 400:
            raise UpstreamError(
                f"Solidclaw env fetch failed ({resp.status_code})", status=resp.status_code
            )
        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamError("Solidclaw env fetch returned invalid JSON") from e

        values = payload.get("values") or {}
        if not isinstance(values, dict):
            raise UpstreamError("Solidclaw env fetch returned malformed values")
        return {str(k): str(v) for k, v in values.items()}
