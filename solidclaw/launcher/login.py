"""Device-flow login client: start a session, show the user code, poll for a token."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx

from solidclaw.errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = ("models", "secrets:telegram")
MIN_POLL_INTERVAL = 2
MIN_TIMEOUT = 60


async def device_login(
    base_url: str,
    scopes: Sequence[str] = DEFAULT_SCOPES,
    *,
    notify: Callable[[str], None] = print,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = 10.0,
) -> dict[str, Any]:
    """Run the device flow against ``base_url`` and return the token response.

    Polls every ``max(interval, 2)`` seconds for at most
    ``max(expires_in, 60)`` seconds. Raises UpstreamError if the server
    refuses, the session is denied or expires, or the flow times out.
    """
    base_url = base_url.rstrip("/")
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        try:
            resp = await client.post(f"{base_url}/device/start", json={"scopes": list(scopes)})
        except httpx.HTTPError as e:
            raise UpstreamError(f"Solidclaw /device/start failed: {e}") from e
        if resp.status_code >= 400:
            raise UpstreamError(
                f"Solidclaw /device/start failed ({resp.status_code})", status=resp.status_code
            )
        grant = resp.json()

        device_code = str(grant.get("device_code") or "")
        if not device_code:
            raise UpstreamError("Solidclaw returned no device_code")
        verification_url = grant.get("verification_url")
        user_code = grant.get("user_code")
        if verification_url and user_code:
            notify(f"Open {verification_url} and enter code {user_code}.")

        interval = max(int(grant.get("interval") or 5), MIN_POLL_INTERVAL)
        deadline = clock() + max(int(grant.get("expires_in") or 600), MIN_TIMEOUT)

        while clock() < deadline:
            await sleep(interval)
            try:
                poll = await client.post(f"{base_url}/device/poll", json={"device_code": device_code})
            except httpx.HTTPError as e:
                raise UpstreamError(f"Solidclaw device poll failed: {e}") from e
            if poll.status_code == 202:
                logger.debug("Device session still pending")
                continue
            if poll.status_code >= 400:
                raise UpstreamError(
                    f"Solidclaw device poll failed ({poll.status_code})", status=poll.status_code
                )
            return poll.json()

    raise UpstreamError("Solidclaw device flow timed out")
