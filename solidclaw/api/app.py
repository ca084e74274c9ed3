"""
Solidclaw HTTP API — FastAPI app factory.

    create_app(config, store=None, http_client=None) → FastAPI

Every error response carries a JSON body ``{"error": code}``. Structured
``SolidclawError``s map to their own status; request-validation failures are
400 ``invalid_request``; anything unexpected is logged and returned as 500.

Run with uvicorn:
    solidclaw serve --port 8791
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import solidclaw
from solidclaw.api.routes import audit, auth, openclaw, proxy, secrets
from solidclaw.auth import DeviceAuthorizer, TokenService
from solidclaw.config import Config
from solidclaw.errors import ConfigurationError, SolidclawError
from solidclaw.store import open_store
from solidclaw.store.base import Store
from solidclaw.vault import CredentialVault

logger = logging.getLogger(__name__)

PROXY_TIMEOUT = 120.0


def _build_vault(config: Config, store: Store) -> CredentialVault | None:
    try:
        return CredentialVault.from_config(config, store)
    except ConfigurationError:
        logger.warning("SOLIDCLAW_MASTER_KEY is not set; vault routes will return 500")
        return None


async def solidclaw_error_handler(request: Request, exc: SolidclawError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.code, exc)
    return JSONResponse({"error": exc.code}, status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": "invalid_request"}, status_code=400)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse({"error": "not_found"}, status_code=404)
    error = str(exc.detail).lower().replace(" ", "_") if exc.detail else "http_error"
    return JSONResponse({"error": error}, status_code=exc.status_code, headers=exc.headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "internal_error"}, status_code=500)


def create_app(
    config: Config,
    store: Store | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Wire store, vault, token and device services into a FastAPI app."""
    store = store if store is not None else open_store(config)
    tokens = TokenService(store, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Solidclaw API starting (store=%s)", type(store).__name__)
        yield
        await app.state.http_client.aclose()
        close = getattr(store, "close", None)
        if close is not None:
            close()

    app = FastAPI(title="Solidclaw", version=solidclaw.__version__, lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.vault = _build_vault(config, store)
    app.state.tokens = tokens
    app.state.devices = DeviceAuthorizer(store, tokens, config)
    app.state.http_client = http_client or httpx.AsyncClient(timeout=PROXY_TIMEOUT)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_headers=["authorization", "content-type"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )

    app.add_exception_handler(SolidclawError, solidclaw_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    async def health():
        return {"ok": True}

    app.include_router(auth.router)
    app.include_router(secrets.router)
    app.include_router(openclaw.router)
    app.include_router(audit.router)
    app.include_router(proxy.router)
    return app
