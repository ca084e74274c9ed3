"""Shared FastAPI dependencies: bearer auth and access to app-scoped services."""

from __future__ import annotations

import hmac

from fastapi import Request

from solidclaw.auth import DeviceAuthorizer, TokenService
from solidclaw.errors import ConfigurationError, UnauthorizedError
from solidclaw.models import TokenRecord
from solidclaw.store.base import Store
from solidclaw.vault import CredentialVault


def bearer_token(request: Request) -> str:
    header = request.headers.get("authorization", "")
    if not header.startswith("Bearer "):
        return ""
    return header[len("Bearer ") :].strip()


def require_admin(request: Request) -> None:
    """Admin bearer check. With no admin token configured the surface is open."""
    admin_token = request.app.state.config.admin_token
    if not admin_token:
        return
    token = bearer_token(request)
    if not token or not hmac.compare_digest(token.encode(), admin_token.encode()):
        raise UnauthorizedError()


def require_access_token(request: Request) -> TokenRecord:
    token = bearer_token(request)
    if not token:
        raise UnauthorizedError(code="missing_token")
    record = request.app.state.tokens.validate(token)
    if record is None:
        raise UnauthorizedError(code="invalid_token")
    return record


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_vault(request: Request) -> CredentialVault:
    vault = request.app.state.vault
    if vault is None:
        raise ConfigurationError("SOLIDCLAW_MASTER_KEY is not set")
    return vault


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_devices(request: Request) -> DeviceAuthorizer:
    return request.app.state.devices
