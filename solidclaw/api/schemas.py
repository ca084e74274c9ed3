"""Pydantic request models for the Solidclaw API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

# ─── Device flow ─────────────────────────────────────────────────────────


class DeviceStartRequest(BaseModel):
    accountId: str | None = None
    scopes: list[str] | None = None


class DevicePollRequest(BaseModel):
    device_code: str = Field(min_length=10)


class UserCodeRequest(BaseModel):
    user_code: str = Field(min_length=4)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=10)


# ─── Secrets ─────────────────────────────────────────────────────────────


class EnvSecretsRequest(BaseModel):
    values: dict[str, str]


class ModelProxyConfig(BaseModel):
    baseUrl: str = Field(min_length=1)
    apiKey: str = Field(min_length=1)
    headers: dict[str, str] | None = None


# ─── OpenClaw ────────────────────────────────────────────────────────────


class AllowedModelsRequest(BaseModel):
    models: list[str] = Field(default_factory=list)
    mode: Literal["merge", "replace"] = "merge"
