"""
Centralized configuration for Solidclaw.

All configuration is loaded from ``SOLIDCLAW_*`` environment variables with
sensible defaults. The resulting ``Config`` is immutable and is built once by
the composition root (CLI or ``create_app``) and handed to every component;
nothing below the composition root reads ``os.environ`` on its own.

Usage:
    from solidclaw.config import load_config
    cfg = load_config()
    print(cfg.base_url)          # "http://localhost:8791"
    print(cfg.access_ttl_minutes)  # 60
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from solidclaw.openclaw_config import resolve_state_dir

DEFAULT_PORT = 8791
DEFAULT_BASE_URL = "http://localhost:8791"
DEFAULT_WEB_URL = "http://localhost:5173"
DEFAULT_CLEAN_ALLOW = ("PATH", "HOME", "SHELL", "LANG")


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection parameters."""

    host: str = ""  # empty = Unix socket (peer auth); set to 127.0.0.1 for TCP
    port: int = 5432
    name: str = "solidclaw"
    user: str = "solidclaw"
    password: str = ""

    @property
    def dict(self) -> dict[str, str | int]:
        """Return a psycopg2.connect() kwargs dict."""
        d: dict[str, str | int] = {
            "dbname": self.name,
            "port": self.port,
        }
        if self.host:
            d["host"] = self.host
        if self.user:
            d["user"] = self.user
        if self.password:
            d["password"] = self.password
        return d


@dataclass(frozen=True)
class LauncherConfig:
    """Settings for the env/gateway launcher commands."""

    base_url: str = DEFAULT_BASE_URL
    access_token: str = ""
    poll_interval: int = 5
    stop_timeout: float = 10.0
    clean_allow: tuple[str, ...] = DEFAULT_CLEAN_ALLOW
    request_timeout: float = 10.0


@dataclass(frozen=True)
class Config:
    """Top-level Solidclaw configuration."""

    # Server
    port: int = DEFAULT_PORT
    base_url: str = DEFAULT_BASE_URL
    web_url: str = DEFAULT_WEB_URL

    # Secrets
    master_key: str = ""
    admin_token: str = ""

    # Access-token lifetime; refresh tokens live until rotated
    access_ttl_minutes: int = 60

    # Storage: "postgres" or "memory"
    store: str = "postgres"

    # OpenClaw state directory (auth-profiles.json, openclaw.json)
    openclaw_state_dir: str = ""

    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    launcher: LauncherConfig = field(default_factory=LauncherConfig)

    @property
    def access_ttl_seconds(self) -> int:
        return self.access_ttl_minutes * 60

    @property
    def verification_url(self) -> str:
        return f"{self.web_url.rstrip('/')}/device"


def _int(value: str | None, fallback: int) -> int:
    """Parse an int env value, falling back on missing or garbage input."""
    if not value or not value.strip():
        return fallback
    try:
        return int(value.strip(), 10)
    except ValueError:
        return fallback


def _str(env: Mapping[str, str], key: str, fallback: str) -> str:
    return (env.get(key) or "").strip() or fallback


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    """Build a Config from environment variables (``os.environ`` by default)."""
    env = os.environ if environ is None else environ

    base_url = _str(env, "SOLIDCLAW_BASE_URL", DEFAULT_BASE_URL)

    db = DatabaseConfig(
        host=_str(env, "SOLIDCLAW_DB_HOST", ""),
        port=_int(env.get("SOLIDCLAW_DB_PORT"), 5432),
        name=_str(env, "SOLIDCLAW_DB_NAME", "solidclaw"),
        user=_str(env, "SOLIDCLAW_DB_USER", env.get("USER", "solidclaw")),
        password=_str(env, "SOLIDCLAW_DB_PASSWORD", ""),
    )

    poll_interval = _int(env.get("SOLIDCLAW_POLL_INTERVAL"), 5)
    launcher = LauncherConfig(
        base_url=base_url.rstrip("/"),
        access_token=_str(env, "SOLIDCLAW_ACCESS_TOKEN", ""),
        poll_interval=poll_interval if poll_interval > 0 else 5,
        stop_timeout=float(_int(env.get("SOLIDCLAW_STOP_TIMEOUT"), 10)),
    )

    return Config(
        port=_int(env.get("SOLIDCLAW_PORT"), DEFAULT_PORT),
        base_url=base_url,
        web_url=_str(env, "SOLIDCLAW_WEB_URL", DEFAULT_WEB_URL),
        master_key=_str(env, "SOLIDCLAW_MASTER_KEY", ""),
        admin_token=_str(env, "SOLIDCLAW_ADMIN_TOKEN", ""),
        access_ttl_minutes=_int(env.get("SOLIDCLAW_ACCESS_TTL_MINUTES"), 60),
        store=_str(env, "SOLIDCLAW_STORE", "postgres").lower(),
        openclaw_state_dir=str(resolve_state_dir(env)),
        db=db,
        launcher=launcher,
    )
