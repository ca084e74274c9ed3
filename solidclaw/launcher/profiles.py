"""
Access-token discovery for the launcher.

The token comes from ``SOLIDCLAW_ACCESS_TOKEN`` or from an OpenClaw
``auth-profiles.json`` holding a profile whose provider is ``solidclaw``.
Candidate files, in order:

    <state dir>/auth-profiles.json
    <agent dir>/auth-profiles.json
    <state dir>/agents/*/agent/auth-profiles.json
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from solidclaw.openclaw_config import PROVIDER_ID, resolve_state_dir

logger = logging.getLogger(__name__)

PROFILES_FILENAME = "auth-profiles.json"
PROFILES_VERSION = 1


def resolve_agent_dir(environ: Mapping[str, str], state_dir: Path) -> Path:
    override = (environ.get("OPENCLAW_AGENT_DIR") or "").strip() or (
        environ.get("PI_CODING_AGENT_DIR") or ""
    ).strip()
    if override:
        return Path(override).expanduser().resolve()
    return state_dir / "agents" / "default" / "agent"


def candidate_paths(environ: Mapping[str, str], state_dir: Path | None = None) -> list[Path]:
    state_dir = state_dir or resolve_state_dir(environ)
    paths = [
        state_dir / PROFILES_FILENAME,
        resolve_agent_dir(environ, state_dir) / PROFILES_FILENAME,
    ]
    agents = state_dir / "agents"
    if agents.is_dir():
        for entry in sorted(agents.iterdir()):
            if entry.is_dir():
                paths.append(entry / "agent" / PROFILES_FILENAME)
    return paths


def _token_from(profiles: Mapping[str, Any]) -> str | None:
    for profile in profiles.values():
        if not isinstance(profile, dict) or profile.get("provider") != PROVIDER_ID:
            continue
        token = profile.get("token") or profile.get("access")
        if isinstance(token, str) and token.strip():
            return token.strip()
    return None


def read_access_token(environ: Mapping[str, str], state_dir: Path | None = None) -> str | None:
    """Return the launcher's access token, or None if none can be found.

    A profile file that is not valid JSON raises ``json.JSONDecodeError``.
    """
    token = (environ.get("SOLIDCLAW_ACCESS_TOKEN") or "").strip()
    if token:
        return token

    for path in candidate_paths(environ, state_dir):
        if not path.is_file():
            continue
        with open(path, encoding="utf-8") as f:
            store = json.load(f)
        found = _token_from(store.get("profiles") or {}) if isinstance(store, dict) else None
        if found:
            logger.debug("Using Solidclaw token from %s", path)
            return found
    return None


def save_profile(
    state_dir: Path,
    token: str,
    expires_in: int,
    profile_id: str = f"{PROVIDER_ID}:default",
) -> Path:
    """Store ``token`` as a ``solidclaw`` profile in the state dir's profile file.

    Other profiles in the file are kept.
    """
    path = Path(state_dir) / PROFILES_FILENAME
    store: dict[str, Any] = {"version": PROFILES_VERSION, "profiles": {}}
    if path.is_file():
        with open(path, encoding="utf-8") as f:
            existing = json.load(f)
        if isinstance(existing, dict):
            store.update(existing)
            store["profiles"] = dict(existing.get("profiles") or {})

    store["profiles"][profile_id] = {
        "type": "token",
        "provider": PROVIDER_ID,
        "token": token,
        "expires": int(time.time() * 1000) + int(expires_in) * 1000,
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(store, f, indent=2)
    os.chmod(tmp, 0o600)
    os.replace(tmp, path)
    logger.info("Saved Solidclaw profile %s to %s", profile_id, path)
    return path
