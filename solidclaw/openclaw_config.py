"""
OpenClaw state directory, allowed-models list and Solidclaw provider entry.

The gateway reads ``openclaw.json`` from its state directory; the allowed
models are the keys of ``agents.defaults.models``. Updates are written to a
temporary file and renamed into place so a concurrent reader never sees a
half-written document.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "openclaw.json"
LEGACY_STATE_DIRS = (".clawdbot", ".moldbot", ".moltbot")
MODES = ("merge", "replace")

PROVIDER_ID = "solidclaw"
PROVIDER_API = "openai-completions"
DEFAULT_MODEL_IDS = (
    "gpt-5.2",
    "gpt-5.1",
    "gpt-5",
    "gpt-5-mini",
    "gpt-5-nano",
    "gpt-5.2-chat-latest",
    "gpt-5.1-chat-latest",
)
DEFAULT_CONTEXT_WINDOW = 128_000
DEFAULT_MAX_TOKENS = 8192


def _expand(path: str) -> Path:
    return Path(path).expanduser().resolve()


def resolve_state_dir(environ: Mapping[str, str], home: Path | None = None) -> Path:
    """OpenClaw state dir: explicit override, ``~/.openclaw``, then legacy names.

    Falls back to ``~/.openclaw`` when nothing exists yet.
    """
    override = (environ.get("OPENCLAW_STATE_DIR") or "").strip() or (
        environ.get("CLAWDBOT_STATE_DIR") or ""
    ).strip()
    if override:
        return _expand(override)

    home = home or Path(environ.get("HOME") or Path.home())
    preferred = home / ".openclaw"
    if preferred.exists():
        return preferred
    for legacy in LEGACY_STATE_DIRS:
        candidate = home / legacy
        if candidate.exists():
            return candidate
    return preferred


def config_path(state_dir: str | os.PathLike) -> Path:
    return Path(state_dir) / CONFIG_FILENAME


def read_config(state_dir: str | os.PathLike) -> tuple[Path, dict[str, Any]]:
    """Return ``(path, document)``; a missing file reads as ``{}``."""
    path = config_path(state_dir)
    if not path.exists():
        return path, {}
    with open(path, encoding="utf-8") as f:
        doc = json.load(f)
    return path, doc if isinstance(doc, dict) else {}


def _write_config(path: Path, doc: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".solidclaw.tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=2)
    os.replace(tmp, path)


def allowed_models(doc: Mapping[str, Any]) -> list[str]:
    models = ((doc.get("agents") or {}).get("defaults") or {}).get("models") or {}
    return list(models) if isinstance(models, dict) else []


def normalize_models(models: Iterable[str]) -> list[str]:
    """Trim, drop empties and de-duplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for model in models:
        model = model.strip()
        if model:
            seen.setdefault(model, None)
    return list(seen)


def read_allowed_models(state_dir: str | os.PathLike) -> dict[str, Any]:
    path, doc = read_config(state_dir)
    return {"path": str(path), "allowed": allowed_models(doc)}


def update_allowed_models(
    state_dir: str | os.PathLike, models: Iterable[str], mode: str = "merge"
) -> dict[str, Any]:
    """Merge into or replace the allowed-models map and write it back atomically.

    Every other key of the document is preserved. The obsolete
    ``models.allowed`` key is dropped.
    """
    if mode not in MODES:
        raise ValueError(f"mode must be one of {MODES}, got {mode!r}")

    path, doc = read_config(state_dir)
    requested = normalize_models(models)
    if mode == "replace":
        allowed = requested
    else:
        allowed = normalize_models([*allowed_models(doc), *requested])

    agents = dict(doc.get("agents") or {})
    defaults = dict(agents.get("defaults") or {})
    defaults["models"] = {model: {} for model in allowed}
    agents["defaults"] = defaults

    updated = {**doc, "agents": agents}
    if isinstance(doc.get("models"), dict):
        updated["models"] = {k: v for k, v in doc["models"].items() if k != "allowed"}

    _write_config(path, updated)
    logger.info("Updated OpenClaw allowed models at %s (%s, %d models)", path, mode, len(allowed))
    return {"path": str(path), "allowed": allowed}


def model_definition(model_id: str) -> dict[str, Any]:
    return {
        "id": model_id,
        "name": model_id,
        "api": PROVIDER_API,
        "reasoning": False,
        "input": ["text", "image"],
        "cost": {"input": 0, "output": 0, "cacheRead": 0, "cacheWrite": 0},
        "contextWindow": DEFAULT_CONTEXT_WINDOW,
        "maxTokens": DEFAULT_MAX_TOKENS,
    }


def configure_provider(
    state_dir: str | os.PathLike,
    base_url: str,
    model_ids: Iterable[str] = DEFAULT_MODEL_IDS,
) -> dict[str, Any]:
    """Register the Solidclaw model proxy as an OpenClaw provider.

    Writes ``models.providers.solidclaw`` pointing at ``<base_url>/v1``, adds
    ``solidclaw/<id>`` for every model to the allowed-models map (existing
    entries are kept) and makes the first model the agents' primary model.
    """
    model_ids = normalize_models(model_ids)
    if not model_ids:
        raise ValueError("at least one model id is required")

    path, doc = read_config(state_dir)
    provider = {
        "baseUrl": f"{base_url.rstrip('/')}/v1",
        "auth": "token",
        "authHeader": True,
        "api": PROVIDER_API,
        "models": [model_definition(m) for m in model_ids],
    }
    models = dict(doc.get("models") or {})
    models["providers"] = {**(models.get("providers") or {}), PROVIDER_ID: provider}

    refs = [f"{PROVIDER_ID}/{m}" for m in model_ids]
    agents = dict(doc.get("agents") or {})
    defaults = dict(agents.get("defaults") or {})
    existing = defaults.get("models")
    allowed = dict(existing) if isinstance(existing, dict) else {}
    for ref in refs:
        allowed.setdefault(ref, {})
    defaults["models"] = allowed
    model = defaults.get("model")
    defaults["model"] = {**(model if isinstance(model, dict) else {}), "primary": refs[0]}
    agents["defaults"] = defaults

    _write_config(path, {**doc, "models": models, "agents": agents})
    logger.info("Registered %s provider at %s (%d models)", PROVIDER_ID, path, len(model_ids))
    return {"path": str(path), "base_url": provider["baseUrl"], "default_model": refs[0]}
