"""Child-process environment assembly and drift hashing."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping

from solidclaw.config import DEFAULT_CLEAN_ALLOW
from solidclaw.launcher.guard import is_reserved


def build_environment(
    ambient: Mapping[str, str],
    injected: Mapping[str, str],
    *,
    clean: bool = False,
    allow: Iterable[str] = DEFAULT_CLEAN_ALLOW,
) -> dict[str, str]:
    """Compose the child's environment.

    Full ambient environment, or in clean mode only the allow-listed names
    plus our reserved-prefix variables. Vault values always win on collision.
    """
    if not clean:
        return {**ambient, **injected}

    env: dict[str, str] = {}
    for key in allow:
        value = ambient.get(key)
        if isinstance(value, str):
            env[key] = value
    for key, value in ambient.items():
        if is_reserved(key) and isinstance(value, str):
            env[key] = value
    env.update(injected)
    return env


def env_hash(values: Mapping[str, str]) -> str:
    """Order-independent fingerprint of a fetched value set."""
    entries = sorted(values.items())
    return hashlib.sha256(json.dumps(entries, separators=(",", ":")).encode("utf-8")).hexdigest()
