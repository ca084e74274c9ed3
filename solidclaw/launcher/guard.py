"""
Direct-secret guard.

A secret typed into the shell (``export OPENAI_API_KEY=...``) defeats the
vault: the launcher refuses to start when the ambient environment carries a
secret-shaped variable the vault is not about to inject itself.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import StrEnum

from solidclaw.errors import SecretLeakError

# Our own configuration namespaces; never treated as leaked secrets.
RESERVED_PREFIXES = ("OPENCLAW_", "SOLIDCLAW_")

SECRET_NAME_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"_API_KEY$",
        r"_TOKEN$",
        r"_SECRET$",
        r"_PASSWORD$",
        r"_WEBHOOK$",
        r"_ACCESS_KEY$",
        r"_PRIVATE_KEY$",
        r"_CLIENT_SECRET$",
    )
)

SECRET_NAME_EXACT = frozenset({
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "OPENROUTER_API_KEY",
    "BRAVE_API_KEY",
    "PERPLEXITY_API_KEY",
    "TELEGRAM_BOT_TOKEN",
    "SLACK_BOT_TOKEN",
    "SLACK_APP_TOKEN",
    "SLACK_SIGNING_SECRET",
    "DISCORD_BOT_TOKEN",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TELNYX_API_KEY",
    "PLIVO_AUTH_ID",
    "PLIVO_AUTH_TOKEN",
    "GMAIL_CLIENT_ID",
    "GMAIL_CLIENT_SECRET",
    "GMAIL_REFRESH_TOKEN",
    "MSTEAMS_APP_ID",
    "MSTEAMS_APP_PASSWORD",
    "MSTEAMS_TENANT_ID",
    "SIGNAL_PHONE_NUMBER",
    "SIGNAL_CLI_PATH",
})


class Classification(StrEnum):
    EXEMPT = "exempt"
    SECRET = "secret"
    ALLOWED = "allowed"


def is_reserved(name: str) -> bool:
    return name.startswith(RESERVED_PREFIXES)


def classify(name: str) -> Classification:
    """Classify an environment variable name."""
    if is_reserved(name):
        return Classification.EXEMPT
    if name in SECRET_NAME_EXACT or any(p.search(name) for p in SECRET_NAME_PATTERNS):
        return Classification.SECRET
    return Classification.ALLOWED


def scan(ambient: Mapping[str, str], injected: Mapping[str, str]) -> list[str]:
    """Names of secret-shaped ambient variables that the vault is not injecting."""
    violations = []
    for name, value in ambient.items():
        if not isinstance(value, str) or not value.strip():
            continue
        if name in injected:
            continue
        if classify(name) is Classification.SECRET:
            violations.append(name)
    return sorted(violations)


def assert_no_direct_secrets(ambient: Mapping[str, str], injected: Mapping[str, str]) -> None:
    """Raise SecretLeakError if ``scan`` finds anything."""
    violations = scan(ambient, injected)
    if violations:
        raise SecretLeakError(violations)
