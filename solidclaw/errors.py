"""
Solidclaw error taxonomy.

SolidclawError is the base for every structured error. Each subclass carries a
stable ``code`` string (returned to HTTP clients as ``{"error": code}``) and
the HTTP status it maps to. The API's exception handler does the mapping;
the CLI maps SecretLeakError to exit code 2.
"""

from __future__ import annotations


class SolidclawError(Exception):
    """Base class for structured Solidclaw errors."""

    code = "internal_error"
    status_code = 500

    def __init__(self, detail: str | None = None, *, code: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.detail = detail
        super().__init__(detail or self.code)


class ConfigurationError(SolidclawError):
    """Master key (or other required setting) is missing."""

    code = "not_configured"


class DecryptionError(SolidclawError):
    """Ciphertext token is malformed."""

    code = "decryption_failed"


class AuthenticationError(SolidclawError):
    """AEAD tag check failed: wrong key or tampered ciphertext."""

    code = "decryption_failed"


class ValidationError(SolidclawError):
    code = "invalid_request"
    status_code = 400


class NotFoundError(SolidclawError):
    code = "not_found"
    status_code = 404


class ExpiredError(SolidclawError):
    code = "expired_token"
    status_code = 410


class UnauthorizedError(SolidclawError):
    code = "unauthorized"
    status_code = 401


class UpstreamError(SolidclawError):
    """A call to the vault server or to a proxied upstream failed."""

    code = "upstream_error"
    status_code = 502

    def __init__(self, detail: str | None = None, *, status: int | None = None) -> None:
        self.status = status
        super().__init__(detail)


class SecretLeakError(SolidclawError):
    """Ambient environment holds secret-shaped variables that should live in the vault."""

    code = "direct_secrets"
    exit_code = 2

    def __init__(self, names: list[str]) -> None:
        self.names = list(names)
        super().__init__(
            "Direct secret env vars detected: "
            + ", ".join(self.names)
            + " Refusing to run. Store secrets in Solidclaw and inject via Solidclaw."
        )
