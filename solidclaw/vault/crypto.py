"""
AES-256-GCM envelope encryption for vault payloads.

The master key comes from the operator-supplied SOLIDCLAW_MASTER_KEY. If it
base64-decodes (standard or URL-safe alphabet, padding optional) to exactly
32 bytes it is used verbatim; any other string is hashed with SHA-256 so
every input yields a valid AES-256 key.

Token format: base64(nonce) + "." + base64(ciphertext || tag), with a fresh
12-byte nonce per encryption.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import secrets
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from solidclaw.errors import AuthenticationError, ConfigurationError, DecryptionError

KEY_LENGTH = 32
NONCE_SIZE = 12


def derive_key(secret: str | None) -> bytes:
    """Turn the operator secret into a 32-byte AES key."""
    if not secret:
        raise ConfigurationError("SOLIDCLAW_MASTER_KEY is required.")
    raw = _decode_key(secret)
    if len(raw) == KEY_LENGTH:
        return raw
    return hashlib.sha256(secret.encode("utf-8")).digest()


def _decode_key(secret: str) -> bytes:
    """Base64-decode a key in either alphabet, with or without padding."""
    text = secret.strip().replace("-", "+").replace("_", "/").rstrip("=")
    text += "=" * (-len(text) % 4)
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return b""


def encrypt_json(key: bytes, payload: Any) -> str:
    """Encrypt a JSON-serializable payload into a ``nonce.ciphertext`` token."""
    nonce = secrets.token_bytes(NONCE_SIZE)
    data = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    ciphertext = AESGCM(key).encrypt(nonce, data, None)
    return ".".join(
        (base64.b64encode(nonce).decode("ascii"), base64.b64encode(ciphertext).decode("ascii"))
    )


def decrypt_json(key: bytes, token: str) -> Any:
    """Decrypt a token produced by encrypt_json.

    Raises DecryptionError for malformed tokens and AuthenticationError when
    the GCM tag does not verify.
    """
    nonce_raw, sep, data_raw = token.partition(".")
    if not sep or not nonce_raw or not data_raw:
        raise DecryptionError("Invalid encrypted payload format")
    try:
        nonce = base64.b64decode(nonce_raw, validate=True)
        data = base64.b64decode(data_raw, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecryptionError(f"Invalid encrypted payload encoding: {e}") from e
    if len(nonce) != NONCE_SIZE:
        raise DecryptionError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")

    try:
        plaintext = AESGCM(key).decrypt(nonce, data, None)
    except InvalidTag as e:
        raise AuthenticationError("Ciphertext failed authentication") from e
    return json.loads(plaintext.decode("utf-8"))
