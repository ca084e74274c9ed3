"""Tests for vault envelope encryption."""

import base64
import hashlib
import secrets

import pytest

from solidclaw.errors import AuthenticationError, ConfigurationError, DecryptionError
from solidclaw.vault.crypto import NONCE_SIZE, decrypt_json, derive_key, encrypt_json

ZERO_KEY = base64.b64encode(bytes(32)).decode()


def _tamper(token: str, index: int) -> str:
    """Flip one bit of byte ``index`` of nonce || ciphertext || tag and re-encode."""
    nonce, data = (bytearray(base64.b64decode(part)) for part in token.split("."))
    if index < len(nonce):
        nonce[index] ^= 0x01
    else:
        data[index - len(nonce)] ^= 0x01
    return ".".join(base64.b64encode(bytes(part)).decode() for part in (nonce, data))


# {"a":1} is 7 bytes: 12 nonce + 7 body + 16 tag
TOKEN_BYTES = NONCE_SIZE + 7 + 16


class TestDeriveKey:
    def test_base64_32_bytes_used_verbatim(self):
        assert derive_key(ZERO_KEY) == bytes(32)

    def test_other_strings_are_hashed(self):
        assert derive_key("correct horse battery staple") == hashlib.sha256(
            b"correct horse battery staple"
        ).digest()

    def test_urlsafe_unpadded_key_used_verbatim(self):
        raw = bytes(range(250, 256)) + bytes(range(26))
        secret = base64.urlsafe_b64encode(raw).decode().rstrip("=")
        assert "-" in secret or "_" in secret
        assert derive_key(secret) == raw

    def test_unpadded_standard_key_used_verbatim(self):
        raw = secrets.token_bytes(32)
        assert derive_key(base64.b64encode(raw).decode().rstrip("=")) == raw

    def test_base64_of_wrong_length_is_hashed(self):
        short = base64.b64encode(bytes(16)).decode()
        assert derive_key(short) == hashlib.sha256(short.encode()).digest()

    @pytest.mark.parametrize("secret", ["", None])
    def test_missing_secret_is_configuration_error(self, secret):
        with pytest.raises(ConfigurationError):
            derive_key(secret)


class TestEncryptDecrypt:
    def test_zero_key_scenario(self):
        key = derive_key(ZERO_KEY)
        token = encrypt_json(key, {"a": 1})
        assert decrypt_json(key, token) == {"a": 1}

    def test_token_shape(self):
        token = encrypt_json(secrets.token_bytes(32), {"x": "y"})
        nonce, _, data = token.partition(".")
        assert len(base64.b64decode(nonce)) == NONCE_SIZE
        assert data

    def test_different_nonces(self):
        key = secrets.token_bytes(32)
        a = encrypt_json(key, {"same": True})
        b = encrypt_json(key, {"same": True})
        assert a != b
        assert a.split(".")[0] != b.split(".")[0]

    def test_unicode_payload(self):
        key = secrets.token_bytes(32)
        payload = {"note": "sekrit \U0001f511", "n": [1, 2, 3]}
        assert decrypt_json(key, encrypt_json(key, payload)) == payload

    def test_wrong_key_fails_authentication(self):
        token = encrypt_json(secrets.token_bytes(32), {"a": 1})
        with pytest.raises(AuthenticationError):
            decrypt_json(secrets.token_bytes(32), token)

    @pytest.mark.parametrize("index", range(TOKEN_BYTES))
    def test_any_flipped_byte_fails_authentication(self, index):
        key = derive_key(ZERO_KEY)
        token = encrypt_json(key, {"a": 1})
        with pytest.raises(AuthenticationError):
            decrypt_json(key, _tamper(token, index))

    @pytest.mark.parametrize("token", ["", "no-separator", ".abc", "abc.", "!!!.???"])
    def test_malformed_token(self, token):
        with pytest.raises(DecryptionError):
            decrypt_json(secrets.token_bytes(32), token)

    def test_wrong_nonce_length(self):
        key = secrets.token_bytes(32)
        _, data = encrypt_json(key, {"a": 1}).split(".")
        bad_nonce = base64.b64encode(bytes(8)).decode()
        with pytest.raises(DecryptionError, match="Nonce"):
            decrypt_json(key, f"{bad_nonce}.{data}")
