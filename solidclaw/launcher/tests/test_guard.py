"""Tests for the direct-secret guard."""

import pytest

from solidclaw.errors import SecretLeakError
from solidclaw.launcher.guard import (
    Classification,
    assert_no_direct_secrets,
    classify,
    scan,
)


class TestClassify:
    @pytest.mark.parametrize(
        "name",
        [
            "OPENAI_API_KEY",
            "MY_SERVICE_TOKEN",
            "github_token",
            "DB_PASSWORD",
            "APP_CLIENT_SECRET",
            "SLACK_WEBHOOK",
            "AWS_ACCESS_KEY",
            "SSH_PRIVATE_KEY",
            "TWILIO_ACCOUNT_SID",
            "SIGNAL_PHONE_NUMBER",
            "PLIVO_AUTH_ID",
        ],
    )
    def test_secret_names(self, name):
        assert classify(name) is Classification.SECRET

    @pytest.mark.parametrize("name", ["OPENCLAW_GATEWAY_TOKEN", "SOLIDCLAW_ACCESS_TOKEN"])
    def test_reserved_prefixes_are_exempt(self, name):
        assert classify(name) is Classification.EXEMPT

    @pytest.mark.parametrize("name", ["PATH", "HOME", "TOKEN", "API_KEY_FILE", "LANG"])
    def test_allowed_names(self, name):
        assert classify(name) is Classification.ALLOWED


class TestScan:
    def test_finds_ambient_secret(self):
        assert scan({"OPENAI_API_KEY": "sk-123", "PATH": "/bin"}, {}) == ["OPENAI_API_KEY"]

    def test_injected_names_are_not_leaks(self):
        assert scan({"TELEGRAM_BOT_TOKEN": "x"}, {"TELEGRAM_BOT_TOKEN": "y"}) == []

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_values_ignored(self, value):
        assert scan({"OPENAI_API_KEY": value}, {}) == []

    def test_reserved_prefix_ignored(self):
        assert scan({"SOLIDCLAW_ACCESS_TOKEN": "abc"}, {}) == []

    def test_sorted_output(self):
        ambient = {"Z_TOKEN": "1", "A_SECRET": "2", "M_PASSWORD": "3"}
        assert scan(ambient, {}) == ["A_SECRET", "M_PASSWORD", "Z_TOKEN"]


class TestAssert:
    def test_clean_environment_passes(self):
        assert_no_direct_secrets({"PATH": "/bin"}, {"TELEGRAM_BOT_TOKEN": "x"})

    def test_leak_raises_with_names(self):
        with pytest.raises(SecretLeakError) as exc_info:
            assert_no_direct_secrets({"OPENAI_API_KEY": "sk", "DB_PASSWORD": "pw"}, {})
        err = exc_info.value
        assert err.names == ["DB_PASSWORD", "OPENAI_API_KEY"]
        assert err.exit_code == 2
        assert "DB_PASSWORD, OPENAI_API_KEY" in str(err)
        assert "Refusing to run" in str(err)
