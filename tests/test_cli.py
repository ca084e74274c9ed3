"""Tests for solidclaw.cli — command line interface."""

import json
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from solidclaw.cli import NO_TOKEN_MESSAGE, _launch_command, build_parser, main
from solidclaw.errors import UpstreamError
from solidclaw.launcher import DEFAULT_GATEWAY_COMMAND

FETCH = "solidclaw.launcher.client.EnvClient.fetch"


@pytest.fixture
def launcher_env(clean_env, no_ambient_secrets, monkeypatch):
    """Clean environment with an access token available."""
    monkeypatch.setenv("SOLIDCLAW_ACCESS_TOKEN", "tok-123")
    return clean_env


class TestParser:
    def test_remainder_after_separator(self):
        args = build_parser().parse_args(["env", "--keys", "A, B", "--", "node", "--inspect"])
        assert args.keys == ["A", "B"]
        assert _launch_command(args) == ["node", "--inspect"]

    def test_clean_env_and_allow(self):
        args = build_parser().parse_args(["gateway", "--clean-env", "--allow", "PATH,LANG"])
        assert args.clean_env is True
        assert args.allow == ["PATH", "LANG"]
        assert _launch_command(args) == []

    @pytest.mark.parametrize("raw", ["0", "-3", "soon"])
    def test_bad_interval_means_default(self, raw):
        args = build_parser().parse_args(["gateway", "--interval", raw])
        assert args.interval == 0

    def test_usage_error_exits_1(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["no-such-command"])
        assert exc_info.value.code == 1


class TestCli:
    def test_version(self, capsys):
        assert main(["version"]) == 0
        assert "solidclaw 0.1.0" in capsys.readouterr().out

    def test_version_flag(self, capsys):
        assert main(["--version"]) == 0
        assert "solidclaw" in capsys.readouterr().out

    def test_no_args(self, capsys, clean_env):
        assert main([]) == 1


class TestEnvCommand:
    def test_requires_command(self, launcher_env, capsys):
        assert main(["env"]) == 1
        assert "Usage" in capsys.readouterr().err

    def test_no_token(self, clean_env, capsys):
        assert main(["env", "--", "true"]) == 1
        assert NO_TOKEN_MESSAGE in capsys.readouterr().err

    def test_token_from_auth_profiles(self, clean_env, no_ambient_secrets):
        clean_env.mkdir(parents=True)
        (clean_env / "auth-profiles.json").write_text(
            json.dumps({"profiles": {"sc": {"provider": "solidclaw", "token": "from-file"}}})
        )
        with patch("solidclaw.launcher.EnvClient") as client_cls:
            client_cls.return_value.fetch = AsyncMock(return_value={})
            main(["env", "--", sys.executable, "-c", "pass"])
        assert client_cls.call_args[0][1] == "from-file"

    def test_injects_and_propagates_exit_code(self, launcher_env):
        code = "import os, sys; sys.exit(0 if os.environ['INJECTED'] == 'v' else 5)"
        with patch(FETCH, new=AsyncMock(return_value={"INJECTED": "v"})):
            assert main(["env", "--", sys.executable, "-c", code]) == 0
        with patch(FETCH, new=AsyncMock(return_value={"INJECTED": "v"})):
            assert main(["env", "--", sys.executable, "-c", "import sys; sys.exit(3)"]) == 3

    def test_leak_refused_with_exit_2(self, launcher_env, monkeypatch, capsys):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-live")
        with patch(FETCH, new=AsyncMock(return_value={})):
            assert main(["env", "--", sys.executable, "-c", "pass"]) == 2
        err = capsys.readouterr().err
        assert "Direct secret env vars detected: OPENAI_API_KEY" in err

    def test_upstream_failure(self, launcher_env, capsys):
        failing = AsyncMock(side_effect=UpstreamError("Solidclaw env fetch failed (401)", status=401))
        with patch(FETCH, new=failing):
            assert main(["env", "--", sys.executable, "-c", "pass"]) == 1
        assert "(401)" in capsys.readouterr().err

    def test_missing_executable(self, launcher_env, capsys):
        with patch(FETCH, new=AsyncMock(return_value={})):
            assert main(["env", "--", "/nonexistent/solidclaw-test-binary"]) == 127
        assert "command not found" in capsys.readouterr().err

    def test_non_executable_command(self, launcher_env, tmp_path, capsys):
        script = tmp_path / "not-executable.sh"
        script.write_text("#!/bin/sh\nexit 0\n")
        script.chmod(0o644)
        with patch(FETCH, new=AsyncMock(return_value={})):
            assert main(["env", "--", str(script)]) == 126
        err = capsys.readouterr().err
        assert "cannot execute" in err
        assert "Traceback" not in err

    def test_gateway_non_executable_command(self, launcher_env, tmp_path, capsys):
        with patch(FETCH, new=AsyncMock(return_value={})):
            assert main(["gateway", "--", str(tmp_path)]) == 126
        assert "cannot execute" in capsys.readouterr().err


class TestGatewayCommand:
    def test_default_command_and_interval(self, launcher_env, monkeypatch):
        monkeypatch.setenv("SOLIDCLAW_POLL_INTERVAL", "9")
        with patch("solidclaw.launcher.Supervisor") as sup_cls:
            sup_cls.return_value.run = AsyncMock(return_value=0)
            assert main(["gateway", "--keys", "TELEGRAM_BOT_TOKEN"]) == 0
        options = sup_cls.call_args[0][0]
        assert options.command == DEFAULT_GATEWAY_COMMAND
        assert options.interval == 9.0

    def test_explicit_command_and_clean_env(self, launcher_env):
        with patch("solidclaw.launcher.Supervisor") as sup_cls:
            sup_cls.return_value.run = AsyncMock(return_value=143)
            rc = main(["gateway", "--interval", "2", "--clean-env", "--", "my-gateway", "--port", "1"])
        assert rc == 143
        options = sup_cls.call_args[0][0]
        assert options.command == ("my-gateway", "--port", "1")
        assert options.interval == 2.0
        assert options.clean is True
        assert options.allow == ("PATH", "HOME", "SHELL", "LANG")


class TestOperatorCommands:
    def test_login_saves_profile(self, clean_env, capsys):
        token = {"access_token": "new-access", "refresh_token": "r", "expires_in": 3600}
        with patch("solidclaw.launcher.login.device_login", new=AsyncMock(return_value=token)) as login:
            rc = main([
                "login", "--base-url", "http://vault.test/", "--scopes", "models", "--models", "m1,m2",
            ])
        assert rc == 0
        login.assert_awaited_once_with("http://vault.test", ["models"])
        data = json.loads((clean_env / "auth-profiles.json").read_text())
        assert data["profiles"]["solidclaw:default"]["token"] == "new-access"

        openclaw = json.loads((clean_env / "openclaw.json").read_text())
        provider = openclaw["models"]["providers"]["solidclaw"]
        assert provider["baseUrl"] == "http://vault.test/v1"
        assert [m["id"] for m in provider["models"]] == ["m1", "m2"]
        assert openclaw["agents"]["defaults"]["model"]["primary"] == "solidclaw/m1"
        out = capsys.readouterr().out
        assert "Logged in" in out
        assert "http://vault.test/v1" in out

    def test_login_unreadable_openclaw_config(self, clean_env, capsys):
        clean_env.mkdir(parents=True)
        (clean_env / "openclaw.json").write_text("{not json")
        token = {"access_token": "a", "refresh_token": "r", "expires_in": 60}
        with patch("solidclaw.launcher.login.device_login", new=AsyncMock(return_value=token)):
            assert main(["login"]) == 1
        assert "could not update OpenClaw config" in capsys.readouterr().err

    def test_login_failure(self, clean_env, capsys):
        failing = AsyncMock(side_effect=UpstreamError("Solidclaw device flow timed out"))
        with patch("solidclaw.launcher.login.device_login", new=failing):
            assert main(["login"]) == 1
        assert "timed out" in capsys.readouterr().err

    def test_purge_memory_store(self, clean_env, monkeypatch, capsys):
        monkeypatch.setenv("SOLIDCLAW_STORE", "memory")
        assert main(["purge"]) == 0
        assert "Purged 0" in capsys.readouterr().out

    def test_purge_unknown_store(self, clean_env, monkeypatch, capsys):
        monkeypatch.setenv("SOLIDCLAW_STORE", "sqlite")
        assert main(["purge"]) == 1
        assert "Unknown store" in capsys.readouterr().err

    def test_migrate_connection_error(self, clean_env, capsys):
        with patch("solidclaw.db.create_pool", side_effect=ConnectionError("no db")):
            assert main(["migrate"]) == 1
        assert "no db" in capsys.readouterr().err

    def test_migrate_status(self, clean_env, capsys):
        pool = MagicMock()
        rows = [{"version": "001", "filename": "001_init.sql", "status": "pending", "applied_at": None}]
        with patch("solidclaw.db.create_pool", return_value=pool), patch(
            "solidclaw.db.migrate.status", return_value=rows
        ):
            assert main(["migrate", "--status"]) == 0
        assert "001_init.sql" in capsys.readouterr().out
        pool.closeall.assert_called_once()
