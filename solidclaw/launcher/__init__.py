"""
Solidclaw launcher: run a command with vault values injected into its environment.

Usage:
    from solidclaw.launcher import EnvClient, LaunchOptions, Supervisor

    client = EnvClient(base_url, token, keys=["TELEGRAM_BOT_TOKEN"])
    code = await Supervisor(LaunchOptions(command=("openclaw", "gateway", "run")), client.fetch).run()
"""

from solidclaw.launcher.client import EnvClient
from solidclaw.launcher.environment import build_environment, env_hash
from solidclaw.launcher.guard import assert_no_direct_secrets, classify, scan
from solidclaw.launcher.supervisor import (
    DEFAULT_GATEWAY_COMMAND,
    LaunchOptions,
    Supervisor,
    SupervisorState,
    run_once,
)

__all__ = [
    "DEFAULT_GATEWAY_COMMAND",
    "EnvClient",
    "LaunchOptions",
    "Supervisor",
    "SupervisorState",
    "assert_no_direct_secrets",
    "build_environment",
    "classify",
    "env_hash",
    "run_once",
    "scan",
]
