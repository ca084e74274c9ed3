"""
Solidclaw CLI — entry point for all operations.

Usage:
    solidclaw serve                 # Start the broker API
    solidclaw migrate               # Apply database migrations
    solidclaw env -- <command>      # Run a command once with vault values injected
    solidclaw gateway [-- <cmd>]    # Supervise a long-lived command, restart on change
    solidclaw login                 # Device-flow login; saves the token, registers the provider
    solidclaw purge                 # Delete expired device sessions
    solidclaw version               # Show version
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from solidclaw.config import Config, load_config
from solidclaw.errors import SecretLeakError, SolidclawError, UpstreamError

logger = logging.getLogger(__name__)

NO_TOKEN_MESSAGE = (
    "No Solidclaw access token found. Run: openclaw models auth login --provider solidclaw"
)
EXIT_USAGE = 1
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


class _Parser(argparse.ArgumentParser):
    """ArgumentParser that exits 1 on usage errors; exit code 2 means a secret leak."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def _csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _interval(value: str) -> int:
    """Refresh interval in seconds; anything that is not a positive int means the default."""
    try:
        parsed = int(value, 10)
    except ValueError:
        return 0
    return parsed if parsed > 0 else 0


def _add_launch_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--keys", type=_csv, default=[], help="Comma-separated env keys to inject")
    p.add_argument(
        "--clean-env", action="store_true", help="Start from an allow-listed environment"
    )
    p.add_argument("--allow", type=_csv, default=None, help="Allow-list for --clean-env")
    p.add_argument(
        "argv", nargs=argparse.REMAINDER, metavar="command", help="Command to run (after --)"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="solidclaw",
        description="Solidclaw — credential broker and env-injecting launcher.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", parser_class=_Parser)

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (SOLIDCLAW_PORT)")

    # migrate
    migrate_parser = subparsers.add_parser("migrate", help="Apply database migrations")
    migrate_parser.add_argument(
        "--dry-run", action="store_true", help="List pending migrations without applying"
    )
    migrate_parser.add_argument("--status", action="store_true", help="Show migration status")

    # env
    env_parser = subparsers.add_parser("env", help="Run a command once with vault env injected")
    _add_launch_args(env_parser)

    # gateway
    gw_parser = subparsers.add_parser(
        "gateway", help="Supervise a command, restarting it when vault values change"
    )
    gw_parser.add_argument(
        "--interval", type=_interval, default=None, help="Refresh interval in seconds (default 5)"
    )
    _add_launch_args(gw_parser)

    # login
    login_parser = subparsers.add_parser("login", help="Device-flow login")
    login_parser.add_argument("--base-url", default=None, help="Broker URL (SOLIDCLAW_BASE_URL)")
    login_parser.add_argument("--scopes", type=_csv, default=None, help="Comma-separated scopes")
    login_parser.add_argument(
        "--models", type=_csv, default=None, help="Comma-separated model ids served via /v1"
    )

    # purge
    subparsers.add_parser("purge", help="Delete expired device sessions")

    # version
    subparsers.add_parser("version", help="Show version")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    if args.version or args.command == "version":
        from solidclaw import __version__

        print(f"solidclaw {__version__}")
        return 0

    config = load_config()

    if args.command == "serve":
        return _cmd_serve(args, config)
    elif args.command == "migrate":
        return _cmd_migrate(args, config)
    elif args.command == "env":
        return _cmd_env(args, config)
    elif args.command == "gateway":
        return _cmd_gateway(args, config)
    elif args.command == "login":
        return _cmd_login(args, config)
    elif args.command == "purge":
        return _cmd_purge(config)

    parser.print_help()
    return EXIT_USAGE


def _cmd_serve(args: argparse.Namespace, config: Config) -> int:
    import uvicorn

    from solidclaw.api import create_app

    port = args.port or config.port
    try:
        app = create_app(config)
    except SolidclawError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    logger.info("Starting Solidclaw on %s:%d", args.host, port)
    uvicorn.run(app, host=args.host, port=port, log_config=None)
    return 0


def _cmd_migrate(args: argparse.Namespace, config: Config) -> int:
    from solidclaw.db import create_pool, migrate

    try:
        pool = create_pool(config.db, minconn=1, maxconn=2)
    except ConnectionError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Check SOLIDCLAW_DB_* environment variables and ensure PostgreSQL is running.")
        return 1

    try:
        if args.status:
            for row in migrate.status(pool):
                applied = row["applied_at"] or ""
                print(f"  {row['version']:>5}  {row['status']:<8} {row['filename']}  {applied}")
            return 0

        versions = migrate.apply(pool, dry_run=args.dry_run)
        if not versions:
            print("Database is up to date.")
        elif args.dry_run:
            print(f"Would apply: {', '.join(versions)}")
        else:
            print(f"Applied: {', '.join(versions)}")
        return 0
    except Exception as e:
        print(f"Error: Migration failed: {e}", file=sys.stderr)
        return 1
    finally:
        pool.closeall()


# ─── Launcher ────────────────────────────────────────────────────────────


def _launch_command(args: argparse.Namespace) -> list[str]:
    command = list(args.argv)
    if command and command[0] == "--":
        command = command[1:]
    return command


def _resolve_token(config: Config) -> str | None:
    from solidclaw.launcher.profiles import read_access_token

    if config.launcher.access_token:
        return config.launcher.access_token
    try:
        return read_access_token(os.environ, Path(config.openclaw_state_dir))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read OpenClaw auth profiles: %s", e)
        return None


def _launch(args: argparse.Namespace, config: Config, command: list[str], supervise: bool) -> int:
    from solidclaw.launcher import EnvClient, LaunchOptions, Supervisor, run_once

    token = _resolve_token(config)
    if not token:
        print(NO_TOKEN_MESSAGE, file=sys.stderr)
        return 1

    client = EnvClient(
        config.launcher.base_url,
        token,
        keys=args.keys,
        timeout=config.launcher.request_timeout,
    )
    options = LaunchOptions(
        command=tuple(command),
        interval=float(getattr(args, "interval", None) or config.launcher.poll_interval),
        clean=args.clean_env,
        allow=tuple(args.allow or config.launcher.clean_allow),
        stop_timeout=config.launcher.stop_timeout,
    )

    try:
        if supervise:
            return asyncio.run(Supervisor(options, client.fetch).run())
        return asyncio.run(run_once(options, client.fetch))
    except SecretLeakError as e:
        print(str(e), file=sys.stderr)
        return e.exit_code
    except UpstreamError as e:
        print(str(e), file=sys.stderr)
        return 1
    except FileNotFoundError:
        print(f"solidclaw: command not found: {command[0]}", file=sys.stderr)
        return EXIT_NOT_FOUND
    except OSError as e:
        print(f"solidclaw: cannot execute {command[0]}: {e.strerror or e}", file=sys.stderr)
        return EXIT_NOT_EXECUTABLE


def _cmd_env(args: argparse.Namespace, config: Config) -> int:
    command = _launch_command(args)
    if not command:
        print("Usage: solidclaw env [--keys KEY1,KEY2] [--clean-env] -- <command>", file=sys.stderr)
        return EXIT_USAGE
    return _launch(args, config, command, supervise=False)


def _cmd_gateway(args: argparse.Namespace, config: Config) -> int:
    from solidclaw.launcher import DEFAULT_GATEWAY_COMMAND

    command = _launch_command(args) or list(DEFAULT_GATEWAY_COMMAND)
    return _launch(args, config, command, supervise=True)


# ─── Operator commands ───────────────────────────────────────────────────


def _cmd_login(args: argparse.Namespace, config: Config) -> int:
    from solidclaw.launcher.login import DEFAULT_SCOPES, device_login
    from solidclaw.launcher.profiles import save_profile
    from solidclaw.openclaw_config import DEFAULT_MODEL_IDS, configure_provider

    base_url = (args.base_url or config.launcher.base_url).rstrip("/")
    scopes = args.scopes or list(DEFAULT_SCOPES)
    try:
        token = asyncio.run(device_login(base_url, scopes))
    except UpstreamError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    path = save_profile(
        Path(config.openclaw_state_dir),
        token["access_token"],
        int(token.get("expires_in") or 0),
    )
    print(f"Logged in. Token saved to {path}")

    try:
        provider = configure_provider(
            config.openclaw_state_dir, base_url, args.models or DEFAULT_MODEL_IDS
        )
    except (OSError, ValueError) as e:
        print(f"Error: could not update OpenClaw config: {e}", file=sys.stderr)
        return 1
    print(f"Solidclaw proxy configured at {provider['base_url']} in {provider['path']}")
    print(f"Default model: {provider['default_model']}")
    return 0


def _cmd_purge(config: Config) -> int:
    from solidclaw.auth import DeviceAuthorizer, TokenService
    from solidclaw.store import open_store

    store = None
    try:
        store = open_store(config)
        devices = DeviceAuthorizer(store, TokenService(store, config), config)
        deleted = devices.purge_expired()
    except (SolidclawError, ConnectionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        close = getattr(store, "close", None)
        if close is not None:
            close()
    print(f"Purged {deleted} expired device sessions.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
