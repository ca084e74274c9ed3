"""
Environment-injection supervisor.

Two modes:

    run_once()    fetch once, guard, run the command, return its exit code
    Supervisor    keep a long-lived command running with the current vault
                  values; re-fetch every ``interval`` seconds and restart the
                  child when the value set changes

The supervisor is one asyncio control loop that owns the timer, the child's
exit notification and stop requests. Ticks are handled inline, so a restart
can never be re-entered by the next tick; the RESTARTING state additionally
marks the old child's exit as expected.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from solidclaw.config import DEFAULT_CLEAN_ALLOW
from solidclaw.errors import SecretLeakError
from solidclaw.launcher.environment import build_environment, env_hash
from solidclaw.launcher.guard import assert_no_direct_secrets
from solidclaw.launcher.process import spawn_child

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_COMMAND = ("openclaw", "gateway", "run")


class Child(Protocol):
    pid: int

    @property
    def returncode(self) -> int | None: ...

    async def wait(self) -> int: ...

    def send_signal(self, sig: int) -> None: ...

    async def stop(self, timeout: float = ..., sig: int = ...) -> int: ...


Fetcher = Callable[[], Awaitable[dict[str, str]]]
Spawner = Callable[[Sequence[str], Mapping[str, str]], Awaitable[Child]]
AmbientSource = Callable[[], Mapping[str, str]]


def _process_env() -> Mapping[str, str]:
    return dict(os.environ)


@dataclass(frozen=True)
class LaunchOptions:
    command: tuple[str, ...]
    interval: float = 5.0
    clean: bool = False
    allow: tuple[str, ...] = DEFAULT_CLEAN_ALLOW
    stop_timeout: float = 10.0


class SupervisorState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    RESTARTING = "restarting"
    STOPPED = "stopped"


async def run_once(
    options: LaunchOptions,
    fetch: Fetcher,
    *,
    ambient: AmbientSource = _process_env,
    spawn: Spawner = spawn_child,
) -> int:
    """Fetch, guard, run the command once and return its exit code.

    Fetch failures propagate (UpstreamError); a leak raises SecretLeakError.
    """
    values = await fetch()
    env_now = ambient()
    assert_no_direct_secrets(env_now, values)
    env = build_environment(env_now, values, clean=options.clean, allow=options.allow)
    child = await spawn(options.command, env)
    return await child.wait()


@dataclass
class _Counters:
    ticks: int = 0
    restarts: int = 0
    fetch_failures: int = 0


class Supervisor:
    """Keep a child running with vault-injected env; restart on drift."""

    def __init__(
        self,
        options: LaunchOptions,
        fetch: Fetcher,
        *,
        ambient: AmbientSource = _process_env,
        spawn: Spawner = spawn_child,
        handle_signals: bool = True,
    ) -> None:
        self.options = options
        self._fetch = fetch
        self._ambient = ambient
        self._spawn = spawn
        self._handle_signals = handle_signals

        self.state = SupervisorState.IDLE
        self.stats = _Counters()
        self.child: Child | None = None
        self._values: dict[str, str] = {}
        self._hash = ""
        self._exit_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._stop_signal: int = signal.SIGTERM

    @property
    def current_hash(self) -> str:
        return self._hash

    def request_stop(self, sig: int = signal.SIGTERM) -> None:
        """Ask the loop to stop; the signal is forwarded to the child."""
        self._stop_signal = sig
        self._stop_event.set()

    def _guarded(self, values: dict[str, str]) -> Mapping[str, str]:
        env_now = self._ambient()
        assert_no_direct_secrets(env_now, values)
        return env_now

    async def _start_child(self, ambient: Mapping[str, str]) -> None:
        env = build_environment(
            ambient, self._values, clean=self.options.clean, allow=self.options.allow
        )
        self.child = await self._spawn(self.options.command, env)
        self._exit_task = asyncio.ensure_future(self.child.wait())

    async def run(self) -> int:
        """Supervise until the child exits on its own or a stop is requested.

        Returns the child's exit code. The initial fetch failing propagates;
        a detected leak raises SecretLeakError at any point.
        """
        values = await self._fetch()
        ambient = self._guarded(values)
        self._values, self._hash = values, env_hash(values)
        await self._start_child(ambient)
        self.state = SupervisorState.RUNNING
        logger.info(
            "Supervising %s (%d injected keys, refresh every %ss)",
            self.options.command[0],
            len(values),
            self.options.interval,
        )

        installed = self._install_signal_handlers()
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        try:
            while True:
                tick = asyncio.ensure_future(asyncio.sleep(self.options.interval))
                done, _ = await asyncio.wait(
                    {self._exit_task, tick, stop_task}, return_when=asyncio.FIRST_COMPLETED
                )
                if self._exit_task in done:
                    tick.cancel()
                    code = self._exit_task.result()
                    logger.info("Child exited on its own with code %d", code)
                    return code
                if stop_task in done:
                    tick.cancel()
                    logger.info("Stop requested, forwarding signal %d to child", self._stop_signal)
                    return await self.child.stop(self.options.stop_timeout, sig=self._stop_signal)
                await self.tick()
        finally:
            self.state = SupervisorState.STOPPED
            stop_task.cancel()
            self._remove_signal_handlers(installed)

    async def tick(self) -> bool:
        """One refresh cycle. Returns True if the child was restarted.

        Fetch failures leave the current child and environment in place.
        """
        if self.state is not SupervisorState.RUNNING:
            logger.debug("Skipping tick while %s", self.state)
            return False
        self.stats.ticks += 1
        try:
            values = await self._fetch()
        except Exception as e:
            self.stats.fetch_failures += 1
            logger.warning("Env refresh failed, keeping current environment: %s", e)
            return False

        try:
            ambient = self._guarded(values)
        except SecretLeakError:
            logger.error("Direct secrets detected in environment, stopping child")
            if self.child is not None:
                await self.child.stop(self.options.stop_timeout)
            raise

        new_hash = env_hash(values)
        if new_hash == self._hash:
            return False
        if self._exit_task is not None and self._exit_task.done():
            # Exited on its own while we were fetching; run() reports it.
            return False

        self._values, self._hash = values, new_hash
        await self._restart(ambient)
        return True

    async def _restart(self, ambient: Mapping[str, str]) -> None:
        self.state = SupervisorState.RESTARTING
        try:
            old = self.child
            if old is not None:
                logger.info("Secrets changed, restarting child (PID %s)", old.pid)
                await old.stop(self.options.stop_timeout)
            await self._start_child(ambient)
            self.stats.restarts += 1
        finally:
            self.state = SupervisorState.RUNNING

    def _install_signal_handlers(self) -> list[int]:
        if not self._handle_signals:
            return []
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.request_stop, sig)
                installed.append(sig)
        return installed

    def _remove_signal_handlers(self, installed: list[int]) -> None:
        if not installed:
            return
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
