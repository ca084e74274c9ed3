"""Child process lifecycle: spawn, signal and bounded stop."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)


def normalize_returncode(code: int | None) -> int:
    """Map asyncio's negative signal codes to the shell convention (128 + N)."""
    if code is None:
        return 0
    if code < 0:
        return 128 + (-code)
    return code


class ChildProcess:
    """Wrap an asyncio subprocess with the operations the supervisor needs."""

    def __init__(self, proc: asyncio.subprocess.Process, command: Sequence[str]) -> None:
        self._proc = proc
        self.command = list(command)

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        code = self._proc.returncode
        return None if code is None else normalize_returncode(code)

    async def wait(self) -> int:
        return normalize_returncode(await self._proc.wait())

    def send_signal(self, sig: int) -> None:
        if self._proc.returncode is not None:
            return
        try:
            self._proc.send_signal(sig)
        except ProcessLookupError:
            pass

    async def stop(self, timeout: float = 10.0, sig: int = signal.SIGTERM) -> int:
        """Send ``sig`` and wait; SIGKILL if still alive after ``timeout`` seconds."""
        if self._proc.returncode is not None:
            return normalize_returncode(self._proc.returncode)
        self.send_signal(sig)
        try:
            return normalize_returncode(await asyncio.wait_for(self._proc.wait(), timeout))
        except TimeoutError:
            logger.warning(
                "Child %d did not exit %.1fs after signal %d, killing", self.pid, timeout, sig
            )
            try:
                self._proc.kill()
            except ProcessLookupError:
                pass
            return normalize_returncode(await self._proc.wait())


async def spawn_child(command: Sequence[str], env: Mapping[str, str]) -> ChildProcess:
    """Start ``command`` with inherited stdio and the given environment.

    Raises FileNotFoundError if the executable does not exist.
    """
    proc = await asyncio.create_subprocess_exec(*command, env=dict(env))
    logger.info("Started %s (PID %d)", command[0], proc.pid)
    return ChildProcess(proc, command)
