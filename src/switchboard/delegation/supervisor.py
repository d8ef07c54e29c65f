"""Child process lifecycle: spawn, signal relay, two-phase termination, timeout."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Sequence

from ..errors import LaunchError
from ..profiles import LaunchParams
from .utils import sanitize_environment

logger = logging.getLogger(__name__)

INTERRUPT_GRACE_SECONDS = 2.0
TIMEOUT_GRACE_SECONDS = 10.0
DRAIN_TIMEOUT_SECONDS = 2.0
_SHELL_SUFFIXES = {".cmd", ".bat", ".ps1"}
_READ_SIZE = 65536

ChunkCallback = Callable[[bytes], None]


def needs_shell(executable: Path, platform: str | None = None) -> bool:
    """Windows script wrappers cannot be spawned directly."""

    current = platform or sys.platform
    return current.startswith("win") and executable.suffix.lower() in _SHELL_SUFFIXES


@dataclass(slots=True)
class ProcessHandle:
    process: asyncio.subprocess.Process
    argv: tuple[str, ...]
    started_at: float = field(default_factory=time.monotonic)
    kill_requested: bool = False
    interrupted: bool = False
    process_group: bool = False
    _tasks: set[asyncio.Task] = field(default_factory=set)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at


class ProcessSupervisor:
    """Owns one child process at a time for the delegated executor."""

    def __init__(
        self,
        *,
        interrupt_grace: float = INTERRUPT_GRACE_SECONDS,
        timeout_grace: float = TIMEOUT_GRACE_SECONDS,
        drain_timeout: float = DRAIN_TIMEOUT_SECONDS,
        platform: str | None = None,
    ) -> None:
        self.interrupt_grace = interrupt_grace
        self.timeout_grace = timeout_grace
        self.drain_timeout = drain_timeout
        self._platform = platform or sys.platform

    async def spawn(self, launch: LaunchParams, args: Sequence[str]) -> ProcessHandle:
        if launch.executable_path is None:
            raise LaunchError("No executable resolved for launch")

        executable = launch.executable_path
        argv = (str(executable), *args)
        env = sanitize_environment(launch.environment_overrides)
        cwd = str(launch.working_directory) if launch.working_directory else None
        # POSIX children lead their own process group; terminate() signals the group.
        new_session = not self._platform.startswith("win")

        try:
            if needs_shell(executable, self._platform):
                process = await asyncio.create_subprocess_shell(
                    subprocess.list2cmdline(argv),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=env,
                    cwd=cwd,
                    start_new_session=new_session,
                )
            else:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=env,
                    cwd=cwd,
                    start_new_session=new_session,
                )
        except OSError as exc:
            raise LaunchError(f"Failed to execute {executable}: {exc}") from exc

        logger.debug("Spawned pid %s: %s", process.pid, " ".join(argv))
        return ProcessHandle(process=process, argv=argv, process_group=new_session)

    def _send(self, handle: ProcessHandle, *, kill: bool) -> None:
        process = handle.process
        if handle.process_group:
            os.killpg(process.pid, signal.SIGKILL if kill else signal.SIGTERM)
        elif kill:
            process.kill()
        else:
            process.terminate()

    async def terminate(self, handle: ProcessHandle, grace: float) -> None:
        """Send SIGTERM, then SIGKILL if the child outlives ``grace`` seconds."""

        process = handle.process
        if process.returncode is not None:
            return
        try:
            self._send(handle, kill=False)
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=grace)
            return
        except asyncio.TimeoutError:
            logger.debug("Process %s did not terminate gracefully, sending SIGKILL", handle.pid)
        handle.kill_requested = True
        with contextlib.suppress(ProcessLookupError):
            self._send(handle, kill=True)

    @contextlib.contextmanager
    def relay_signals(self, handle: ProcessHandle) -> Iterator[None]:
        """Forward SIGINT/SIGTERM received by this process to the child.

        Handlers are scoped to one execution and removed when the block exits.
        A relayed signal marks the handle as interrupted.
        """

        loop = asyncio.get_running_loop()
        installed: list[tuple[signal.Signals, object]] = []

        def on_signal(signum: signal.Signals) -> None:
            logger.debug("Received %s, stopping delegated process %s", signum.name, handle.pid)
            handle.interrupted = True
            task = loop.create_task(self.terminate(handle, self.interrupt_grace))
            handle._tasks.add(task)
            task.add_done_callback(handle._tasks.discard)

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                previous = signal.getsignal(signum)
                loop.add_signal_handler(signum, on_signal, signum)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug("Signal relay for %s unavailable on this platform", signum.name)
                continue
            installed.append((signum, previous))

        try:
            yield
        finally:
            for signum, previous in installed:
                loop.remove_signal_handler(signum)
                if previous is not None:
                    signal.signal(signum, previous)

    async def communicate(
        self,
        handle: ProcessHandle,
        *,
        on_stdout: ChunkCallback,
        on_stderr: ChunkCallback,
        timeout: float | None = None,
    ) -> bool:
        """Pump both pipes until the child exits; returns ``True`` on timeout.

        Once the child has exited, remaining output is drained for at most
        ``drain_timeout`` seconds. A descendant that keeps a pipe open past
        that does not hold the execution open.
        """

        process = handle.process

        async def pump(stream: asyncio.StreamReader | None, callback: ChunkCallback) -> None:
            if stream is None:
                return
            while chunk := await stream.read(_READ_SIZE):
                callback(chunk)

        pumps = asyncio.ensure_future(
            asyncio.gather(pump(process.stdout, on_stdout), pump(process.stderr, on_stderr))
        )
        exited = asyncio.ensure_future(process.wait())

        timed_out = False
        if timeout is not None and timeout > 0:
            done, _ = await asyncio.wait({exited}, timeout=timeout)
            if not done:
                timed_out = True
                logger.debug(
                    "Timeout reached after %.1fs, sending SIGTERM for graceful shutdown", timeout
                )
                await self.terminate(handle, self.timeout_grace)
        await exited

        try:
            await asyncio.wait_for(pumps, timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            logger.debug(
                "Output of process %s still open %.1fs after exit, abandoning drain",
                handle.pid,
                self.drain_timeout,
            )
        return timed_out


__all__ = [
    "DRAIN_TIMEOUT_SECONDS",
    "INTERRUPT_GRACE_SECONDS",
    "ProcessHandle",
    "ProcessSupervisor",
    "TIMEOUT_GRACE_SECONDS",
    "needs_shell",
]
