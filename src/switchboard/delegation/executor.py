"""Headless delegated execution of the Claude CLI for a resolved profile."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import json
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

from ..config import SwitchboardSettings, get_settings
from ..errors import ConfigurationError, LaunchError, SwitchboardError
from ..profiles import ProfileKind, ProfileReference, ProfileResolver
from ..storage import SessionStore
from .progress import ProgressReporter
from .project_settings import FALLBACK_PERMISSION_MODE, ProjectSettings
from .stream import StreamInterpreter, StreamRecord
from .supervisor import ProcessHandle, ProcessSupervisor
from .utils import locate_executable, process_slash_command

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_SECONDS = 5.0
HEALTH_CHECK_PROMPT = 'Say "test successful"'
HEALTH_CHECK_TIMEOUT_SECONDS = 10.0


class PermissionMode(str, Enum):
    DEFAULT = "default"
    PLAN = "plan"
    ACCEPT_EDITS = "acceptEdits"
    BYPASS_PERMISSIONS = "bypassPermissions"


class InvalidPermissionModeError(ConfigurationError):
    """Raised when a permission mode is not one of :class:`PermissionMode`."""


class ExecutableNotFoundError(ConfigurationError):
    """Raised when the Claude CLI executable cannot be located."""


class SettingsNotFoundError(ConfigurationError):
    """Raised when the profile's settings artifact does not exist."""


class SettingsArtifactError(ConfigurationError):
    """Raised when the profile's settings artifact is not a JSON object."""


@dataclass(slots=True)
class ExecutionOptions:
    cwd: Path | None = None
    timeout: float | None = None
    permission_mode: str = FALLBACK_PERMISSION_MODE
    resume: bool = False
    session_id: str | None = None
    max_retries: int | None = None


@dataclass(slots=True)
class ExecutionResult:
    """Holds the outcome of one delegated CLI invocation."""

    profile: str
    cwd: str
    exit_code: int
    timed_out: bool
    duration: float
    content: str
    raw_stdout: str
    raw_stderr: str
    messages: list[StreamRecord] = field(default_factory=list)
    session_id: str | None = None
    total_cost: float | None = None
    turn_count: int | None = None
    is_error: bool = False
    subtype: str | None = None
    duration_api_ms: float | None = None
    permission_denials: list[Any] = field(default_factory=list)
    errors: list[Any] = field(default_factory=list)
    interrupted: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


def build_result(
    *,
    profile: str,
    cwd: str,
    exit_code: int,
    timed_out: bool,
    duration: float,
    stdout: str,
    stderr: str,
    messages: list[StreamRecord],
    final: StreamRecord | None,
    interrupted: bool = False,
) -> ExecutionResult:
    """Fold the final ``result`` record, if any, over defaults from raw output."""

    result = ExecutionResult(
        profile=profile,
        cwd=cwd,
        exit_code=exit_code,
        timed_out=timed_out,
        duration=duration,
        content=stdout,
        raw_stdout=stdout,
        raw_stderr=stderr,
        messages=list(messages),
        interrupted=interrupted,
    )

    if final is None:
        logger.debug("No result message found in stream-json output")
        return result

    payload = final.payload
    result.session_id = payload.get("session_id") or None
    result.total_cost = payload.get("total_cost_usd") or 0.0
    result.turn_count = payload.get("num_turns") or 0
    result.is_error = bool(payload.get("is_error", False))
    result.subtype = payload.get("subtype") or None
    result.duration_api_ms = payload.get("duration_api_ms") or 0
    result.permission_denials = list(payload.get("permission_denials") or [])
    result.errors = list(payload.get("errors") or [])
    content = payload.get("result")
    result.content = content if isinstance(content, str) else ""
    return result


def serialize_result(result: ExecutionResult) -> str:
    """Serialize an execution result for machine consumption."""

    return json.dumps(
        {
            "profile": result.profile,
            "cwd": result.cwd,
            "exit_code": result.exit_code,
            "succeeded": result.succeeded,
            "timed_out": result.timed_out,
            "interrupted": result.interrupted,
            "duration": round(result.duration, 3),
            "session_id": result.session_id,
            "total_cost": result.total_cost,
            "turn_count": result.turn_count,
            "is_error": result.is_error,
            "subtype": result.subtype,
            "permission_denials": result.permission_denials,
            "errors": result.errors,
            "content": result.content,
            "stderr": result.raw_stderr,
        }
    )


class DelegatedExecutor:
    """Run a prompt through the Claude CLI for a profile and interpret its stream."""

    def __init__(
        self,
        settings: SwitchboardSettings | None = None,
        *,
        resolver: ProfileResolver | None = None,
        sessions: SessionStore | None = None,
        supervisor: ProcessSupervisor | None = None,
        progress: ProgressReporter | None = None,
        rng: Callable[[], float] = random.random,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.resolver = resolver or ProfileResolver(self.settings.home)
        self.sessions = sessions or SessionStore(
            self.settings.sessions_path,
            retention=timedelta(days=self.settings.session_retention_days),
        )
        self.supervisor = supervisor or ProcessSupervisor()
        self.progress = progress or ProgressReporter(enabled=not self.settings.quiet)
        self._rng = rng
        self._sleep = sleep

    @staticmethod
    def validate_permission_mode(mode: str) -> PermissionMode:
        try:
            return PermissionMode(mode)
        except ValueError:
            valid = ", ".join(m.value for m in PermissionMode)
            raise InvalidPermissionModeError(
                f'Invalid permission mode: "{mode}". Valid modes: {valid}'
            ) from None

    def locate_cli(self) -> Path:
        executable = locate_executable(self.settings.claude_path)
        if executable is None:
            raise ExecutableNotFoundError(
                "Claude CLI not found in PATH. Install it or set SWITCHBOARD_CLAUDE_PATH."
            )
        if self.settings.claude_path and not executable.exists():
            raise ExecutableNotFoundError(f"Claude CLI not found at {executable}")
        return executable

    def settings_path_for(self, reference: ProfileReference) -> Path:
        """Return the profile's settings artifact, failing if it is absent or malformed."""

        path = reference.launch.settings_path or self.settings.settings_file(reference.name)
        if not path.is_file():
            raise SettingsNotFoundError(
                f"Settings file not found: {path}\n"
                f'Profile "{reference.name}" may not be configured.'
            )
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise SettingsArtifactError(f"Failed to parse settings file {path}: {exc}") from exc
        if not isinstance(document, dict):
            raise SettingsArtifactError(f"Settings file {path} must contain a JSON object")
        return path

    def resume_target(self, profile: str, options: ExecutionOptions) -> str | None:
        """Pick the session to continue: an explicit id wins over the stored one."""

        if options.session_id:
            logger.debug("Resuming specific session: %s", options.session_id)
            return options.session_id
        if not options.resume:
            return None

        last = self.sessions.get_last(profile)
        if last is None:
            self.progress.warning("No previous session found, starting new session")
            return None
        logger.debug(
            "Resuming session: %s (%d turns, $%.4f)", last.session_id, last.turns, last.total_cost
        )
        return last.session_id

    def build_args(
        self,
        prompt: str,
        *,
        settings_path: Path,
        mode: PermissionMode,
        resume_id: str | None,
        project: ProjectSettings,
        extra_args: tuple[str, ...] = (),
    ) -> list[str]:
        args = [
            "-p",
            process_slash_command(prompt),
            "--settings",
            str(settings_path),
            "--output-format",
            "stream-json",
            "--verbose",
        ]
        if mode is PermissionMode.BYPASS_PERMISSIONS:
            logger.debug("Using --dangerously-skip-permissions; all permission checks are bypassed")
            args.append("--dangerously-skip-permissions")
        elif mode is not PermissionMode.DEFAULT:
            args.extend(["--permission-mode", mode.value])
        if resume_id:
            args.extend(["--resume", resume_id])
        if project.tools.allowed_tools:
            args.extend(["--allowedTools", *project.tools.allowed_tools])
        if project.tools.disallowed_tools:
            args.extend(["--disallowedTools", *project.tools.disallowed_tools])
        args.extend(extra_args)
        return args

    async def execute(
        self, profile: str | None, prompt: str, options: ExecutionOptions | None = None
    ) -> ExecutionResult:
        """Run ``prompt`` once; runtime failures resolve with ``succeeded`` false."""

        options = options or ExecutionOptions()
        mode = self.validate_permission_mode(options.permission_mode)
        executable = self.locate_cli()
        reference = self.resolver.resolve(profile)
        settings_path = self.settings_path_for(reference)

        cwd = Path(options.cwd or Path.cwd())
        resume_id = self.resume_target(reference.name, options)
        args = self.build_args(
            prompt,
            settings_path=settings_path,
            mode=mode,
            resume_id=resume_id,
            project=ProjectSettings.load(cwd),
            extra_args=reference.launch.extra_args,
        )
        logger.debug("Claude CLI args: %s", " ".join(args))

        launch = reference.launch.model_copy(
            update={"executable_path": executable, "working_directory": cwd}
        )
        if reference.kind is ProfileKind.ACCOUNT:
            config_dir = launch.environment_overrides.get("CLAUDE_CONFIG_DIR")
            if config_dir:
                Path(config_dir).mkdir(parents=True, exist_ok=True, mode=0o700)

        timeout = self.settings.timeout_seconds if options.timeout is None else options.timeout
        interpreter = StreamInterpreter()
        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        stderr_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

        def on_stdout(chunk: bytes) -> None:
            stdout_chunks.append(chunk)
            for record in interpreter.feed(chunk):
                for tool in record.tools:
                    self.progress.tool(tool.progress_line())

        def on_stderr(chunk: bytes) -> None:
            stderr_chunks.append(chunk)
            text = stderr_decoder.decode(chunk)
            if text:
                self.progress.passthrough(text)

        started = time.monotonic()
        self.progress.started(reference.name)
        handle = await self.supervisor.spawn(launch, args)
        heartbeat = (
            asyncio.ensure_future(self._heartbeat(handle)) if self.progress.enabled else None
        )
        try:
            with self.supervisor.relay_signals(handle):
                timed_out = await self.supervisor.communicate(
                    handle, on_stdout=on_stdout, on_stderr=on_stderr, timeout=timeout
                )
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await heartbeat
            if handle.returncode is None:
                await self.supervisor.terminate(handle, self.supervisor.interrupt_grace)

        interpreter.finish()
        duration = time.monotonic() - started
        self.progress.finished(duration, timed_out=timed_out)

        result = build_result(
            profile=reference.name,
            cwd=str(cwd),
            exit_code=handle.returncode if handle.returncode is not None else -1,
            timed_out=timed_out,
            duration=duration,
            stdout=b"".join(stdout_chunks).decode("utf-8", errors="replace"),
            stderr=b"".join(stderr_chunks).decode("utf-8", errors="replace"),
            messages=interpreter.messages,
            final=interpreter.result,
            interrupted=handle.interrupted,
        )
        self._record_session(reference.name, result, continuing=resume_id is not None)
        return result

    async def execute_with_retry(
        self, profile: str | None, prompt: str, options: ExecutionOptions | None = None
    ) -> ExecutionResult:
        """Retry launch errors and unsuccessful runs.

        An interrupted run is returned as-is, as is the last attempt's outcome.
        """

        options = options or ExecutionOptions()
        max_retries = (
            self.settings.max_retries if options.max_retries is None else options.max_retries
        )

        for attempt in range(max_retries + 1):
            last_attempt = attempt == max_retries
            try:
                result = await self.execute(profile, prompt, options)
            except ConfigurationError:
                raise
            except LaunchError as exc:
                if last_attempt:
                    raise
                self.progress.warning(f"Attempt {attempt + 1} errored: {exc}, retrying...")
            else:
                if result.succeeded or result.interrupted or last_attempt:
                    return result
                self.progress.warning(f"Attempt {attempt + 1} failed, retrying...")
            await self._sleep(self.settings.retry_base_delay * (attempt + 1))

        raise SwitchboardError("Execution failed after all retry attempts")

    async def test_profile(self, profile: str) -> bool:
        """Quick health check: can ``profile`` complete a trivial prompt?"""

        try:
            result = await self.execute(
                profile, HEALTH_CHECK_PROMPT, ExecutionOptions(timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
            )
        except SwitchboardError as exc:
            logger.debug("Profile %s failed health check: %s", profile, exc)
            return False
        return result.succeeded

    async def _heartbeat(self, handle: ProcessHandle) -> None:
        while True:
            await asyncio.sleep(HEARTBEAT_INTERVAL_SECONDS)
            self.progress.heartbeat(handle.elapsed)

    def _record_session(self, profile: str, result: ExecutionResult, *, continuing: bool) -> None:
        # Timed-out runs are recorded too so they can be continued.
        if not result.session_id:
            return
        try:
            record = None
            if continuing:
                record = self.sessions.update(
                    profile, result.session_id, total_cost=result.total_cost
                )
            if record is None:
                self.sessions.store(
                    profile, result.session_id, total_cost=result.total_cost, cwd=result.cwd
                )
            if self._rng() < self.settings.session_sweep_probability:
                self.sessions.sweep_expired()
        except OSError as exc:
            logger.error("Failed to save session %s: %s", result.session_id, exc)


__all__ = [
    "DelegatedExecutor",
    "ExecutableNotFoundError",
    "ExecutionOptions",
    "ExecutionResult",
    "InvalidPermissionModeError",
    "PermissionMode",
    "SettingsArtifactError",
    "SettingsNotFoundError",
    "build_result",
    "serialize_result",
]
