"""Command line entry point for headless delegation."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import SwitchboardSettings, get_settings
from .delegation import DelegatedExecutor, ExecutionOptions, ProjectSettings, serialize_result
from .errors import SwitchboardError
from .profiles import ProfileNotFoundError

CONTINUE_SUFFIX = ":continue"

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging on stderr."""

    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="switchboard",
        description="Run a prompt headlessly against a configured profile",
    )
    parser.add_argument(
        "profile",
        nargs="?",
        default="default",
        help="Profile name; append :continue to resume its last session",
    )
    parser.add_argument("-p", "--prompt", help="Prompt to delegate")
    parser.add_argument("--permission-mode", help="default, plan, acceptEdits or bypassPermissions")
    parser.add_argument("--timeout", type=float, help="Timeout in seconds (0 disables)")
    parser.add_argument("--session-id", help="Resume a specific session id")
    parser.add_argument(
        "--resume", action="store_true", help="Resume the last session for the profile"
    )
    parser.add_argument("--retries", type=int, help="Retry attempts after the first")
    parser.add_argument("--json", action="store_true", help="Output the result as JSON")
    parser.add_argument("--list", action="store_true", help="List configured profiles")
    parser.add_argument("--test", action="store_true", help="Health-check the profile")
    return parser


def exit_status(code: int) -> int:
    """Map a child killed by signal N (negative code) to the shell convention 128 + N."""

    return 128 - code if code < 0 else code


def _fail(message: str, *hints: str) -> int:
    print(f"[X] {message}", file=sys.stderr)
    for hint in hints:
        print(f"    {hint}", file=sys.stderr)
    return 1


async def run(args: argparse.Namespace, settings: SwitchboardSettings) -> int:
    executor = DelegatedExecutor(settings)

    if args.list:
        print(executor.resolver.format_available())
        return 0

    profile = args.profile
    resume = args.resume
    session_id = args.session_id
    if profile.endswith(CONTINUE_SUFFIX):
        profile = profile[: -len(CONTINUE_SUFFIX)]
        reference = executor.resolver.resolve(profile)
        last = executor.sessions.get_last(reference.name)
        if last is None:
            return _fail(
                f"No previous session found for {reference.name}",
                f'Start a new session first with: switchboard {reference.name} -p "task"',
            )
        resume = True
        session_id = session_id or last.session_id

    if args.test:
        healthy = await executor.test_profile(profile)
        print("ok" if healthy else "failed")
        return 0 if healthy else 1

    if not args.prompt:
        return _fail("Missing prompt after -p flag", 'Usage: switchboard glm -p "task description"')

    cwd = Path.cwd()
    options = ExecutionOptions(
        cwd=cwd,
        timeout=args.timeout,
        permission_mode=args.permission_mode or ProjectSettings.load(cwd).permission_mode,
        resume=resume,
        session_id=session_id,
        max_retries=args.retries,
    )
    result = await executor.execute_with_retry(profile, args.prompt, options)

    if args.json:
        print(serialize_result(result))
    else:
        print(result.content)
    return exit_status(result.exit_code)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(settings.effective_log_level)

    try:
        code = asyncio.run(run(args, settings))
    except ProfileNotFoundError as exc:
        code = _fail(exc.describe())
    except SwitchboardError as exc:
        logger.debug("Delegation failed", exc_info=True)
        code = _fail(f"Delegation error: {exc}")
    return code


if __name__ == "__main__":
    raise SystemExit(main())
