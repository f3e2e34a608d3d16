"""CLI entry point for gitengine."""

import asyncio
import sys
from pathlib import Path

import structlog

from gitengine.app import GitEngine, build_engine
from gitengine.core.config import GitEngineConfig
from gitengine.exceptions import GitEngineError
from gitengine.git import formatter

logger = structlog.get_logger()


def _int_arg(args: list[str], default: int) -> int:
    if not args:
        return default
    try:
        return max(1, int(args[0]))
    except ValueError:
        return default


async def dispatch(engine: GitEngine, cwd: Path, argv: list[str]) -> tuple[int, str]:
    """Run one CLI command and return (exit code, text to print)."""
    command = argv[0] if argv else "status"
    args = argv[1:]
    service = engine.service
    token = engine.config.auth_token

    match command:
        case "status":
            files = await service.status(cwd)
            branch = await service.current_branch(cwd)
            return 0, formatter.format_status(files, branch)
        case "diff":
            return 0, formatter.format_diff(
                await service.diff(cwd, args[0] if args else None)
            )
        case "log":
            return 0, formatter.format_log(
                await service.log(cwd, _int_arg(args, 20)), max_entries=100
            )
        case "branches":
            return 0, formatter.format_branches(await service.branches(cwd))
        case "checkout":
            if not args:
                return 2, "Usage: gitengine checkout <branch> [--create]"
            create = "--create" in args[1:]
            await engine.sync.checkout_branch(cwd, args[0], create=create)
            return 0, f"Switched to branch '{args[0]}'"
        case "blame":
            if not args:
                return 2, "Usage: gitengine blame <path>"
            return 0, formatter.format_blame(await service.blame(cwd, args[0]))
        case "reflog":
            return 0, formatter.format_reflog(
                await service.reflog(cwd, _int_arg(args, 30)), max_entries=100
            )
        case "sync":
            result = await engine.sync.sync(cwd, token)
            return (0 if result.success else 1), formatter.format_sync_result(result)
        case "help" | "-h" | "--help":
            return 0, formatter.format_help()
        case _:
            return 2, f"Unknown command: {command}\n\n{formatter.format_help()}"


async def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        config = GitEngineConfig()
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    engine = build_engine(config)
    cwd = Path.cwd()
    try:
        code, text = await dispatch(engine, cwd, argv)
    except (GitEngineError, ValueError) as e:
        logger.debug("cli_command_failed", argv=argv, error=str(e))
        print(str(e), file=sys.stderr)
        return 1

    print(text, file=sys.stdout if code == 0 else sys.stderr)
    return code


def run() -> None:
    sys.exit(asyncio.run(main()))
