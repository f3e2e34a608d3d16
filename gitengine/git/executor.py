"""Async git subprocess runner with credential injection and activity events."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import os
import re
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from gitengine.core.events import COMMAND_COMPLETED, COMMAND_ISSUED
from gitengine.core.identity import EMPTY_IDENTITY, IdentityContext
from gitengine.git.credentials import CredentialInjector, credential_env, redact
from gitengine.git.models import CommandCompleted, CommandIssued, ExecResult

if TYPE_CHECKING:
    from gitengine.core.config import GitEngineConfig
    from gitengine.core.events import EventBus

logger = structlog.get_logger()

ProgressCallback = Callable[[str], None]

_CHUNK_SIZE = 64 * 1024
_PROGRESS_SPLIT_RE = re.compile(r"[\r\n]+")


class OutputLimitExceeded(Exception):
    """A stream produced more bytes than the configured buffer allows."""


async def _drain(
    stream: asyncio.StreamReader | None,
    limit: int,
    on_progress: ProgressCallback | None = None,
) -> bytes:
    if stream is None:
        return b""
    buf = bytearray()
    pending = ""
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > limit:
            raise OutputLimitExceeded(f"Output exceeded {limit} bytes")
        if on_progress is not None:
            pending += chunk.decode("utf-8", errors="replace")
            *complete, pending = _PROGRESS_SPLIT_RE.split(pending)
            for line in complete:
                _report(on_progress, line)
    if on_progress is not None:
        _report(on_progress, pending)
    return bytes(buf)


def _report(on_progress: ProgressCallback, line: str) -> None:
    message = line.strip()
    if not message:
        return
    try:
        on_progress(message)
    except Exception:
        logger.exception("git_progress_callback_error")


class GitExecutor:
    """Runs git as a subprocess; the per-session handle for identity.

    Non-zero exit codes are returned, never raised: callers decide which
    codes are meaningful.
    """

    def __init__(
        self,
        config: GitEngineConfig,
        event_bus: EventBus | None = None,
        injector: CredentialInjector | None = None,
        identity: IdentityContext | None = None,
    ) -> None:
        self._config = config
        self._event_bus = event_bus
        self._injector = injector or CredentialInjector(config.askpass_dir)
        self._identity = identity or EMPTY_IDENTITY
        self._counter = itertools.count(1)

    @property
    def identity(self) -> IdentityContext:
        return self._identity

    def set_identity(self, name: str | None, email: str | None) -> None:
        self._identity = IdentityContext(name=name, email=email)
        logger.info("git_identity_set", name=name, email=email)

    def clear_identity(self) -> None:
        self._identity = EMPTY_IDENTITY
        logger.info("git_identity_cleared")

    def build_env(
        self, identity: IdentityContext, askpass_path: Path | None = None
    ) -> dict[str, str]:
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        env.update(identity.to_env())
        if askpass_path is not None:
            env.update(credential_env(askpass_path))
        return env

    async def execute(
        self,
        cwd: Path | str,
        args: Sequence[str],
        credential: str | None = None,
        *,
        timeout: float | None = None,
        max_output_bytes: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ExecResult:
        """Run ``git <args>`` in *cwd* and return its result.

        Every call emits exactly one ``command.issued`` and one
        ``command.completed`` event, including when it raises.
        """
        cwd = Path(cwd)
        timeout = timeout or self._config.command_timeout_seconds
        limit = max_output_bytes or self._config.max_output_bytes
        identity = self._identity

        command_id = f"cmd-{int(time.time() * 1000)}-{next(self._counter)}"
        command = redact(" ".join(["git", *args]), credential)
        started_at = time.time()

        await self._emit(
            COMMAND_ISSUED,
            CommandIssued(
                id=command_id,
                command=command,
                repo_path=str(cwd),
                started_at=started_at,
            ),
        )
        logger.debug("git_exec", command=command, cwd=str(cwd))

        askpass_path: Path | None = None
        try:
            try:
                if credential:
                    askpass_path = self._injector.create(credential)
                env = self.build_env(identity, askpass_path)
                raw = await self._spawn(
                    cwd, args, env, timeout, limit, on_progress, command
                )
            finally:
                if askpass_path is not None:
                    self._injector.destroy(askpass_path)
        except BaseException as e:
            message = redact(str(e) or type(e).__name__, credential)
            failed = ExecResult(exit_code=1, stderr=message)
            await self._emit_completed(command_id, command, cwd, started_at, failed)
            raise

        result = ExecResult(
            stdout=raw.stdout,
            stderr=redact(raw.stderr, credential),
            exit_code=raw.exit_code,
        )
        await self._emit_completed(command_id, command, cwd, started_at, result)
        if not result.ok:
            logger.debug(
                "git_exec_failed",
                command=command,
                exit_code=result.exit_code,
                stderr=result.stderr.strip()[:500],
            )
        return result

    async def _spawn(
        self,
        cwd: Path,
        args: Sequence[str],
        env: dict[str, str],
        timeout: float,
        limit: int,
        on_progress: ProgressCallback | None,
        command: str,
    ) -> ExecResult:
        if not cwd.is_dir():
            return ExecResult(
                exit_code=1, stderr=f"Directory does not exist: {cwd}"
            )

        try:
            proc = await asyncio.create_subprocess_exec(
                self._config.git_binary,
                *args,
                cwd=cwd,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return ExecResult(
                exit_code=1, stderr="git is not installed or not in PATH"
            )
        except OSError as e:
            logger.error("git_exec_error", command=command, error=str(e))
            return ExecResult(exit_code=1, stderr=str(e))

        try:
            stdout_bytes, stderr_bytes, returncode = await asyncio.wait_for(
                self._collect(proc, limit, on_progress), timeout=timeout
            )
        except TimeoutError:
            logger.warning("git_exec_timeout", command=command, timeout=timeout)
            await _terminate(proc)
            return ExecResult(
                exit_code=1, stderr=f"Command timed out after {timeout:g}s"
            )
        except OutputLimitExceeded as e:
            logger.warning("git_exec_output_overflow", command=command, limit=limit)
            await _terminate(proc)
            return ExecResult(exit_code=1, stderr=str(e))
        except BaseException:
            await _terminate(proc)
            raise

        return ExecResult(
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
            exit_code=returncode or 0,
        )

    async def _collect(
        self,
        proc: asyncio.subprocess.Process,
        limit: int,
        on_progress: ProgressCallback | None,
    ) -> tuple[bytes, bytes, int | None]:
        stdout_bytes, stderr_bytes = await asyncio.gather(
            _drain(proc.stdout, limit),
            _drain(proc.stderr, limit, on_progress),
        )
        returncode = await proc.wait()
        return stdout_bytes, stderr_bytes, returncode

    async def _emit_completed(
        self,
        command_id: str,
        command: str,
        cwd: Path,
        started_at: float,
        result: ExecResult,
    ) -> None:
        completed_at = time.time()
        await self._emit(
            COMMAND_COMPLETED,
            CommandCompleted(
                id=command_id,
                command=command,
                repo_path=str(cwd),
                started_at=started_at,
                completed_at=completed_at,
                duration_ms=int((completed_at - started_at) * 1000),
                exit_code=result.exit_code,
                status="success" if result.ok else "error",
                error_message=None if result.ok else result.stderr.strip(),
            ),
        )

    async def _emit(self, name: str, payload: CommandIssued | CommandCompleted) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.publish(name, payload)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    with contextlib.suppress(Exception):
        await asyncio.wait_for(proc.wait(), timeout=5)
