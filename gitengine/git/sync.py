"""Multi-step protocols composed from GitService calls.

Each protocol is a single logical transaction per call. Stash pops after a
wrapped operation and rebase aborts are best-effort: attempted, logged, never
propagated.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import structlog

from gitengine.exceptions import GitCommandError, GitEngineError
from gitengine.git import classify
from gitengine.git.models import SyncResult

if TYPE_CHECKING:
    from gitengine.core.config import GitEngineConfig
    from gitengine.git.service import ConflictSide, GitService

logger = structlog.get_logger()

T = TypeVar("T")

CONFLICT_ERROR = "Merge conflicts detected"


class SyncOrchestrator:
    def __init__(self, service: GitService, config: GitEngineConfig) -> None:
        self._service = service
        self._config = config

    # ── Stash ──

    async def stash(self, cwd: Path | str) -> bool:
        """Stash local changes, retrying while another process holds index.lock.

        Returns False when there was nothing to stash.
        """
        max_retries = self._config.stash_retry_attempts
        retries = 0
        while True:
            try:
                return await self._service.stash_push(cwd)
            except GitCommandError as e:
                if retries >= max_retries or not classify.is_lock_contention(
                    e.output
                ):
                    raise
                retries += 1
                logger.info(
                    "git_stash_lock_retry",
                    cwd=str(cwd),
                    retry=retries,
                    max_retries=max_retries,
                )
                await asyncio.sleep(self._config.stash_retry_delay_seconds)

    async def _pop_quietly(self, cwd: Path | str) -> None:
        try:
            await self._service.stash_pop(cwd)
        except GitEngineError as e:
            logger.warning("git_stash_pop_failed", cwd=str(cwd), error=str(e))

    async def _with_stash(
        self, cwd: Path | str, operation: Callable[[], Awaitable[T]]
    ) -> T:
        dirty = bool(await self._service.status(cwd))
        stashed = await self.stash(cwd) if dirty else False
        try:
            return await operation()
        finally:
            if stashed:
                await self._pop_quietly(cwd)

    # ── Safe branch switching ──

    async def checkout_branch(
        self, cwd: Path | str, branch: str, *, create: bool = False
    ) -> None:
        """Switch (or create and switch) branch, carrying uncommitted work along."""
        await self._with_stash(
            cwd, lambda: self._service.checkout(cwd, branch, create=create)
        )
        logger.info("git_branch_switched", cwd=str(cwd), branch=branch, created=create)

    async def merge_branch(self, cwd: Path | str, branch: str) -> None:
        await self._with_stash(cwd, lambda: self._service.merge(cwd, branch))
        logger.info("git_branch_merged", cwd=str(cwd), branch=branch)

    async def rebase_branch(self, cwd: Path | str, branch: str) -> None:
        """Rebase onto *branch*; on failure the rebase is aborted before raising."""
        await self._with_stash(cwd, lambda: self._service.rebase(cwd, branch))
        logger.info("git_branch_rebased", cwd=str(cwd), onto=branch)

    # ── Sync ──

    async def sync(
        self,
        cwd: Path | str,
        credential: str | None = None,
        remote: str | None = None,
    ) -> SyncResult:
        """Pull with rebase+autostash, then push.

        Conflicts during the pull are returned as data, never raised.
        """
        remote = remote or self._config.default_remote
        try:
            try:
                await self._service.pull(cwd, credential)
            except GitCommandError as e:
                if classify.is_conflict(e.output):
                    files = await self._service.status(cwd)
                    conflicts = [f.path for f in files if f.status == "conflict"]
                    logger.info(
                        "git_sync_conflicts", cwd=str(cwd), conflicts=conflicts
                    )
                    return SyncResult(conflicts=conflicts, error=CONFLICT_ERROR)
                logger.warning("git_sync_pull_failed", cwd=str(cwd))
                return SyncResult(error=e.stderr)

            try:
                await self._service.push(cwd, credential, remote)
            except GitCommandError as e:
                logger.warning("git_sync_push_failed", cwd=str(cwd))
                return SyncResult(pulled=True, error=e.stderr)
        except GitEngineError as e:
            logger.error("git_sync_error", cwd=str(cwd), error=str(e))
            return SyncResult(error=str(e))

        logger.info("git_synced", cwd=str(cwd), remote=remote)
        return SyncResult(success=True, pulled=True, pushed=True)

    # ── Conflicts ──

    async def resolve_conflict(
        self, cwd: Path | str, path: str, strategy: ConflictSide
    ) -> None:
        """Take our or their side of *path* and mark it resolved."""
        if strategy not in ("ours", "theirs"):
            raise ValueError(f"Unknown conflict strategy: {strategy}")
        await self._service.checkout_side(cwd, path, strategy)
        await self._service.stage(cwd, [path])
        logger.info("git_conflict_resolved", cwd=str(cwd), path=path, side=strategy)
