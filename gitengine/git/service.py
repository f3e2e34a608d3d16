"""High-level git operations built on GitExecutor."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import structlog

from gitengine.exceptions import GitCommandError
from gitengine.git import classify
from gitengine.git.parsers import (
    BRANCH_FORMAT,
    LOG_FORMAT,
    LOG_SEPARATOR,
    REFLOG_FORMAT,
    REFLOG_SEPARATOR,
    TAG_FORMAT,
    parse_blame,
    parse_branches,
    parse_log,
    parse_name_status,
    parse_reflog,
    parse_status,
    parse_tags,
)

if TYPE_CHECKING:
    from gitengine.core.config import GitEngineConfig
    from gitengine.git.executor import GitExecutor, ProgressCallback
    from gitengine.git.models import (
        BlameInfo,
        BranchInfo,
        CommitInfo,
        ExecResult,
        FileStatus,
        ReflogEntry,
        TagInfo,
    )

logger = structlog.get_logger()

_BRANCH_NAME_RE = re.compile(r"^[a-zA-Z0-9._/\-]+$")

ResetMode = Literal["soft", "mixed", "hard"]
ConflictSide = Literal["ours", "theirs"]


def _check_branch_name(name: str) -> None:
    if not _BRANCH_NAME_RE.match(name) or name.startswith("-"):
        raise ValueError(f"Invalid branch name: {name}")


def _check_ref(ref: str) -> None:
    # a leading dash would be parsed as an option
    if not ref or ref.startswith("-"):
        raise ValueError(f"Invalid ref: {ref!r}")


class GitService:
    """One coroutine per git-level operation.

    Unexpected non-zero exits raise GitCommandError carrying git's stderr.
    """

    def __init__(self, executor: GitExecutor, config: GitEngineConfig) -> None:
        self._executor = executor
        self._config = config

    @property
    def executor(self) -> GitExecutor:
        return self._executor

    async def _run(
        self, cwd: Path | str, *args: str, credential: str | None = None
    ) -> ExecResult:
        return await self._executor.execute(cwd, list(args), credential)

    async def _check(
        self,
        operation: str,
        cwd: Path | str,
        *args: str,
        credential: str | None = None,
    ) -> ExecResult:
        result = await self._run(cwd, *args, credential=credential)
        if not result.ok:
            raise GitCommandError(
                operation, result.stderr, result.exit_code, result.stdout
            )
        return result

    # ── Repository ──

    async def is_repo(self, cwd: Path | str) -> bool:
        result = await self._run(cwd, "rev-parse", "--is-inside-work-tree")
        return result.ok

    async def init(self, cwd: Path | str, default_branch: str | None = None) -> None:
        path = Path(cwd)
        path.mkdir(parents=True, exist_ok=True)
        args = ["init"]
        if default_branch:
            _check_branch_name(default_branch)
            args.extend(["-b", default_branch])
        await self._check("init", path, *args)

    async def clone(
        self,
        url: str,
        destination: Path | str,
        credential: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Clone *url* into *destination*, streaming progress lines."""
        destination = Path(destination).resolve()
        parent = destination.parent
        parent.mkdir(parents=True, exist_ok=True)
        result = await self._executor.execute(
            parent,
            ["clone", "--progress", "--", url, str(destination)],
            credential,
            timeout=self._config.clone_timeout_seconds,
            max_output_bytes=self._config.clone_max_output_bytes,
            on_progress=on_progress,
        )
        if not result.ok:
            raise GitCommandError("clone", result.stderr, result.exit_code)
        logger.info("git_cloned", destination=str(destination))

    async def remote_url(self, cwd: Path | str, remote: str | None = None) -> str:
        result = await self._run(
            cwd, "remote", "get-url", remote or self._config.default_remote
        )
        return result.stdout.strip() if result.ok else ""

    async def add_remote(self, cwd: Path | str, name: str, url: str) -> None:
        await self._check("remote add", cwd, "remote", "add", name, url)

    async def set_remote(self, cwd: Path | str, name: str, url: str) -> None:
        await self._check("remote set-url", cwd, "remote", "set-url", name, url)

    async def set_upstream(
        self, cwd: Path | str, branch: str, remote: str | None = None
    ) -> None:
        _check_branch_name(branch)
        remote = remote or self._config.default_remote
        await self._check(
            "branch --set-upstream-to",
            cwd,
            "branch",
            "--set-upstream-to",
            f"{remote}/{branch}",
            branch,
        )

    # ── Status & staging ──

    async def status(self, cwd: Path | str) -> list[FileStatus]:
        if not Path(cwd).is_dir():
            return []
        result = await self._check("status", cwd, "status", "--porcelain=v2", "-z")
        return parse_status(result.stdout)

    async def stage(self, cwd: Path | str, paths: Sequence[str]) -> None:
        if not paths:
            return
        await self._check("add", cwd, "add", "--", *paths)

    async def unstage(self, cwd: Path | str, paths: Sequence[str]) -> None:
        if not paths:
            return
        await self._check("reset", cwd, "reset", "HEAD", "--", *paths)

    async def discard_file(self, cwd: Path | str, path: str) -> None:
        await self._check("checkout", cwd, "checkout", "HEAD", "--", path)

    async def clean_file(self, cwd: Path | str, path: str) -> None:
        await self._check("clean", cwd, "clean", "-f", "--", path)

    async def list_files(self, cwd: Path | str) -> list[str]:
        if not Path(cwd).is_dir():
            return []
        result = await self._check("ls-files", cwd, "ls-files")
        return [line for line in result.stdout.splitlines() if line]

    async def file_content(
        self, cwd: Path | str, path: str, ref: str = "HEAD"
    ) -> str:
        """Contents of *path* at *ref*; empty when it does not exist there."""
        normalized = path.replace("\\", "/")
        result = await self._run(cwd, "show", f"{ref}:{normalized}")
        return result.stdout if result.ok else ""

    # ── Commits ──

    async def commit(self, cwd: Path | str, message: str) -> None:
        await self._check("commit", cwd, "commit", "-m", message)

    async def reword(self, cwd: Path | str, message: str) -> None:
        await self._check("commit --amend", cwd, "commit", "--amend", "-m", message)

    async def squash(self, cwd: Path | str, count: int, message: str) -> None:
        """Fold the last *count* commits into one with *message*."""
        if count < 1:
            raise ValueError("count must be at least 1")
        await self._check("reset --soft", cwd, "reset", "--soft", f"HEAD~{count}")
        await self._check("commit", cwd, "commit", "-m", message)

    async def revert(self, cwd: Path | str, ref: str = "HEAD") -> None:
        _check_ref(ref)
        await self._check("revert", cwd, "revert", "--no-edit", ref)

    async def reset(
        self, cwd: Path | str, mode: ResetMode, target: str = "HEAD"
    ) -> None:
        _check_ref(target)
        await self._check("reset", cwd, "reset", f"--{mode}", target)

    async def cherry_pick(self, cwd: Path | str, commit: str) -> None:
        _check_ref(commit)
        await self._check("cherry-pick", cwd, "cherry-pick", commit)

    # ── Remote sync ──

    async def push(
        self,
        cwd: Path | str,
        credential: str | None = None,
        remote: str | None = None,
        branch: str | None = None,
        *,
        set_upstream: bool = False,
        force: bool = False,
    ) -> None:
        args = ["push"]
        if set_upstream:
            args.append("-u")
        if force:
            args.append("--force")
        args.append(remote or self._config.default_remote)
        if branch:
            args.append(branch)
        await self._check("push", cwd, *args, credential=credential)

    async def pull(self, cwd: Path | str, credential: str | None = None) -> None:
        await self._check(
            "pull", cwd, "pull", "--rebase", "--autostash", credential=credential
        )

    async def fetch(
        self,
        cwd: Path | str,
        refspec: str | None = None,
        credential: str | None = None,
        remote: str | None = None,
    ) -> None:
        args = ["fetch", remote or self._config.default_remote]
        if refspec:
            args.append(refspec)
        await self._check("fetch", cwd, *args, credential=credential)

    # ── Diffs & history ──

    async def diff(self, cwd: Path | str, path: str | None = None) -> str:
        """Staged diff followed by unstaged diff."""
        unstaged_args = ["diff", "--no-color"]
        staged_args = ["diff", "--cached", "--no-color"]
        if path:
            unstaged_args.extend(["--", path])
            staged_args.extend(["--", path])

        unstaged, staged = await asyncio.gather(
            self._run(cwd, *unstaged_args), self._run(cwd, *staged_args)
        )
        return "\n".join(part for part in (staged.stdout, unstaged.stdout) if part)

    async def file_diff(
        self, cwd: Path | str, path: str, base: str, target: str | None = None
    ) -> str:
        args = ["diff", "--no-color", base]
        if target:
            args.append(target)
        args.extend(["--", path])
        result = await self._run(cwd, *args)
        return result.stdout

    async def log(self, cwd: Path | str, limit: int = 50) -> list[CommitInfo]:
        result = await self._run(
            cwd,
            "log",
            f"--max-count={limit}",
            f"--format={LOG_FORMAT}{LOG_SEPARATOR}",
        )
        if not result.ok:
            return []
        return parse_log(result.stdout)

    async def commit_files(self, cwd: Path | str, commit: str) -> list[FileStatus]:
        result = await self._check(
            "show", cwd, "show", "--name-status", "--format=", commit
        )
        return parse_name_status(result.stdout)

    async def blame(self, cwd: Path | str, path: str) -> list[BlameInfo]:
        result = await self._check("blame", cwd, "blame", "--line-porcelain", "--", path)
        return parse_blame(result.stdout)

    async def reflog(self, cwd: Path | str, limit: int = 100) -> list[ReflogEntry]:
        result = await self._run(
            cwd,
            "reflog",
            f"--max-count={limit}",
            f"--format={REFLOG_FORMAT}{REFLOG_SEPARATOR}",
        )
        if not result.ok:
            return []
        return parse_reflog(result.stdout)

    # ── Branches ──

    async def branches(self, cwd: Path | str) -> list[BranchInfo]:
        result = await self._run(
            cwd, "branch", "-a", "--no-color", f"--format={BRANCH_FORMAT}"
        )
        if not result.ok:
            return []
        return parse_branches(result.stdout)

    async def current_branch(self, cwd: Path | str) -> str:
        result = await self._run(cwd, "branch", "--show-current")
        return result.stdout.strip()

    async def checkout(
        self, cwd: Path | str, branch: str, *, create: bool = False
    ) -> None:
        _check_branch_name(branch)
        args = ["checkout", "-b", branch] if create else ["checkout", branch]
        await self._check("checkout", cwd, *args)

    async def checkout_commit(self, cwd: Path | str, ref: str) -> None:
        _check_ref(ref)
        await self._check("checkout", cwd, "checkout", ref)

    async def checkout_pull_request(
        self,
        cwd: Path | str,
        number: int,
        branch: str | None = None,
        credential: str | None = None,
    ) -> str:
        """Fetch a pull request head into a local branch and switch to it."""
        local_branch = branch or f"pr/{number}"
        _check_branch_name(local_branch)
        await self.fetch(
            cwd, f"pull/{number}/head:{local_branch}", credential=credential
        )
        await self._check("checkout", cwd, "checkout", local_branch)
        return local_branch

    async def delete_branch(self, cwd: Path | str, branch: str) -> None:
        _check_branch_name(branch)
        await self._check("branch -D", cwd, "branch", "-D", branch)

    async def delete_remote_branch(
        self,
        cwd: Path | str,
        branch: str,
        credential: str | None = None,
        remote: str | None = None,
    ) -> None:
        _check_branch_name(branch)
        await self._check(
            "push --delete",
            cwd,
            "push",
            remote or self._config.default_remote,
            "--delete",
            branch,
            credential=credential,
        )

    async def merge(self, cwd: Path | str, branch: str) -> None:
        _check_ref(branch)
        await self._check("merge", cwd, "merge", branch)

    async def rebase(self, cwd: Path | str, branch: str) -> None:
        """Rebase onto *branch*; a failed rebase is aborted before raising."""
        _check_ref(branch)
        result = await self._run(cwd, "rebase", branch)
        if result.ok:
            return
        await self.abort_rebase(cwd)
        raise GitCommandError("rebase", result.stderr, result.exit_code, result.stdout)

    async def abort_rebase(self, cwd: Path | str) -> None:
        result = await self._run(cwd, "rebase", "--abort")
        if not result.ok:
            logger.warning(
                "git_rebase_abort_failed", cwd=str(cwd), stderr=result.stderr.strip()
            )

    # ── Stash ──

    async def stash_push(self, cwd: Path | str, message: str | None = None) -> bool:
        """Shelve local changes. Returns False when there was nothing to stash."""
        if message is None:
            message = f"gitengine auto-stash {datetime.now(UTC).isoformat()}"
        result = await self._run(cwd, "stash", "push", "-m", message)
        if classify.is_nothing_to_stash(result.output):
            return False
        if not result.ok:
            raise GitCommandError("stash", result.stderr, result.exit_code, result.stdout)
        return True

    async def stash_pop(self, cwd: Path | str) -> None:
        await self._check("stash pop", cwd, "stash", "pop")

    # ── Conflicts ──

    async def checkout_side(
        self, cwd: Path | str, path: str, side: ConflictSide
    ) -> None:
        await self._check(f"checkout --{side}", cwd, "checkout", f"--{side}", "--", path)

    # ── Tags ──

    async def list_tags(self, cwd: Path | str) -> list[TagInfo]:
        result = await self._run(
            cwd, "tag", "-l", "--sort=-creatordate", f"--format={TAG_FORMAT}"
        )
        if not result.ok:
            return []
        return parse_tags(result.stdout)

    async def create_tag(
        self,
        cwd: Path | str,
        name: str,
        message: str | None = None,
        commit: str | None = None,
    ) -> None:
        _check_ref(name)
        args = ["tag", "-a", name, "-m", message] if message else ["tag", name]
        if commit:
            args.append(commit)
        await self._check("tag", cwd, *args)

    async def push_tag(
        self, cwd: Path | str, name: str, credential: str | None = None
    ) -> None:
        _check_ref(name)
        await self._check(
            "push tag",
            cwd,
            "push",
            self._config.default_remote,
            f"refs/tags/{name}",
            credential=credential,
        )

    async def delete_tag(self, cwd: Path | str, name: str) -> None:
        _check_ref(name)
        await self._check("tag -d", cwd, "tag", "-d", name)

    async def delete_remote_tag(
        self, cwd: Path | str, name: str, credential: str | None = None
    ) -> None:
        _check_ref(name)
        await self._check(
            "push delete tag",
            cwd,
            "push",
            self._config.default_remote,
            f":refs/tags/{name}",
            credential=credential,
        )

    # ── LFS ──

    async def lfs_installed(self, cwd: Path | str) -> bool:
        result = await self._run(cwd, "lfs", "env")
        return result.ok

    async def lfs_track(self, cwd: Path | str, pattern: str) -> None:
        await self._check("lfs track", cwd, "lfs", "track", pattern)

    async def lfs_untrack(self, cwd: Path | str, pattern: str) -> None:
        await self._check("lfs untrack", cwd, "lfs", "untrack", pattern)

    async def lfs_tracked_files(self, cwd: Path | str) -> list[str]:
        result = await self._run(cwd, "lfs", "ls-files", "-n")
        if not result.ok:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]
