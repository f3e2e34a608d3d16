"""Data models for git invocations and parsed git output."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

FileState = Literal["added", "modified", "deleted", "renamed", "untracked", "conflict"]


class ExecResult(BaseModel):
    """Outcome of a single git subprocess."""

    model_config = ConfigDict(frozen=True)

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Both streams joined, for failure classification."""
        return f"{self.stderr}\n{self.stdout}"


class FileStatus(BaseModel):
    """One working-tree or index entry.

    A path changed both in the index and in the worktree appears twice,
    once with staged=True and once with staged=False. Conflict entries are
    always staged=False.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    status: FileState
    staged: bool = False
    old_path: str | None = None


class CommitInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    short_hash: str
    message: str
    author: str
    email: str
    date: str
    refs: str = ""


class BranchInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    current: bool = False
    remote: bool = False
    last_commit: str | None = None


class BlameInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: int = Field(ge=1)
    hash: str
    short_hash: str
    author: str = ""
    email: str = ""
    date: str = ""
    message: str = ""


class ReflogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    short_hash: str
    action: str
    description: str
    date: str
    index: int = Field(ge=0)


class TagInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    date: str = ""
    message: str = ""
    hash: str = ""


class SyncResult(BaseModel):
    """Result of pull-then-push.

    success is True only when both phases completed; conflicts is filled
    only when the pull phase stopped on merge conflicts.
    """

    model_config = ConfigDict(frozen=True)

    success: bool = False
    pulled: bool = False
    pushed: bool = False
    conflicts: list[str] = []
    error: str | None = None


class CommandIssued(BaseModel):
    """Payload of a command.issued activity event."""

    model_config = ConfigDict(frozen=True)

    id: str
    command: str
    repo_path: str
    started_at: float


class CommandCompleted(BaseModel):
    """Payload of a command.completed activity event."""

    model_config = ConfigDict(frozen=True)

    id: str
    command: str
    repo_path: str
    started_at: float
    completed_at: float
    duration_ms: int
    exit_code: int
    status: Literal["success", "error"]
    error_message: str | None = None
