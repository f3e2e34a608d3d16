"""Author/committer identity override applied to every git invocation."""

from pydantic import BaseModel, ConfigDict


class IdentityContext(BaseModel):
    """Name and email forced onto history-creating commands.

    Immutable: holders swap the whole value, so an invocation that snapshots
    it at start never observes a half-applied change.
    """

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    email: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.name and not self.email

    def to_env(self) -> dict[str, str]:
        env: dict[str, str] = {}
        if self.name:
            env["GIT_AUTHOR_NAME"] = self.name
            env["GIT_COMMITTER_NAME"] = self.name
        if self.email:
            env["GIT_AUTHOR_EMAIL"] = self.email
            env["GIT_COMMITTER_EMAIL"] = self.email
        return env


EMPTY_IDENTITY = IdentityContext()
