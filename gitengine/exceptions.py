"""Shared exception types for gitengine."""


class GitEngineError(Exception):
    """Base exception for all gitengine errors."""


class ConfigError(GitEngineError):
    """Configuration is invalid or missing."""


class CredentialError(GitEngineError):
    """The askpass helper for an authenticated invocation could not be created."""


class GitCommandError(GitEngineError):
    """A git invocation exited non-zero where success was expected."""

    def __init__(
        self, operation: str, stderr: str, exit_code: int = 1, stdout: str = ""
    ) -> None:
        self.operation = operation
        self.stderr = stderr
        self.stdout = stdout
        self.exit_code = exit_code
        super().__init__(f"git {operation} failed: {stderr.strip()}")

    @property
    def output(self) -> str:
        """Both streams joined, for failure classification."""
        return f"{self.stderr}\n{self.stdout}"
