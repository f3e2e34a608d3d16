"""Single-use GIT_ASKPASS helpers.

Each authenticated invocation gets its own tiny script that prints the token
and is removed as soon as the subprocess exits, so credentials never land in
the repository config or the remote URL.
"""

import contextlib
import os
import shlex
import sys
import tempfile
from collections.abc import Iterator
from pathlib import Path

import structlog

from gitengine.exceptions import CredentialError

logger = structlog.get_logger()

_PREFIX = "gitengine-askpass-"
_BATCH_SPECIAL = str.maketrans(
    {c: f"^{c}" for c in "^&|<>()"} | {"%": "%%", "\r": "", "\n": ""}
)


def askpass_body(secret: str, windows: bool) -> str:
    """Script text that prints *secret* verbatim.

    ``echo(`` avoids the ``echo on``/``echo off`` and empty-argument forms.
    """
    if windows:
        return f"@echo off\r\necho({secret.translate(_BATCH_SPECIAL)}\r\n"
    return f"#!/bin/sh\nprintf '%s\\n' {shlex.quote(secret)}\n"


class CredentialInjector:
    def __init__(self, directory: Path | None = None) -> None:
        self._directory = directory

    def create(self, secret: str) -> Path:
        """Write an owner-only executable that echoes *secret* on any invocation."""
        is_windows = sys.platform == "win32"
        suffix = ".bat" if is_windows else ".sh"
        body = askpass_body(secret, is_windows)

        try:
            fd, name = tempfile.mkstemp(
                prefix=_PREFIX, suffix=suffix, dir=self._directory
            )
        except OSError as e:
            raise CredentialError(f"Could not create askpass helper: {e}") from e

        path = Path(name)
        try:
            with os.fdopen(fd, "w", newline="") as f:
                f.write(body)
            os.chmod(path, 0o700)
        except OSError as e:
            self.destroy(path)
            raise CredentialError(f"Could not write askpass helper: {e}") from e

        logger.debug("askpass_created", path=str(path))
        return path

    def destroy(self, path: Path) -> None:
        """Remove the helper. Safe to call twice; never raises."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug("askpass_cleanup_failed", path=str(path), error=str(e))

    @contextlib.contextmanager
    def askpass(self, secret: str) -> Iterator[Path]:
        path = self.create(secret)
        try:
            yield path
        finally:
            self.destroy(path)


def credential_env(askpass_path: Path) -> dict[str, str]:
    """Env vars pointing git at *askpass_path* with stored helpers disabled.

    credential.helper is forced empty because git consults configured
    helpers before GIT_ASKPASS.
    """
    return {
        "GIT_ASKPASS": str(askpass_path),
        "GIT_CONFIG_NOSYSTEM": "1",
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": "credential.helper",
        "GIT_CONFIG_VALUE_0": "",
    }


def redact(text: str, secret: str | None) -> str:
    if not secret:
        return text
    return text.replace(secret, "***")
