"""Scripted executor double for service and orchestrator tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from gitengine.git.models import ExecResult
from gitengine.git.service import GitService
from gitengine.git.sync import SyncOrchestrator


@dataclass
class Call:
    args: list[str]
    credential: str | None = None
    kwargs: dict[str, Any] = field(default_factory=dict)


class ScriptedExecutor:
    """Replays queued results in order and records every argv.

    An empty queue answers with a successful, empty result.
    """

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self._responses: list[ExecResult] = []

    def queue(self, *results: ExecResult) -> None:
        self._responses.extend(results)

    def argv(self) -> list[list[str]]:
        return [c.args for c in self.calls]

    async def execute(self, cwd, args, credential=None, **kwargs) -> ExecResult:
        self.calls.append(Call(args=list(args), credential=credential, kwargs=kwargs))
        if self._responses:
            return self._responses.pop(0)
        return ExecResult()


def ok(stdout: str = "", stderr: str = "") -> ExecResult:
    return ExecResult(stdout=stdout, stderr=stderr, exit_code=0)


def fail(stderr: str = "", stdout: str = "", code: int = 1) -> ExecResult:
    return ExecResult(stdout=stdout, stderr=stderr, exit_code=code)


@pytest.fixture
def executor():
    return ScriptedExecutor()


@pytest.fixture
def service(executor, config):
    return GitService(executor, config)  # type: ignore[arg-type]


@pytest.fixture
def orchestrator(service, config):
    return SyncOrchestrator(service, config)
