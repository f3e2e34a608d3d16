"""Shared fixtures for gitengine tests."""

from __future__ import annotations

import os

import pytest

from gitengine.core.config import GitEngineConfig
from gitengine.core.events import EventBus


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Prevent .env file and shell env from leaking into tests."""
    monkeypatch.setitem(GitEngineConfig.model_config, "env_file", None)
    for key in list(os.environ):
        if key.startswith("GITENGINE_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def askpass_dir(tmp_path):
    path = tmp_path / "askpass"
    path.mkdir()
    return path


@pytest.fixture
def config(askpass_dir):
    return GitEngineConfig(
        askpass_dir=askpass_dir,
        stash_retry_delay_seconds=0,
    )


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def repo(tmp_path):
    path = tmp_path / "repo"
    path.mkdir()
    return path
