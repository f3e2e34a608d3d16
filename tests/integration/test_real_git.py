"""End-to-end tests against a real git binary and a local bare remote."""

from __future__ import annotations

import shutil

import pytest

from gitengine.app import build_engine
from gitengine.exceptions import GitCommandError
from gitengine.git.sync import CONFLICT_ERROR

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture(autouse=True)
def _isolated_git(monkeypatch, tmp_path):
    global_config = tmp_path / "gitconfig"
    global_config.write_text("")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for key in (
        "GIT_AUTHOR_NAME",
        "GIT_AUTHOR_EMAIL",
        "GIT_COMMITTER_NAME",
        "GIT_COMMITTER_EMAIL",
        "GIT_DIR",
        "GIT_WORK_TREE",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def engine(config):
    engine = build_engine(config, configure_logging=False)
    engine.set_identity("Test User", "test@example.com")
    return engine


async def _commit(engine, repo, name, content, message):
    (repo / name).write_text(content)
    await engine.service.stage(repo, [name])
    await engine.service.commit(repo, message)


async def _head(engine, repo) -> str:
    result = await engine.executor.execute(repo, ["rev-parse", "HEAD"])
    return result.stdout.strip()


@pytest.fixture
async def upstream(engine, tmp_path):
    """A bare remote seeded from working copy ``a`` with one commit on main."""
    bare = tmp_path / "remote.git"
    result = await engine.executor.execute(
        tmp_path, ["init", "--bare", "-b", "main", str(bare)]
    )
    assert result.ok, result.stderr

    a = tmp_path / "a"
    await engine.service.init(a, "main")
    await _commit(engine, a, "file.txt", "base\n", "Initial commit")
    await engine.service.add_remote(a, "origin", str(bare))
    await engine.service.push(a, branch="main", set_upstream=True)
    return bare, a


@pytest.fixture
async def clone(engine, upstream, tmp_path):
    bare, _ = upstream
    b = tmp_path / "b"
    await engine.service.clone(str(bare), b)
    return b


class TestSync:
    async def test_local_commit_pushed(self, engine, upstream, clone):
        bare, _ = upstream
        await _commit(engine, clone, "notes.txt", "hello\n", "Add notes")

        result = await engine.sync.sync(clone)

        assert result.success
        assert result.pulled
        assert result.pushed
        assert result.conflicts == []
        remote_log = await engine.executor.execute(
            bare, ["log", "-1", "--format=%s", "main"]
        )
        assert remote_log.stdout.strip() == "Add notes"

    async def test_sync_is_idempotent(self, engine, clone):
        await _commit(engine, clone, "notes.txt", "hello\n", "Add notes")
        first = await engine.sync.sync(clone)
        head = await _head(engine, clone)
        second = await engine.sync.sync(clone)
        assert first == second
        assert await _head(engine, clone) == head

    async def test_conflicting_remote_change(self, engine, upstream, clone):
        _, a = upstream
        await _commit(engine, a, "file.txt", "remote change\n", "Remote edit")
        await engine.service.push(a)
        await _commit(engine, clone, "file.txt", "local change\n", "Local edit")

        result = await engine.sync.sync(clone)

        assert not result.success
        assert not result.pulled
        assert not result.pushed
        assert result.conflicts == ["file.txt"]
        assert result.error == CONFLICT_ERROR

    async def test_resolve_conflict_with_theirs(self, engine, upstream, clone):
        _, a = upstream
        await _commit(engine, a, "file.txt", "remote change\n", "Remote edit")
        await engine.service.push(a)
        await _commit(engine, clone, "file.txt", "local change\n", "Local edit")
        await engine.sync.sync(clone)

        await engine.sync.resolve_conflict(clone, "file.txt", "theirs")

        files = await engine.service.status(clone)
        assert not any(f.status == "conflict" for f in files)


class TestStashWrappedCheckout:
    async def test_dirty_changes_follow_new_branch(self, engine, upstream):
        _, a = upstream
        (a / "file.txt").write_text("work in progress\n")

        await engine.sync.checkout_branch(a, "feature", create=True)

        assert await engine.service.current_branch(a) == "feature"
        assert (a / "file.txt").read_text() == "work in progress\n"
        files = await engine.service.status(a)
        assert [(f.path, f.status, f.staged) for f in files] == [
            ("file.txt", "modified", False)
        ]
        stashes = await engine.executor.execute(a, ["stash", "list"])
        assert stashes.stdout == ""

    async def test_clean_checkout(self, engine, upstream):
        _, a = upstream
        await engine.sync.checkout_branch(a, "feature", create=True)
        await engine.sync.checkout_branch(a, "main")
        assert await engine.service.current_branch(a) == "main"


class TestRebaseAbort:
    async def test_failed_rebase_restores_branch_and_head(self, engine, upstream):
        _, a = upstream
        await engine.service.checkout(a, "feature", create=True)
        await _commit(engine, a, "file.txt", "feature line\n", "Feature edit")
        await engine.service.checkout(a, "main")
        await _commit(engine, a, "file.txt", "main line\n", "Main edit")
        await engine.service.checkout(a, "feature")
        before = await _head(engine, a)

        with pytest.raises(GitCommandError):
            await engine.sync.rebase_branch(a, "main")

        assert await engine.service.current_branch(a) == "feature"
        assert await _head(engine, a) == before
        assert await engine.service.status(a) == []


class TestCredentialHygiene:
    async def test_askpass_removed_after_real_invocation(
        self, engine, upstream, askpass_dir
    ):
        _, a = upstream
        result = await engine.executor.execute(a, ["fetch", "origin"], "s3cret")
        assert result.ok, result.stderr
        assert list(askpass_dir.iterdir()) == []
        config = (a / ".git" / "config").read_text()
        assert "s3cret" not in config

    async def test_clone_progress_reported(self, engine, upstream, tmp_path):
        bare, _ = upstream
        lines = []
        await engine.service.clone(str(bare), tmp_path / "c", on_progress=lines.append)
        assert any("Cloning into" in line for line in lines)


    async def test_clone_into_relative_path(
        self, engine, upstream, tmp_path, monkeypatch
    ):
        bare, _ = upstream
        monkeypatch.chdir(tmp_path)
        await engine.service.clone(str(bare), "work/dest")
        assert (tmp_path / "work" / "dest" / ".git").is_dir()
        assert not (tmp_path / "work" / "work").exists()
        assert (tmp_path / "work" / "dest" / "file.txt").read_text() == "base\n"


class TestHistory:
    async def test_log_and_blame(self, engine, upstream):
        _, a = upstream
        await _commit(engine, a, "file.txt", "base\nsecond\n", "Add second line")

        commits = await engine.service.log(a)
        assert [c.message for c in commits] == ["Add second line", "Initial commit"]
        assert commits[0].author == "Test User"
        assert commits[0].email == "test@example.com"

        blame = await engine.service.blame(a, "file.txt")
        assert [b.line for b in blame] == [1, 2]
        assert blame[0].message == "Initial commit"
        assert blame[1].message == "Add second line"
        assert blame[0].email == "test@example.com"

    async def test_reflog_records_checkout(self, engine, upstream):
        _, a = upstream
        await engine.service.checkout(a, "feature", create=True)
        entries = await engine.service.reflog(a)
        assert entries[0].action == "checkout"
        assert entries[0].index == 0

    async def test_branches_lists_remote_tracking(self, engine, clone):
        branches = await engine.service.branches(clone)
        assert ("main", True, False) in [(b.name, b.current, b.remote) for b in branches]
        assert ("main", False, True) in [(b.name, b.current, b.remote) for b in branches]
