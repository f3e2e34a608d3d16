"""Tests pinning the git error substrings the engine depends on."""

import pytest

from gitengine.git.classify import (
    CONFLICT_MARKERS,
    LOCK_MARKERS,
    NOTHING_TO_STASH_MARKERS,
    FailureKind,
    classify_failure,
    is_conflict,
    is_lock_contention,
    is_nothing_to_stash,
)


class TestMarkers:
    def test_pinned_substrings(self):
        assert LOCK_MARKERS == ("could not write index", "index.lock")
        assert CONFLICT_MARKERS == ("CONFLICT", "conflict")
        assert NOTHING_TO_STASH_MARKERS == ("No local changes",)


class TestClassifyFailure:
    @pytest.mark.parametrize(
        ("output", "kind"),
        [
            (
                "fatal: Unable to create '/repo/.git/index.lock': File exists.",
                FailureKind.LOCK,
            ),
            ("error: could not write index", FailureKind.LOCK),
            (
                "CONFLICT (content): Merge conflict in file.txt",
                FailureKind.CONFLICT,
            ),
            (
                "hint: Resolve all conflicts manually, mark them as resolved",
                FailureKind.CONFLICT,
            ),
            ("No local changes to save", FailureKind.NOTHING_TO_STASH),
            ("fatal: could not read from remote repository", FailureKind.OTHER),
            ("", FailureKind.OTHER),
        ],
    )
    def test_kinds(self, output, kind):
        assert classify_failure(output) is kind

    def test_helpers(self):
        assert is_lock_contention("index.lock exists")
        assert not is_lock_contention("CONFLICT")
        assert is_conflict("Merge conflict in a.txt")
        assert not is_conflict("rejected: non-fast-forward")
        assert is_nothing_to_stash("No local changes to save\n")
