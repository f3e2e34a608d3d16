"""Classification of git's human-readable failure text.

git reports lock contention, merge conflicts and empty stashes only in prose,
so every substring the engine relies on lives here.
"""

from enum import Enum

LOCK_MARKERS: tuple[str, ...] = ("could not write index", "index.lock")
CONFLICT_MARKERS: tuple[str, ...] = ("CONFLICT", "conflict")
NOTHING_TO_STASH_MARKERS: tuple[str, ...] = ("No local changes",)


class FailureKind(Enum):
    LOCK = "lock"
    CONFLICT = "conflict"
    NOTHING_TO_STASH = "nothing_to_stash"
    OTHER = "other"


def _contains_any(output: str, markers: tuple[str, ...]) -> bool:
    return any(marker in output for marker in markers)


def is_lock_contention(output: str) -> bool:
    return _contains_any(output, LOCK_MARKERS)


def is_conflict(output: str) -> bool:
    return _contains_any(output, CONFLICT_MARKERS)


def is_nothing_to_stash(output: str) -> bool:
    return _contains_any(output, NOTHING_TO_STASH_MARKERS)


def classify_failure(output: str) -> FailureKind:
    """Map combined stderr/stdout of a failed command to a FailureKind.

    Checked in order: nothing-to-stash, lock, conflict.
    """
    if is_nothing_to_stash(output):
        return FailureKind.NOTHING_TO_STASH
    if is_lock_contention(output):
        return FailureKind.LOCK
    if is_conflict(output):
        return FailureKind.CONFLICT
    return FailureKind.OTHER
