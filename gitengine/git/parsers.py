"""Pure parsers for git's machine-readable output.

Every parser is total: records it cannot make sense of are skipped, so a
slightly different git version degrades to a partial result instead of an
exception.
"""

import re
from datetime import UTC, datetime

from gitengine.git.models import (
    BlameInfo,
    BranchInfo,
    CommitInfo,
    FileState,
    FileStatus,
    ReflogEntry,
    TagInfo,
)

LOG_SEPARATOR = "---COMMIT_SEPARATOR---"
LOG_FORMAT = "%H%n%h%n%s%n%an%n%ae%n%ci%n%D"
REFLOG_SEPARATOR = "---REFLOG_SEP---"
REFLOG_FORMAT = "%H%n%h%n%gs%n%ci"
BRANCH_FORMAT = "%(HEAD)|%(refname)|%(objectname:short)"
TAG_FORMAT = "%(refname:short)|%(creatordate:iso)|%(subject)|%(objectname:short)"

_HASH_RE = re.compile(r"^[0-9a-f]{4,64}$")
_BLAME_HEADER_RE = re.compile(r"^([0-9a-f]{40}|[0-9a-f]{64}) (\d+) (\d+)")
_REFLOG_ACTION_RE = re.compile(r"^(\w+)\b[^:]*:")

_STATUS_CODES: dict[str, FileState] = {
    "A": "added",
    "C": "added",
    "M": "modified",
    "T": "modified",
    "D": "deleted",
    "R": "renamed",
    "U": "conflict",
}


def _code_to_state(code: str) -> FileState:
    return _STATUS_CODES.get(code, "modified")


# ── Status ──────────────────────────────────────────────────────────


def parse_status(output: str) -> list[FileStatus]:
    """Parse ``git status --porcelain=v2 -z``.

    Ordinary (``1``) and rename/copy (``2``) records are split into an index
    entry and a worktree entry from the two-letter XY code. A ``2`` record is
    followed by a separate NUL-terminated field holding the original path.
    """
    files: list[FileStatus] = []
    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if not entry:
            continue

        kind = entry[0]
        if kind == "1":
            # 1 XY sub mH mI mW hH hI path
            parts = entry.split(" ", 8)
            if len(parts) < 9 or len(parts[1]) != 2:
                continue
            files.extend(_split_xy(parts[1], parts[8]))
        elif kind == "2":
            # 2 XY sub mH mI mW hH hI Xscore path \0 origPath
            parts = entry.split(" ", 9)
            old_path = None
            if i < len(entries) and entries[i]:
                old_path = entries[i]
                i += 1
            if len(parts) < 10 or len(parts[1]) != 2:
                continue
            files.extend(_split_xy(parts[1], parts[9], old_path=old_path))
        elif kind == "u":
            # u XY sub m1 m2 m3 mW h1 h2 h3 path
            parts = entry.split(" ", 10)
            if len(parts) < 11:
                continue
            files.append(FileStatus(path=parts[10], status="conflict", staged=False))
        elif kind == "?" and entry.startswith("? "):
            files.append(FileStatus(path=entry[2:], status="untracked", staged=False))
        # "#" headers and "!" ignored entries carry no change

    return files


def _split_xy(
    xy: str, path: str, *, old_path: str | None = None
) -> list[FileStatus]:
    result: list[FileStatus] = []
    for code, staged in ((xy[0], True), (xy[1], False)):
        if code in (".", "?", "!"):
            continue
        state = _code_to_state(code)
        result.append(
            FileStatus(
                path=path,
                status=state,
                staged=staged,
                old_path=old_path if code in ("R", "C") else None,
            )
        )
    return result


# ── Log / reflog ────────────────────────────────────────────────────


def _split_records(output: str, separator: str) -> list[list[str]]:
    records = []
    for block in output.split(separator):
        block = block.strip()
        if not block:
            continue
        lines = block.split("\n")
        if not _HASH_RE.match(lines[0].strip()):
            continue
        records.append(lines)
    return records


def _field(lines: list[str], index: int) -> str:
    return lines[index].strip() if index < len(lines) else ""


def parse_log(output: str, separator: str = LOG_SEPARATOR) -> list[CommitInfo]:
    """Parse ``git log --format=LOG_FORMAT<separator>`` output, newest first."""
    return [
        CommitInfo(
            hash=_field(lines, 0),
            short_hash=_field(lines, 1),
            message=_field(lines, 2),
            author=_field(lines, 3),
            email=_field(lines, 4),
            date=_field(lines, 5),
            refs=_field(lines, 6),
        )
        for lines in _split_records(output, separator)
    ]


def reflog_action(description: str) -> str:
    """Leading verb of a reflog subject, e.g. ``checkout`` or ``pull``."""
    match = _REFLOG_ACTION_RE.match(description)
    return match.group(1) if match else "unknown"


def parse_reflog(output: str, separator: str = REFLOG_SEPARATOR) -> list[ReflogEntry]:
    entries: list[ReflogEntry] = []
    for lines in _split_records(output, separator):
        description = _field(lines, 2)
        entries.append(
            ReflogEntry(
                hash=_field(lines, 0),
                short_hash=_field(lines, 1),
                action=reflog_action(description),
                description=description,
                date=_field(lines, 3),
                index=len(entries),
            )
        )
    return entries


# ── Blame ───────────────────────────────────────────────────────────


def _iso_from_epoch(raw: str) -> str:
    try:
        return datetime.fromtimestamp(int(raw), UTC).isoformat()
    except (ValueError, OverflowError, OSError):
        return ""


def parse_blame(output: str) -> list[BlameInfo]:
    """Parse ``git blame --line-porcelain``.

    Metadata accumulates from the header line until the tab-prefixed
    content line, which emits the record for that source line.
    """
    result: list[BlameInfo] = []
    current: dict[str, str | int] | None = None

    for line in output.split("\n"):
        if not line:
            continue
        if line.startswith("\t"):
            if current is not None:
                result.append(BlameInfo(**current))  # type: ignore[arg-type]
                current = None
            continue

        header = _BLAME_HEADER_RE.match(line)
        if header:
            commit = header.group(1)
            final_line = int(header.group(3))
            current = (
                {"hash": commit, "short_hash": commit[:7], "line": final_line}
                if final_line >= 1
                else None
            )
            continue

        if current is None:
            continue
        if line.startswith("author "):
            current["author"] = line[len("author ") :]
        elif line.startswith("author-mail "):
            current["email"] = line[len("author-mail ") :].strip().strip("<>")
        elif line.startswith("author-time "):
            current["date"] = _iso_from_epoch(line[len("author-time ") :].strip())
        elif line.startswith("summary "):
            current["message"] = line[len("summary ") :]

    return result


# ── Branches / tags / commit files ──────────────────────────────────


def parse_branches(output: str) -> list[BranchInfo]:
    """Parse ``git branch -a --format=BRANCH_FORMAT``.

    Remote branches lose their ``refs/remotes/<remote>/`` prefix; symbolic
    ``<remote>/HEAD`` pointers and detached-HEAD pseudo entries are skipped.
    """
    branches: list[BranchInfo] = []
    for line in output.splitlines():
        parts = line.split("|")
        if len(parts) != 3:
            continue
        head, refname, short = (p.strip() for p in parts)
        if refname.startswith("refs/heads/"):
            name = refname[len("refs/heads/") :]
            remote = False
        elif refname.startswith("refs/remotes/"):
            remainder = refname[len("refs/remotes/") :]
            if "/" not in remainder:
                continue
            name = remainder.split("/", 1)[1]
            if name == "HEAD":
                continue
            remote = True
        else:
            continue
        if not name:
            continue
        branches.append(
            BranchInfo(
                name=name,
                current=head == "*" and not remote,
                remote=remote,
                last_commit=short or None,
            )
        )
    return branches


def parse_tags(output: str) -> list[TagInfo]:
    tags: list[TagInfo] = []
    for line in output.splitlines():
        parts = line.split("|")
        if not parts[0].strip():
            continue
        if len(parts) < 4:
            tags.append(TagInfo(name=parts[0].strip()))
            continue
        tags.append(
            TagInfo(
                name=parts[0].strip(),
                date=parts[1].strip(),
                message="|".join(parts[2:-1]).strip(),
                hash=parts[-1].strip(),
            )
        )
    return tags


def _unquote(path: str) -> str:
    if len(path) >= 2 and path.startswith('"') and path.endswith('"'):
        return path[1:-1]
    return path


def parse_name_status(output: str) -> list[FileStatus]:
    """Parse ``git show --name-status --format=`` for a single commit."""
    files: list[FileStatus] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 2 or not parts[0]:
            continue
        code = parts[0][0]
        if code in ("R", "C") and len(parts) >= 3:
            files.append(
                FileStatus(
                    path=_unquote(parts[2]),
                    status=_code_to_state(code),
                    old_path=_unquote(parts[1]),
                )
            )
        else:
            files.append(
                FileStatus(path=_unquote(parts[1]), status=_code_to_state(code))
            )
    return files
