"""Pure functions to format git data for terminal display."""

from gitengine.git.models import (
    BlameInfo,
    BranchInfo,
    CommitInfo,
    FileStatus,
    ReflogEntry,
    SyncResult,
)

_STATUS_MARK = {
    "modified": "M",
    "added": "A",
    "deleted": "D",
    "renamed": "R",
    "conflict": "U",
    "untracked": "?",
}


def _file_line(change: FileStatus) -> str:
    indicator = _STATUS_MARK.get(change.status, "?")
    if change.old_path:
        return f"  {indicator} {change.old_path} -> {change.path}"
    return f"  {indicator} {change.path}"


def format_status(files: list[FileStatus], branch: str = "") -> str:
    """Group status entries into staged, unstaged, conflicted and untracked."""
    lines: list[str] = []
    if branch:
        lines.append(f"On branch {branch}")

    conflicts = [f for f in files if f.status == "conflict"]
    untracked = [f for f in files if f.status == "untracked"]
    tracked = [f for f in files if f.status not in ("conflict", "untracked")]
    staged = [f for f in tracked if f.staged]
    unstaged = [f for f in tracked if not f.staged]

    for title, group in (
        ("Conflicts:", conflicts),
        ("Staged:", staged),
        ("Unstaged:", unstaged),
        ("Untracked:", untracked),
    ):
        if not group:
            continue
        if lines:
            lines.append("")
        lines.append(title)
        lines.extend(_file_line(f) for f in group)

    if not files:
        if lines:
            lines.append("")
        lines.append("Working tree clean")

    return "\n".join(lines)


def format_branches(branches: list[BranchInfo], max_display: int = 30) -> str:
    if not branches:
        return "No branches found."

    lines: list[str] = []
    shown = branches[:max_display]
    for branch in shown:
        marker = "* " if branch.current else "  "
        name = f"remote: {branch.name}" if branch.remote else branch.name
        commit = f" ({branch.last_commit})" if branch.last_commit else ""
        lines.append(f"{marker}{name}{commit}")

    if len(branches) > max_display:
        lines.append(f"... and {len(branches) - max_display} more")
    return "\n".join(lines)


def format_log(entries: list[CommitInfo], max_entries: int = 20) -> str:
    if not entries:
        return "No commits found."

    lines: list[str] = []
    for entry in entries[:max_entries]:
        refs = f" ({entry.refs})" if entry.refs else ""
        lines.append(f"{entry.short_hash}{refs} {entry.message}")
        lines.append(f"    {entry.author} <{entry.email}>, {entry.date}")
    return "\n".join(lines)


def format_reflog(entries: list[ReflogEntry], max_entries: int = 30) -> str:
    if not entries:
        return "Reflog is empty."
    return "\n".join(
        f"HEAD@{{{e.index}}} {e.short_hash} [{e.action}] {e.description}"
        for e in entries[:max_entries]
    )


def format_blame(entries: list[BlameInfo]) -> str:
    if not entries:
        return "No blame information."
    width = max(len(e.author) for e in entries)
    return "\n".join(
        f"{e.short_hash} {e.author:<{width}} {e.date[:10]} {e.line:>5}"
        for e in entries
    )


def format_sync_result(result: SyncResult) -> str:
    if result.success:
        return "Synced: pulled and pushed."
    if result.conflicts:
        lines = [result.error or "Merge conflicts detected"]
        lines.extend(f"  U {path}" for path in result.conflicts)
        return "\n".join(lines)
    phase = "Push" if result.pulled else "Pull"
    error = (result.error or "").strip()
    return f"{phase} failed: {error}" if error else f"{phase} failed"


def format_diff(diff_text: str, max_length: int = 20_000) -> str:
    """Truncate a long diff at a line boundary."""
    if not diff_text.strip():
        return "No changes to display."

    if len(diff_text) <= max_length:
        return diff_text

    total_lines = diff_text.count("\n")
    truncated = diff_text[:max_length]
    last_nl = truncated.rfind("\n")
    if last_nl > 0:
        truncated = truncated[:last_nl]
    return f"{truncated}\n\n... truncated ({total_lines} total lines)"


def format_help() -> str:
    return (
        "Usage: gitengine <command> [args]\n"
        "\n"
        "status - Show working tree status\n"
        "diff [path] - Show staged and unstaged changes\n"
        "log [limit] - Recent commits\n"
        "branches - List local and remote branches\n"
        "checkout <branch> [--create] - Switch branch, keeping local changes\n"
        "blame <path> - Per-line authorship\n"
        "reflog [limit] - Recent HEAD movements\n"
        "sync - Pull (rebase + autostash) then push\n"
        "help - This message"
    )
