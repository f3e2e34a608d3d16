"""Append-only command activity log in JSON lines format."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from gitengine.core.events import COMMAND_EVENTS

if TYPE_CHECKING:
    from gitengine.core.events import Event, EventBus

logger = structlog.get_logger()

_MAX_VALUE_LENGTH = 500


class ActivityRecorder:
    """Writes every command.issued / command.completed event to a file."""

    def __init__(self, log_path: Path | str) -> None:
        self._path = Path(log_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def attach(self, event_bus: EventBus) -> None:
        event_bus.subscribe_many(COMMAND_EVENTS, self.record)

    def detach(self, event_bus: EventBus) -> None:
        event_bus.unsubscribe_many(COMMAND_EVENTS, self.record)

    async def record(self, event: Event) -> None:
        entry: dict[str, Any] = {"event": event.name, **_sanitize(event.data)}
        self._write(entry)

    def _write(self, entry: dict[str, Any]) -> None:
        entry["timestamp"] = datetime.now(UTC).isoformat()
        try:
            with open(self._path, "a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.error("activity_write_failed", error=str(e))


def _sanitize(data: dict[str, Any]) -> dict[str, Any]:
    """Truncate large values for log readability."""
    sanitized = {}
    for key, value in data.items():
        if isinstance(value, str) and len(value) > _MAX_VALUE_LENGTH:
            sanitized[key] = value[:_MAX_VALUE_LENGTH] + "...[truncated]"
        else:
            sanitized[key] = value
    return sanitized
