"""Operational logging for chorematrix."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

LEVELS = ("debug", "info", "warning", "error")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StructuredLogger:
    """Write JSON lines log entries for later inspection."""

    def __init__(
        self,
        *,
        path: Path | None = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.path = path
        self._clock = clock or _utcnow
        self._entries: list[dict] = []

    def log(self, event_type: str, *, level: str = "info", **fields: Any) -> dict:
        if level not in LEVELS:
            raise ValueError(f"Unknown log level '{level}'.")
        entry = {
            "timestamp": self._clock().isoformat(),
            "level": level,
            "event": event_type,
            **fields,
        }
        self._entries.append(entry)
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry, default=str) + "\n")
        return entry

    def warning(self, event_type: str, **fields: Any) -> dict:
        return self.log(event_type, level="warning", **fields)

    def error(self, event_type: str, **fields: Any) -> dict:
        return self.log(event_type, level="error", **fields)

    def events(self, event_type: str) -> tuple[dict, ...]:
        return tuple(entry for entry in self._entries if entry["event"] == event_type)

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        return tuple(self._entries[-limit:])


__all__ = ["LEVELS", "StructuredLogger"]
