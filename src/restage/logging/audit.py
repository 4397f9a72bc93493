"""Structured JSONL audit log of restage runs."""

from __future__ import annotations

import json
import uuid
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

OUTCOMES = (
    "ok",
    "command_failed",
    "filter_error",
    "repository_error",
    "restage_error",
    "spawn_error",
    "interrupted",
)


@dataclass(slots=True, frozen=True)
class RunEvent:
    """Sanitized representation of a single run."""

    timestamp: str
    run_id: str
    command: dict[str, object]
    filter: str | None
    exit_code: int
    outcome: str
    metadata: dict[str, object]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_run_id() -> str:
    """Return a random identifier for one run."""
    return f"run-{uuid.uuid4().hex[:12]}"


def summarize_command(tokens: Sequence[str]) -> dict[str, object]:
    """Describe command tokens without logging their arguments."""
    executable = tokens[0].split()[0] if tokens and tokens[0].split() else None
    return {"executable": executable, "token_count": len(tokens)}


class JsonlAuditLogger:
    """Append-only JSONL audit logger and bounded reader."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """Return on-disk JSONL path."""
        return self._path

    def append(self, event: RunEvent) -> None:
        """Append an event as one JSON object per line."""
        if event.outcome not in OUTCOMES:
            raise ValueError(f"Unknown run outcome: {event.outcome}")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(asdict(event), sort_keys=True))
            handle.write("\n")

    def read(self, limit: int = 50) -> list[dict[str, object]]:
        """Read the most recent events."""
        if limit < 1:
            return []
        entries: list[dict[str, object]] = []
        if not self._path.exists():
            return entries
        with self._path.open("r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped:
                    continue
                try:
                    record = json.loads(stripped)
                except json.JSONDecodeError:
                    continue
                entries.append(record)
        return entries[-limit:]
