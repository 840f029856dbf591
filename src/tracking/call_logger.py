# src/tracking/call_logger.py — v2
"""AI call log: a bounded window of recent orchestration attempts.

Entries are kept in memory (oldest dropped first) and optionally
appended to a JSON Lines file as they arrive.
"""

from __future__ import annotations

import logging
from collections import deque
from pathlib import Path

from portfolio_ai.tracking.models import CallLogEntry

logger = logging.getLogger(__name__)


class CallLogger:
    """Accumulates CallLogEntry records."""

    def __init__(self, max_entries: int = 200, path: Path | None = None) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._entries: deque[CallLogEntry] = deque(maxlen=max_entries)
        self._path = Path(path).expanduser() if path else None

    def record(self, entry: CallLogEntry) -> CallLogEntry:
        """Append an entry, persisting it when a log file is configured."""
        self._entries.append(entry)
        if self._path is not None:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as f:
                    f.write(entry.model_dump_json() + "\n")
            except OSError as e:
                logger.warning("Could not append to call log %s: %s", self._path, e)
        return entry

    @property
    def records(self) -> list[CallLogEntry]:
        """Recorded entries, oldest first."""
        return list(self._entries)

    @property
    def total_calls(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
