"""
ActivityLog - user-visible operation log for the triage dashboard.

Every pipeline outcome the operator should see (sync results, triage
admissions, enrichment results, and every recovered error) is recorded here.

Usage:
    from nexus.infrastructure.audit import ActivityLog

    activity = ActivityLog()
    activity.record("success", "Matrix Synced: 12 groups.")
    activity.record_error(exc, "Sync failed for Unified")

Design Principles:
- Write to both the in-memory log (dashboard snapshot) and structured logs
- Never raise from a record call
- Newest entries first, bounded length
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from itertools import count
from typing import Literal

from nexus.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ActivityKind = Literal["info", "success", "error", "ai"]

_LOG_METHODS = {
    "info": "info",
    "success": "info",
    "ai": "info",
    "error": "warning",
}


@dataclass(slots=True, frozen=True)
class ActivityLogEntry:
    id: int
    kind: ActivityKind
    text: str
    error_type: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class ActivityLog:
    """
    Bounded, timestamped, typed log of pipeline activity.

    Entries are kept newest first; once ``max_entries`` is reached the
    oldest entry is dropped.
    """

    def __init__(self, max_entries: int = 50):
        self._entries: deque[ActivityLogEntry] = deque(maxlen=max_entries)
        self._ids = count(1)

    def record(
        self, kind: ActivityKind, text: str, error_type: str | None = None, **fields
    ) -> ActivityLogEntry:
        """
        Record an activity entry and mirror it to the structured log.

        Args:
            kind: info / success / error / ai
            text: Operator-facing message
            error_type: Error taxonomy class name for error entries
            **fields: Extra structured-log context (not shown to the operator)

        Returns:
            The stored entry
        """
        entry = ActivityLogEntry(id=next(self._ids), kind=kind, text=text, error_type=error_type)
        self._entries.appendleft(entry)

        log_method = getattr(logger, _LOG_METHODS.get(kind, "info"))
        log_method(
            "Activity recorded",
            activity_kind=kind,
            activity_text=text,
            error_type=error_type,
            **fields,
        )
        return entry

    def record_error(self, error: Exception, text: str, **fields) -> ActivityLogEntry:
        """Record a recovered error, typed by its exception class."""
        return self.record(
            "error",
            f"{text}: {error}",
            error_type=type(error).__name__,
            **fields,
        )

    def snapshot(self) -> list[ActivityLogEntry]:
        return list(self._entries)

    def errors(self, error_type: str | None = None) -> list[ActivityLogEntry]:
        return [
            entry
            for entry in self._entries
            if entry.kind == "error" and (error_type is None or entry.error_type == error_type)
        ]
