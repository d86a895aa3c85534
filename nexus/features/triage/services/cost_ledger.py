"""Running token and cost totals for every language-model call."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

from nexus.features.triage.domain import CostSnapshot
from nexus.infrastructure.observability.logging import get_logger
from nexus.services.llm.base import LLMUsage

logger = get_logger(__name__)


def _today_key() -> str:
    return datetime.now(UTC).strftime("%Y%m%d")


class CostLedger:
    """
    Process-wide usage accumulator shared by scoring and enrichment.

    Lifetime counters only grow; the "today" counter rolls over at UTC
    midnight. Updates are guarded so the ledger stays consistent even if
    callers move off the single event loop.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._tokens = 0
        self._total_cost = 0.0
        self._today_cost = 0.0
        self._day = _today_key()

    def record(self, usage: LLMUsage) -> CostSnapshot:
        if usage.tokens < 0 or usage.cost < 0:
            raise ValueError("Usage cannot be negative")

        with self._lock:
            today = _today_key()
            if today != self._day:
                self._day = today
                self._today_cost = 0.0
            self._tokens += usage.tokens
            self._total_cost += usage.cost
            self._today_cost += usage.cost
            snapshot = self._snapshot_locked()

        logger.debug(
            "Usage recorded",
            tokens_delta=usage.tokens,
            cost_delta=usage.cost,
            tokens_total=snapshot.tokens,
        )
        return snapshot

    def snapshot(self) -> CostSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def reset(self) -> None:
        """Explicit operator reset of every counter."""
        with self._lock:
            self._tokens = 0
            self._total_cost = 0.0
            self._today_cost = 0.0
            self._day = _today_key()
        logger.info("Cost ledger reset")

    def _snapshot_locked(self) -> CostSnapshot:
        return CostSnapshot(
            tokens=self._tokens,
            total_cost=self._total_cost,
            today_cost=self._today_cost,
            day=self._day,
        )
