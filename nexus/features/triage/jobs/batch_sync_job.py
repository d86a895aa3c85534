"""
Batch sync job.

Sweeps the group matrix, then syncs every monitored group according to
its preferences. Runs inside the worker process with its own pipeline
context.
"""

from nexus.config import settings
from nexus.features.triage.services.context import PipelineContext, build_context
from nexus.features.triage.services.sync_service import BatchSyncResult
from nexus.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


async def sync_monitored_groups(context: PipelineContext) -> BatchSyncResult | None:
    groups = await context.sync.sync_groups()
    if groups is None:
        logger.warning("Batch sync skipped - group matrix unavailable")
        return None

    monitored = [g.jid for g in groups if g.monitoring_enabled]
    if not monitored:
        logger.info("Batch sync skipped - no monitored groups")
        return None

    return await context.sync.run_batch(monitored)


async def run_batch_sync() -> None:
    context = build_context(settings)
    try:
        result = await sync_monitored_groups(context)
        snapshot = context.ledger.snapshot()
        logger.info(
            "Batch sync job finished",
            groups=result.groups if result else 0,
            queue_size=len(context.queue),
            tokens=snapshot.tokens,
            cost=round(snapshot.total_cost, 6),
        )
    finally:
        await context.close()
