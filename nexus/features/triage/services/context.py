"""
Pipeline context - the single process-lifetime assembly of stores,
collaborators and services.

Built once at startup (FastAPI lifespan or worker) and passed explicitly to
whatever needs it; nothing in the pipeline reaches for module globals.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from nexus.config import Settings
from nexus.features.triage.domain import TriageConfig
from nexus.features.triage.pipeline.enrichment import EnrichmentService
from nexus.features.triage.pipeline.scoring import ScoringService
from nexus.features.triage.repository import IdentityRepository, MessageRepository
from nexus.features.triage.services.cost_ledger import CostLedger
from nexus.features.triage.services.sync_service import GatewayClient, SyncService
from nexus.features.triage.services.triage_queue import TriageQueue
from nexus.infrastructure.audit import ActivityLog
from nexus.infrastructure.observability.logging import get_logger
from nexus.services.gateway import EvolutionGatewayClient
from nexus.services.llm import LLMBackend, create_backend

logger = get_logger(__name__)


def triage_config_from_settings(config: Settings) -> TriageConfig:
    return TriageConfig(
        persona=config.TRIAGE_PERSONA,
        scoring_rules=config.TRIAGE_SCORING_RULES,
        draft_style=config.TRIAGE_DRAFT_STYLE,
        threshold=max(0, min(100, config.TRIAGE_THRESHOLD)),
    )


@dataclass(slots=True)
class PipelineContext:
    settings: Settings
    triage_config: TriageConfig
    activity: ActivityLog
    identities: IdentityRepository
    messages: MessageRepository
    ledger: CostLedger
    backend: LLMBackend
    gateway: GatewayClient
    queue: TriageQueue
    scoring: ScoringService
    enrichment: EnrichmentService
    sync: SyncService

    async def close(self) -> None:
        close = getattr(self.gateway, "close", None)
        if close is not None:
            await close()
        logger.info("Pipeline context closed")


def build_context(
    config: Settings,
    backend: LLMBackend | None = None,
    gateway: GatewayClient | None = None,
    sleep=asyncio.sleep,
) -> PipelineContext:
    """Assemble the pipeline. Collaborators can be swapped for tests."""
    triage_config = triage_config_from_settings(config)
    activity = ActivityLog(max_entries=config.ACTIVITY_LOG_MAX_ENTRIES)
    identities = IdentityRepository()
    messages = MessageRepository()
    ledger = CostLedger()
    backend = backend or create_backend(config)
    gateway = gateway or EvolutionGatewayClient(config)
    instances = config.instances()

    queue = TriageQueue(
        sender=gateway, activity=activity, instance=instances[0], identities=identities
    )
    scoring = ScoringService(
        backend=backend,
        ledger=ledger,
        queue=queue,
        activity=activity,
        config=triage_config,
    )
    enrichment = EnrichmentService(
        backend=backend,
        ledger=ledger,
        identities=identities,
        messages=messages,
        activity=activity,
        config=triage_config,
        context_max_chars=config.ENRICHMENT_CONTEXT_MAX_CHARS,
        pacing_every=config.ENRICHMENT_PACING_EVERY,
        pacing_seconds=config.ENRICHMENT_PACING_SECONDS,
        sleep=sleep,
    )
    sync = SyncService(
        gateway=gateway,
        identities=identities,
        messages=messages,
        scoring=scoring,
        enrichment=enrichment,
        activity=activity,
        instances=instances,
        history_limit=config.HISTORY_FETCH_LIMIT,
        scoring_sample_size=config.SCORING_SAMPLE_SIZE,
    )

    logger.info(
        "Pipeline context assembled",
        provider=backend.provider,
        instances=instances,
        threshold=triage_config.threshold,
    )
    return PipelineContext(
        settings=config,
        triage_config=triage_config,
        activity=activity,
        identities=identities,
        messages=messages,
        ledger=ledger,
        backend=backend,
        gateway=gateway,
        queue=queue,
        scoring=scoring,
        enrichment=enrichment,
        sync=sync,
    )
