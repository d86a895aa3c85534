"""
Contact enrichment service - decides whether a contact is worth a paid
identity-analysis call, runs it, and records the result.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace
from datetime import UTC, datetime

from nexus.features.triage.domain import (
    BatchEnrichmentResult,
    Contact,
    EnrichmentRecord,
    EnrichmentState,
    ResearchLogEntry,
    TriageConfig,
    TriageError,
)
from nexus.features.triage.pipeline.json_output import coerce_score, optional_text, parse_json_object
from nexus.features.triage.pipeline.scoring.service import resolve_persona
from nexus.features.triage.repository import IdentityRepository, MessageRepository
from nexus.features.triage.services.cost_ledger import CostLedger
from nexus.infrastructure.audit import ActivityLog
from nexus.infrastructure.observability.logging import get_logger
from nexus.services.llm.base import LLMBackend

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]

ENRICHMENT_SCHEMA = '{"role": "string", "industry": "string", "summary": "string", "score": number }'


class EnrichmentService:
    """
    Cost-gated identity enrichment.

    Per-contact state: UNSEEN -> EVALUATED (inactive, skipped) -> ENRICHING
    -> ENRICHED. A failed call restores the state the contact had before.
    """

    def __init__(
        self,
        backend: LLMBackend,
        ledger: CostLedger,
        identities: IdentityRepository,
        messages: MessageRepository,
        activity: ActivityLog,
        config: TriageConfig,
        context_max_chars: int = 4000,
        pacing_every: int = 5,
        pacing_seconds: float = 1.5,
        sleep: Sleep = asyncio.sleep,
    ):
        if pacing_every < 1:
            raise ValueError("pacing_every must be at least 1")
        self.backend = backend
        self.ledger = ledger
        self.identities = identities
        self.messages = messages
        self.activity = activity
        self.config = config
        self.context_max_chars = context_max_chars
        self.pacing_every = pacing_every
        self.pacing_seconds = pacing_seconds
        self._sleep = sleep
        self._states: dict[str, EnrichmentState] = {}
        self.is_enriching = False

    def state_of(self, contact_id: str) -> EnrichmentState:
        return self._states.get(contact_id, EnrichmentState.UNSEEN)

    def build_context(self, contact_id: str) -> str:
        """Newline-joined message bodies, hard-capped at context_max_chars."""
        bodies = "\n".join(m.body for m in self.messages.for_sender(contact_id))
        return bodies[: self.context_max_chars]

    def build_prompt(self, contact: Contact, persona: str) -> str:
        return (
            f"CORE PERSONA: {persona}\n"
            "TASK: Create identity profile.\n"
            f"NAME: {contact.display_name}\n"
            f"CONTEXT: {self.build_context(contact.contact_id)}\n"
            "RETURN JSON ONLY:\n"
            f"{ENRICHMENT_SCHEMA}"
        )

    def _parse_enrichment(self, raw: str, provider: str) -> EnrichmentRecord:
        payload = parse_json_object(raw)
        return EnrichmentRecord(
            role=optional_text(payload, "role"),
            industry=optional_text(payload, "industry"),
            summary=optional_text(payload, "summary"),
            score=coerce_score(payload.get("score")),
            provider=provider,
        )

    async def enrich(
        self, contact_id: str, force_deep: bool = False, silent: bool = False
    ) -> EnrichmentRecord | None:
        """
        Enrich one contact.

        Args:
            contact_id: Contact to analyze
            force_deep: Enrich even when the contact has no messages
            silent: Batch mode; no loading indicator or operator-facing errors

        Returns:
            The new enrichment, or None when skipped or failed
        """
        contact = self.identities.get_contact(contact_id)
        if contact is None:
            raise KeyError(contact_id)

        if self.messages.count_for_sender(contact_id) == 0 and not force_deep:
            self._states[contact_id] = (
                EnrichmentState.ENRICHED
                if contact.enrichment is not None
                else EnrichmentState.EVALUATED
            )
            logger.info(
                "Deep enrichment skipped, contact inactive",
                contact_id=contact_id,
                silent=silent,
            )
            if not silent:
                self.activity.record(
                    "info", f"Skipped enrichment for {contact.display_name}: no activity."
                )
            return None

        previous_state = self.state_of(contact_id)
        self._states[contact_id] = EnrichmentState.ENRICHING
        if not silent:
            self.is_enriching = True
            self.activity.record("ai", f"Enriching {contact.display_name}...")

        persona = resolve_persona(self.config.persona)
        try:
            response = await self.backend.generate(
                self.build_prompt(contact, persona), wants_json=True, system_instruction=persona
            )
            self.ledger.record(response.usage)
            enrichment = self._parse_enrichment(response.text, response.provider)
        except TriageError as e:
            self._states[contact_id] = previous_state
            logger.warning(
                "Enrichment failed",
                contact_id=contact_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            if not silent:
                self.activity.record_error(e, "Enrichment error", contact_id=contact_id)
            return None
        finally:
            if not silent:
                self.is_enriching = False

        # The record may have been merged while the call was suspended
        current = self.identities.get_contact(contact_id) or contact
        entry = ResearchLogEntry(
            date=datetime.now(UTC), provider=enrichment.provider, result=enrichment.summary
        )
        self.identities.save_contact(
            replace(
                current,
                enrichment=enrichment,
                relevance=enrichment.score,
                research_log=[entry, *current.research_log],
            )
        )
        self._states[contact_id] = EnrichmentState.ENRICHED

        logger.info(
            "Contact enriched",
            contact_id=contact_id,
            relevance=enrichment.score,
            provider=enrichment.provider,
            silent=silent,
        )
        if not silent:
            self.activity.record("success", f"Enriched: {contact.display_name}")
        return enrichment

    async def enrich_batch(self, contact_ids: Iterable[str]) -> BatchEnrichmentResult:
        """
        Enrich newly discovered contacts one at a time.

        Pauses for pacing_seconds after every pacing_every targets, so no
        more than pacing_every enrichment calls ever run back to back.
        """
        contact_ids = list(contact_ids)
        result = BatchEnrichmentResult(requested=len(contact_ids))
        self.activity.record("ai", f"Auto-enrichment batch: {len(contact_ids)} targets")

        for position, contact_id in enumerate(contact_ids, start=1):
            if self.identities.get_contact(contact_id) is None:
                result.failed += 1
                logger.warning("Batch enrichment target vanished", contact_id=contact_id)
            elif self.messages.count_for_sender(contact_id) == 0:
                await self.enrich(contact_id, silent=True)
                result.skipped += 1
            elif await self.enrich(contact_id, silent=True) is None:
                result.failed += 1
            else:
                result.enriched += 1

            if position % self.pacing_every == 0:
                result.pauses += 1
                await self._sleep(self.pacing_seconds)

        logger.info(
            "Batch enrichment completed",
            requested=result.requested,
            enriched=result.enriched,
            skipped=result.skipped,
            failed=result.failed,
            pauses=result.pauses,
        )
        self.activity.record("success", "Batch enrichment completed.")
        return result
