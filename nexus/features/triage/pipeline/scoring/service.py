"""
Signal scoring service - scores inbound messages and admits high-value ones
to the triage queue.
"""

from __future__ import annotations

from uuid import uuid4

from nexus.features.triage.domain import (
    Message,
    ParseError,
    ScoringResult,
    TriageConfig,
    TriageError,
    TriageQueueEntry,
)
from nexus.features.triage.pipeline.json_output import coerce_score, optional_text, parse_json_object
from nexus.features.triage.services.cost_ledger import CostLedger
from nexus.features.triage.services.triage_queue import TriageQueue
from nexus.infrastructure.audit import ActivityLog
from nexus.infrastructure.observability.logging import get_logger
from nexus.services.llm.base import LLMBackend

logger = get_logger(__name__)

DEFAULT_PERSONA = (
    "You are a strategic business assistant specializing in high-value opportunities "
    "and professional networking. Identify leads and close deals with precision."
)
MIN_PERSONA_LENGTH = 20

SCORING_SCHEMA = (
    '{"score": number, "intent": "string", "reasoning": "string", '
    '"shouldReply": boolean, "groupDraft": "string", "dmDraft": "string" }'
)


def resolve_persona(persona: str | None) -> str:
    """Return the configured persona, or the built-in one when it is too short to use."""
    candidate = (persona or "").strip()
    if len(candidate) < MIN_PERSONA_LENGTH:
        return DEFAULT_PERSONA
    return candidate


class ScoringService:
    """Scores messages against the configured heuristics and drafts replies."""

    def __init__(
        self,
        backend: LLMBackend,
        ledger: CostLedger,
        queue: TriageQueue,
        activity: ActivityLog,
        config: TriageConfig,
    ):
        self.backend = backend
        self.ledger = ledger
        self.queue = queue
        self.activity = activity
        self.config = config
        self.is_processing = False

    def build_prompt(self, body: str, persona: str, scoring_rules: str, draft_style: str) -> str:
        return (
            f"CORE PERSONA: {persona}\n"
            f"SCORING: {scoring_rules}\n"
            f"STYLE: {draft_style}\n"
            "TASK: Generate Group Draft and Private DM.\n"
            f'MESSAGE: "{body}"\n'
            "RETURN JSON ONLY:\n"
            f"{SCORING_SCHEMA}"
        )

    async def score(
        self, body: str, persona: str, scoring_rules: str, draft_style: str
    ) -> ScoringResult:
        """
        Score one message body.

        Raises:
            ModelError, ConfigError: Backend call failed
            ParseError: Response is not the expected JSON object
        """
        persona = resolve_persona(persona)
        prompt = self.build_prompt(body, persona, scoring_rules, draft_style)

        response = await self.backend.generate(prompt, wants_json=True, system_instruction=persona)
        self.ledger.record(response.usage)

        return self._parse_scoring_result(response.text)

    def _parse_scoring_result(self, raw: str) -> ScoringResult:
        payload = parse_json_object(raw)

        if "score" not in payload:
            raise ParseError("Scoring result missing 'score'", raw=raw)
        if not isinstance(payload.get("shouldReply"), bool):
            raise ParseError("Scoring result 'shouldReply' must be a boolean", raw=raw)

        return ScoringResult(
            score=coerce_score(payload["score"]),
            intent=optional_text(payload, "intent"),
            reasoning=optional_text(payload, "reasoning"),
            should_reply=payload["shouldReply"],
            group_draft=optional_text(payload, "groupDraft"),
            dm_draft=optional_text(payload, "dmDraft"),
        )

    def is_admissible(self, result: ScoringResult) -> bool:
        return result.score >= self.config.threshold and result.should_reply is True

    async def analyze(self, message: Message) -> TriageQueueEntry | None:
        """
        Run the admission pipeline for one message.

        Scores once, admits iff score >= threshold and the model wants a
        reply. Every failure is recorded and treated as "no admission".

        Returns:
            The admitted entry, or None
        """
        self.is_processing = True
        self.activity.record("ai", f"Analyzing signal from {message.sender_name}...")
        try:
            result = await self.score(
                message.body,
                self.config.persona,
                self.config.scoring_rules,
                self.config.draft_style,
            )
        except TriageError as e:
            self.activity.record_error(e, "Analysis failed", message_id=message.message_id)
            return None
        finally:
            self.is_processing = False

        if not self.is_admissible(result):
            logger.info(
                "Signal below admission bar",
                message_id=message.message_id,
                score=result.score,
                threshold=self.config.threshold,
                should_reply=result.should_reply,
            )
            return None

        entry = TriageQueueEntry(
            entry_id=f"q-{uuid4().hex}",
            message_id=message.message_id,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            group_jid=message.group_id,
            message_body=message.body,
            value_score=result.score,
            reasoning=result.reasoning,
            intent=result.intent,
            group_draft=result.group_draft,
            dm_draft=result.dm_draft,
            should_reply=True,
        )
        # Queue state may have changed while the model call was suspended
        if not self.queue.admit(entry):
            return None

        self.activity.record("success", f"Triage created ({result.score})", entry_id=entry.entry_id)
        return entry
