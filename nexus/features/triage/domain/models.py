"""
Domain models for the triage feature.

These dataclasses describe the identity graph (contacts, groups), the
inbound message log, and the records the pipeline produces. Business
rules live in the stores and services; the only logic here is the record
merge used to collapse duplicate contacts.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EnrichmentState(str, Enum):
    UNSEEN = "unseen"
    EVALUATED = "evaluated"
    ENRICHING = "enriching"
    ENRICHED = "enriched"


class DeployChannel(str, Enum):
    GROUP = "group"
    DM = "dm"


@dataclass(slots=True)
class TriageConfig:
    """Read-mostly configuration consumed by scoring and enrichment."""

    persona: str
    scoring_rules: str
    draft_style: str
    threshold: int


@dataclass(slots=True)
class EnrichmentRecord:
    """AI-derived identity analysis for a contact."""

    role: str
    industry: str
    summary: str
    score: int
    provider: str


@dataclass(slots=True, frozen=True)
class ResearchLogEntry:
    date: datetime
    provider: str
    result: str


@dataclass(slots=True)
class GroupSyncPreferences:
    import_members: bool = True
    sync_history: bool = True
    enable_scoring: bool = True
    history_limit: int = 20


@dataclass(slots=True)
class Group:
    """A monitored chat, keyed by its gateway JID."""

    jid: str
    name: str
    member_count: int = 0
    instance: str | None = None
    monitoring_enabled: bool = True
    preferences: GroupSyncPreferences = field(default_factory=GroupSyncPreferences)


@dataclass(slots=True)
class Contact:
    """One messaging identity, keyed by its gateway JID."""

    contact_id: str
    display_name: str
    phone_number: str
    group_ids: set[str] = field(default_factory=set)
    instance: str | None = None
    enrichment: EnrichmentRecord | None = None
    relevance: int | None = None
    research_log: list[ResearchLogEntry] = field(default_factory=list)
    is_direct: bool = False
    monitoring_enabled: bool = True

    def merge(self, other: "Contact") -> "Contact":
        """
        Collapse two records for the same identity.

        Group memberships are unioned. The longer research log is kept and
        any entries only present in the shorter one are appended, so no
        history is dropped.
        """
        if other.contact_id != self.contact_id:
            raise ValueError(
                f"Cannot merge contacts with different ids: {self.contact_id} != {other.contact_id}"
            )

        longer, shorter = (
            (self.research_log, other.research_log)
            if len(self.research_log) >= len(other.research_log)
            else (other.research_log, self.research_log)
        )
        research_log = list(longer) + [entry for entry in shorter if entry not in longer]

        enrichment = self.enrichment or other.enrichment
        relevance = self.relevance if self.enrichment else other.relevance

        return Contact(
            contact_id=self.contact_id,
            display_name=self.display_name or other.display_name,
            phone_number=self.phone_number or other.phone_number,
            group_ids=self.group_ids | other.group_ids,
            instance=self.instance or other.instance,
            enrichment=enrichment,
            relevance=relevance,
            research_log=research_log,
            is_direct=self.is_direct or other.is_direct,
            monitoring_enabled=self.monitoring_enabled or other.monitoring_enabled,
        )


@dataclass(slots=True, frozen=True)
class Message:
    """One inbound chat message. Immutable once stored."""

    message_id: str
    sender_id: str
    sender_name: str
    body: str
    timestamp: datetime
    group_id: str | None = None
    from_me: bool = False


@dataclass(slots=True)
class ScoringResult:
    score: int
    intent: str
    reasoning: str
    should_reply: bool
    group_draft: str
    dm_draft: str


@dataclass(slots=True)
class TriageQueueEntry:
    """A scored message awaiting a human-approved reply."""

    entry_id: str
    message_id: str
    sender_id: str
    sender_name: str
    message_body: str
    value_score: int
    reasoning: str
    intent: str
    group_draft: str
    dm_draft: str
    group_jid: str | None = None
    should_reply: bool = True
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True, frozen=True)
class CostSnapshot:
    tokens: int
    total_cost: float
    today_cost: float
    day: str


@dataclass(slots=True)
class BatchEnrichmentResult:
    requested: int = 0
    enriched: int = 0
    skipped: int = 0
    failed: int = 0
    pauses: int = 0
