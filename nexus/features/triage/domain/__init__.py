"""
Domain subpackage for the triage feature.
"""

from .errors import (
    ConfigError,
    GatewayPayloadError,
    ModelError,
    ParseError,
    TransportError,
    TriageError,
)
from .models import (
    BatchEnrichmentResult,
    Contact,
    CostSnapshot,
    DeployChannel,
    EnrichmentRecord,
    EnrichmentState,
    Group,
    GroupSyncPreferences,
    Message,
    ResearchLogEntry,
    ScoringResult,
    TriageConfig,
    TriageQueueEntry,
)

__all__ = [
    "BatchEnrichmentResult",
    "ConfigError",
    "Contact",
    "CostSnapshot",
    "DeployChannel",
    "EnrichmentRecord",
    "EnrichmentState",
    "GatewayPayloadError",
    "Group",
    "GroupSyncPreferences",
    "Message",
    "ModelError",
    "ParseError",
    "ResearchLogEntry",
    "ScoringResult",
    "TransportError",
    "TriageConfig",
    "TriageError",
    "TriageQueueEntry",
]
