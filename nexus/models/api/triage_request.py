# nexus/models/api/triage_request.py
from pydantic import BaseModel, Field

from nexus.features.triage.domain import DeployChannel


class DeployRequest(BaseModel):
    """Request body for deploying a triage draft."""

    channel: DeployChannel = Field(..., description="'group' or 'dm'")


class EnrichRequest(BaseModel):
    """Request body for an interactive enrichment."""

    force_deep: bool = Field(False, description="Enrich even without message activity")


class HistorySyncRequest(BaseModel):
    limit: int | None = Field(None, ge=1, le=500)


class GroupPreferencesRequest(BaseModel):
    """Per-group sync preferences set by the operator."""

    import_members: bool = True
    sync_history: bool = True
    enable_scoring: bool = True
    history_limit: int = Field(20, ge=1, le=500)
    monitoring_enabled: bool | None = None


class BatchSyncRequest(BaseModel):
    group_ids: list[str] = Field(..., min_length=1)
