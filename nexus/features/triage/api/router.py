"""
Triage routes.

Read access to the stores, queue, ledger and activity log as plain
snapshots, plus the write operations the dashboard drives.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from nexus.features.triage.domain import GroupSyncPreferences
from nexus.features.triage.services.context import PipelineContext
from nexus.models.api.triage_request import (
    BatchSyncRequest,
    DeployRequest,
    EnrichRequest,
    GroupPreferencesRequest,
    HistorySyncRequest,
)

router = APIRouter(prefix="/triage", tags=["triage"])


def get_pipeline(request: Request) -> PipelineContext:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Pipeline not initialized")
    return pipeline


# ----------------------------------------------------------------------
# Snapshots
# ----------------------------------------------------------------------


@router.get("/contacts")
async def list_contacts(pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    contacts = []
    for contact in pipeline.identities.list_contacts():
        data = asdict(contact)
        data["group_ids"] = sorted(contact.group_ids)
        data["is_active"] = pipeline.messages.count_for_sender(contact.contact_id) > 0
        data["enrichment_state"] = pipeline.enrichment.state_of(contact.contact_id).value
        contacts.append(data)
    return {"contacts": contacts}


@router.get("/groups")
async def list_groups(pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    return {"groups": [asdict(g) for g in pipeline.identities.list_groups()]}


@router.get("/messages")
async def list_messages(
    group_id: str | None = None, pipeline: PipelineContext = Depends(get_pipeline)
) -> dict:
    messages = (
        pipeline.messages.for_group(group_id) if group_id else pipeline.messages.list_messages()
    )
    return {"messages": [asdict(m) for m in messages]}


@router.get("/queue")
async def list_queue(pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    return {"entries": [asdict(e) for e in pipeline.queue.snapshot()]}


@router.get("/costs")
async def get_costs(pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    return asdict(pipeline.ledger.snapshot())


@router.get("/logs")
async def get_logs(pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    return {"logs": [asdict(entry) for entry in pipeline.activity.snapshot()]}


@router.get("/status")
async def get_status(pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    return {
        "is_processing": pipeline.scoring.is_processing,
        "is_enriching": pipeline.enrichment.is_enriching,
        "queue_size": len(pipeline.queue),
        "provider": pipeline.backend.provider,
        "threshold": pipeline.triage_config.threshold,
    }


# ----------------------------------------------------------------------
# Queue operations
# ----------------------------------------------------------------------


@router.post("/queue/{entry_id}/archive")
async def archive_entry(entry_id: str, pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    if not pipeline.queue.archive(entry_id):
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Queue entry {entry_id} not found")
    return {"archived": True, "entry_id": entry_id}


@router.post("/queue/{entry_id}/deploy")
async def deploy_entry(
    entry_id: str, payload: DeployRequest, pipeline: PipelineContext = Depends(get_pipeline)
) -> dict:
    try:
        delivered = await pipeline.queue.deploy(entry_id, payload.channel)
    except KeyError:
        raise HTTPException(
            status.HTTP_404_NOT_FOUND, f"Queue entry {entry_id} not found"
        ) from None
    return {"delivered": delivered, "entry_id": entry_id, "channel": payload.channel.value}


@router.post("/messages/{message_id}/analyze")
async def analyze_message(
    message_id: str, pipeline: PipelineContext = Depends(get_pipeline)
) -> dict:
    message = pipeline.messages.get(message_id)
    if message is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Message {message_id} not found")
    entry = await pipeline.scoring.analyze(message)
    return {"admitted": entry is not None, "entry": asdict(entry) if entry else None}


# ----------------------------------------------------------------------
# Enrichment and sync
# ----------------------------------------------------------------------


@router.post("/contacts/{contact_id}/enrich")
async def enrich_contact(
    contact_id: str,
    payload: EnrichRequest | None = None,
    pipeline: PipelineContext = Depends(get_pipeline),
) -> dict:
    force_deep = payload.force_deep if payload else False
    try:
        enrichment = await pipeline.enrichment.enrich(contact_id, force_deep=force_deep)
    except KeyError:
        raise HTTPException(
            status.HTTP_404_NOT_FOUND, f"Contact {contact_id} not found"
        ) from None
    return {
        "enriched": enrichment is not None,
        "state": pipeline.enrichment.state_of(contact_id).value,
        "enrichment": asdict(enrichment) if enrichment else None,
    }


@router.post("/sync/groups")
async def sync_groups(pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    groups = await pipeline.sync.sync_groups()
    return {"synced": groups is not None, "group_count": len(pipeline.identities.list_groups())}


@router.post("/sync/groups/{group_id}/members")
async def sync_members(group_id: str, pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    created = await pipeline.sync.sync_members(group_id)
    return {"synced": created is not None, "created": len(created or [])}


@router.post("/sync/groups/{group_id}/history")
async def sync_history(
    group_id: str,
    payload: HistorySyncRequest | None = None,
    pipeline: PipelineContext = Depends(get_pipeline),
) -> dict:
    stored = await pipeline.sync.sync_history(group_id, payload.limit if payload else None)
    return {"synced": stored is not None, "stored": len(stored or [])}


@router.post("/sync/batch")
async def sync_batch(
    payload: BatchSyncRequest, pipeline: PipelineContext = Depends(get_pipeline)
) -> dict:
    result = await pipeline.sync.run_batch(payload.group_ids)
    return asdict(result)


@router.put("/groups/{group_id}/preferences")
async def update_group_preferences(
    group_id: str,
    payload: GroupPreferencesRequest,
    pipeline: PipelineContext = Depends(get_pipeline),
) -> dict:
    preferences = GroupSyncPreferences(
        import_members=payload.import_members,
        sync_history=payload.sync_history,
        enable_scoring=payload.enable_scoring,
        history_limit=payload.history_limit,
    )
    try:
        group = pipeline.identities.update_preferences(group_id, preferences)
        if payload.monitoring_enabled is not None:
            group = pipeline.identities.set_monitoring(group_id, payload.monitoring_enabled)
    except KeyError:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Group {group_id} not found") from None
    return asdict(group)


@router.post("/costs/reset")
async def reset_costs(pipeline: PipelineContext = Depends(get_pipeline)) -> dict:
    pipeline.ledger.reset()
    return asdict(pipeline.ledger.snapshot())
