"""
Gateway sync service - reconciles groups, participants and history pulled
from the messaging gateway into the identity and message stores.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from nexus.features.triage.domain import ConfigError, Contact, Group, Message, TriageError
from nexus.features.triage.pipeline.enrichment import EnrichmentService
from nexus.features.triage.pipeline.scoring import ScoringService
from nexus.features.triage.repository import IdentityRepository, MessageRepository
from nexus.infrastructure.audit import ActivityLog
from nexus.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GROUP_NAME_FIELDS = ("subject", "name", "title", "desc")
GATEWAY_ID_SUFFIXES = ("@s.whatsapp.net", "@c.us", "@lid")


class GatewayClient(Protocol):
    async def fetch_groups(self, instance: str) -> list[dict[str, Any]]: ...

    async def fetch_participants(self, instance: str, group_id: str) -> list[dict[str, Any]]: ...

    async def fetch_history(
        self, instance: str, group_id: str, limit: int = 20
    ) -> list[dict[str, Any]]: ...


@dataclass(slots=True)
class BatchSyncResult:
    groups: int = 0
    contacts_imported: int = 0
    messages_imported: int = 0
    failed_groups: list[str] = field(default_factory=list)


def resolve_group_name(raw: dict[str, Any]) -> str:
    """subject -> name -> title -> desc -> local part of the JID."""
    for key in GROUP_NAME_FIELDS:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return str(raw.get("id", "")).split("@")[0]


def normalize_phone(raw_id: str) -> str:
    phone = raw_id
    for suffix in GATEWAY_ID_SUFFIXES:
        phone = phone.replace(suffix, "")
    return phone


def _parse_timestamp(value: Any) -> datetime:
    try:
        return datetime.fromtimestamp(int(value), UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        return datetime.now(UTC)


class SyncService:
    """
    Pulls gateway data into the stores, one group at a time.

    Every gateway error is caught per operation, typed in the activity log,
    and never replaces stored data with an empty result.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        identities: IdentityRepository,
        messages: MessageRepository,
        scoring: ScoringService,
        enrichment: EnrichmentService,
        activity: ActivityLog,
        instances: list[str],
        history_limit: int = 20,
        scoring_sample_size: int = 1,
    ):
        if not instances:
            raise ValueError("At least one gateway instance is required")
        self.gateway = gateway
        self.identities = identities
        self.messages = messages
        self.scoring = scoring
        self.enrichment = enrichment
        self.activity = activity
        self.instances = instances
        self.history_limit = history_limit
        self.scoring_sample_size = scoring_sample_size

    @property
    def primary_instance(self) -> str:
        return self.instances[0]

    def _instance_for_group(self, group_id: str) -> str:
        group = self.identities.get_group(group_id)
        if group is not None and group.instance:
            return group.instance
        return self.primary_instance

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def _to_group(self, raw: dict[str, Any], instance: str) -> Group | None:
        jid = raw.get("id")
        if not jid:
            return None
        size = raw.get("size")
        if not isinstance(size, int):
            participants = raw.get("participants")
            size = len(participants) if isinstance(participants, list) else 0
        return Group(jid=jid, name=resolve_group_name(raw), member_count=size, instance=instance)

    async def sync_groups(self, instances: Iterable[str] | None = None) -> list[Group] | None:
        """
        Sweep every instance and replace the group matrix.

        Groups are deduplicated by JID, last seen wins. Groups of an instance
        that failed or was not swept are carried over unchanged. If no instance answered with
        a valid list the store is left untouched.

        Returns:
            The refreshed groups, or None when every instance failed
        """
        targets = [i for i in (instances or self.instances) if i]
        self.activity.record("info", "Syncing Evolution Matrix...")

        swept: list[Group] = []
        failed: list[str] = []
        for instance in targets:
            try:
                raw_groups = await self.gateway.fetch_groups(instance)
            except ConfigError as e:
                self.activity.record_error(e, "Matrix sync unavailable")
                return None
            except TriageError as e:
                self.activity.record_error(e, f"Sync failed for {instance}", instance=instance)
                failed.append(instance)
                continue
            swept.extend(g for g in (self._to_group(raw, instance) for raw in raw_groups) if g)

        if len(failed) == len(targets):
            logger.warning("Group sync aborted, no instance answered", instances=targets)
            return None

        untouched = [i for i in self.instances if i not in targets]
        groups = self.identities.replace_groups(swept, keep_instances=failed + untouched)
        self.activity.record("success", f"Matrix Synced: {len(groups)} groups.")
        return groups

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def _to_contact(self, raw: dict[str, Any], group_id: str, instance: str) -> Contact | None:
        contact_id = raw.get("id")
        if not contact_id:
            return None
        display_name = raw.get("pushName") or raw.get("notify") or contact_id.split("@")[0]
        return Contact(
            contact_id=contact_id,
            display_name=display_name,
            phone_number=normalize_phone(contact_id),
            group_ids={group_id},
            instance=instance,
        )

    async def sync_members(self, group_id: str) -> list[Contact] | None:
        """
        Import a group's participants and enrich the new ones.

        Returns:
            Newly created contacts, or None when the gateway call failed
        """
        instance = self._instance_for_group(group_id)
        self.activity.record("info", "Importing participants...")
        try:
            participants = await self.gateway.fetch_participants(instance, group_id)
        except TriageError as e:
            self.activity.record_error(e, "Member error", group_id=group_id)
            return None

        imported = [
            c for c in (self._to_contact(raw, group_id, instance) for raw in participants) if c
        ]
        created = self.identities.add_new_contacts(imported)
        self.activity.record("success", f"Imported {len(imported)} contacts.", created=len(created))

        if created:
            await self.enrichment.enrich_batch([c.contact_id for c in created])
        return created

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _to_message(self, raw: dict[str, Any], group_id: str) -> Message | None:
        key = raw.get("key") or {}
        message_id = key.get("id")
        if not message_id:
            return None
        content = raw.get("message") or {}
        extended = content.get("extendedTextMessage") or {}
        body = content.get("conversation") or extended.get("text") or ""
        return Message(
            message_id=message_id,
            group_id=group_id,
            sender_id=key.get("participant") or key.get("remoteJid") or "",
            sender_name=raw.get("pushName") or "Unknown",
            body=body,
            timestamp=_parse_timestamp(raw.get("messageTimestamp")),
            from_me=bool(key.get("fromMe")),
        )

    def scoring_sample(self, messages: list[Message]) -> list[Message]:
        """First scoring_sample_size messages of an import batch, in gateway order."""
        return messages[: self.scoring_sample_size]

    async def sync_history(self, group_id: str, limit: int | None = None) -> list[Message] | None:
        """
        Import recent history for a group and sample it for scoring.

        Returns:
            Newly stored messages, or None when the gateway call failed
        """
        instance = self._instance_for_group(group_id)
        self.activity.record("info", f"Restoring intelligence for {group_id}...")
        try:
            raw_messages = await self.gateway.fetch_history(
                instance, group_id, limit or self.history_limit
            )
        except TriageError as e:
            self.activity.record_error(e, "History error", group_id=group_id)
            return None

        transformed = [m for m in (self._to_message(raw, group_id) for raw in raw_messages) if m]
        stored = self.messages.add_messages(transformed)
        self.activity.record("success", f"Restored {len(stored)} logs.")

        group = self.identities.get_group(group_id)
        if group is None or group.preferences.enable_scoring:
            for message in self.scoring_sample(stored):
                await self.scoring.analyze(message)
        return stored

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def run_batch(self, group_ids: Iterable[str]) -> BatchSyncResult:
        """Operator-triggered sync of several groups, strictly one after another."""
        result = BatchSyncResult()
        for group_id in group_ids:
            group = self.identities.get_group(group_id)
            if group is None:
                logger.warning("Batch sync skipped unknown group", group_id=group_id)
                result.failed_groups.append(group_id)
                continue

            result.groups += 1
            failed = False
            if group.preferences.import_members:
                created = await self.sync_members(group_id)
                failed = created is None
                result.contacts_imported += len(created or [])
            if group.preferences.sync_history:
                stored = await self.sync_history(group_id, group.preferences.history_limit)
                failed = failed or stored is None
                result.messages_imported += len(stored or [])
            if failed:
                result.failed_groups.append(group_id)

        logger.info(
            "Batch sync completed",
            groups=result.groups,
            contacts_imported=result.contacts_imported,
            messages_imported=result.messages_imported,
            failed_groups=len(result.failed_groups),
        )
        return result
