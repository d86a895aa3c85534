"""
Triage queue - scored signals awaiting a human-approved reply.
"""

from __future__ import annotations

from typing import Protocol

from nexus.features.triage.domain import DeployChannel, TriageError, TriageQueueEntry
from nexus.features.triage.repository import IdentityRepository
from nexus.infrastructure.audit import ActivityLog
from nexus.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class MessageSender(Protocol):
    async def send_text(self, instance: str, recipient: str, text: str) -> bool: ...


class TriageQueue:
    """
    Most-recent-first queue of admitted entries.

    At most one entry exists per source message. A message whose entry was
    archived or deployed is never admitted again.
    """

    def __init__(
        self,
        sender: MessageSender,
        activity: ActivityLog,
        instance: str,
        identities: IdentityRepository | None = None,
    ):
        self._sender = sender
        self._activity = activity
        self._instance = instance
        self._identities = identities
        self._entries: list[TriageQueueEntry] = []
        self._closed_message_ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self) -> list[TriageQueueEntry]:
        return list(self._entries)

    def get(self, entry_id: str) -> TriageQueueEntry | None:
        return next((e for e in self._entries if e.entry_id == entry_id), None)

    def has_message(self, message_id: str) -> bool:
        """True if the message is queued now or was already dealt with."""
        return message_id in self._closed_message_ids or any(
            e.message_id == message_id for e in self._entries
        )

    def admit(self, entry: TriageQueueEntry) -> bool:
        if self.has_message(entry.message_id):
            logger.info(
                "Triage entry refused, message already handled",
                message_id=entry.message_id,
                entry_id=entry.entry_id,
            )
            return False

        self._entries.insert(0, entry)
        logger.info(
            "Triage entry admitted",
            entry_id=entry.entry_id,
            message_id=entry.message_id,
            value_score=entry.value_score,
            queue_size=len(self._entries),
        )
        return True

    def _remove(self, entry_id: str) -> TriageQueueEntry | None:
        entry = self.get(entry_id)
        if entry is None:
            return None
        self._entries = [e for e in self._entries if e.entry_id != entry_id]
        self._closed_message_ids.add(entry.message_id)
        return entry

    def _instance_for(self, entry: TriageQueueEntry, channel: DeployChannel) -> str:
        """Send through the instance that owns the group, or knows the sender."""
        if self._identities is not None:
            group = self._identities.get_group(entry.group_jid) if entry.group_jid else None
            contact = self._identities.get_contact(entry.sender_id)
            owners = [group, contact] if channel is DeployChannel.GROUP else [contact, group]
            for record in owners:
                if record is not None and record.instance:
                    return record.instance
        return self._instance

    def archive(self, entry_id: str) -> bool:
        entry = self._remove(entry_id)
        if entry is None:
            return False
        logger.info("Triage entry archived", entry_id=entry_id, message_id=entry.message_id)
        return True

    async def deploy(self, entry_id: str, channel: DeployChannel) -> bool:
        """
        Send one of the entry's drafts through the gateway.

        A confirmed private-DM delivery removes the entry. Group deploys and
        failed sends leave it queued; nothing is retried.

        Raises:
            KeyError: Unknown entry id
        """
        entry = self.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)

        channel = DeployChannel(channel)
        if channel is DeployChannel.DM:
            recipient, text = entry.sender_id, entry.dm_draft
        else:
            recipient, text = entry.group_jid or entry.sender_id, entry.group_draft

        instance = self._instance_for(entry, channel)
        self._activity.record("info", f"Deploying to {recipient}...")
        try:
            sent = await self._sender.send_text(instance, recipient, text)
        except TriageError as e:
            self._activity.record_error(e, "Send error", entry_id=entry_id)
            return False

        if not sent:
            self._activity.record("error", "Send failed.", entry_id=entry_id)
            return False

        self._activity.record("success", "Delivered.", entry_id=entry_id, channel=channel.value)
        # Re-check after the send: the entry may have been archived meanwhile
        if channel is DeployChannel.DM and self.get(entry_id) is not None:
            self._remove(entry_id)
        return True
