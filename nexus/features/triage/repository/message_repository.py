"""
Repository helpers for inbound messages.

Messages are indexed by sender and by group. Empty bodies never enter the
store, and a message id is stored at most once.
"""

from collections import defaultdict
from collections.abc import Iterable

from nexus.features.triage.domain import Message
from nexus.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class MessageRepository:
    """In-process store for inbound messages."""

    def __init__(self):
        self._messages: dict[str, Message] = {}
        self._by_sender: defaultdict[str, list[str]] = defaultdict(list)
        self._by_group: defaultdict[str, list[str]] = defaultdict(list)

    def add_messages(self, messages: Iterable[Message]) -> list[Message]:
        """
        Store messages, skipping empty bodies and already-known ids.

        Returns:
            The messages that were newly stored, in input order
        """
        stored: list[Message] = []
        discarded = 0
        for message in messages:
            if not message.body or not message.body.strip():
                discarded += 1
                continue
            if message.message_id in self._messages:
                continue
            self._messages[message.message_id] = message
            self._by_sender[message.sender_id].append(message.message_id)
            if message.group_id:
                self._by_group[message.group_id].append(message.message_id)
            stored.append(message)

        if discarded:
            logger.debug("Empty messages discarded", discarded=discarded)
        return stored

    def get(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def list_messages(self) -> list[Message]:
        return sorted(self._messages.values(), key=lambda m: m.timestamp, reverse=True)

    def for_sender(self, sender_id: str) -> list[Message]:
        return [self._messages[mid] for mid in self._by_sender.get(sender_id, [])]

    def for_group(self, group_id: str) -> list[Message]:
        return [self._messages[mid] for mid in self._by_group.get(group_id, [])]

    def count_for_sender(self, sender_id: str) -> int:
        return len(self._by_sender.get(sender_id, []))
