"""
Repository helpers for the identity graph.

Owns every Contact and Group record. Contacts are keyed by gateway JID and
merged on re-import; groups are keyed by JID and replaced on each matrix
sweep.
"""

from collections.abc import Iterable
from dataclasses import replace

from nexus.features.triage.domain import Contact, Group, GroupSyncPreferences
from nexus.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class IdentityRepository:
    """In-process store for contacts and groups."""

    def __init__(self):
        self._contacts: dict[str, Contact] = {}
        self._groups: dict[str, Group] = {}

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    def get_contact(self, contact_id: str) -> Contact | None:
        return self._contacts.get(contact_id)

    def list_contacts(self) -> list[Contact]:
        return list(self._contacts.values())

    def upsert_contact(self, contact: Contact) -> Contact:
        """Insert a contact, merging with any existing record for the same id."""
        existing = self._contacts.get(contact.contact_id)
        stored = existing.merge(contact) if existing else contact
        self._contacts[contact.contact_id] = stored
        return stored

    def add_new_contacts(self, contacts: Iterable[Contact]) -> list[Contact]:
        """
        Insert contacts that are not yet known.

        Known ids are merged instead (memberships unioned), never duplicated.

        Returns:
            Only the contacts that were newly created
        """
        created: list[Contact] = []
        merged = 0
        for contact in contacts:
            if contact.contact_id in self._contacts:
                self.upsert_contact(contact)
                merged += 1
                continue
            self._contacts[contact.contact_id] = contact
            created.append(contact)

        logger.info(
            "Contacts imported",
            created=len(created),
            merged=merged,
            total=len(self._contacts),
        )
        return created

    def save_contact(self, contact: Contact) -> None:
        """Replace the stored record with an already-merged contact."""
        self._contacts[contact.contact_id] = contact

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def get_group(self, jid: str) -> Group | None:
        return self._groups.get(jid)

    def list_groups(self) -> list[Group]:
        return list(self._groups.values())

    def replace_groups(
        self, groups: Iterable[Group], keep_instances: Iterable[str] = ()
    ) -> list[Group]:
        """
        Replace the group set with a fresh sweep.

        Groups are keyed by JID; a later record for the same JID overwrites
        an earlier one. User-set sync preferences and the monitoring flag of
        already-known groups survive the refresh. Known groups owned by an
        instance in keep_instances (one that was not refreshed) are kept as is.
        """
        kept = set(keep_instances)
        deduplicated: dict[str, Group] = {
            jid: group for jid, group in self._groups.items() if group.instance in kept
        }
        for group in groups:
            deduplicated[group.jid] = group

        refreshed: dict[str, Group] = {}
        for jid, group in deduplicated.items():
            previous = self._groups.get(jid)
            if previous is not None:
                group = replace(
                    group,
                    preferences=previous.preferences,
                    monitoring_enabled=previous.monitoring_enabled,
                )
            refreshed[jid] = group

        self._groups = refreshed
        logger.info("Group matrix replaced", group_count=len(refreshed))
        return list(refreshed.values())

    def update_preferences(self, jid: str, preferences: GroupSyncPreferences) -> Group:
        group = self._groups.get(jid)
        if group is None:
            raise KeyError(jid)
        group.preferences = preferences
        return group

    def set_monitoring(self, jid: str, enabled: bool) -> Group:
        group = self._groups.get(jid)
        if group is None:
            raise KeyError(jid)
        group.monitoring_enabled = enabled
        return group
