"""Dedup & Tombstone Cache for contact listings.

Contacts reach the board from two listings: the paged import listing and
listings inferred from activities (placeholder records). Both may return
the same id. The merge rule: keep what is already held, unless the newcomer
carries a `project_contact_id` and the held record does not. Imported
records are authoritative over inferred ones, whatever the arrival order.

Deletions take a while to propagate through the backend, so a background
fetch that started before a delete can still return the deleted row. The
tombstone set remembers deleted keys for the session and every listing is
filtered through it before it is shown.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Set

from outreachboard.models import Contact

logger = logging.getLogger(__name__)


def merge_contact(existing: Optional[Contact], incoming: Contact) -> Contact:
    """Pick the record to keep for one key."""
    if existing is None:
        return incoming
    if incoming.is_imported and not existing.is_imported:
        return incoming
    return existing


def dedupe_contacts(contacts: Iterable[Contact]) -> List[Contact]:
    """Collapse duplicate keys in one listing.

    Each key keeps the position of its first occurrence; the record held
    there follows `merge_contact`.
    """
    merged: Dict[str, Contact] = {}
    for contact in contacts:
        key = contact.key
        if not key:
            continue
        merged[key] = merge_contact(merged.get(key), contact)
    return list(merged.values())


class TombstoneSet:
    """Session-scoped set of deleted contact keys."""

    def __init__(self, keys: Optional[Iterable[str]] = None):
        self._keys: Set[str] = set(keys or [])

    def add(self, *keys: str) -> None:
        for key in keys:
            if key:
                self._keys.add(key)

    def discard(self, key: str) -> None:
        """Forget a tombstone (e.g. the delete was rolled back)."""
        self._keys.discard(key)

    def clear(self) -> None:
        self._keys.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._keys))

    def is_deleted(self, contact: Contact) -> bool:
        return contact.key in self._keys

    def filter(self, contacts: Iterable[Contact]) -> List[Contact]:
        """Drop tombstoned contacts, preserving order."""
        kept = []
        suppressed = 0
        for contact in contacts:
            if contact.key in self._keys:
                suppressed += 1
                continue
            kept.append(contact)
        if suppressed:
            logger.debug(f"Suppressed {suppressed} tombstoned contact(s) from listing")
        return kept


class ContactCache:
    """Merged, tombstone-aware view over every contact fetch in a session."""

    def __init__(self, tombstones: Optional[TombstoneSet] = None):
        self.tombstones = tombstones if tombstones is not None else TombstoneSet()
        self._contacts: Dict[str, Contact] = {}

    def ingest(self, contacts: Iterable[Contact]) -> List[Contact]:
        """Merge a fetch result and return it as it should be shown.

        The returned list keeps the fetch's order, holds one record per key
        (the authoritative one across everything seen so far) and excludes
        tombstoned keys.
        """
        batch = dedupe_contacts(contacts)
        visible = []
        for contact in batch:
            held = merge_contact(self._contacts.get(contact.key), contact)
            self._contacts[contact.key] = held
            visible.append(held)
        return self.tombstones.filter(visible)

    def mark_deleted(self, *keys: str) -> None:
        """Tombstone keys and drop them from the cache."""
        self.tombstones.add(*keys)
        for key in keys:
            self._contacts.pop(key, None)
        logger.info(f"Tombstoned {len(keys)} contact(s)")

    def get(self, key: str) -> Optional[Contact]:
        if key in self.tombstones:
            return None
        return self._contacts.get(key)

    def values(self) -> List[Contact]:
        """Every held contact that is not tombstoned."""
        return self.tombstones.filter(self._contacts.values())

    def clear(self) -> None:
        """Drop held contacts; tombstones are kept for the session."""
        self._contacts.clear()

    def __len__(self) -> int:
        return len(self.values())
