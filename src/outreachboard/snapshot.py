"""Per-project snapshot cache and latest-wins refresh slots.

A snapshot is replaced wholesale on every refresh, never patched. Several
refreshes of the same data may be in flight at once (a background refresh
after a bulk log while a drill-down is open, say); `SnapshotSlot` makes
sure a refresh that completes after a newer one cannot overwrite it.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar

from outreachboard.models import Activity, KpiSummary, ProjectInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_PROJECTS = 32


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProjectSnapshot:
    """Everything the board last fetched for one project."""

    project_id: str
    project: Optional[ProjectInfo] = None
    activities: tuple[Activity, ...] = ()
    kpi_summary: Optional[KpiSummary] = None
    fetched_at: datetime = field(default_factory=_utcnow)


class ProjectSnapshotCache:
    """Bounded LRU map of project id -> snapshot.

    Owned by whoever creates it; there is no module-level instance.
    """

    def __init__(self, max_projects: int = DEFAULT_MAX_PROJECTS):
        if max_projects <= 0:
            raise ValueError(f"max_projects must be positive, got {max_projects}")
        self.max_projects = max_projects
        self._entries: "OrderedDict[str, ProjectSnapshot]" = OrderedDict()

    def get(self, project_id: str) -> Optional[ProjectSnapshot]:
        snapshot = self._entries.get(project_id)
        if snapshot is not None:
            self._entries.move_to_end(project_id)
        return snapshot

    def put(self, project_id: str, snapshot: ProjectSnapshot) -> None:
        self._entries[project_id] = snapshot
        self._entries.move_to_end(project_id)
        while len(self._entries) > self.max_projects:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted snapshot for project {evicted}")

    def invalidate(self, project_id: str) -> bool:
        """Drop one project's snapshot. Returns True if one was held."""
        return self._entries.pop(project_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def project_ids(self) -> List[str]:
        """Held project ids, least recently used first."""
        return list(self._entries)

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class SnapshotSlot(Generic[T]):
    """Holds the latest committed value of one refreshable snapshot.

    Usage::

        ticket = slot.begin()
        try:
            value = fetch()
        except SourceError as e:
            slot.fail(ticket, e.user_message)
        else:
            slot.commit(ticket, value)

    Tickets increase monotonically. A commit is accepted only if its ticket
    is newer than the last committed one; a stale result is discarded.
    """

    def __init__(self, name: str = "", initial: Optional[T] = None):
        self.name = name
        self._value: Optional[T] = initial
        self._issued = 0
        self._committed = 0
        self._version = 0
        self.error: Optional[str] = None

    @property
    def value(self) -> Optional[T]:
        return self._value

    @property
    def version(self) -> int:
        """Bumped on every accepted commit; use as a memoization key."""
        return self._version

    @property
    def has_value(self) -> bool:
        return self._version > 0 or self._value is not None

    def begin(self) -> int:
        """Issue a ticket for a refresh that is about to start."""
        self._issued += 1
        return self._issued

    def commit(self, ticket: int, value: T) -> bool:
        """Install `value` unless a newer refresh already landed.

        Returns:
            True if the value was accepted
        """
        if ticket <= self._committed:
            logger.debug(
                f"Discarding stale {self.name or 'snapshot'} refresh "
                f"(ticket {ticket}, current {self._committed})"
            )
            return False
        self._committed = ticket
        self._value = value
        self._version += 1
        self.error = None
        return True

    def fail(self, ticket: int, message: str) -> None:
        """Record a failed refresh; the current value stays in place."""
        if ticket <= self._committed:
            return
        self.error = message
        logger.warning(f"Refresh of {self.name or 'snapshot'} failed, keeping last good value: {message}")
