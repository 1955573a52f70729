"""Activity Indexer: derived per-contact lookups over one activity snapshot.

An `ActivityIndex` is a pure function of (activities, today). It is built
once per snapshot and never mutated afterwards; a refresh produces a new
snapshot and therefore a new index.

Lookups (all keyed by canonical contact id):

- ``by_contact``: activities in input order
- ``last_activity``: activity with the latest activity date; on equal dates
  the later one in input order wins
- ``next_action``: the earliest next action due today or later; if every
  next action is overdue, the least overdue one. A due-today-or-later
  action always beats an overdue one regardless of input order.
- ``latest_status``: status of the latest status-bearing activity
  (``call_status`` for calls, ``status`` for email/LinkedIn)

Free-text fallback matching (contact name or email appearing in an
activity's notes) is only used when a contact has no id-matched activity.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from outreachboard.dates import local_day, today_local
from outreachboard.models import DEFAULT_STAGE, Activity, Channel, Contact
from outreachboard.normalize import normalize_activities

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusEntry:
    """Latest status seen for a contact and when it was recorded."""

    status: str
    activity_date: Optional[datetime]


def activity_date(activity: Activity) -> Optional[datetime]:
    """Channel-specific date if present, else creation time."""
    return activity.activity_date


def status_of(activity: Activity) -> Optional[str]:
    """Status carried by an activity, per its channel."""
    if activity.channel == Channel.CALL:
        return activity.call_status
    return activity.status


def _is_later(candidate: Optional[datetime], current: Optional[datetime]) -> bool:
    """Strictly later, with a missing date ranking below any real one."""
    if candidate is None:
        return False
    if current is None:
        return True
    return candidate > current


class ActivityIndex:
    """Read-only lookup tables built from an activity snapshot."""

    def __init__(self, activities: Sequence[Activity], today: Optional[date] = None):
        """Build all lookups.

        Args:
            activities: Normalized activity snapshot (input order matters)
            today: Reference day for next-action selection. Defaults to the
                local current date.
        """
        self.activities: tuple[Activity, ...] = tuple(activities)
        self.today: date = today or today_local()

        self.by_contact: Dict[str, List[Activity]] = {}
        self.last_activity: Dict[str, Activity] = {}
        self.next_action: Dict[str, Activity] = {}
        self.latest_status: Dict[str, StatusEntry] = {}

        for activity in self.activities:
            if not activity.contact_id:
                continue
            self._add(activity.contact_id, activity)

        logger.debug(
            f"Indexed {len(self.activities)} activities across {len(self.by_contact)} contacts"
        )

    @classmethod
    def from_records(cls, records: Iterable[Any], today: Optional[date] = None) -> "ActivityIndex":
        """Normalize raw records and index them."""
        return cls(normalize_activities(records), today=today)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def _add(self, contact_id: str, activity: Activity) -> None:
        self.by_contact.setdefault(contact_id, []).append(activity)

        when = activity_date(activity)
        if when is not None:
            current = self.last_activity.get(contact_id)
            if current is None or when >= activity_date(current):
                self.last_activity[contact_id] = activity

        if activity.next_action_date is not None:
            current = self.next_action.get(contact_id)
            if self._better_next_action(activity, current):
                self.next_action[contact_id] = activity

        status = status_of(activity)
        if status:
            existing = self.latest_status.get(contact_id)
            if existing is None or _is_later(when, existing.activity_date):
                self.latest_status[contact_id] = StatusEntry(status=status, activity_date=when)

    def _is_upcoming(self, activity: Activity) -> bool:
        return local_day(activity.next_action_date) >= self.today

    def _better_next_action(self, candidate: Activity, current: Optional[Activity]) -> bool:
        if current is None:
            return True

        candidate_upcoming = self._is_upcoming(candidate)
        current_upcoming = self._is_upcoming(current)

        if candidate_upcoming != current_upcoming:
            return candidate_upcoming
        if candidate_upcoming:
            return candidate.next_action_date < current.next_action_date
        return candidate.next_action_date > current.next_action_date

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def fallback_matches(self, contact: Contact) -> List[Activity]:
        """Activities whose notes mention the contact's name or email.

        Low-confidence heuristic; callers use it only when `contact` has no
        id-matched activity.
        """
        needles = [n.lower() for n in (contact.name, contact.email) if n and n.strip()]
        if not needles:
            return []
        return [
            a for a in self.activities
            if a.notes and any(needle in a.notes.lower() for needle in needles)
        ]

    def activities_for(self, contact: Contact, allow_fallback: bool = True) -> List[Activity]:
        """Id-matched activities, or fallback matches when there are none."""
        if contact.contact_id:
            matched = self.by_contact.get(contact.contact_id)
            if matched:
                return list(matched)
        if allow_fallback:
            return self.fallback_matches(contact)
        return []

    def has_no_activity(self, contact: Contact) -> bool:
        """True only with no id match and no fallback match at all."""
        if contact.contact_id and self.by_contact.get(contact.contact_id):
            return False
        return not self.fallback_matches(contact)

    def last_activity_for(self, contact: Contact) -> Optional[Activity]:
        if not contact.contact_id:
            return None
        return self.last_activity.get(contact.contact_id)

    def next_action_for(self, contact: Contact) -> Optional[Activity]:
        if not contact.contact_id:
            return None
        return self.next_action.get(contact.contact_id)

    def latest_status_for(self, contact: Contact) -> Optional[StatusEntry]:
        if not contact.contact_id:
            return None
        return self.latest_status.get(contact.contact_id)

    def displayed_status(self, contact: Contact) -> str:
        """Latest activity status, else the contact's stage, else "New"."""
        entry = self.latest_status_for(contact)
        if entry is not None:
            return entry.status
        return contact.stage or DEFAULT_STAGE

    def channel_activities(
        self,
        contact: Contact,
        channel: Channel,
        project_id: Optional[str] = None,
    ) -> List[Activity]:
        """Id-matched activities of one channel, narrowed to one project.

        No fallback matching here: KPI membership is id-based only.
        """
        if not contact.contact_id:
            return []
        return [
            a for a in self.by_contact.get(contact.contact_id, [])
            if a.channel == channel and (project_id is None or a.project_id == project_id)
        ]

    def snapshot_view(self) -> Dict[str, Any]:
        """Plain-dict view of the lookups (ids only), for comparisons and debugging."""
        return {
            "by_contact": {cid: [a.activity_id for a in acts] for cid, acts in self.by_contact.items()},
            "last_activity": {cid: a.activity_id for cid, a in self.last_activity.items()},
            "next_action": {cid: a.activity_id for cid, a in self.next_action.items()},
            "latest_status": {
                cid: (e.status, e.activity_date) for cid, e in self.latest_status.items()
            },
        }
