"""Predicate Engine: combinable contact filters evaluated against an index.

Each active filter contributes one predicate; a contact is kept when every
predicate holds. Free-text search is applied upstream by the data source,
so ``search`` only marks the query as filtered and is never re-checked here.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

from outreachboard.dates import (
    IMPORT_PRESETS,
    LAST_INTERACTION_PRESETS,
    NEXT_ACTION_PRESETS,
    DateFilter,
    local_day,
)
from outreachboard.ids import id_timestamp
from outreachboard.indexer import ActivityIndex, activity_date
from outreachboard.kpi import KpiFilter, has_matching_activity
from outreachboard.models import Contact

logger = logging.getLogger(__name__)

ContactPredicate = Callable[[Contact], bool]

ACTIVE_STAGES = frozenset({"Qualified", "Proposal", "Negotiation"})


class InvalidFilterError(ValueError):
    """A filter was built with a preset its field does not support."""

    pass


class SortOrder(str, Enum):
    """Name sort direction."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class ContactFilters:
    """The active filter set for a contact listing."""

    status: Optional[str] = None
    next_action: Optional[DateFilter] = None
    last_interaction: Optional[DateFilter] = None
    import_date: Optional[DateFilter] = None
    no_activity: bool = False
    kpi: Optional[KpiFilter] = None
    search: Optional[str] = None
    sort: Optional[SortOrder] = None

    def __post_init__(self):
        for field_name, allowed in (
            ("next_action", NEXT_ACTION_PRESETS),
            ("last_interaction", LAST_INTERACTION_PRESETS),
            ("import_date", IMPORT_PRESETS),
        ):
            date_filter: Optional[DateFilter] = getattr(self, field_name)
            if date_filter is not None and date_filter.preset is not None:
                if date_filter.preset not in allowed:
                    raise InvalidFilterError(
                        f"{field_name} does not support preset '{date_filter.preset.value}'"
                    )

    @property
    def search_term(self) -> Optional[str]:
        if self.search is None:
            return None
        return self.search.strip() or None

    @property
    def has_predicates(self) -> bool:
        """Whether any engine-evaluated predicate is active."""
        return bool(
            self.status
            or self.next_action
            or self.last_interaction
            or self.import_date
            or self.no_activity
            or self.kpi
        )

    @property
    def is_active(self) -> bool:
        """Whether the listing is filtered at all (search included)."""
        return self.has_predicates or self.search_term is not None

    def signature(self) -> Tuple:
        """Hashable identity of the filtering part (sort excluded)."""
        return (
            self.status,
            self.next_action,
            self.last_interaction,
            self.import_date,
            self.no_activity,
            self.kpi,
            self.search_term,
        )


# =============================================================================
# Individual predicates
# =============================================================================


def import_date(contact: Contact) -> Optional[date]:
    """Local day the contact was imported.

    Read from the creation-ordered id when possible, else `created_at`.
    """
    return local_day(id_timestamp(contact.contact_id) or contact.created_at)


def matches_status(contact: Contact, index: ActivityIndex, status: str) -> bool:
    return index.displayed_status(contact) == status


def matches_next_action(
    contact: Contact, index: ActivityIndex, date_filter: DateFilter, today: date
) -> bool:
    activity = index.next_action_for(contact)
    if activity is None:
        return False
    return date_filter.matches(local_day(activity.next_action_date), today)


def matches_last_interaction(
    contact: Contact, index: ActivityIndex, date_filter: DateFilter, today: date
) -> bool:
    activity = index.last_activity_for(contact)
    if activity is None:
        return False
    return date_filter.matches(local_day(activity_date(activity)), today)


def matches_import_date(contact: Contact, date_filter: DateFilter, today: date) -> bool:
    return date_filter.matches(import_date(contact), today)


def matches_no_activity(contact: Contact, index: ActivityIndex) -> bool:
    return index.has_no_activity(contact)


def build_predicates(
    filters: ContactFilters,
    index: ActivityIndex,
    project_id: Optional[str] = None,
    today: Optional[date] = None,
) -> List[ContactPredicate]:
    """One predicate per active filter."""
    day = today or index.today
    predicates: List[ContactPredicate] = []

    if filters.status:
        predicates.append(lambda c: matches_status(c, index, filters.status))
    if filters.next_action is not None:
        predicates.append(lambda c: matches_next_action(c, index, filters.next_action, day))
    if filters.last_interaction is not None:
        predicates.append(
            lambda c: matches_last_interaction(c, index, filters.last_interaction, day)
        )
    if filters.import_date is not None:
        predicates.append(lambda c: matches_import_date(c, filters.import_date, day))
    if filters.no_activity:
        predicates.append(lambda c: matches_no_activity(c, index))
    if filters.kpi is not None:
        predicates.append(lambda c: has_matching_activity(c, filters.kpi, index, project_id, day))

    return predicates


def sort_contacts(contacts: List[Contact], order: Optional[SortOrder]) -> List[Contact]:
    """Stable name sort; input order when `order` is None."""
    if order is None:
        return list(contacts)
    return sorted(
        contacts,
        key=lambda c: (c.name or "").lower(),
        reverse=order == SortOrder.DESC,
    )


def apply_filters(
    contacts: Iterable[Contact],
    filters: ContactFilters,
    index: ActivityIndex,
    project_id: Optional[str] = None,
    today: Optional[date] = None,
) -> List[Contact]:
    """AND every active predicate over `contacts`, then sort.

    Args:
        contacts: Candidate contacts (already search-filtered upstream)
        filters: Active filter set
        index: Index built from the same project's activity snapshot
        project_id: Project used to narrow KPI activities
        today: Reference day for date buckets

    Returns:
        Matching contacts, name-sorted if requested, else in input order
    """
    predicates = build_predicates(filters, index, project_id, today)
    kept = [c for c in contacts if all(p(c) for p in predicates)]
    return sort_contacts(kept, filters.sort)


# =============================================================================
# Header tiles
# =============================================================================


@dataclass(frozen=True)
class BoardStats:
    """Counts shown above the contact table."""

    total: int
    active: int
    overdue: int
    due_this_week: int


def board_stats(
    contacts: Iterable[Contact],
    index: ActivityIndex,
    today: Optional[date] = None,
) -> BoardStats:
    """Compute the header tile counts over all (unfiltered) contacts."""
    day = today or index.today
    week_end = day + timedelta(days=7)
    contacts = list(contacts)

    overdue = 0
    due_this_week = 0
    for contact in contacts:
        due_days = [
            local_day(a.next_action_date)
            for a in index.activities_for(contact)
            if a.next_action_date is not None
        ]
        if any(d < day for d in due_days):
            overdue += 1
        if any(day <= d < week_end for d in due_days):
            due_this_week += 1

    return BoardStats(
        total=len(contacts),
        active=sum(1 for c in contacts if c.stage in ACTIVE_STAGES),
        overdue=overdue,
        due_this_week=due_this_week,
    )
