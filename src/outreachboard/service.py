"""ProjectBoard: one project's contact board, wired to a data source.

The board owns the refreshable snapshots (activities, full contact
listing, KPI rollup), the session's contact cache and tombstones, and the
pagination state. Everything it shows is derived on demand from the
latest snapshot; the activity index is memoized per snapshot version and
reference day.

Refresh failures never clear what the board already holds. They come back
as a `RefreshOutcome` carrying a user-facing message.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import List, Optional, Sequence, Tuple

from outreachboard.bulk import ActivityForm, BulkLogResult, ProgressCallback, log_activities_bulk
from outreachboard.config import config
from outreachboard.connectors.base import ProjectDataSource, SourceError
from outreachboard.dates import today_local
from outreachboard.dedup import ContactCache, TombstoneSet
from outreachboard.indexer import ActivityIndex
from outreachboard.kpi import KpiFilter, filter_members
from outreachboard.models import Activity, Channel, Contact, KpiSummary, ProjectInfo
from outreachboard.pagination import PageMode, PageResult, PaginationController
from outreachboard.predicates import (
    BoardStats,
    ContactFilters,
    apply_filters,
    board_stats,
    sort_contacts,
)
from outreachboard.snapshot import ProjectSnapshot, ProjectSnapshotCache, SnapshotSlot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshOutcome:
    """Result of one refresh, for display."""

    ok: bool
    message: str = ""
    applied: bool = True


class ProjectBoard:
    """Contact board for a single project."""

    def __init__(
        self,
        source: ProjectDataSource,
        project_id: str,
        page_size: Optional[int] = None,
        client_fetch_limit: Optional[int] = None,
        cache: Optional[ProjectSnapshotCache] = None,
        tombstones: Optional[TombstoneSet] = None,
    ):
        """Set up the board.

        Args:
            source: Data source for the project
            project_id: Project to show
            page_size: Rows per page (default from config)
            client_fetch_limit: Bound for the single large fetch used when
                the listing is filtered (default from config)
            cache: Snapshot cache shared between boards; a warm entry seeds
                the activity and KPI snapshots
            tombstones: Deleted keys shared with other boards in the session
        """
        self.source = source
        self.project_id = project_id
        self.cache = cache if cache is not None else ProjectSnapshotCache(config.snapshot_cache_size)
        self.contacts = ContactCache(tombstones)
        self.pager = PaginationController(
            page_size=page_size or config.page_size,
            client_fetch_limit=client_fetch_limit or config.client_fetch_limit,
        )

        cached = self.cache.get(project_id)
        self.project: Optional[ProjectInfo] = cached.project if cached else None
        self.activities: SnapshotSlot[Tuple[Activity, ...]] = SnapshotSlot(
            "activities", cached.activities if cached else None
        )
        self.kpi_summary: SnapshotSlot[KpiSummary] = SnapshotSlot(
            "kpi summary", cached.kpi_summary if cached else None
        )
        self.all_contacts: SnapshotSlot[Tuple[Contact, ...]] = SnapshotSlot("contacts")

        self._index_key: Optional[tuple] = None
        self._index: Optional[ActivityIndex] = None

    @property
    def tombstones(self) -> TombstoneSet:
        return self.contacts.tombstones

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _store_snapshot(self) -> None:
        current = self.cache.get(self.project_id) or ProjectSnapshot(project_id=self.project_id)
        self.cache.put(
            self.project_id,
            replace(
                current,
                project=self.project,
                activities=self.activities.value or (),
                kpi_summary=self.kpi_summary.value,
            ),
        )

    def refresh_project(self) -> RefreshOutcome:
        try:
            self.project = self.source.fetch_project(self.project_id)
        except SourceError as e:
            logger.warning(f"Project header fetch failed for {self.project_id}: {e}")
            return RefreshOutcome(ok=False, message=e.user_message, applied=False)
        self._store_snapshot()
        return RefreshOutcome(ok=True, message=self.project.name)

    def refresh_activities(self) -> RefreshOutcome:
        """Replace the activity snapshot with a fresh full fetch."""
        ticket = self.activities.begin()
        try:
            activities = self.source.fetch_activities(self.project_id)
        except SourceError as e:
            self.activities.fail(ticket, e.user_message)
            return RefreshOutcome(ok=False, message=e.user_message, applied=False)

        applied = self.activities.commit(ticket, tuple(activities))
        if applied:
            self._store_snapshot()
        return RefreshOutcome(ok=True, message=f"{len(activities)} activities", applied=applied)

    def refresh_kpi_summary(self) -> RefreshOutcome:
        ticket = self.kpi_summary.begin()
        try:
            summary = self.source.fetch_kpi_summary(self.project_id)
        except SourceError as e:
            self.kpi_summary.fail(ticket, e.user_message)
            return RefreshOutcome(ok=False, message=e.user_message, applied=False)

        applied = self.kpi_summary.commit(ticket, summary)
        if applied:
            self._store_snapshot()
        return RefreshOutcome(ok=True, applied=applied)

    def refresh_contacts(self) -> RefreshOutcome:
        """Reload the full (bounded) contact listing used by stats and drill-downs."""
        ticket = self.all_contacts.begin()
        try:
            contacts = self._fetch_all_contacts()
        except SourceError as e:
            self.all_contacts.fail(ticket, e.user_message)
            return RefreshOutcome(ok=False, message=e.user_message, applied=False)

        applied = self.all_contacts.commit(ticket, tuple(contacts))
        return RefreshOutcome(ok=True, message=f"{len(contacts)} contacts", applied=applied)

    def refresh(self) -> List[RefreshOutcome]:
        """Refresh every snapshot; failures are reported, not raised."""
        return [
            self.refresh_project(),
            self.refresh_activities(),
            self.refresh_contacts(),
            self.refresh_kpi_summary(),
        ]

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def index(self, today: Optional[date] = None) -> ActivityIndex:
        """Activity index for the current snapshot, memoized."""
        day = today or today_local()
        key = (self.activities.version, id(self.activities.value), day)
        if self._index is None or self._index_key != key:
            self._index = ActivityIndex(self.activities.value or (), today=day)
            self._index_key = key
        return self._index

    def _fetch_all_contacts(self, search: Optional[str] = None) -> List[Contact]:
        limit = self.pager.client_fetch_limit
        page = self.source.fetch_contacts(self.project_id, 1, limit, search)
        if page.total > len(page.data):
            logger.warning(
                f"Project {self.project_id} has {page.total} contacts but only {len(page.data)} "
                f"were fetched (limit {limit}); filtered results may be incomplete"
            )
        return self.contacts.ingest(page.data)

    def _visible_contacts(self) -> List[Contact]:
        if self.all_contacts.value is None:
            self.refresh_contacts()
        return self.tombstones.filter(self.all_contacts.value or ())

    def list_contacts(
        self,
        filters: Optional[ContactFilters] = None,
        page: Optional[int] = None,
        today: Optional[date] = None,
    ) -> PageResult[Contact]:
        """One page of the contact listing.

        Unfiltered listings are paged by the source. Filtered ones are
        fetched in one bounded request, run through the predicate engine
        and sliced here. Changing filters returns to page 1.

        Raises:
            SourceError: If the contact fetch fails
        """
        if filters is not None:
            self.pager.set_filters(filters)
        if page is not None:
            self.pager.go_to(page)

        params = self.pager.fetch_params()
        if self.pager.mode == PageMode.SERVER:
            result = self.source.fetch_contacts(
                self.project_id, params.page, params.page_size, params.search
            )
            visible = sort_contacts(self.contacts.ingest(result.data), self.pager.filters.sort)
            return self.pager.server_page(visible, result.total, result.total_pages or None)

        candidates = self._fetch_all_contacts(params.search)
        matched = apply_filters(
            candidates, self.pager.filters, self.index(today), self.project_id, today
        )
        return self.pager.client_page(matched)

    def kpi_members(
        self,
        channel: Channel,
        metric: str,
        today: Optional[date] = None,
    ) -> List[Contact]:
        """Every contact in a KPI tile (drill-down listing).

        Raises:
            SourceError: If the contact fetch fails
        """
        contacts = self._fetch_all_contacts()
        kpi = KpiFilter(channel=channel, metric=metric)
        return filter_members(contacts, kpi, self.index(today), self.project_id, today)

    def stats(self, today: Optional[date] = None) -> BoardStats:
        return board_stats(self._visible_contacts(), self.index(today), today)

    def displayed_status(self, contact: Contact, today: Optional[date] = None) -> str:
        return self.index(today).displayed_status(contact)

    # ------------------------------------------------------------------
    # Write-backs
    # ------------------------------------------------------------------

    def delete_contacts(self, keys: Sequence[str]) -> int:
        """Remove contacts from the project.

        Keys are tombstoned first, so a listing fetched before the backend
        catches up cannot bring them back. If the delete itself fails the
        tombstones are lifted again and the error propagates.

        Raises:
            SourceError: If the source rejects the delete
        """
        keys = [k for k in keys if k]
        if not keys:
            return 0

        self.contacts.mark_deleted(*keys)
        try:
            removed = self.source.delete_contacts(self.project_id, keys)
        except SourceError:
            for key in keys:
                self.tombstones.discard(key)
            raise
        logger.info(f"Deleted {removed} of {len(keys)} contact(s) from project {self.project_id}")
        return removed

    def log_activities(
        self,
        contacts: Sequence[Contact],
        form: ActivityForm,
        progress: Optional[ProgressCallback] = None,
    ) -> BulkLogResult:
        """Bulk-log activities, then refresh the activity snapshot."""
        result = log_activities_bulk(self.source, self.project_id, contacts, form, progress)
        if result.succeeded:
            outcome = self.refresh_activities()
            if not outcome.ok:
                logger.warning(f"Activity refresh after bulk log failed: {outcome.message}")
        return result
