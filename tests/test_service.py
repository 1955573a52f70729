"""Tests for ProjectBoard."""

import pytest

from outreachboard.bulk import ActivityForm
from outreachboard.connectors.base import SourceError, SourceUnavailableError
from outreachboard.dates import DateFilter, DatePreset
from outreachboard.kpi import KpiFilter
from outreachboard.models import Channel
from outreachboard.pagination import PageMode
from outreachboard.predicates import BoardStats, ContactFilters, SortOrder
from outreachboard.service import ProjectBoard
from outreachboard.snapshot import ProjectSnapshotCache

PROJECT_ID = "p1"


@pytest.fixture
def board(memory_source) -> ProjectBoard:
    board = ProjectBoard(memory_source, PROJECT_ID, page_size=4, client_fetch_limit=500)
    assert board.refresh_activities().ok
    return board


def _names(page):
    return [c.name.split()[0] for c in page.items]


class TestRefresh:
    """Tests for snapshot refreshes."""

    def test_refresh_activities(self, board, today):
        """The index is built from the fetched snapshot."""
        assert len(board.index(today).activities) == 7

    def test_index_memoized(self, board, today):
        """The index is rebuilt only when the snapshot or day changes."""
        first = board.index(today)
        assert board.index(today) is first
        board.refresh_activities()
        assert board.index(today) is not first

    def test_failed_refresh_keeps_last_good(self, board, memory_source, today):
        """A fetch failure is reported and the old snapshot stays."""
        memory_source.fail_next("fetch_activities", SourceUnavailableError("Backend down"))
        outcome = board.refresh_activities()
        assert not outcome.ok
        assert outcome.message == "Backend down"
        assert board.activities.error == "Backend down"
        assert len(board.index(today).activities) == 7

    def test_failure_without_snapshot(self, memory_source, today):
        """A first refresh that fails leaves an empty index, not a crash."""
        board = ProjectBoard(memory_source, "missing")
        outcome = board.refresh_activities()
        assert not outcome.ok
        assert board.index(today).activities == ()

    def test_refresh_all(self, board):
        """refresh() reports one outcome per snapshot."""
        outcomes = board.refresh()
        assert all(o.ok for o in outcomes)
        assert board.project.name == "Spring Campaign"
        assert board.kpi_summary.value.call["callsAttempted"] == 1

    def test_cache_seeds_new_board(self, memory_source, today):
        """A second board on a warm cache starts from the cached snapshot."""
        cache = ProjectSnapshotCache(max_projects=2)
        ProjectBoard(memory_source, PROJECT_ID, cache=cache).refresh_activities()
        second = ProjectBoard(memory_source, PROJECT_ID, cache=cache)
        assert len(second.index(today).activities) == 7
        assert len(memory_source.calls("fetch_activities")) == 1


class TestListContacts:
    """Tests for listing contacts."""

    def test_unfiltered_is_server_paged(self, board, memory_source):
        """Without filters the source pages and totals are its own."""
        page = board.list_contacts()
        assert page.mode == PageMode.SERVER
        assert _names(page) == ["Alice", "Bob", "Cara", "Dan"]
        assert (page.total, page.total_pages) == (6, 2)
        call = memory_source.calls("fetch_contacts")[-1]
        assert (call["page"], call["page_size"], call["search"]) == (1, 4, None)

        second = board.list_contacts(page=2)
        assert _names(second) == ["Eve", "Frank"]
        assert second.showing() == "Showing 5 to 6 of 6"

    def test_filtered_is_client_sliced(self, board, memory_source, today):
        """With a filter one large page is fetched and sliced locally."""
        page = board.list_contacts(ContactFilters(status="New"), today=today)
        assert page.mode == PageMode.CLIENT
        assert _names(page) == ["Eve", "Frank"]
        assert page.total == 2
        call = memory_source.calls("fetch_contacts")[-1]
        assert (call["page"], call["page_size"]) == (1, 500)

    def test_search_goes_to_source(self, board, memory_source, today):
        """The search term is sent to the source."""
        page = board.list_contacts(ContactFilters(search="acme", sort=SortOrder.DESC), today=today)
        assert _names(page) == ["Cara", "Alice"]
        assert memory_source.calls("fetch_contacts")[-1]["search"] == "acme"

    def test_filter_change_resets_page(self, board, today):
        """A new filter set starts on page 1."""
        board.list_contacts(page=2)
        page = board.list_contacts(
            ContactFilters(next_action=DateFilter(preset=DatePreset.THIS_WEEK)), today=today
        )
        assert page.page == 1
        assert _names(page) == ["Alice", "Bob"]

    def test_kpi_filter_uses_project(self, board, today):
        """KPI filtering only counts this project's activities."""
        page = board.list_contacts(
            ContactFilters(kpi=KpiFilter(Channel.CALL, "callsAttempted")), today=today
        )
        assert _names(page) == ["Alice"]

    def test_fetch_failure_propagates(self, board, memory_source):
        """A failed contact fetch raises for the caller to report."""
        memory_source.fail_next("fetch_contacts", SourceError("nope"))
        with pytest.raises(SourceError):
            board.list_contacts()


class TestDeletion:
    """Tests for deletes and tombstones."""

    def test_deleted_rows_never_resurface(self, board, memory_source, raw_contacts, ids, today):
        """Stale fetches still containing a deleted row do not show it."""
        assert board.delete_contacts([ids["bob"]]) == 1
        # backend has not caught up yet
        memory_source.set_contacts(PROJECT_ID, raw_contacts)

        server_page = board.list_contacts()
        assert "Bob" not in _names(server_page)
        assert server_page.total == 6

        client_page = board.list_contacts(ContactFilters(search="b"), today=today)
        assert "Bob" not in _names(client_page)

        assert ids["bob"] not in [c.contact_id for c in board.kpi_members(Channel.EMAIL, "emailsSent", today)]
        assert board.kpi_members(Channel.EMAIL, "emailBounce", today) == []

    def test_failed_delete_lifts_tombstones(self, board, memory_source, ids):
        """If the source rejects the delete, the row comes back."""
        memory_source.fail_next("delete_contacts", SourceError("forbidden"))
        with pytest.raises(SourceError):
            board.delete_contacts([ids["bob"]])
        assert ids["bob"] not in board.tombstones
        assert "Bob" in _names(board.list_contacts())

    def test_empty_delete(self, board, memory_source):
        """Nothing to delete means no call."""
        assert board.delete_contacts([]) == 0
        assert memory_source.calls("delete_contacts") == []


class TestDerivedViews:
    """Tests for stats, drill-downs and statuses."""

    def test_kpi_members(self, board, today):
        """Drill-down listing of a KPI tile."""
        members = board.kpi_members(Channel.CALL, "callsConnected", today)
        assert [c.name for c in members] == ["Alice Archer"]
        legacy = board.kpi_members(Channel.CALL, "callAnswerRate", today)
        assert legacy == members

    def test_stats(self, board, today):
        """Header tiles over the whole project."""
        assert board.stats(today) == BoardStats(total=6, active=2, overdue=1, due_this_week=3)

    def test_displayed_status(self, board, contacts, today):
        """Displayed status comes from the current index."""
        assert board.displayed_status(contacts[0], today) == "Interested"


class TestBulkLog:
    """Tests for bulk logging through the board."""

    def test_log_refreshes_activities(self, board, contacts, memory_source, today):
        """After a bulk log the new activities are indexed."""
        form = ActivityForm(channel=Channel.EMAIL, status="Meeting Proposed", channel_date="2024-03-13")
        result = board.log_activities(contacts[:2], form)
        assert (result.succeeded, result.failed) == (2, 0)
        assert len(board.index(today).activities) == 9
        assert board.displayed_status(contacts[1], today) == "Meeting Proposed"
        assert len(memory_source.calls("update_contact_stage")) == 2
