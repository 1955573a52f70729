"""Tests for the pagination controller."""

import pytest

from outreachboard.pagination import (
    PageMode,
    PageResult,
    PaginationController,
    page_window,
    slice_page,
    total_pages_for,
)
from outreachboard.predicates import ContactFilters, SortOrder


class TestPageWindow:
    """Tests for the pager buttons."""

    @pytest.mark.parametrize(
        "page, total_pages, expected",
        [
            (1, 0, []),
            (2, 3, [1, 2, 3]),
            (1, 10, [1, 2, 3, 4, 5]),
            (3, 10, [1, 2, 3, 4, 5]),
            (6, 10, [4, 5, 6, 7, 8]),
            (9, 10, [6, 7, 8, 9, 10]),
            (10, 10, [6, 7, 8, 9, 10]),
        ],
    )
    def test_window(self, page, total_pages, expected):
        """First five, last five, or centred."""
        assert page_window(page, total_pages) == expected

    def test_total_pages(self):
        """Ceiling division, zero for empty."""
        assert total_pages_for(120, 50) == 3
        assert total_pages_for(100, 50) == 2
        assert total_pages_for(0, 50) == 0


class TestPageResult:
    """Tests for PageResult."""

    def test_showing(self):
        """Showing X to Y of N."""
        page = PageResult(items=list(range(50)), page=2, page_size=50, total=1200, total_pages=24)
        assert page.showing() == "Showing 51 to 100 of 1,200"
        assert page.has_next and page.has_previous

    def test_empty(self):
        """An empty page shows zero."""
        assert PageResult().showing() == "Showing 0 of 0"
        assert not PageResult().has_next


class TestClientSlicing:
    """Tests for client-side slicing."""

    def test_search_scenario(self):
        """120 matches at 50 per page: 1-50, then 101-120, and a new search resets."""
        matches = list(range(1, 121))
        pager = PaginationController(page_size=50)
        assert pager.set_filters(ContactFilters(search="acme"))
        assert pager.mode == PageMode.CLIENT

        first = pager.client_page(matches)
        assert (first.start, first.end, first.total) == (1, 50, 120)
        assert first.items[0] == 1 and first.items[-1] == 50

        pager.go_to(3)
        third = pager.client_page(matches)
        assert (third.start, third.end) == (101, 120)
        assert third.items == list(range(101, 121))
        assert third.total_pages == 3
        assert not third.has_next

        assert pager.set_filters(ContactFilters(search="bolt"))
        assert pager.page == 1

    def test_slice_beyond_end(self):
        """A page past the end is empty but keeps the totals."""
        result = slice_page(list(range(10)), 5, 5)
        assert result.items == []
        assert result.total == 10
        assert result.showing() == "Showing 0 of 10"


class TestModeSelection:
    """Tests for mode switching."""

    def test_unfiltered_is_server(self):
        """No filters: the backend pages."""
        pager = PaginationController(page_size=25)
        assert pager.mode == PageMode.SERVER
        pager.go_to(4)
        params = pager.fetch_params()
        assert (params.page, params.page_size, params.search) == (4, 25, None)

    def test_filtered_fetches_one_large_page(self):
        """Filtered: one bounded fetch starting at page 1."""
        pager = PaginationController(page_size=25, client_fetch_limit=10000)
        pager.set_filters(ContactFilters(status="New", search=" acme "))
        pager.go_to(2)
        params = pager.fetch_params()
        assert (params.page, params.page_size, params.search) == (1, 10000, "acme")

    def test_switching_mode_resets_page(self):
        """Entering and leaving client mode both go back to page 1."""
        pager = PaginationController()
        pager.go_to(7)
        assert pager.set_filters(ContactFilters(no_activity=True))
        assert pager.page == 1
        pager.go_to(3)
        assert pager.set_filters(ContactFilters())
        assert pager.page == 1
        assert pager.mode == PageMode.SERVER

    def test_sort_change_keeps_page(self):
        """Changing only the sort does not reset the page."""
        pager = PaginationController()
        pager.set_filters(ContactFilters(status="New"))
        pager.go_to(2)
        assert not pager.set_filters(ContactFilters(status="New", sort=SortOrder.DESC))
        assert pager.page == 2

    def test_server_totals_come_from_backend(self):
        """Server pages report the backend's totals."""
        pager = PaginationController(page_size=50)
        pager.go_to(2)
        page = pager.server_page(list(range(50)), total=1200, total_pages=24)
        assert page.mode == PageMode.SERVER
        assert page.showing() == "Showing 51 to 100 of 1,200"

    def test_page_size_change_resets(self):
        """A new page size goes back to page 1."""
        pager = PaginationController(page_size=50)
        pager.go_to(3)
        pager.set_page_size(100)
        assert pager.page == 1
        with pytest.raises(ValueError):
            pager.set_page_size(0)
