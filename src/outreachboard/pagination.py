"""Pagination Controller: server-paged vs. client-sliced listings.

With no search, filter or KPI active, paging is delegated to the backend
and the totals come from its response. As soon as anything filters the
listing, the controller asks for one large page, the engine filters and
sorts it, and the controller slices the result locally, computing totals
from the filtered size.

Changing the filtering (or the mode) always sends the user back to page 1,
so the "Showing X to Y of N" line never mixes numbers from two modes.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, Sequence, TypeVar

from outreachboard.predicates import ContactFilters

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50
DEFAULT_CLIENT_FETCH_LIMIT = 10000


class PageMode(str, Enum):
    """Who does the paging."""

    SERVER = "server"
    CLIENT = "client"


def total_pages_for(total: int, page_size: int) -> int:
    if total <= 0 or page_size <= 0:
        return 0
    return math.ceil(total / page_size)


def page_window(page: int, total_pages: int, width: int = 5) -> List[int]:
    """Page numbers for the pager buttons.

    Shows the first `width` pages near the start, the last `width` near the
    end, and otherwise a window centred on `page`.
    """
    if total_pages <= 0:
        return []
    if total_pages <= width:
        return list(range(1, total_pages + 1))

    half = width // 2
    if page <= half + 1:
        first = 1
    elif page >= total_pages - half:
        first = total_pages - width + 1
    else:
        first = page - half
    return list(range(first, first + width))


@dataclass(frozen=True)
class PageResult(Generic[T]):
    """One rendered page plus the numbers for the pager."""

    items: List[T] = field(default_factory=list)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total: int = 0
    total_pages: int = 0
    mode: PageMode = PageMode.SERVER

    @property
    def start(self) -> int:
        """1-based position of the first row shown (0 when empty)."""
        if not self.items:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end(self) -> int:
        """1-based position of the last row shown (0 when empty)."""
        if not self.items:
            return 0
        return self.start + len(self.items) - 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    def showing(self) -> str:
        if not self.items:
            return f"Showing 0 of {self.total:,}"
        return f"Showing {self.start} to {self.end} of {self.total:,}"

    def window(self, width: int = 5) -> List[int]:
        return page_window(self.page, self.total_pages, width)


def slice_page(items: Sequence[T], page: int, page_size: int) -> PageResult[T]:
    """Client-side slice of an already filtered and sorted list."""
    start = (page - 1) * page_size
    return PageResult(
        items=list(items[start:start + page_size]),
        page=page,
        page_size=page_size,
        total=len(items),
        total_pages=total_pages_for(len(items), page_size),
        mode=PageMode.CLIENT,
    )


@dataclass(frozen=True)
class FetchParams:
    """What to ask the contact source for."""

    page: int
    page_size: int
    search: Optional[str] = None


class PaginationController:
    """Tracks the current page and picks the paging mode per query."""

    def __init__(
        self,
        page_size: int = DEFAULT_PAGE_SIZE,
        client_fetch_limit: int = DEFAULT_CLIENT_FETCH_LIMIT,
    ):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.page_size = page_size
        self.client_fetch_limit = client_fetch_limit
        self.page = 1
        self._filters = ContactFilters()

    @staticmethod
    def select_mode(filters: ContactFilters) -> PageMode:
        return PageMode.CLIENT if filters.is_active else PageMode.SERVER

    @property
    def filters(self) -> ContactFilters:
        return self._filters

    @property
    def mode(self) -> PageMode:
        return self.select_mode(self._filters)

    def set_filters(self, filters: ContactFilters) -> bool:
        """Install a new filter set.

        Returns:
            True if the page was reset to 1 (filtering or mode changed)
        """
        changed = filters.signature() != self._filters.signature()
        mode_changed = self.select_mode(filters) != self.mode
        self._filters = filters
        if changed or mode_changed:
            self.page = 1
            return True
        return False

    def go_to(self, page: int) -> int:
        self.page = max(1, int(page))
        return self.page

    def set_page_size(self, page_size: int) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        if page_size != self.page_size:
            self.page_size = page_size
            self.page = 1

    def fetch_params(self) -> FetchParams:
        """Request to send to the contact source for the current state."""
        search = self._filters.search_term
        if self.mode == PageMode.SERVER:
            return FetchParams(page=self.page, page_size=self.page_size, search=search)
        return FetchParams(page=1, page_size=self.client_fetch_limit, search=search)

    def server_page(self, items: List[T], total: int, total_pages: Optional[int] = None) -> PageResult[T]:
        """Wrap a backend page; totals are the backend's."""
        if total_pages is None:
            total_pages = total_pages_for(total, self.page_size)
        return PageResult(
            items=list(items),
            page=self.page,
            page_size=self.page_size,
            total=total,
            total_pages=total_pages,
            mode=PageMode.SERVER,
        )

    def client_page(self, filtered: Sequence[T]) -> PageResult[T]:
        """Slice the full filtered set for the current page."""
        return slice_page(filtered, self.page, self.page_size)
