"""Data-source abstractions: protocol, request policy and error hierarchy.

The board never talks to the backend directly. It is driven through a
`ProjectDataSource`, which delivers full snapshots (activities), paged
listings (contacts) and the precomputed KPI rollup, and accepts the few
write-backs the board triggers. Implementations:

- FileDataSource: JSON files on disk (offline use, CLI, tests)
- HttpDataSource: the REST backend, over httpx
- InMemoryDataSource: canned data with call logging and failure injection
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from outreachboard.models import Activity, ContactPage, KpiSummary, ProjectInfo

# =============================================================================
# Authentication and request policy
# =============================================================================


@dataclass
class ApiKeyAuth:
    """Bearer-token authentication for the backend."""

    api_key: str = ""
    header_name: str = "Authorization"
    header_prefix: str = "Bearer"

    def is_configured(self) -> bool:
        """Check if API key is set."""
        return bool(self.api_key)

    def get_headers(self) -> Dict[str, str]:
        """Get authorization header."""
        if not self.api_key:
            return {}
        if self.header_prefix:
            return {self.header_name: f"{self.header_prefix} {self.api_key}"}
        return {self.header_name: self.api_key}


@dataclass
class RequestPolicy:
    """Timeouts and retries for HTTP sources."""

    # Timeouts
    connect_timeout: float = 10.0  # seconds
    read_timeout: float = 30.0  # seconds

    # Retries
    max_retries: int = 2
    retry_delay: float = 0.5  # base delay in seconds
    retry_backoff: float = 2.0  # exponential backoff multiplier
    retry_on_status: List[int] = field(default_factory=lambda: [429, 500, 502, 503, 504])

    user_agent: str = "outreachboard/1.0"

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before retry number `attempt` (0-based)."""
        return self.retry_delay * (self.retry_backoff ** attempt)


DEFAULT_POLICY = RequestPolicy()


# =============================================================================
# Error hierarchy
# =============================================================================


class SourceError(Exception):
    """Base exception for data-source failures.

    Always recoverable from the board's point of view: the caller keeps its
    last good snapshot and shows `user_message`.
    """

    def __init__(self, message: str, source_name: str = "", details: Optional[Dict[str, Any]] = None):
        self.source_name = source_name
        self.details = details or {}
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return str(self)


class SourceConnectionError(SourceError):
    """Failed to reach the backend."""

    pass


class SourceTimeoutError(SourceError):
    """Request timed out."""

    def __init__(self, message: str = "Request timed out", source_name: str = "", timeout_seconds: Optional[float] = None):
        super().__init__(message, source_name, {"timeout_seconds": timeout_seconds})
        self.timeout_seconds = timeout_seconds


class SourceAuthError(SourceError):
    """Authentication or permission failure."""

    pass


class SourceNotFoundError(SourceError):
    """Project or record does not exist."""

    def __init__(self, message: str = "Resource not found", source_name: str = "", resource_id: str = ""):
        super().__init__(message, source_name, {"resource_id": resource_id})
        self.resource_id = resource_id


class SourceUnavailableError(SourceError):
    """Backend temporarily unavailable (5xx, rate limited)."""

    pass


class SourceResponseError(SourceError):
    """Response could not be read (bad JSON, unexpected shape)."""

    pass


# =============================================================================
# Source protocol
# =============================================================================


@runtime_checkable
class ProjectDataSource(Protocol):
    """Collaborator contract the board is driven through."""

    @property
    def name(self) -> str:
        ...

    def fetch_project(self, project_id: str) -> ProjectInfo:
        ...

    def fetch_activities(self, project_id: str) -> List[Activity]:
        """Full activity snapshot for a project (no deltas)."""
        ...

    def fetch_contacts(
        self,
        project_id: str,
        page: int,
        page_size: int,
        search: Optional[str] = None,
    ) -> ContactPage:
        """One page of the project's contacts, search applied server-side."""
        ...

    def fetch_kpi_summary(self, project_id: str) -> KpiSummary:
        ...

    def post_activity(self, payload: Mapping[str, Any]) -> Optional[str]:
        """Log one activity; returns its id when the source reports one."""
        ...

    def update_contact_stage(self, project_id: str, contact_id: str, stage: str) -> None:
        ...

    def delete_contacts(self, project_id: str, contact_ids: Sequence[str]) -> int:
        """Remove contacts from a project; returns how many were removed."""
        ...


def matches_search(record: Mapping[str, Any], search: Optional[str]) -> bool:
    """Case-insensitive substring match over name, company, email and phone.

    Shared by the offline sources so they search the way the backend does.
    """
    if not search or not search.strip():
        return True
    needle = search.strip().lower()
    for key in ("name", "company", "email", "firstPhone", "phone"):
        value = record.get(key)
        if value is not None and needle in str(value).lower():
            return True
    return False


def paginate_records(
    records: Sequence[Mapping[str, Any]],
    page: int,
    page_size: int,
) -> tuple[List[Mapping[str, Any]], int, int]:
    """Slice raw records the way the backend pages them.

    Returns:
        Tuple of (page_records, total, total_pages)
    """
    total = len(records)
    total_pages = -(-total // page_size) if page_size > 0 else 0
    start = (max(page, 1) - 1) * page_size
    return list(records[start:start + page_size]), total, total_pages
