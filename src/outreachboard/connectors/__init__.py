"""Data sources the board is driven through.

Key components:
- ProjectDataSource: protocol every source implements
- RequestPolicy / ApiKeyAuth: timeouts, retries and credentials for HTTP
- SourceError hierarchy: typed, recoverable fetch and write-back failures
- FileDataSource, HttpDataSource, InMemoryDataSource: implementations
"""

from .base import (
    DEFAULT_POLICY,
    ApiKeyAuth,
    ProjectDataSource,
    RequestPolicy,
    SourceAuthError,
    SourceConnectionError,
    SourceError,
    SourceNotFoundError,
    SourceResponseError,
    SourceTimeoutError,
    SourceUnavailableError,
    matches_search,
    paginate_records,
)
from .dummy import InMemoryDataSource
from .file_source import FileDataSource
from .http_source import HttpDataSource

__all__ = [
    "DEFAULT_POLICY",
    "ApiKeyAuth",
    "FileDataSource",
    "HttpDataSource",
    "InMemoryDataSource",
    "ProjectDataSource",
    "RequestPolicy",
    "SourceAuthError",
    "SourceConnectionError",
    "SourceError",
    "SourceNotFoundError",
    "SourceResponseError",
    "SourceTimeoutError",
    "SourceUnavailableError",
    "matches_search",
    "paginate_records",
]
