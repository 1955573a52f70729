"""REST backend data source over httpx.

Endpoints used (all responses are ``{"success": bool, "data": ...}``):

    GET    /projects/{id}
    GET    /activities/project/{id}?limit=N
    GET    /projects/{id}/project-contacts?page=&limit=&search=
    GET    /projects/{id}/kpi-summary
    POST   /activities
    PUT    /projects/{id}/project-contacts/{contactId}
    DELETE /projects/{id}/project-contacts          {"contactIds": [...]}

Transport errors and non-2xx statuses are mapped onto the SourceError
hierarchy; 429 and 5xx are retried with exponential backoff.
"""

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from outreachboard.connectors.base import (
    DEFAULT_POLICY,
    ApiKeyAuth,
    RequestPolicy,
    SourceAuthError,
    SourceConnectionError,
    SourceError,
    SourceNotFoundError,
    SourceResponseError,
    SourceTimeoutError,
    SourceUnavailableError,
)
from outreachboard.models import Activity, ContactPage, KpiSummary, ProjectInfo
from outreachboard.normalize import normalize_activities, normalize_contacts

logger = logging.getLogger(__name__)

ACTIVITY_FETCH_LIMIT = 10000


class HttpDataSource:
    """Backend client implementing ProjectDataSource."""

    def __init__(
        self,
        base_url: str,
        auth: Optional[ApiKeyAuth] = None,
        policy: Optional[RequestPolicy] = None,
        client: Optional[httpx.Client] = None,
        sleep=time.sleep,
    ):
        """Initialize the source.

        Args:
            base_url: Backend API root (e.g. https://api.example.com/api)
            auth: Bearer token auth
            policy: Timeouts and retries
            client: Pre-built httpx client (tests pass one with a MockTransport)
            sleep: Sleep function used between retries
        """
        self.base_url = base_url.rstrip("/")
        self.auth = auth or ApiKeyAuth()
        self.policy = policy or DEFAULT_POLICY
        self._sleep = sleep
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(self.policy.read_timeout, connect=self.policy.connect_timeout)
        )

    @property
    def name(self) -> str:
        return "http"

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpDataSource":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        headers = {"User-Agent": self.policy.user_agent, "Accept": "application/json"}
        headers.update(self.auth.get_headers())
        return headers

    def _map_status(self, response: httpx.Response) -> SourceError:
        body = response.text[:200]
        status = response.status_code
        if status in (401, 403):
            return SourceAuthError(f"Not authorized ({status}): {body}", source_name=self.name)
        if status == 404:
            return SourceNotFoundError(f"Not found: {response.request.url}", source_name=self.name)
        if status == 429 or status >= 500:
            return SourceUnavailableError(f"Backend unavailable ({status}): {body}", source_name=self.name)
        return SourceError(f"HTTP error {status}: {body}", source_name=self.name)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """Send a request with retries and return the envelope's ``data``."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        last_error: Optional[SourceError] = None

        for attempt in range(self.policy.max_retries + 1):
            try:
                response = self._client.request(
                    method, url, params=params, json=json, headers=self._headers()
                )
            except httpx.TimeoutException:
                last_error = SourceTimeoutError(
                    f"Request timed out after {self.policy.read_timeout}s",
                    source_name=self.name,
                    timeout_seconds=self.policy.read_timeout,
                )
            except httpx.HTTPError as e:
                last_error = SourceConnectionError(f"Failed to reach {url}: {e}", source_name=self.name)
            else:
                if response.is_success:
                    return self._unwrap(response)
                last_error = self._map_status(response)
                if response.status_code not in self.policy.retry_on_status:
                    raise last_error

            if attempt < self.policy.max_retries:
                delay = self.policy.delay_for(attempt)
                logger.debug(f"{method} {url} failed ({last_error}); retrying in {delay:.2f}s")
                self._sleep(delay)

        logger.warning(f"{method} {url} failed after {self.policy.max_retries + 1} attempt(s): {last_error}")
        raise last_error

    def _unwrap(self, response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as e:
            raise SourceResponseError(f"Invalid JSON from backend: {e}", source_name=self.name) from e

        if isinstance(payload, dict) and "success" in payload:
            if not payload.get("success"):
                message = payload.get("error") or payload.get("message") or "request failed"
                raise SourceError(str(message), source_name=self.name)
            return payload
        return {"data": payload}

    # ------------------------------------------------------------------
    # ProjectDataSource
    # ------------------------------------------------------------------

    def fetch_project(self, project_id: str) -> ProjectInfo:
        data = (self._request("GET", f"/projects/{project_id}") or {}).get("data") or {}
        channels = data.get("channels") or {}
        if isinstance(channels, dict):
            # {"coldCalling": true, "email": true, "linkedin": false}
            flags = {"coldCalling": "call", "email": "email", "linkedin": "linkedin"}
            channels = [channel for key, channel in flags.items() if channels.get(key)]
        return ProjectInfo(
            project_id=project_id,
            name=data.get("name", ""),
            channels=channels or ["call", "email", "linkedin"],
            assigned_to=data.get("assignedTo"),
        )

    def fetch_activities(self, project_id: str) -> List[Activity]:
        payload = self._request(
            "GET", f"/activities/project/{project_id}", params={"limit": ACTIVITY_FETCH_LIMIT}
        )
        records = (payload or {}).get("data") or []
        if not isinstance(records, list):
            raise SourceResponseError("Activity listing is not a list", source_name=self.name)
        return normalize_activities(records)

    def fetch_contacts(
        self,
        project_id: str,
        page: int,
        page_size: int,
        search: Optional[str] = None,
    ) -> ContactPage:
        params: Dict[str, Any] = {"page": page, "limit": page_size}
        if search:
            params["search"] = search
        payload = self._request("GET", f"/projects/{project_id}/project-contacts", params=params) or {}

        records = payload.get("data") or []
        if not isinstance(records, list):
            raise SourceResponseError("Contact listing is not a list", source_name=self.name)

        # Totals live under "pagination" or at the top level depending on the endpoint
        pagination = payload.get("pagination") or payload
        total = int(pagination.get("total", len(records)) or 0)
        total_pages = int(pagination.get("totalPages", 0) or 0)
        return ContactPage(
            data=normalize_contacts(records),
            page=int(pagination.get("page", page) or page),
            total=total,
            total_pages=total_pages,
        )

    def fetch_kpi_summary(self, project_id: str) -> KpiSummary:
        data = (self._request("GET", f"/projects/{project_id}/kpi-summary") or {}).get("data") or {}
        return KpiSummary(
            linkedin=data.get("linkedin") or {},
            call=data.get("call") or data.get("coldCall") or {},
            email=data.get("email") or {},
        )

    def post_activity(self, payload: Mapping[str, Any]) -> Optional[str]:
        response = self._request("POST", "/activities", json=dict(payload)) or {}
        data = response.get("data") or {}
        return data.get("_id") if isinstance(data, dict) else None

    def update_contact_stage(self, project_id: str, contact_id: str, stage: str) -> None:
        self._request(
            "PUT", f"/projects/{project_id}/project-contacts/{contact_id}", json={"stage": stage}
        )

    def delete_contacts(self, project_id: str, contact_ids: Sequence[str]) -> int:
        response = self._request(
            "DELETE",
            f"/projects/{project_id}/project-contacts",
            json={"contactIds": list(contact_ids)},
        ) or {}
        data = response.get("data") or {}
        return int(data.get("deletedCount", 0)) if isinstance(data, dict) else 0
