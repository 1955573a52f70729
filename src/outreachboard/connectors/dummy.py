"""In-memory data source for tests and local experiments.

Holds raw (backend-shaped) records per project, so reads go through the
same normalization as real responses. Can be told to fail specific
operations and records every call for assertions.
"""

import copy
import itertools
from typing import Any, Dict, List, Mapping, Optional, Sequence

from outreachboard.connectors.base import (
    SourceError,
    SourceNotFoundError,
    matches_search,
    paginate_records,
)
from outreachboard.models import Activity, ContactPage, KpiSummary, ProjectInfo
from outreachboard.normalize import normalize_activities, normalize_contacts


class InMemoryDataSource:
    """Project data held in dictionaries.

    Failures can be injected per operation with `fail_next`, or for
    activity posts targeting specific contacts with `fail_posts_for`.
    """

    def __init__(self):
        self._projects: Dict[str, Dict[str, Any]] = {}
        self._errors: Dict[str, List[SourceError]] = {}
        self._failing_contacts: set = set()
        self._ids = itertools.count(1)
        self.call_log: List[Dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "memory"

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def add_project(
        self,
        project_id: str,
        name: str = "",
        contacts: Optional[List[Dict[str, Any]]] = None,
        activities: Optional[List[Dict[str, Any]]] = None,
        kpi_summary: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._projects[project_id] = {
            "project": {"project_id": project_id, "name": name or project_id},
            "contacts": list(contacts or []),
            "activities": list(activities or []),
            "kpi_summary": dict(kpi_summary or {}),
        }

    def set_activities(self, project_id: str, activities: List[Dict[str, Any]]) -> None:
        self._project(project_id)["activities"] = list(activities)

    def set_contacts(self, project_id: str, contacts: List[Dict[str, Any]]) -> None:
        self._project(project_id)["contacts"] = list(contacts)

    def fail_next(self, operation: str, error: SourceError) -> None:
        """Make the next call to `operation` raise `error`."""
        self._errors.setdefault(operation, []).append(error)

    def fail_posts_for(self, *contact_ids: str) -> None:
        """Make activity posts for these contact ids fail."""
        self._failing_contacts.update(contact_ids)

    def calls(self, operation: str) -> List[Dict[str, Any]]:
        return [c for c in self.call_log if c["operation"] == operation]

    def raw_activities(self, project_id: str) -> List[Dict[str, Any]]:
        return copy.deepcopy(self._project(project_id)["activities"])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _record(self, operation: str, **params: Any) -> None:
        self.call_log.append({"operation": operation, **params})
        pending = self._errors.get(operation)
        if pending:
            raise pending.pop(0)

    def _project(self, project_id: str) -> Dict[str, Any]:
        if project_id not in self._projects:
            raise SourceNotFoundError(
                f"Project not found: {project_id}", source_name=self.name, resource_id=project_id
            )
        return self._projects[project_id]

    # ------------------------------------------------------------------
    # ProjectDataSource
    # ------------------------------------------------------------------

    def fetch_project(self, project_id: str) -> ProjectInfo:
        self._record("fetch_project", project_id=project_id)
        return ProjectInfo(**self._project(project_id)["project"])

    def fetch_activities(self, project_id: str) -> List[Activity]:
        self._record("fetch_activities", project_id=project_id)
        return normalize_activities(copy.deepcopy(self._project(project_id)["activities"]))

    def fetch_contacts(
        self,
        project_id: str,
        page: int,
        page_size: int,
        search: Optional[str] = None,
    ) -> ContactPage:
        self._record("fetch_contacts", project_id=project_id, page=page, page_size=page_size, search=search)
        records = [r for r in self._project(project_id)["contacts"] if matches_search(r, search)]
        page_records, total, total_pages = paginate_records(records, page, page_size)
        return ContactPage(
            data=normalize_contacts(copy.deepcopy(page_records)),
            page=page,
            total=total,
            total_pages=total_pages,
        )

    def fetch_kpi_summary(self, project_id: str) -> KpiSummary:
        self._record("fetch_kpi_summary", project_id=project_id)
        return KpiSummary(**self._project(project_id)["kpi_summary"])

    def post_activity(self, payload: Mapping[str, Any]) -> Optional[str]:
        contact_id = payload.get("contactId")
        self._record("post_activity", payload=dict(payload))
        if contact_id in self._failing_contacts:
            raise SourceError(f"Rejected activity for contact {contact_id}", source_name=self.name)

        activity_id = f"act{next(self._ids)}"
        record = {"_id": activity_id, **payload}
        self._project(str(payload.get("projectId")))["activities"].append(record)
        return activity_id

    def update_contact_stage(self, project_id: str, contact_id: str, stage: str) -> None:
        self._record("update_contact_stage", project_id=project_id, contact_id=contact_id, stage=stage)
        for record in self._project(project_id)["contacts"]:
            if str(record.get("_id")) == contact_id:
                record["stage"] = stage

    def delete_contacts(self, project_id: str, contact_ids: Sequence[str]) -> int:
        self._record("delete_contacts", project_id=project_id, contact_ids=list(contact_ids))
        project = self._project(project_id)
        wanted = set(contact_ids)
        before = len(project["contacts"])
        project["contacts"] = [r for r in project["contacts"] if str(r.get("_id")) not in wanted]
        return before - len(project["contacts"])
