"""JSON-directory data source.

Reads backend-shaped exports from disk, one directory per project:

    <data_dir>/<project_id>/
        project.json        {"name": ..., "channels": [...]}
        contacts.json       [ {...contact...}, ... ]
        activities.json     [ {...activity...}, ... ]
        kpi_summary.json    {"linkedin": {...}, "call": {...}, "email": {...}}

Only ``contacts.json`` and ``activities.json`` are needed; missing files
read as empty. Write-backs update the files in place.
"""

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from outreachboard.connectors.base import (
    SourceNotFoundError,
    SourceResponseError,
    matches_search,
    paginate_records,
)
from outreachboard.models import Activity, ContactPage, KpiSummary, ProjectInfo
from outreachboard.normalize import normalize_activities, normalize_contacts

logger = logging.getLogger(__name__)


class FileDataSource:
    """Project data stored as JSON files under a base directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    @property
    def name(self) -> str:
        return "file"

    def _project_dir(self, project_id: str) -> Path:
        path = self.data_dir / project_id
        if not path.is_dir():
            raise SourceNotFoundError(
                f"Project not found: {project_id} (no directory {path})",
                source_name=self.name,
                resource_id=project_id,
            )
        return path

    def _read(self, project_id: str, filename: str, default: Any) -> Any:
        path = self._project_dir(project_id) / filename
        if not path.exists():
            return default
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SourceResponseError(f"Cannot read {path}: {e}", source_name=self.name) from e

        # Accept both bare lists and {"data": [...]} envelopes
        if isinstance(default, list) and isinstance(data, dict):
            data = data.get("data", default)
        if not isinstance(data, type(default)):
            raise SourceResponseError(
                f"Unexpected content in {path}: expected {type(default).__name__}",
                source_name=self.name,
            )
        return data

    def _write(self, project_id: str, filename: str, data: Any) -> None:
        path = self._project_dir(project_id) / filename
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)

    def list_projects(self) -> List[str]:
        if not self.data_dir.is_dir():
            return []
        return sorted(p.name for p in self.data_dir.iterdir() if p.is_dir())

    def fetch_project(self, project_id: str) -> ProjectInfo:
        data: Dict[str, Any] = self._read(project_id, "project.json", {})
        return ProjectInfo(
            project_id=project_id,
            name=data.get("name", project_id),
            channels=data.get("channels") or ["call", "email", "linkedin"],
            assigned_to=data.get("assignedTo"),
        )

    def fetch_activities(self, project_id: str) -> List[Activity]:
        return normalize_activities(self._read(project_id, "activities.json", []))

    def fetch_contacts(
        self,
        project_id: str,
        page: int,
        page_size: int,
        search: Optional[str] = None,
    ) -> ContactPage:
        records = self._read(project_id, "contacts.json", [])
        records = [r for r in records if isinstance(r, dict) and matches_search(r, search)]
        page_records, total, total_pages = paginate_records(records, page, page_size)
        return ContactPage(
            data=normalize_contacts(page_records),
            page=page,
            total=total,
            total_pages=total_pages,
        )

    def fetch_kpi_summary(self, project_id: str) -> KpiSummary:
        return KpiSummary(**self._read(project_id, "kpi_summary.json", {}))

    def post_activity(self, payload: Mapping[str, Any]) -> Optional[str]:
        project_id = str(payload.get("projectId") or "")
        records = self._read(project_id, "activities.json", [])
        activity_id = uuid.uuid4().hex[:24]
        records.append({"_id": activity_id, **payload})
        self._write(project_id, "activities.json", records)
        return activity_id

    def update_contact_stage(self, project_id: str, contact_id: str, stage: str) -> None:
        records = self._read(project_id, "contacts.json", [])
        for record in records:
            if str(record.get("_id", record.get("id"))) == contact_id:
                record["stage"] = stage
        self._write(project_id, "contacts.json", records)

    def delete_contacts(self, project_id: str, contact_ids: Sequence[str]) -> int:
        records = self._read(project_id, "contacts.json", [])
        wanted = set(contact_ids)
        kept = [r for r in records if str(r.get("_id", r.get("id"))) not in wanted]
        self._write(project_id, "contacts.json", kept)
        removed = len(records) - len(kept)
        logger.info(f"Removed {removed} contact(s) from project {project_id}")
        return removed
