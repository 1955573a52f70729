"""outreachboard: activity indexing, filtering and KPI drill-downs for outreach projects."""

__version__ = "0.1.0"

from outreachboard.dates import DateFilter, DatePreset
from outreachboard.dedup import ContactCache, TombstoneSet
from outreachboard.indexer import ActivityIndex
from outreachboard.kpi import KpiFilter, evaluate_metric, has_matching_activity, list_metrics
from outreachboard.models import Activity, Channel, Contact, KpiSummary, ProjectInfo
from outreachboard.normalize import normalize_activities, normalize_contacts
from outreachboard.pagination import PageMode, PageResult, PaginationController
from outreachboard.predicates import ContactFilters, SortOrder, apply_filters, board_stats
from outreachboard.service import ProjectBoard, RefreshOutcome
from outreachboard.snapshot import ProjectSnapshot, ProjectSnapshotCache, SnapshotSlot

__all__ = [
    "Activity",
    "ActivityIndex",
    "Channel",
    "Contact",
    "ContactCache",
    "ContactFilters",
    "DateFilter",
    "DatePreset",
    "KpiFilter",
    "KpiSummary",
    "PageMode",
    "PageResult",
    "PaginationController",
    "ProjectBoard",
    "ProjectInfo",
    "ProjectSnapshot",
    "ProjectSnapshotCache",
    "RefreshOutcome",
    "SnapshotSlot",
    "SortOrder",
    "TombstoneSet",
    "apply_filters",
    "board_stats",
    "evaluate_metric",
    "has_matching_activity",
    "list_metrics",
    "normalize_activities",
    "normalize_contacts",
]
