"""Test configuration and fixtures.

All dates are plain ``YYYY-MM-DD`` strings (local calendar days) and every
test passes an explicit reference day, so results do not depend on the
machine's clock or timezone.
"""

import json
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest

from outreachboard.connectors.dummy import InMemoryDataSource
from outreachboard.indexer import ActivityIndex
from outreachboard.normalize import normalize_activities, normalize_contacts

# Wednesday; its ISO week runs 2024-03-11 .. 2024-03-17
TODAY = date(2024, 3, 13)
PROJECT_ID = "p1"


def _object_id(day: date, serial: int = 0) -> str:
    """24-hex creation-ordered id whose timestamp falls at local noon on `day`."""
    seconds = int(datetime.combine(day, time(12, 0)).astimezone().timestamp())
    return f"{seconds:08x}{serial:016x}"


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def object_id() -> Callable[..., str]:
    """Factory for creation-ordered ids: object_id(day, serial)."""
    return _object_id


@pytest.fixture
def ids() -> Dict[str, str]:
    """Contact ids of the sample project, by first name."""
    return {
        "alice": _object_id(date(2024, 3, 13), 1),
        "bob": _object_id(date(2024, 3, 12), 2),
        "cara": _object_id(date(2024, 2, 1), 3),
        "dan": _object_id(date(2024, 2, 1), 4),
        "eve": _object_id(date(2024, 2, 1), 5),
        "frank": _object_id(date(2024, 3, 12), 6),
    }


@pytest.fixture
def raw_contacts(ids) -> List[Dict[str, Any]]:
    """Backend-shaped contacts of the sample project."""
    return [
        {
            "_id": ids["alice"],
            "name": "Alice Archer",
            "company": "Acme",
            "email": "alice@acme.io",
            "firstPhone": "+1 555 0101",
            "personLinkedinUrl": "https://linkedin.com/in/alice",
            "stage": "Qualified",
            "projectContactId": "pc-alice",
        },
        {"_id": ids["bob"], "name": "Bob Baker", "company": "Bolt", "email": "bob@bolt.io", "stage": "New"},
        {"_id": ids["cara"], "name": "Cara Cole", "company": "Acme", "email": "cara@acme.io", "stage": "SQL"},
        {"_id": ids["dan"], "name": "Dan Drake", "company": "Delta", "email": "dan@delta.io", "stage": "Proposal"},
        {"_id": ids["eve"], "name": "Eve Evans", "company": "Echo"},
        {"_id": ids["frank"], "name": "Frank Fuller", "company": "Fox", "email": "frank@fox.io"},
    ]


@pytest.fixture
def raw_activities(ids) -> List[Dict[str, Any]]:
    """Backend-shaped activity snapshot of the sample project.

    - alice: two calls (Ring, then Interested), follow-up due tomorrow
    - bob: two emails, latest (by date, not input order) is Bounce; one
      overdue and one upcoming follow-up
    - cara: one LinkedIn touch today, request sent and accepted, CIP
    - dan: one Busy call logged against another project
    - frank: only mentioned in the notes of an activity without contactId
    - eve: nothing
    """
    return [
        {"_id": "a1", "projectId": PROJECT_ID, "contactId": ids["alice"], "type": "call",
         "callStatus": "Ring", "callDate": "2024-01-01"},
        {"_id": "a2", "projectId": PROJECT_ID, "contactId": ids["alice"], "type": "call",
         "callStatus": "Interested", "callDate": "2024-01-05",
         "nextAction": "Send deck", "nextActionDate": "2024-03-14"},
        {"_id": "a3", "projectId": PROJECT_ID, "contactId": ids["bob"], "type": "email",
         "status": "Bounce", "emailDate": "2024-03-12", "nextActionDate": "2024-03-10"},
        {"_id": "a4", "projectId": PROJECT_ID, "contactId": ids["bob"], "type": "email",
         "status": "No Reply", "emailDate": "2024-03-11", "nextActionDate": "2024-03-15"},
        {"_id": "a5", "projectId": PROJECT_ID, "contactId": {"$oid": ids["cara"]}, "type": "linkedin",
         "lnRequestSent": "Yes", "connected": True, "status": "CIP", "linkedinDate": "2024-03-13"},
        {"_id": "a6", "projectId": "p2", "contactId": ids["dan"], "type": "call",
         "callStatus": "Busy", "callDate": "2024-03-08"},
        {"_id": "a7", "projectId": PROJECT_ID, "type": "email", "emailDate": "2024-03-01",
         "conversationNotes": "Intro sent\n\n[Contact: Frank Fuller | Email: frank@fox.io]",
         "nextActionDate": "2024-03-16"},
    ]


@pytest.fixture
def kpi_summary() -> Dict[str, Any]:
    return {
        "linkedin": {"connectionSent": 1, "accepted": 1},
        "call": {"callsAttempted": 1, "callsConnected": 1},
        "email": {"emailsSent": 2, "emailBounce": 1},
    }


@pytest.fixture
def contacts(raw_contacts):
    return normalize_contacts(raw_contacts)


@pytest.fixture
def activities(raw_activities):
    return normalize_activities(raw_activities)


@pytest.fixture
def index(activities, today) -> ActivityIndex:
    return ActivityIndex(activities, today=today)


@pytest.fixture
def contact_by_name(contacts):
    """Look up a sample contact by first name."""
    by_name = {c.name.split()[0].lower(): c for c in contacts}
    return by_name.__getitem__


@pytest.fixture
def memory_source(raw_contacts, raw_activities, kpi_summary) -> InMemoryDataSource:
    """In-memory source holding the sample project."""
    source = InMemoryDataSource()
    source.add_project(
        PROJECT_ID,
        name="Spring Campaign",
        contacts=raw_contacts,
        activities=raw_activities,
        kpi_summary=kpi_summary,
    )
    return source


@pytest.fixture
def data_dir(tmp_path, raw_contacts, raw_activities, kpi_summary) -> Path:
    """Directory with the sample project as JSON files."""
    project_dir = tmp_path / PROJECT_ID
    project_dir.mkdir()
    (project_dir / "project.json").write_text(
        json.dumps({"name": "Spring Campaign", "channels": ["call", "email", "linkedin"]})
    )
    (project_dir / "contacts.json").write_text(json.dumps({"data": raw_contacts}))
    (project_dir / "activities.json").write_text(json.dumps(raw_activities))
    (project_dir / "kpi_summary.json").write_text(json.dumps(kpi_summary))
    return tmp_path
