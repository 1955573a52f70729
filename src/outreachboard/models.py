"""Strict internal records for contacts, activities and project rollups.

Raw backend JSON is loosely shaped; `outreachboard.normalize` turns it into
these models once, at the ingestion boundary. Everything downstream
(indexer, predicates, KPI evaluation) reads typed attributes only.

All datetimes held by these models are timezone-aware.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Channel(str, Enum):
    """Outreach channel an activity belongs to."""

    CALL = "call"
    EMAIL = "email"
    LINKEDIN = "linkedin"


DEFAULT_STAGE = "New"


class Contact(BaseModel):
    """A prospect enrolled in a project.

    `contact_id` is absent for suggestions that were never persisted; the
    name then serves as the lookup key.
    """

    contact_id: Optional[str] = Field(None, description="Canonical string id")
    name: str = Field("", description="Display name")
    company: Optional[str] = Field(None, description="Company name")
    email: Optional[str] = Field(None, description="Email address")
    phone: Optional[str] = Field(None, description="Primary phone number")
    linkedin_urls: List[str] = Field(default_factory=list, description="Person/company LinkedIn URLs")
    stage: str = Field(DEFAULT_STAGE, description="Persisted status label")
    project_contact_id: Optional[str] = Field(
        None, description="Set only when explicitly imported into the project"
    )
    created_at: Optional[datetime] = Field(None, description="Explicit creation timestamp")
    assigned_to: Optional[str] = Field(None, description="Team member owning the contact")
    priority: Optional[str] = Field(None, description="Priority label")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @field_serializer("created_at")
    def serialize_datetime(self, v: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format."""
        return v.isoformat() if v else None

    @property
    def key(self) -> str:
        """Id, or the name for not-yet-persisted contacts."""
        return self.contact_id or self.name

    @property
    def is_imported(self) -> bool:
        """Whether this record came from an explicit project import."""
        return bool(self.project_contact_id)


class Activity(BaseModel):
    """A single logged outreach interaction.

    Immutable from the engine's point of view; the engine only ever reads a
    full snapshot of these.
    """

    activity_id: Optional[str] = Field(None, description="Activity id")
    project_id: Optional[str] = Field(None, description="Owning project id")
    contact_id: Optional[str] = Field(None, description="Contact id, if known")
    channel: Channel = Field(..., description="call, email or linkedin")
    created_at: Optional[datetime] = Field(None, description="When the record was created")
    channel_date: Optional[datetime] = Field(
        None, description="callDate/emailDate/linkedinDate for this activity's channel"
    )
    notes: str = Field("", description="Free-text conversation notes")
    next_action: Optional[str] = Field(None, description="Planned next step")
    next_action_date: Optional[datetime] = Field(None, description="When the next step is due")

    # Channel-specific status fields
    call_status: Optional[str] = Field(None, description="Outcome of a call")
    status: Optional[str] = Field(None, description="Email/LinkedIn status")
    ln_request_sent: Optional[Union[bool, str]] = Field(None, description="LinkedIn request sent")
    connected: Optional[Union[bool, str]] = Field(None, description="LinkedIn connection accepted")
    linkedin_account_name: Optional[str] = Field(None, description="Sending LinkedIn account")
    call_number: Optional[str] = Field(None, description="Number dialled")

    template: Optional[str] = None
    outcome: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_serializer("created_at", "channel_date", "next_action_date")
    def serialize_datetime(self, v: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format."""
        return v.isoformat() if v else None

    @property
    def activity_date(self) -> Optional[datetime]:
        """When this interaction happened.

        The channel-specific date wins over the creation timestamp. A channel
        date later than `created_at` is taken as-is (no clamping).
        """
        return self.channel_date or self.created_at


class ProjectInfo(BaseModel):
    """Minimal project header used by the snapshot cache and CLI."""

    project_id: str
    name: str = ""
    channels: List[Channel] = Field(default_factory=lambda: list(Channel))
    assigned_to: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class KpiSummary(BaseModel):
    """Backend-computed per-channel aggregate counts.

    Displayed as-is; the engine never recomputes these totals.
    """

    linkedin: Dict[str, int] = Field(default_factory=dict)
    call: Dict[str, int] = Field(default_factory=dict)
    email: Dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def for_channel(self, channel: Channel) -> Dict[str, int]:
        """Get the counts for one channel."""
        return getattr(self, channel.value)


class ContactPage(BaseModel):
    """One page of a contact listing as returned by a data source."""

    data: List[Contact] = Field(default_factory=list)
    page: int = 1
    total: int = 0
    total_pages: int = 0
