"""Bulk activity logging across many contacts.

Each contact is one independent unit: its activity post either succeeds or
fails on its own, and a running success/failure tally is kept so the
caller can report "N succeeded, M failed" without the batch aborting.

When the form carries a status, the contact's stage is written back after
a successful post. That write-back is fire-and-forget: its failure is
logged and never counted against the unit.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from outreachboard.connectors.base import ProjectDataSource, SourceError
from outreachboard.ids import is_creation_ordered_id
from outreachboard.models import Channel, Contact
from outreachboard.normalize import CHANNEL_DATE_KEYS

logger = logging.getLogger(__name__)

ProgressCallback = Callable[["BulkProgress"], None]


class ActivityForm(BaseModel):
    """Field values shared by every activity in one bulk log.

    Contact details left empty here are taken from each contact.
    """

    channel: Channel
    template: str = ""
    outcome: str = ""
    notes: str = Field("", description="Conversation notes; a contact tag is appended")
    next_action: str = ""
    next_action_date: str = Field("", description="YYYY-MM-DD or ISO timestamp")
    channel_date: str = Field("", description="Date of the call/email/LinkedIn touch")
    status: str = Field("", description="Email/LinkedIn status; also written back as stage")
    call_status: str = ""
    call_number: str = ""
    phone: str = Field("", description="Overrides each contact's phone")
    email: str = Field("", description="Overrides each contact's email")
    linkedin_url: str = Field("", description="Overrides each contact's LinkedIn URL")
    linkedin_account_name: str = ""
    ln_request_sent: str = ""
    connected: str = ""

    model_config = ConfigDict(frozen=True)


@dataclass
class BulkProgress:
    """Running counters, passed to the progress callback after each unit."""

    total: int
    current: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass
class BulkLogResult:
    """Outcome of a bulk log."""

    total: int
    succeeded: int = 0
    failed: int = 0
    errors: Dict[str, str] = field(default_factory=dict)
    activity_ids: List[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return f"{self.succeeded} succeeded, {self.failed} failed"


def contact_tag(contact: Contact, form: ActivityForm) -> str:
    """Identification tag appended to the notes.

    Lets activities without a usable contact id still be matched to their
    contact by name or email.
    """
    parts = []
    if contact.name and contact.name != "N/A":
        parts.append(f"Contact: {contact.name}")

    email = form.email or contact.email
    phone = form.phone or contact.phone
    linkedin = form.linkedin_url or (contact.linkedin_urls[0] if contact.linkedin_urls else None)
    if email:
        parts.append(f"Email: {email}")
    if phone:
        parts.append(f"Phone: {phone}")
    if linkedin:
        parts.append(f"LinkedIn: {linkedin}")
    if is_creation_ordered_id(contact.contact_id):
        parts.append(f"ID: {contact.contact_id}")

    return f"[{' | '.join(parts)}]" if parts else ""


def build_activity_payload(project_id: str, contact: Contact, form: ActivityForm) -> Dict[str, Any]:
    """Backend payload for one contact's activity."""
    tag = contact_tag(contact, form)
    notes = form.notes.strip()
    if notes and tag:
        notes = f"{form.notes}\n\n{tag}"
    elif tag:
        notes = tag
    else:
        notes = form.notes

    date_key = CHANNEL_DATE_KEYS[form.channel][0]
    payload: Dict[str, Any] = {
        "projectId": project_id,
        "type": form.channel.value,
        "template": form.template,
        "outcome": form.outcome,
        "conversationNotes": notes,
        "nextAction": form.next_action,
        "nextActionDate": form.next_action_date,
        "phoneNumber": form.phone or contact.phone or None,
        "email": form.email or contact.email or None,
        "linkedInUrl": form.linkedin_url or (contact.linkedin_urls[0] if contact.linkedin_urls else None),
        "status": form.status or None,
        "linkedInAccountName": form.linkedin_account_name or None,
        "lnRequestSent": form.ln_request_sent or None,
        "connected": form.connected or None,
        "callNumber": form.call_number or None,
        "callStatus": form.call_status or None,
        date_key: form.channel_date or None,
    }

    # Only ids with the creation-ordered shape are accepted by the backend
    if is_creation_ordered_id(contact.contact_id):
        payload["contactId"] = contact.contact_id
    return payload


def _write_back_stage(source: ProjectDataSource, project_id: str, contact_id: str, stage: str) -> None:
    try:
        source.update_contact_stage(project_id, contact_id, stage)
    except SourceError as e:
        logger.warning(f"Stage update to {stage!r} failed for contact {contact_id}: {e}")


def log_activities_bulk(
    source: ProjectDataSource,
    project_id: str,
    contacts: Sequence[Contact],
    form: ActivityForm,
    progress: Optional[ProgressCallback] = None,
) -> BulkLogResult:
    """Log one activity per contact, sequentially.

    Args:
        source: Data source receiving the posts
        project_id: Project the activities belong to
        contacts: Contacts to log against
        form: Shared field values
        progress: Called with the running counters after each contact

    Returns:
        BulkLogResult with per-contact errors keyed by contact key
    """
    result = BulkLogResult(total=len(contacts))
    state = BulkProgress(total=len(contacts))

    for contact in contacts:
        state.current += 1
        payload = build_activity_payload(project_id, contact, form)
        try:
            activity_id = source.post_activity(payload)
        except SourceError as e:
            result.failed += 1
            result.errors[contact.key] = e.user_message
            logger.warning(f"Activity for {contact.key!r} failed: {e}")
        else:
            result.succeeded += 1
            if activity_id:
                result.activity_ids.append(activity_id)
            contact_id = payload.get("contactId")
            if form.status and contact_id:
                _write_back_stage(source, project_id, contact_id, form.status)

        state.succeeded = result.succeeded
        state.failed = result.failed
        if progress is not None:
            progress(state)

    logger.info(f"Bulk {form.channel.value} log for project {project_id}: {result.summary}")
    return result
