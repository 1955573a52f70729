"""Record Normalizer: raw backend JSON -> strict models.

The backend returns loosely typed dictionaries (camelCase keys, ids in
several shapes, dates as strings or numbers). These functions map one raw
record onto `Contact`/`Activity` and are tolerant by default:

- a malformed field (bad date, odd id) becomes None and is logged at DEBUG
- a record that cannot be represented at all (activity with an unknown
  channel, non-dict payload) is dropped and logged

The ``*_strict`` variants raise `NormalizationError` instead of dropping,
for callers that want to surface bad input.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from outreachboard.dates import parse_datetime
from outreachboard.ids import coerce_id
from outreachboard.models import DEFAULT_STAGE, Activity, Channel, Contact

logger = logging.getLogger(__name__)

# Channel -> raw key holding that channel's own activity date
CHANNEL_DATE_KEYS: Dict[Channel, tuple[str, ...]] = {
    Channel.CALL: ("callDate", "call_date"),
    Channel.EMAIL: ("emailDate", "email_date"),
    Channel.LINKEDIN: ("linkedinDate", "linkedin_date"),
}

_LINKEDIN_URL_KEYS = ("personLinkedinUrl", "companyLinkedinUrl", "linkedInUrl", "linkedinUrl")


class NormalizationError(ValueError):
    """A raw record could not be turned into a model."""

    def __init__(self, message: str, record: Any = None):
        self.record = record
        super().__init__(message)


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    """Value of the first key present with a non-None value."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _text(value: Any) -> Optional[str]:
    """Stripped string or None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flag(value: Any) -> Optional[Union[bool, str]]:
    """Keep booleans, strip strings, drop everything else."""
    if isinstance(value, bool):
        return value
    return _text(value) if isinstance(value, str) else None


def _date_field(raw: Mapping[str, Any], *keys: str) -> Any:
    value = _first(raw, *keys)
    parsed = parse_datetime(value)
    if value is not None and parsed is None:
        logger.debug(f"Ignoring unparseable {keys[0]}={value!r}")
    return parsed


def _parse_channel(value: Any) -> Optional[Channel]:
    if isinstance(value, Channel):
        return value
    text = _text(value)
    if text is None:
        return None
    try:
        return Channel(text.lower())
    except ValueError:
        return None


def _build_contact(raw: Mapping[str, Any]) -> Contact:
    linkedin_urls: List[str] = []
    for key in _LINKEDIN_URL_KEYS:
        url = _text(raw.get(key))
        if url and url not in linkedin_urls:
            linkedin_urls.append(url)
    extra_urls = raw.get("linkedin_urls")
    for url in extra_urls if isinstance(extra_urls, list) else []:
        url = _text(url)
        if url and url not in linkedin_urls:
            linkedin_urls.append(url)

    return Contact(
        contact_id=coerce_id(_first(raw, "_id", "id", "contact_id")),
        name=_text(raw.get("name")) or "",
        company=_text(raw.get("company")),
        email=_text(raw.get("email")),
        phone=_text(_first(raw, "firstPhone", "phone")),
        linkedin_urls=linkedin_urls,
        stage=_text(raw.get("stage")) or DEFAULT_STAGE,
        project_contact_id=coerce_id(_first(raw, "projectContactId", "project_contact_id")),
        created_at=_date_field(raw, "createdAt", "created_at"),
        assigned_to=_text(_first(raw, "assignedTo", "assigned_to")),
        priority=_text(raw.get("priority")),
    )


def _build_activity(raw: Mapping[str, Any]) -> Activity:
    channel = _parse_channel(_first(raw, "type", "channel"))
    if channel is None:
        raise NormalizationError(f"Unknown activity type: {raw.get('type')!r}", raw)

    return Activity(
        activity_id=coerce_id(_first(raw, "_id", "id", "activity_id")),
        project_id=coerce_id(_first(raw, "projectId", "project_id")),
        contact_id=coerce_id(_first(raw, "contactId", "contact_id")),
        channel=channel,
        created_at=_date_field(raw, "createdAt", "created_at"),
        channel_date=_date_field(raw, *CHANNEL_DATE_KEYS[channel]),
        notes=_text(_first(raw, "conversationNotes", "notes")) or "",
        next_action=_text(_first(raw, "nextAction", "next_action")),
        next_action_date=_date_field(raw, "nextActionDate", "next_action_date"),
        call_status=_text(_first(raw, "callStatus", "call_status")),
        status=_text(raw.get("status")),
        ln_request_sent=_flag(_first(raw, "lnRequestSent", "ln_request_sent")),
        connected=_flag(raw.get("connected")),
        linkedin_account_name=_text(_first(raw, "linkedInAccountName", "linkedin_account_name")),
        call_number=_text(_first(raw, "callNumber", "call_number")),
        template=_text(raw.get("template")),
        outcome=_text(raw.get("outcome")),
    )


def normalize_contact_strict(raw: Union[Contact, Mapping[str, Any]]) -> Contact:
    """Normalize one contact, raising on unusable input."""
    if isinstance(raw, Contact):
        return raw
    if not isinstance(raw, Mapping):
        raise NormalizationError(f"Contact record must be a mapping, got {type(raw).__name__}", raw)
    return _build_contact(raw)


def normalize_activity_strict(raw: Union[Activity, Mapping[str, Any]]) -> Activity:
    """Normalize one activity, raising on unusable input."""
    if isinstance(raw, Activity):
        return raw
    if not isinstance(raw, Mapping):
        raise NormalizationError(f"Activity record must be a mapping, got {type(raw).__name__}", raw)
    return _build_activity(raw)


def normalize_contact(raw: Union[Contact, Mapping[str, Any]]) -> Optional[Contact]:
    """Normalize one contact; None if the record is unusable."""
    try:
        return normalize_contact_strict(raw)
    except NormalizationError as e:
        logger.debug(f"Dropping contact record: {e}")
        return None


def normalize_activity(raw: Union[Activity, Mapping[str, Any]]) -> Optional[Activity]:
    """Normalize one activity; None if the record is unusable."""
    try:
        return normalize_activity_strict(raw)
    except NormalizationError as e:
        logger.debug(f"Dropping activity record: {e}")
        return None


def normalize_contacts(records: Iterable[Any]) -> List[Contact]:
    """Normalize a listing of contacts, dropping unusable records."""
    contacts = [normalize_contact(raw) for raw in records or []]
    return [c for c in contacts if c is not None]


def normalize_activities(records: Iterable[Any]) -> List[Activity]:
    """Normalize an activity snapshot, dropping unusable records.

    Input order is preserved; the indexer's tie-breaks depend on it.
    """
    activities = [normalize_activity(raw) for raw in records or []]
    kept = [a for a in activities if a is not None]
    dropped = len(activities) - len(kept)
    if dropped:
        logger.warning(f"Dropped {dropped} of {len(activities)} activity records during normalization")
    return kept
