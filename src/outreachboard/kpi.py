"""KPI Metric Evaluator: named per-channel membership tests.

A metric answers "does this contact belong in this KPI tile?". Evaluation
first narrows the contact's activities to one channel and one project, then
applies the metric's test to that list (or, for stage metrics, to the
contact's persisted stage).

Legacy metric names still found in saved filter links resolve to the modern
metric they were replaced by, so both always give the same answer.

Every test returns False on missing or odd fields instead of raising, and
`has_matching_activity` turns an unexpected error for one contact into a
False for that contact only.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from outreachboard.dates import local_day
from outreachboard.indexer import ActivityIndex
from outreachboard.models import Activity, Channel, Contact

logger = logging.getLogger(__name__)

MetricTest = Callable[[Sequence[Activity], Contact, date], bool]

# Call outcomes where nobody was actually reached
UNREACHED_CALL_STATUSES: FrozenSet[str] = frozenset(
    {"Ring", "Busy", "Switch Off", "Invalid", "Hang Up"}
)
NOT_DECISION_MAKER_STATUSES: FrozenSet[str] = UNREACHED_CALL_STATUSES | {"Not Interested"}

# Email statuses that do not count as a response
NON_RESPONSE_EMAIL_STATUSES: FrozenSet[str] = frozenset(
    {"Bounce", "Opt-Out", "Opt Out", "No Reply"}
)

CIP_STATUSES: FrozenSet[str] = frozenset({"CIP", "Conversations in Progress"})


class UnknownMetricError(KeyError):
    """Raised by `resolve_metric(strict=True)` for names not in the catalogue."""

    def __init__(self, channel: Channel, metric: str):
        self.channel = channel
        self.metric = metric
        super().__init__(f"Unknown {channel.value} metric: {metric!r}")


@dataclass(frozen=True)
class Metric:
    """One entry in the metric catalogue."""

    name: str
    label: str
    test: MetricTest
    uses_stage: bool = False


@dataclass(frozen=True)
class KpiFilter:
    """A requested {channel, metric} drill-down."""

    channel: Channel
    metric: str

    @classmethod
    def parse(cls, text: str) -> "KpiFilter":
        """Parse ``"channel:metric"`` (e.g. ``"call:callsConnected"``)."""
        channel_part, sep, metric_part = text.partition(":")
        if not sep or not metric_part.strip():
            raise ValueError(f"Expected channel:metric, got {text!r}")
        try:
            channel = Channel(channel_part.strip().lower())
        except ValueError as e:
            raise ValueError(f"Unknown channel {channel_part!r}") from e
        return cls(channel=channel, metric=metric_part.strip())


# =============================================================================
# Test builders
# =============================================================================


def _yes(value) -> bool:
    return value is True or value == "Yes"


def _any(predicate: Callable[[Activity], bool]) -> MetricTest:
    def test(activities: Sequence[Activity], contact: Contact, today: date) -> bool:
        return any(predicate(a) for a in activities)

    return test


def _at_least(count: int) -> MetricTest:
    def test(activities: Sequence[Activity], contact: Contact, today: date) -> bool:
        return len(activities) >= count

    return test


def _always(activities: Sequence[Activity], contact: Contact, today: date) -> bool:
    return True


def _stage(value: str) -> MetricTest:
    def test(activities: Sequence[Activity], contact: Contact, today: date) -> bool:
        return (contact.stage or "").strip() == value

    return test


def _call_status(*statuses: str) -> MetricTest:
    wanted = frozenset(statuses)
    return _any(lambda a: a.call_status in wanted)


def _call_status_not_in(excluded: FrozenSet[str]) -> MetricTest:
    return _any(lambda a: bool(a.call_status) and a.call_status not in excluded)


def _status(*statuses: str) -> MetricTest:
    wanted = frozenset(statuses)
    return _any(lambda a: a.status in wanted)


def _status_not_in(excluded: FrozenSet[str]) -> MetricTest:
    return _any(lambda a: bool(a.status) and a.status not in excluded)


def _follow_up_due(offset_days: int) -> MetricTest:
    def test(activities: Sequence[Activity], contact: Contact, today: date) -> bool:
        target = today + timedelta(days=offset_days)
        return any(local_day(a.next_action_date) == target for a in activities)

    return test


def _follow_up_missed(activities: Sequence[Activity], contact: Contact, today: date) -> bool:
    return any(
        a.next_action_date is not None and local_day(a.next_action_date) < today
        for a in activities
    )


def _follow_up_metrics() -> List[Metric]:
    return [
        Metric("todayFollowups", "Today's Follow-ups", _follow_up_due(0)),
        Metric("tomorrowFollowups", "Tomorrow's Follow-ups", _follow_up_due(1)),
        Metric("missedFollowups", "Missed Follow-ups", _follow_up_missed),
    ]


# =============================================================================
# Catalogue
# =============================================================================

_LINKEDIN_METRICS: List[Metric] = [
    Metric("connectionSent", "Connection Sent", _any(lambda a: _yes(a.ln_request_sent))),
    Metric("accepted", "Accepted", _any(lambda a: _yes(a.connected))),
    Metric("followUps", "Follow-ups", _at_least(2)),
    Metric("cip", "Conversations in Progress", _status(*CIP_STATUSES)),
    Metric("meetingProposed", "Meeting Proposed", _status("Meeting Proposed")),
    Metric("scheduled", "Meeting Scheduled", _status("Meeting Scheduled")),
    Metric("completed", "Meeting Completed", _status("Meeting Completed")),
    Metric("sql", "SQL", _stage("SQL"), uses_stage=True),
    Metric("win", "Win", _stage("WON"), uses_stage=True),
    *_follow_up_metrics(),
]

_CALL_METRICS: List[Metric] = [
    Metric("allProspects", "All Prospects", _always),
    Metric("callsAttempted", "Calls Attempted", _at_least(1)),
    Metric("callsConnected", "Calls Connected", _call_status_not_in(UNREACHED_CALL_STATUSES)),
    Metric(
        "decisionMakerReached",
        "Decision Maker Reached",
        _call_status_not_in(NOT_DECISION_MAKER_STATUSES),
    ),
    Metric("interested", "Interested", _call_status("Interested")),
    Metric("notInterested", "Not Interested", _call_status("Not Interested")),
    Metric("detailsShared", "Details Shared", _call_status("Details Shared")),
    Metric("demoBooked", "Demo Booked", _call_status("Demo Booked")),
    Metric("demoCompleted", "Demo Completed", _call_status("Demo Completed")),
    Metric("sql", "SQL", _stage("SQL"), uses_stage=True),
    Metric("won", "Won", _stage("WON"), uses_stage=True),
    Metric("followUps", "Follow-up Calls", _at_least(2)),
    # Per-outcome breakdown used by the monthly report
    Metric("ring", "Ring", _call_status("Ring")),
    Metric("busy", "Busy", _call_status("Busy")),
    Metric("hangUp", "Hang Up", _call_status("Hang Up")),
    Metric("callBack", "Call Back", _call_status("Call Back")),
    Metric("switchOff", "Switch Off", _call_status("Switch Off")),
    Metric("future", "Future", _call_status("Future")),
    Metric("invalid", "Invalid", _call_status("Invalid")),
    *_follow_up_metrics(),
]

_EMAIL_METRICS: List[Metric] = [
    Metric("emailsSent", "Emails Sent", _at_least(1)),
    Metric("accepted", "Responses", _status_not_in(NON_RESPONSE_EMAIL_STATUSES)),
    Metric("followUps", "Follow-up Emails", _at_least(2)),
    Metric("cip", "Conversations in Progress", _status(*CIP_STATUSES)),
    Metric("meetingProposed", "Meeting Proposed", _status("Meeting Proposed")),
    Metric("scheduled", "Meeting Scheduled", _status("Meeting Scheduled")),
    Metric("completed", "Meeting Completed", _status("Meeting Completed")),
    Metric("sql", "SQL", _stage("SQL"), uses_stage=True),
    Metric("emailBounce", "Bounced", _status("Bounce")),
    Metric("noReply", "No Reply", _status("No Reply")),
    Metric("outOfOffice", "Out of Office", _status("Out of Office")),
    Metric("wrongPerson", "Wrong Person", _status("Wrong Person")),
    Metric("optOut", "Opt-Out", _status("Opt-Out", "Opt Out")),
    *_follow_up_metrics(),
]

METRICS: Dict[Channel, Dict[str, Metric]] = {
    Channel.LINKEDIN: {m.name: m for m in _LINKEDIN_METRICS},
    Channel.CALL: {m.name: m for m in _CALL_METRICS},
    Channel.EMAIL: {m.name: m for m in _EMAIL_METRICS},
}

# Legacy name -> modern name, per channel
LEGACY_ALIASES: Dict[Channel, Dict[str, str]] = {
    Channel.LINKEDIN: {
        "followups": "followUps",
        "connectionRequestsSent": "connectionSent",
        "connectionRequestSent": "connectionSent",
        "connectionAccepted": "accepted",
        "conversationsInProgress": "cip",
        "meetingScheduled": "scheduled",
        "meetingCompleted": "completed",
        "won": "win",
    },
    Channel.CALL: {
        "totalCalls": "callsAttempted",
        "callSent": "callsAttempted",
        "callsMade": "callsAttempted",
        "callAnswerRate": "callsConnected",
        "accepted": "callsConnected",
        "scheduled": "demoBooked",
        "completed": "demoCompleted",
        "followups": "followUps",
    },
    Channel.EMAIL: {
        "emailSent": "emailsSent",
        "emailOpenRate": "accepted",
        "totalResponses": "accepted",
        "bounce": "emailBounce",
        "conversationsInProgress": "cip",
        "meetingScheduled": "scheduled",
        "meetingCompleted": "completed",
        "followups": "followUps",
    },
}


def resolve_metric(channel: Channel, metric: str, strict: bool = False) -> Optional[str]:
    """Map a metric name (modern or legacy) to its modern name.

    Args:
        channel: Channel the metric belongs to
        metric: Name as requested (e.g. from a saved link)
        strict: Raise UnknownMetricError instead of returning None

    Returns:
        Modern metric name, or None if unknown and not strict
    """
    catalogue = METRICS.get(channel, {})
    if metric in catalogue:
        return metric

    modern = LEGACY_ALIASES.get(channel, {}).get(metric)
    if modern is not None:
        return modern

    if strict:
        raise UnknownMetricError(channel, metric)
    return None


@dataclass(frozen=True)
class MetricInfo:
    """Catalogue listing entry."""

    name: str
    label: str
    aliases: tuple[str, ...]
    uses_stage: bool


def list_metrics(channel: Channel) -> List[MetricInfo]:
    """Modern metrics of a channel with their legacy aliases."""
    aliases = LEGACY_ALIASES.get(channel, {})
    return [
        MetricInfo(
            name=m.name,
            label=m.label,
            aliases=tuple(sorted(old for old, new in aliases.items() if new == m.name)),
            uses_stage=m.uses_stage,
        )
        for m in METRICS[channel].values()
    ]


def evaluate_metric(
    channel: Channel,
    metric: str,
    contact: Contact,
    index: ActivityIndex,
    project_id: Optional[str] = None,
    today: Optional[date] = None,
) -> bool:
    """Evaluate one metric for one contact.

    Unknown metrics evaluate to False.
    """
    modern = resolve_metric(channel, metric)
    if modern is None:
        logger.debug(f"Unknown {channel.value} metric {metric!r}, treating as no match")
        return False

    activities = index.channel_activities(contact, channel, project_id)
    return METRICS[channel][modern].test(activities, contact, today or index.today)


def has_matching_activity(
    contact: Contact,
    kpi: KpiFilter,
    index: ActivityIndex,
    project_id: Optional[str] = None,
    today: Optional[date] = None,
) -> bool:
    """KPI membership test used by the filter pipeline.

    An unexpected error while evaluating this contact excludes the contact
    (returns False) instead of propagating.
    """
    try:
        return evaluate_metric(kpi.channel, kpi.metric, contact, index, project_id, today)
    except Exception as e:
        logger.warning(
            f"KPI {kpi.channel.value}:{kpi.metric} failed for contact {contact.key!r}: "
            f"{type(e).__name__}: {e}"
        )
        return False


def filter_members(
    contacts: Iterable[Contact],
    kpi: KpiFilter,
    index: ActivityIndex,
    project_id: Optional[str] = None,
    today: Optional[date] = None,
) -> List[Contact]:
    """Contacts belonging to a KPI tile, in input order."""
    return [c for c in contacts if has_matching_activity(c, kpi, index, project_id, today)]


def count_members(
    contacts: Iterable[Contact],
    kpi: KpiFilter,
    index: ActivityIndex,
    project_id: Optional[str] = None,
    today: Optional[date] = None,
) -> int:
    """Local member count for a drill-down header."""
    return len(filter_members(contacts, kpi, index, project_id, today))
