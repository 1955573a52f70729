"""Tests for KPI metric evaluation."""

from datetime import date

import pytest

from outreachboard.indexer import ActivityIndex
from outreachboard.kpi import (
    LEGACY_ALIASES,
    METRICS,
    KpiFilter,
    UnknownMetricError,
    count_members,
    evaluate_metric,
    filter_members,
    has_matching_activity,
    list_metrics,
    resolve_metric,
)
from outreachboard.models import Channel, Contact

TODAY = date(2024, 3, 13)


def _single_call(call_status):
    contact = Contact(contact_id="c1", name="Solo")
    index = ActivityIndex.from_records(
        [{"contactId": "c1", "projectId": "p1", "type": "call", "callStatus": call_status,
          "callDate": "2024-03-01"}],
        today=TODAY,
    )
    return contact, index


class TestKpiFilter:
    """Tests for KpiFilter parsing."""

    def test_parse(self):
        """channel:metric is split and validated."""
        kpi = KpiFilter.parse("call:callsConnected")
        assert kpi == KpiFilter(channel=Channel.CALL, metric="callsConnected")

    @pytest.mark.parametrize("text", ["callsConnected", "call:", "fax:sent"])
    def test_parse_invalid(self, text):
        """Malformed or unknown-channel filters are rejected."""
        with pytest.raises(ValueError):
            KpiFilter.parse(text)


class TestCallMetrics:
    """Tests for call metrics."""

    def test_busy_is_not_connected(self):
        """A Busy call is not connected."""
        contact, index = _single_call("Busy")
        assert evaluate_metric(Channel.CALL, "callsConnected", contact, index) is False

    def test_interested_is_connected(self):
        """An Interested call is connected."""
        contact, index = _single_call("Interested")
        assert evaluate_metric(Channel.CALL, "callsConnected", contact, index) is True

    def test_decision_maker_excludes_not_interested(self):
        """Not Interested reached someone, but not a decision maker."""
        contact, index = _single_call("Not Interested")
        assert evaluate_metric(Channel.CALL, "callsConnected", contact, index)
        assert not evaluate_metric(Channel.CALL, "decisionMakerReached", contact, index)

    def test_missing_status_is_not_connected(self):
        """A call without a status is attempted but not connected."""
        contact, index = _single_call(None)
        assert evaluate_metric(Channel.CALL, "callsAttempted", contact, index)
        assert not evaluate_metric(Channel.CALL, "callsConnected", contact, index)

    def test_exact_status_metrics(self):
        """Exact-status metrics match only their status."""
        contact, index = _single_call("Demo Booked")
        assert evaluate_metric(Channel.CALL, "demoBooked", contact, index)
        assert not evaluate_metric(Channel.CALL, "demoCompleted", contact, index)
        assert not evaluate_metric(Channel.CALL, "ring", contact, index)

    def test_all_prospects(self, contact_by_name, index):
        """allProspects holds for everyone."""
        assert evaluate_metric(Channel.CALL, "allProspects", contact_by_name("eve"), index)

    def test_project_narrowing(self, contact_by_name, index):
        """Calls logged in another project do not count for this one."""
        dan = contact_by_name("dan")
        assert evaluate_metric(Channel.CALL, "callsAttempted", dan, index)
        assert not evaluate_metric(Channel.CALL, "callsAttempted", dan, index, project_id="p1")

    def test_stage_metrics_ignore_activities(self, contact_by_name, index):
        """sql reads the stage, even with no call activity."""
        assert evaluate_metric(Channel.CALL, "sql", contact_by_name("cara"), index)
        assert not evaluate_metric(Channel.CALL, "sql", contact_by_name("alice"), index)


class TestEmailMetrics:
    """Tests for email metrics."""

    def test_bounce(self, contact_by_name, index):
        """emailBounce matches Bounce."""
        assert evaluate_metric(Channel.EMAIL, "emailBounce", contact_by_name("bob"), index)

    def test_non_responses_are_not_accepted(self, contact_by_name, index):
        """Bounce and No Reply are not responses."""
        assert not evaluate_metric(Channel.EMAIL, "accepted", contact_by_name("bob"), index)

    def test_follow_ups_need_two(self, contact_by_name, index):
        """followUps needs more than one email."""
        assert evaluate_metric(Channel.EMAIL, "followUps", contact_by_name("bob"), index)
        assert not evaluate_metric(Channel.EMAIL, "followUps", contact_by_name("cara"), index)

    @pytest.mark.parametrize("status", ["Opt-Out", "Opt Out"])
    def test_opt_out_spellings(self, status):
        """Both opt-out spellings are recognized."""
        contact = Contact(contact_id="c1")
        index = ActivityIndex.from_records([{"contactId": "c1", "type": "email", "status": status}])
        assert evaluate_metric(Channel.EMAIL, "optOut", contact, index)
        assert not evaluate_metric(Channel.EMAIL, "accepted", contact, index)


class TestLinkedinMetrics:
    """Tests for LinkedIn metrics."""

    def test_flags(self, contact_by_name, index):
        """The string Yes and True both count as set."""
        cara = contact_by_name("cara")
        assert evaluate_metric(Channel.LINKEDIN, "connectionSent", cara, index)
        assert evaluate_metric(Channel.LINKEDIN, "accepted", cara, index)
        assert evaluate_metric(Channel.LINKEDIN, "cip", cara, index)

    def test_no_string_false_positive(self):
        """Values other than True/"Yes" do not count."""
        contact = Contact(contact_id="c1")
        index = ActivityIndex.from_records(
            [{"contactId": "c1", "type": "linkedin", "lnRequestSent": "No", "connected": "false"}]
        )
        assert not evaluate_metric(Channel.LINKEDIN, "connectionSent", contact, index)
        assert not evaluate_metric(Channel.LINKEDIN, "accepted", contact, index)


class TestFollowUpBuckets:
    """Tests for follow-up bucket metrics."""

    def test_buckets(self, contact_by_name, index, today):
        """Today, tomorrow and missed follow-ups by nextActionDate."""
        alice = contact_by_name("alice")
        bob = contact_by_name("bob")
        assert evaluate_metric(Channel.CALL, "tomorrowFollowups", alice, index, today=today)
        assert not evaluate_metric(Channel.CALL, "todayFollowups", alice, index, today=today)
        assert evaluate_metric(Channel.EMAIL, "missedFollowups", bob, index, today=today)
        assert not evaluate_metric(Channel.CALL, "missedFollowups", alice, index, today=today)


class TestMetricResolution:
    """Tests for metric names and aliases."""

    def test_every_alias_targets_a_metric(self):
        """Every legacy alias resolves into the catalogue."""
        for channel, aliases in LEGACY_ALIASES.items():
            for legacy, modern in aliases.items():
                assert modern in METRICS[channel], f"{channel.value}:{legacy}"

    def test_legacy_equals_modern(self, contacts, index, today):
        """Legacy and modern names give the same answer for every contact."""
        for channel, aliases in LEGACY_ALIASES.items():
            for legacy, modern in aliases.items():
                for contact in contacts:
                    assert evaluate_metric(channel, legacy, contact, index, today=today) == (
                        evaluate_metric(channel, modern, contact, index, today=today)
                    ), f"{channel.value}:{legacy} vs {modern} for {contact.name}"

    def test_resolve(self):
        """Modern names resolve to themselves, legacy names to their target."""
        assert resolve_metric(Channel.CALL, "callsConnected") == "callsConnected"
        assert resolve_metric(Channel.CALL, "callAnswerRate") == "callsConnected"
        assert resolve_metric(Channel.LINKEDIN, "connectionRequestsSent") == "connectionSent"
        assert resolve_metric(Channel.EMAIL, "emailOpenRate") == "accepted"

    def test_unknown_metric(self, contact_by_name, index):
        """Unknown names evaluate to False, or raise when strict."""
        assert resolve_metric(Channel.CALL, "nope") is None
        assert evaluate_metric(Channel.CALL, "nope", contact_by_name("alice"), index) is False
        with pytest.raises(UnknownMetricError):
            resolve_metric(Channel.CALL, "nope", strict=True)

    def test_list_metrics(self):
        """The catalogue lists modern names with their aliases."""
        infos = {m.name: m for m in list_metrics(Channel.CALL)}
        assert "callsMade" in infos["callsAttempted"].aliases
        assert infos["sql"].uses_stage
        assert "callsMade" not in infos


class TestMembership:
    """Tests for membership helpers."""

    def test_filter_and_count(self, contacts, index):
        """Only alice has a connected call in p1."""
        kpi = KpiFilter(channel=Channel.CALL, metric="callsConnected")
        members = filter_members(contacts, kpi, index, project_id="p1")
        assert [c.name for c in members] == ["Alice Archer"]
        assert count_members(contacts, kpi, index, project_id="p1") == 1

    def test_error_excludes_only_that_contact(self, contacts, index, monkeypatch):
        """An evaluation error drops one contact, not the query."""
        original = index.channel_activities

        def flaky(contact, channel, project_id=None):
            if contact.name == "Bob Baker":
                raise RuntimeError("boom")
            return original(contact, channel, project_id)

        monkeypatch.setattr(index, "channel_activities", flaky)
        kpi = KpiFilter(channel=Channel.CALL, metric="allProspects")
        assert not has_matching_activity(contacts[1], kpi, index)
        assert len(filter_members(contacts, kpi, index)) == len(contacts) - 1
