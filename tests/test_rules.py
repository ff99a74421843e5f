"""Tests for mexos.strategy.rules."""

from __future__ import annotations

from datetime import date, datetime

from mexos.models import BureaucracyDoc, Campaign, CampaignRule, Exam
from mexos.strategy.rules import (
    campaign_progress,
    count_pending_rules,
    days_remaining,
    evaluate_rules,
    get_active_campaign,
    get_exams_with_active_rules,
    get_global_status,
    get_passed_cfus,
    is_rule_overdue,
    parse_deadline,
)

TODAY = date(2025, 1, 5)


def _rule(deadline, status="pending", action="Do something") -> CampaignRule:
    return CampaignRule(condition="cond", action=action, deadline=deadline, status=status)


def _campaign(cid: str, rules: list[CampaignRule], status="active", linked=None, **kw) -> Campaign:
    return Campaign(id=cid, name=cid.title(), status=status, rules=rules, linked_exams=linked or [], **kw)


class TestParseDeadline:
    def test_iso_day(self):
        assert parse_deadline("2025-01-01") == date(2025, 1, 1)

    def test_iso_datetime(self):
        assert parse_deadline("2025-01-01T23:59:00") == date(2025, 1, 1)

    def test_date_and_datetime_objects(self):
        assert parse_deadline(date(2025, 1, 1)) == date(2025, 1, 1)
        assert parse_deadline(datetime(2025, 1, 1, 8, 30)) == date(2025, 1, 1)

    def test_malformed(self):
        assert parse_deadline("next friday") is None
        assert parse_deadline("") is None
        assert parse_deadline(None) is None
        assert parse_deadline(20250101) is None


class TestIsRuleOverdue:
    def test_past_deadline_is_overdue(self):
        assert is_rule_overdue(_rule("2025-01-04"), TODAY)

    def test_due_today_is_not_overdue(self):
        assert not is_rule_overdue(_rule("2025-01-05"), TODAY)

    def test_future_is_not_overdue(self):
        assert not is_rule_overdue(_rule("2025-01-06"), TODAY)

    def test_only_pending_rules(self):
        assert not is_rule_overdue(_rule("2024-12-01", status="triggered"), TODAY)
        assert not is_rule_overdue(_rule("2024-12-01", status="safe"), TODAY)

    def test_malformed_deadline_never_overdue(self):
        assert not is_rule_overdue(_rule("soon"), TODAY)

    def test_accepts_datetime_now(self):
        assert is_rule_overdue(_rule("2025-01-04"), datetime(2025, 1, 5, 0, 1))


class TestEvaluateRules:
    def test_drop_scenario(self, campaign: Campaign, exams: list[Exam]):
        triggered = evaluate_rules([campaign], exams, TODAY)
        assert len(triggered) == 1
        t = triggered[0]
        assert t.campaign_id == "finals_prep"
        assert t.campaign_name == "Finals Prep"
        assert t.rule_index == 0
        assert t.rule.id == "rule-drop"
        assert t.days_overdue == 4

    def test_excludes_passed_exams(self, campaign: Campaign, exams: list[Exam]):
        triggered = evaluate_rules([campaign], exams, TODAY)
        linked_ids = [e.id for e in triggered[0].linked_exams]
        assert linked_ids == ["databases"]
        assert all(e.status != "passed" for t in triggered for e in t.linked_exams)

    def test_skips_missing_exam_ids(self, exams: list[Exam]):
        c = _campaign("c", [_rule("2025-01-01")], linked=["ghost", "databases"])
        triggered = evaluate_rules([c], exams, TODAY)
        assert [e.id for e in triggered[0].linked_exams] == ["databases"]

    def test_pending_rules_only_and_strictly_before_today(self):
        c = _campaign("c", [
            _rule("2025-01-04"),
            _rule("2025-01-05"),
            _rule("2025-01-01", status="safe"),
            _rule("2025-01-01", status="triggered"),
            _rule("garbage"),
        ])
        triggered = evaluate_rules([c], [], TODAY)
        assert [t.rule_index for t in triggered] == [0]

    def test_most_overdue_first(self):
        a = _campaign("a", [_rule("2025-01-03"), _rule("2024-12-20")])
        b = _campaign("b", [_rule("2025-01-01")])
        triggered = evaluate_rules([a, b], [], TODAY)
        assert [(t.campaign_id, t.rule_index) for t in triggered] == [("a", 1), ("b", 0), ("a", 0)]
        assert [t.days_overdue for t in triggered] == [16, 4, 2]

    def test_ties_keep_encounter_order(self):
        a = _campaign("a", [_rule("2025-01-01"), _rule("2025-01-01")])
        b = _campaign("b", [_rule("2025-01-01")])
        triggered = evaluate_rules([a, b], [], TODAY)
        assert [(t.campaign_id, t.rule_index) for t in triggered] == [("a", 0), ("a", 1), ("b", 0)]

    def test_includes_inactive_campaigns(self):
        c = _campaign("c", [_rule("2025-01-01")], status="planned")
        assert len(evaluate_rules([c], [], TODAY)) == 1

    def test_empty(self):
        assert evaluate_rules([], [], TODAY) == []


class TestExamsWithActiveRules:
    def test_linked_to_active_campaign_with_pending_rule(self, campaign: Campaign, exams: list[Exam]):
        result = get_exams_with_active_rules([campaign], exams)
        assert [e.id for e in result] == ["databases", "algebra"]

    def test_ignores_inactive_campaigns(self, exams: list[Exam]):
        c = _campaign("c", [_rule("2025-02-01")], status="completed", linked=["databases"])
        assert get_exams_with_active_rules([c], exams) == []

    def test_ignores_campaign_without_pending_rules(self, exams: list[Exam]):
        c = _campaign("c", [_rule("2025-01-01", status="safe")], linked=["databases"])
        assert get_exams_with_active_rules([c], exams) == []

    def test_deduplicates_in_exam_order(self, exams: list[Exam]):
        c1 = _campaign("c1", [_rule("2025-02-01")], linked=["networks", "databases"])
        c2 = _campaign("c2", [_rule("2025-02-01")], linked=["databases"])
        result = get_exams_with_active_rules([c1, c2], exams)
        assert [e.id for e in result] == ["databases", "networks"]


class TestActiveCampaign:
    def test_prefers_campaign_covering_today(self):
        old = _campaign("old", [], start_date="2024-01-01", end_date="2024-06-01")
        now = _campaign("now", [], start_date="2025-01-01", end_date="2025-02-01")
        assert get_active_campaign([old, now], TODAY).id == "now"

    def test_falls_back_to_first_active(self):
        planned = _campaign("p", [], status="planned", start_date="2025-01-01", end_date="2025-02-01")
        old = _campaign("old", [], start_date="2024-01-01", end_date="2024-06-01")
        assert get_active_campaign([planned, old], TODAY).id == "old"

    def test_none(self):
        assert get_active_campaign([_campaign("p", [], status="failed")], TODAY) is None


class TestGlobalStatus:
    def _doc(self, status: str, critical: bool = True) -> BureaucracyDoc:
        return BureaucracyDoc(id=f"doc-{status}", name="Permit", status=status, is_critical=critical)

    def test_red_for_expired_critical_doc(self):
        assert get_global_status([self._doc("expired")], [], TODAY) == "red"

    def test_red_for_unknown_critical_doc(self):
        assert get_global_status([self._doc("unknown")], [], TODAY) == "red"

    def test_non_critical_doc_ignored(self):
        assert get_global_status([self._doc("expired", critical=False)], [], TODAY) == "green"

    def test_yellow_for_triggered_rule_in_active_campaign(self):
        c = _campaign("c", [_rule("2025-01-01", status="triggered")])
        assert get_global_status([self._doc("valid")], [c], TODAY) == "yellow"

    def test_red_wins_over_yellow(self):
        c = _campaign("c", [_rule("2025-01-01", status="triggered")])
        assert get_global_status([self._doc("expired")], [c], TODAY) == "red"

    def test_overdue_pending_rule_alone_is_green(self):
        c = _campaign("c", [_rule("2025-01-01")])
        assert get_global_status([], [c], TODAY) == "green"


class TestCampaignHelpers:
    def test_progress_clamped(self):
        c = _campaign("c", [], start_date="2025-01-01", end_date="2025-01-11")
        assert campaign_progress(c, date(2025, 1, 6)) == 50.0
        assert campaign_progress(c, date(2024, 12, 1)) == 0.0
        assert campaign_progress(c, date(2025, 3, 1)) == 100.0

    def test_progress_without_dates(self):
        assert campaign_progress(_campaign("c", []), TODAY) == 0.0

    def test_days_remaining(self):
        c = _campaign("c", [], start_date="2025-01-01", end_date="2025-01-11")
        assert days_remaining(c, TODAY) == 6
        assert days_remaining(_campaign("d", []), TODAY) is None

    def test_count_pending(self, campaign: Campaign):
        assert count_pending_rules(campaign) == 2
        assert count_pending_rules(None) == 0

    def test_passed_cfus_counts_scholarship_critical_only(self, exams: list[Exam]):
        extra = Exam(id="x", name="Elective", cfu=3, status="passed", is_scholarship_critical=False)
        assert get_passed_cfus(exams + [extra]) == 6
