"""Tests for mexos.strategy.workflow."""

from __future__ import annotations

from datetime import date

import pytest

from mexos.errors import PersistenceError
from mexos.models import Campaign, CampaignRule, Exam, RuleAction, TriggeredRule
from mexos.storage.store import DocumentStore
from mexos.strategy.commands import RuleCommands
from mexos.strategy.rules import evaluate_rules
from mexos.strategy.workflow import DecisionWorkflow, DismissalState, WorkflowState

TODAY = date(2025, 1, 5)


class RecordingCommands:
    """Stands in for RuleCommands; records calls and can be told to fail."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.fail_next = False
        self.on_call = None

    def _run(self, call: tuple) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.on_call:
                self.on_call()
            if self.fail_next:
                self.fail_next = False
                raise PersistenceError("write rejected")
            self.calls.append(call)
        finally:
            self.in_flight -= 1

    def execute_rule_action(self, campaign_id, rule_index, exam_id=None, new_status=None, rule_id=None):
        self._run(("execute", campaign_id, rule_index, exam_id, new_status, rule_id))

    def mark_rule_safe(self, campaign_id, rule_index, rule_id=None):
        self._run(("safe", campaign_id, rule_index, rule_id))

    def snooze_rule(self, campaign_id, rule_index, days, rule_id=None):
        self._run(("snooze", campaign_id, rule_index, days, rule_id))
        return "2025-01-10"


def _triggered(n: int) -> list[TriggeredRule]:
    exam = Exam(id="databases", name="Databases", cfu=9, status="enrolled")
    return [
        TriggeredRule(
            campaign_id="c",
            campaign_name="C",
            rule_index=i,
            rule=CampaignRule(condition="x", action="DROP Databases", deadline="2025-01-01", id=f"r{i}"),
            linked_exams=[exam],
            days_overdue=4,
        )
        for i in range(n)
    ]


@pytest.fixture
def fake() -> RecordingCommands:
    return RecordingCommands()


@pytest.fixture
def workflow(fake: RecordingCommands) -> DecisionWorkflow:
    return DecisionWorkflow(fake)


class TestOpen:
    def test_starts_idle(self, workflow: DecisionWorkflow):
        assert workflow.state == WorkflowState.IDLE
        assert workflow.current is None

    def test_empty_queue_closes(self, workflow: DecisionWorkflow):
        workflow.open([])
        assert workflow.state == WorkflowState.CLOSED
        assert not workflow.is_open

    def test_opens_on_first_rule(self, workflow: DecisionWorkflow):
        workflow.open(_triggered(3))
        assert workflow.is_open
        assert workflow.current.rule.id == "r0"
        assert workflow.position == "1 of 3"
        assert not workflow.is_last

    def test_snapshot_is_frozen(self, workflow: DecisionWorkflow):
        queue = _triggered(2)
        workflow.open(queue)
        queue.clear()
        assert len(workflow.queue) == 2

    def test_suggestions_for_current(self, workflow: DecisionWorkflow):
        workflow.open(_triggered(1))
        assert [s.type for s in workflow.suggestions] == ["drop_exam", "manual"]


class TestCommits:
    def test_execute_selected_and_advance(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(2))
        workflow.select(workflow.suggestions[0])
        assert workflow.execute()
        assert fake.calls == [("execute", "c", 0, "databases", "dropped", "r0")]
        assert workflow.last_message == "Exam dropped successfully"
        assert workflow.position == "2 of 2"
        assert workflow.selected is None

    def test_execute_without_selection_is_noop(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(1))
        assert not workflow.execute()
        assert fake.calls == []
        assert workflow.is_open

    def test_manual_and_status_messages(self, workflow: DecisionWorkflow):
        workflow.open(_triggered(2))
        workflow.select(RuleAction(type="change_status", description="x", exam_id="databases", new_status="booked"))
        workflow.execute()
        assert workflow.last_message == "Exam status updated"
        workflow.select(RuleAction(type="manual", description="m"))
        workflow.execute()
        assert workflow.last_message == "Rule marked as triggered"

    def test_mark_safe_on_last_closes(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(1))
        assert workflow.is_last
        assert workflow.mark_safe()
        assert fake.calls == [("safe", "c", 0, "r0")]
        assert workflow.last_message == "Rule marked as safe"
        assert workflow.state == WorkflowState.CLOSED

    def test_snooze_message(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(2))
        workflow.snooze(1)
        assert workflow.last_message == "Deadline extended by 1 day"
        workflow.snooze(7)
        assert workflow.last_message == "Deadline extended by 7 days"
        assert [c[3] for c in fake.calls] == [1, 7]

    def test_snooze_rejects_other_durations(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(1))
        with pytest.raises(ValueError):
            workflow.snooze(2)
        assert fake.calls == []

    def test_serialized_commits(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(5))
        steps = 0
        while workflow.is_open:
            workflow.mark_safe()
            steps += 1
        assert steps == 5
        assert len(fake.calls) == 5
        assert fake.max_in_flight == 1
        assert [c[2] for c in fake.calls] == [0, 1, 2, 3, 4]

    def test_reentrant_commit_rejected(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(2))
        fake.on_call = lambda: workflow.mark_safe()
        with pytest.raises(RuntimeError):
            workflow.mark_safe()
        assert not workflow.is_executing


class TestFailure:
    def test_failed_commit_does_not_advance(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(2))
        action = workflow.suggestions[0]
        workflow.select(action)
        fake.fail_next = True

        assert not workflow.execute()
        assert workflow.error == "Failed to execute action"
        assert workflow.position == "1 of 2"
        assert workflow.selected is action
        assert fake.calls == []

    def test_retry_after_failure(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(1))
        fake.fail_next = True
        assert not workflow.snooze(3)
        assert workflow.error == "Failed to snooze rule"
        assert workflow.mark_safe()
        assert workflow.error is None
        assert workflow.state == WorkflowState.CLOSED

    def test_failed_mark_safe_message(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(1))
        fake.fail_next = True
        assert not workflow.mark_safe()
        assert workflow.error == "Failed to update rule"
        assert workflow.is_open


class TestDecideLater:
    def test_closes_without_commit(self, workflow: DecisionWorkflow, fake: RecordingCommands):
        workflow.open(_triggered(3))
        workflow.mark_safe()
        workflow.select(workflow.suggestions[0])
        workflow.decide_later(TODAY)
        assert workflow.state == WorkflowState.CLOSED
        assert len(fake.calls) == 1
        assert workflow.dismissal.is_dismissed(TODAY)


class TestDismissalState:
    def test_auto_open_when_rules_and_not_dismissed(self):
        state = DismissalState()
        assert state.should_auto_open(_triggered(1), TODAY)
        assert not state.should_auto_open([], TODAY)

    def test_dismissed_today_suppresses(self):
        state = DismissalState()
        state.dismiss(TODAY)
        assert not state.should_auto_open(_triggered(1), TODAY)

    def test_resets_next_day(self):
        state = DismissalState(last_dismissed=TODAY)
        assert state.should_auto_open(_triggered(1), date(2025, 1, 6))

    def test_auto_opened_today_suppresses(self):
        state = DismissalState()
        state.mark_auto_opened(TODAY)
        assert not state.should_auto_open(_triggered(1), TODAY)
        assert state.should_auto_open(_triggered(1), date(2025, 1, 6))

    def test_shared_across_workflows(self, fake: RecordingCommands):
        state = DismissalState()
        DecisionWorkflow(fake, dismissal=state).decide_later(TODAY)
        assert DecisionWorkflow(fake, dismissal=state).dismissal.is_dismissed(TODAY)


class TestAutoOpen:
    def test_opens_once(self, workflow: DecisionWorkflow):
        assert workflow.auto_open(_triggered(2), TODAY)
        assert workflow.is_open
        assert workflow.dismissal.last_auto_opened == TODAY

    def test_no_rules_no_open(self, workflow: DecisionWorkflow):
        assert not workflow.auto_open([], TODAY)
        assert workflow.dismissal.last_auto_opened is None

    def test_not_reopened_after_finishing_queue(self, workflow: DecisionWorkflow):
        workflow.auto_open(_triggered(1), TODAY)
        assert workflow.snooze(1)
        assert workflow.state == WorkflowState.CLOSED

        # a 1-day snooze on a rule 4 days overdue leaves it overdue
        assert not workflow.auto_open(_triggered(1), TODAY)
        assert not workflow.is_open

    def test_reopens_next_day(self, workflow: DecisionWorkflow):
        workflow.auto_open(_triggered(1), TODAY)
        workflow.mark_safe()
        assert workflow.auto_open(_triggered(1), date(2025, 1, 6))

    def test_manual_open_still_allowed(self, workflow: DecisionWorkflow):
        workflow.auto_open(_triggered(1), TODAY)
        workflow.mark_safe()
        workflow.open(_triggered(1))
        assert workflow.is_open


class TestAgainstStore:
    def test_drop_scenario_end_to_end(self, populated_store: DocumentStore, commands: RuleCommands):
        campaigns = [Campaign.from_dict(d) for d in populated_store.get_all("campaigns")]
        exams = [Exam.from_dict(d) for d in populated_store.get_all("exams")]
        workflow = DecisionWorkflow(commands)
        workflow.open(evaluate_rules(campaigns, exams, TODAY))

        drop = workflow.suggestions[0]
        assert drop.description == 'Drop "Databases" (change status to dropped)'
        workflow.select(drop)
        assert workflow.execute()

        assert populated_store.get("exams", "databases")["status"] == "dropped"
        assert populated_store.get("campaigns", "finals_prep")["rules"][0]["status"] == "triggered"
        assert workflow.state == WorkflowState.CLOSED

    def test_short_snooze_does_not_reopen_same_day(self, populated_store: DocumentStore, commands: RuleCommands):
        def overdue():
            campaigns = [Campaign.from_dict(d) for d in populated_store.get_all("campaigns")]
            exams = [Exam.from_dict(d) for d in populated_store.get_all("exams")]
            return evaluate_rules(campaigns, exams, TODAY)

        workflow = DecisionWorkflow(commands)
        assert workflow.auto_open(overdue(), TODAY)
        assert workflow.snooze(1)
        assert workflow.state == WorkflowState.CLOSED

        still_overdue = overdue()
        assert len(still_overdue) == 1
        assert not workflow.auto_open(still_overdue, TODAY)
