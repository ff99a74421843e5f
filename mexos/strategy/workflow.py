"""Decision workflow: step through overdue rules one at a time.

The queue is frozen when the workflow opens. Each step commits exactly
one change through RuleCommands and waits for it; a failed commit leaves
the workflow on the same rule with the same selection so the user can
retry or walk away. "Decide later" closes without committing and records
the day. The workflow opens itself at most once per calendar day,
whether the user works through the queue or defers it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum

from mexos.errors import MexosError
from mexos.models import RuleAction, TriggeredRule
from mexos.strategy.commands import RuleCommands
from mexos.strategy.suggestions import suggest_actions

logger = logging.getLogger(__name__)

SNOOZE_OPTIONS = (1, 3, 7)


class WorkflowState(Enum):
    IDLE = "idle"
    REVIEWING = "reviewing"
    CLOSED = "closed"


@dataclass
class DismissalState:
    """Per-session memory of when the panel was last deferred or auto-opened."""

    last_dismissed: date | None = None
    last_auto_opened: date | None = None

    def dismiss(self, today: date | None = None) -> None:
        self.last_dismissed = today or date.today()

    def is_dismissed(self, today: date | None = None) -> bool:
        return self.last_dismissed == (today or date.today())

    def should_auto_open(self, triggered: list[TriggeredRule], today: date | None = None) -> bool:
        today = today or date.today()
        if not triggered or self.last_auto_opened == today:
            return False
        return not self.is_dismissed(today)

    def mark_auto_opened(self, today: date | None = None) -> None:
        self.last_auto_opened = today or date.today()


class DecisionWorkflow:
    """Linear, single-flight state machine over a snapshot of overdue rules."""

    def __init__(self, commands: RuleCommands, dismissal: DismissalState | None = None) -> None:
        self._commands = commands
        self.dismissal = dismissal or DismissalState()
        self.state = WorkflowState.IDLE
        self._queue: tuple[TriggeredRule, ...] = ()
        self.index = 0
        self.selected: RuleAction | None = None
        self.error: str | None = None
        self.last_message: str | None = None
        self.is_executing = False

    def open(self, triggered_rules: list[TriggeredRule]) -> None:
        self._queue = tuple(triggered_rules)
        self.index = 0
        self.selected = None
        self.error = None
        self.last_message = None
        self.state = WorkflowState.REVIEWING if self._queue else WorkflowState.CLOSED
        logger.info(f"Decision workflow opened with {len(self._queue)} rule(s)")

    def auto_open(self, triggered_rules: list[TriggeredRule], today: date | None = None) -> bool:
        """Open on the overdue queue unless it already opened itself today."""
        if self.is_open or not self.dismissal.should_auto_open(triggered_rules, today):
            return False
        self.dismissal.mark_auto_opened(today)
        self.open(triggered_rules)
        return True

    @property
    def is_open(self) -> bool:
        return self.state == WorkflowState.REVIEWING

    @property
    def queue(self) -> tuple[TriggeredRule, ...]:
        return self._queue

    @property
    def current(self) -> TriggeredRule | None:
        if not self.is_open:
            return None
        return self._queue[self.index]

    @property
    def is_last(self) -> bool:
        return self.index == len(self._queue) - 1

    @property
    def position(self) -> str:
        return f"{self.index + 1} of {len(self._queue)}"

    @property
    def suggestions(self) -> list[RuleAction]:
        current = self.current
        return suggest_actions(current) if current else []

    def select(self, action: RuleAction) -> None:
        self.selected = action

    def execute(self) -> bool:
        """Commit the selected suggestion. No-op without a selection."""
        current = self.current
        action = self.selected
        if current is None or action is None:
            return False

        if action.type == "drop_exam":
            success = "Exam dropped successfully"
        elif action.type == "change_status":
            success = "Exam status updated"
        else:
            success = "Rule marked as triggered"

        return self._commit(
            lambda: self._commands.execute_rule_action(
                current.campaign_id,
                current.rule_index,
                action.exam_id,
                action.new_status,
                rule_id=current.rule.id,
            ),
            success,
            "Failed to execute action",
        )

    def mark_safe(self) -> bool:
        current = self.current
        if current is None:
            return False
        return self._commit(
            lambda: self._commands.mark_rule_safe(
                current.campaign_id, current.rule_index, rule_id=current.rule.id
            ),
            "Rule marked as safe",
            "Failed to update rule",
        )

    def snooze(self, days: int) -> bool:
        if days not in SNOOZE_OPTIONS:
            raise ValueError(f"Snooze must be one of {SNOOZE_OPTIONS} days, got {days}")
        current = self.current
        if current is None:
            return False
        plural = "s" if days > 1 else ""
        return self._commit(
            lambda: self._commands.snooze_rule(
                current.campaign_id, current.rule_index, days, rule_id=current.rule.id
            ),
            f"Deadline extended by {days} day{plural}",
            "Failed to snooze rule",
        )

    def decide_later(self, today: date | None = None) -> None:
        """Close at any point without committing the current selection."""
        self.dismissal.dismiss(today)
        self.selected = None
        self.state = WorkflowState.CLOSED
        logger.info(f"Decisions deferred with {len(self._queue) - self.index} rule(s) left")

    def _commit(self, operation, success_message: str, failure_message: str) -> bool:
        if self.is_executing:
            raise RuntimeError("A decision is already being committed")

        self.is_executing = True
        self.error = None
        try:
            operation()
        except MexosError as e:
            logger.error(f"{failure_message}: {e}")
            self.error = failure_message
            return False
        finally:
            self.is_executing = False

        self.last_message = success_message
        self._advance()
        return True

    def _advance(self) -> None:
        self.selected = None
        if self.is_last:
            self.state = WorkflowState.CLOSED
        else:
            self.index += 1
