"""Turn a rule's free-text action into candidate actions.

The matcher list is a heuristic, not a classifier: each entry pairs a
predicate over the lowercased action text with a generator of
RuleActions. The manual fallback is always offered last.
"""

from __future__ import annotations

from collections.abc import Callable

from mexos.models import RuleAction, TriggeredRule

MANUAL_DESCRIPTION = "I'll handle this manually (mark as triggered)"

Predicate = Callable[[str], bool]
Generator = Callable[[str, TriggeredRule], list[RuleAction]]


def _mentions_drop(text: str) -> bool:
    return "drop" in text


def _drop_actions(text: str, triggered: TriggeredRule) -> list[RuleAction]:
    return [
        RuleAction(
            type="drop_exam",
            exam_id=exam.id,
            new_status="dropped",
            description=f'Drop "{exam.name}" (change status to dropped)',
        )
        for exam in triggered.linked_exams
        if exam.status not in ("dropped", "passed")
    ]


def _mentions_booking(text: str) -> bool:
    return "book" in text or "enroll" in text


def _status_actions(text: str, triggered: TriggeredRule) -> list[RuleAction]:
    # "book" wins when both words appear
    target = "booked" if "book" in text else "enrolled"
    return [
        RuleAction(
            type="change_status",
            exam_id=exam.id,
            new_status=target,
            description=f'Change "{exam.name}" status to {target}',
        )
        for exam in triggered.linked_exams
        if exam.status not in (target, "passed")
    ]


SUGGESTION_MATCHERS: list[tuple[Predicate, Generator]] = [
    (_mentions_drop, _drop_actions),
    (_mentions_booking, _status_actions),
]


def manual_action() -> RuleAction:
    return RuleAction(type="manual", description=MANUAL_DESCRIPTION)


def suggest_actions(triggered: TriggeredRule) -> list[RuleAction]:
    """Candidate resolutions for an overdue rule, manual fallback last."""
    suggestions: list[RuleAction] = []
    action_text = triggered.rule.action
    if isinstance(action_text, str):
        text = action_text.lower()
        for predicate, generate in SUGGESTION_MATCHERS:
            if predicate(text):
                suggestions.extend(generate(text, triggered))
    suggestions.append(manual_action())
    return suggestions
