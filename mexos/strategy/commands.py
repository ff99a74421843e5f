"""Commit operations on campaign rules and their linked exams.

Rules live embedded in their campaign document, so every rule mutation
is a read-modify-write of the whole ``rules`` array. Two near-simultaneous
edits to different rules of the same campaign are last-write-wins at the
array level.

Rules are addressed by index for the callers' convenience; when the rule
id is also given, it is checked against the rule found at that index and
used to relocate the rule if the array shifted underneath.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import date, timedelta

from mexos.activity import DecisionJournal
from mexos.errors import MexosError, RuleNotFoundError
from mexos.models import EXAM_STATUSES, RULE_STATUSES, CampaignRule, new_rule_id
from mexos.storage.store import DocumentStore
from mexos.strategy.rules import parse_deadline

logger = logging.getLogger(__name__)


class RuleCommands:
    """Write side of the strategy engine."""

    def __init__(
        self,
        store: DocumentStore,
        journal: DecisionJournal | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._journal = journal
        self._clock = clock

    def execute_rule_action(
        self,
        campaign_id: str,
        rule_index: int,
        exam_id: str | None = None,
        new_status: str | None = None,
        rule_id: str | None = None,
    ) -> None:
        """Apply an exam status change (if any) and mark the rule triggered."""
        if new_status is not None and new_status not in EXAM_STATUSES:
            raise ValueError(f"Unknown exam status: {new_status}")

        details = f"exam={exam_id} status={new_status}" if exam_id and new_status else "manual"
        with self._journaled("execute", campaign_id, rule_id, details) as entry:
            rules, index = self._load_rules(campaign_id, rule_index, rule_id)
            entry.describe(rules[index])
            rules[index]["status"] = "triggered"
            if not (exam_id and new_status):
                self._save_rules(campaign_id, rules)
                return
            # exam status and rule status commit together or not at all
            self._store.update_many([
                ("exams", exam_id, {"status": new_status}),
                ("campaigns", campaign_id, {"rules": rules}),
            ])
            logger.info(f"Exam {exam_id} -> {new_status} (campaign {campaign_id})")

    def mark_rule_safe(self, campaign_id: str, rule_index: int, rule_id: str | None = None) -> None:
        with self._journaled("mark_safe", campaign_id, rule_id, "status=safe") as entry:
            rules, index = self._load_rules(campaign_id, rule_index, rule_id)
            entry.describe(rules[index])
            rules[index]["status"] = "safe"
            self._save_rules(campaign_id, rules)

    def snooze_rule(
        self,
        campaign_id: str,
        rule_index: int,
        days: int,
        rule_id: str | None = None,
    ) -> str:
        """Push the deadline back by ``days``; the rule stays pending.

        Returns the new deadline as an ISO date. A malformed deadline is
        replaced by today + days.
        """
        if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
            raise ValueError(f"Snooze days must be a positive integer, got {days!r}")

        with self._journaled("snooze", campaign_id, rule_id, f"days={days}") as entry:
            rules, index = self._load_rules(campaign_id, rule_index, rule_id)
            entry.describe(rules[index])
            current = parse_deadline(rules[index].get("deadline"))
            base = current if current is not None else self._clock()
            new_deadline = (base + timedelta(days=days)).isoformat()
            rules[index]["deadline"] = new_deadline
            self._save_rules(campaign_id, rules)
        return new_deadline

    def add_rule(self, campaign_id: str, condition: str, action: str, deadline: str) -> CampaignRule:
        if not condition.strip() or not action.strip():
            raise ValueError("A rule needs both a condition and an action")
        rule = CampaignRule(
            condition=condition.strip(),
            action=action.strip(),
            deadline=deadline,
            id=new_rule_id(),
        )
        with self._journaled("add_rule", campaign_id, rule.id, f"deadline={deadline}") as entry:
            entry.describe(rule.to_dict())
            campaign = self._store.require("campaigns", campaign_id)
            rules = self._normalized_rules(campaign)
            rules.append(rule.to_dict())
            self._save_rules(campaign_id, rules)
        return rule

    def update_rule_status(
        self,
        campaign_id: str,
        rule_index: int,
        status: str,
        rule_id: str | None = None,
    ) -> None:
        if status not in RULE_STATUSES:
            raise ValueError(f"Unknown rule status: {status}")
        with self._journaled("set_status", campaign_id, rule_id, f"status={status}") as entry:
            rules, index = self._load_rules(campaign_id, rule_index, rule_id)
            entry.describe(rules[index])
            rules[index]["status"] = status
            self._save_rules(campaign_id, rules)

    def delete_rule(self, campaign_id: str, rule_index: int, rule_id: str | None = None) -> None:
        with self._journaled("delete_rule", campaign_id, rule_id, "") as entry:
            rules, index = self._load_rules(campaign_id, rule_index, rule_id)
            entry.describe(rules[index])
            del rules[index]
            self._save_rules(campaign_id, rules)

    def _normalized_rules(self, campaign: dict, legacy: set[int] | None = None) -> list[dict]:
        """Copy of the campaign's rules with ids filled in for legacy entries.

        Indices of rules that had no stored id are added to ``legacy``.
        """
        rules = []
        for raw in campaign.get("rules") or []:
            if not isinstance(raw, dict):
                continue
            rule = dict(raw)
            if not rule.get("id"):
                rule["id"] = new_rule_id()
                if legacy is not None:
                    legacy.add(len(rules))
            rules.append(rule)
        return rules

    def _load_rules(self, campaign_id: str, rule_index: int, rule_id: str | None) -> tuple[list[dict], int]:
        campaign = self._store.require("campaigns", campaign_id)
        legacy: set[int] = set()
        rules = self._normalized_rules(campaign, legacy)

        if 0 <= rule_index < len(rules):
            # a legacy rule's id only existed in the caller's snapshot
            if rule_id is None or rule_index in legacy or rules[rule_index]["id"] == rule_id:
                return rules, rule_index

        if rule_id is not None:
            for i, rule in enumerate(rules):
                if rule["id"] == rule_id:
                    logger.info(f"Rule {rule_id} moved from index {rule_index} to {i} in {campaign_id}")
                    return rules, i

        raise RuleNotFoundError(campaign_id, rule_index, rule_id)

    def _save_rules(self, campaign_id: str, rules: list[dict]) -> None:
        self._store.update_fields("campaigns", campaign_id, {"rules": rules})

    def _journaled(self, command: str, campaign_id: str, rule_id: str | None, details: str):
        return _JournalEntry(self._journal, command, campaign_id, rule_id, details)


class _JournalEntry:
    """Times a commit and records it in the journal, success or failure."""

    def __init__(
        self,
        journal: DecisionJournal | None,
        command: str,
        campaign_id: str,
        rule_id: str | None,
        details: str,
    ) -> None:
        self._journal = journal
        self._command = command
        self._campaign_id = campaign_id
        self._rule_id = rule_id
        self._details = details
        self._rule: dict | None = None
        self._start = 0.0

    def describe(self, rule: dict) -> None:
        """Attach the rule as it stood before this commit."""
        self._rule = dict(rule)

    def __enter__(self) -> _JournalEntry:
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        duration_ms = int((time.monotonic() - self._start) * 1000)
        error = str(exc) if exc is not None else None
        if exc is None:
            logger.info(f"{self._command} on {self._campaign_id}: {self._details}")
        elif isinstance(exc, MexosError):
            logger.error(f"{self._command} on {self._campaign_id} failed: {exc}")
        if self._journal is not None:
            self._journal.record(
                self._command,
                self._campaign_id,
                self._rule_id,
                self._details,
                error,
                duration_ms,
                rule=self._rule,
            )
        return False
