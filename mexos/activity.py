"""Decision journal for rule commits.

Every commit made while resolving a campaign rule (execute, mark safe,
snooze, rule edits) is appended to a JSONL file so the user can look back
at what was decided and when. Each line carries the command, the campaign
and rule ids, the rule's condition and action as they stood at commit
time, details, error and duration.

The journal lives alongside mexos.db by default.
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

DETAILS_PREVIEW_LIMIT = 500

# What each command means for the rule it touched.
OUTCOMES = {
    "execute": "resolved",
    "mark_safe": "resolved",
    "snooze": "deferred",
    "add_rule": "edited",
    "set_status": "edited",
    "delete_rule": "edited",
}


def _resolve_log_path() -> Path:
    """Find the journal path, checking env var then defaulting next to the DB."""
    env_path = os.getenv("MEXOS_JOURNAL_PATH")
    if env_path:
        return Path(env_path)

    db_path = os.getenv("MEXOS_DB_PATH", "mexos.db")
    return Path(db_path).parent / "mexos-decisions.jsonl"


class DecisionJournal:
    """Appends commit records to a JSONL file."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path or _resolve_log_path()

    def record(
        self,
        command: str,
        campaign_id: str,
        rule_id: str | None,
        details: str,
        error: str | None,
        duration_ms: int,
        rule: dict | None = None,
    ) -> None:
        """Append a commit entry. Never raises."""
        rule = rule or {}
        try:
            entry = {
                "timestamp": datetime.now().isoformat(),
                "command": command,
                "campaign_id": campaign_id,
                "rule_id": rule_id or rule.get("id"),
                "condition": rule.get("condition"),
                "action": rule.get("action"),
                "details": details[:DETAILS_PREVIEW_LIMIT] if details else "",
                "error": error,
                "duration_ms": duration_ms,
            }
            with open(self.path, "a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.warning(f"Could not write decision journal at {self.path}: {e}")

    def read(self, limit: int = 20, **filters) -> list[dict]:
        return read_decision_log(limit=limit, log_path=self.path, **filters)


def _iter_entries(path: Path) -> Iterator[dict]:
    with open(path) as f:
        for line in f:
            if not line.strip():
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.debug(f"Skipping malformed journal line in {path}")


def read_decision_log(
    limit: int = 20,
    command: str | None = None,
    campaign_id: str | None = None,
    failed_only: bool = False,
    log_path: Path | None = None,
) -> list[dict]:
    """Read the latest journal entries matching the filters, most recent first."""
    path = log_path or _resolve_log_path()
    if not path.exists():
        return []

    latest: deque[dict] = deque(maxlen=limit)
    for entry in _iter_entries(path):
        if command and entry.get("command") != command:
            continue
        if campaign_id and entry.get("campaign_id") != campaign_id:
            continue
        if failed_only and not entry.get("error"):
            continue
        latest.append(entry)
    return list(reversed(latest))


def outcome_of(entry: dict) -> str:
    if entry.get("error"):
        return "failed"
    return OUTCOMES.get(entry.get("command", ""), "edited")


def summarize_decisions(entries: list[dict]) -> dict[str, int]:
    """Count entries per outcome: resolved, deferred, edited, failed."""
    counts = {"resolved": 0, "deferred": 0, "edited": 0, "failed": 0}
    for entry in entries:
        counts[outcome_of(entry)] += 1
    return counts


def group_by_campaign(entries: list[dict]) -> dict[str, list[dict]]:
    """Group entries by campaign id, keeping the order campaigns first appear in."""
    groups: dict[str, list[dict]] = {}
    for entry in entries:
        groups.setdefault(entry.get("campaign_id") or "?", []).append(entry)
    return groups
