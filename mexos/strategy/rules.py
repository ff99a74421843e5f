"""Rule evaluation: which campaign rules have passed their deadline.

Everything here is a pure function of the campaign/exam snapshots and a
clock value. Malformed data degrades instead of raising: a deadline that
cannot be parsed is never overdue, and linked exam ids that no longer
exist are skipped.
"""

from __future__ import annotations

from datetime import date, datetime

from mexos.models import BureaucracyDoc, Campaign, CampaignRule, Exam, TriggeredRule

STATUS_GREEN = "green"
STATUS_YELLOW = "yellow"
STATUS_RED = "red"

BLOCKING_DOC_STATUSES = {"expired", "unknown"}


def _today(now: datetime | date | None) -> date:
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def parse_deadline(value) -> date | None:
    """Parse a rule deadline into a calendar day.

    Accepts date/datetime objects and ISO strings ("2025-01-01" or
    "2025-01-01T09:00:00"). Returns None for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def is_rule_overdue(rule: CampaignRule, now: datetime | date | None = None) -> bool:
    """A pending rule whose deadline day is strictly before today."""
    if rule.status != "pending":
        return False
    deadline = parse_deadline(rule.deadline)
    if deadline is None:
        return False
    return deadline < _today(now)


def resolve_linked_exams(campaign: Campaign, exams: list[Exam]) -> list[Exam]:
    """Linked exams that still exist and are not passed, in link order."""
    by_id = {e.id: e for e in exams}
    resolved = []
    for exam_id in campaign.linked_exams:
        exam = by_id.get(exam_id)
        if exam is not None and exam.status != "passed":
            resolved.append(exam)
    return resolved


def evaluate_rules(
    campaigns: list[Campaign],
    exams: list[Exam],
    now: datetime | date | None = None,
) -> list[TriggeredRule]:
    """Collect every overdue rule across all campaigns, most overdue first.

    Ties keep encounter order: campaign order, then position in the
    campaign's rules array.
    """
    today = _today(now)
    triggered: list[TriggeredRule] = []

    for campaign in campaigns:
        linked = None
        for index, rule in enumerate(campaign.rules):
            if not is_rule_overdue(rule, today):
                continue
            if linked is None:
                linked = resolve_linked_exams(campaign, exams)
            triggered.append(
                TriggeredRule(
                    campaign_id=campaign.id,
                    campaign_name=campaign.name,
                    rule_index=index,
                    rule=rule,
                    linked_exams=list(linked),
                    days_overdue=(today - parse_deadline(rule.deadline)).days,
                )
            )

    # sorted() is stable, so equal days_overdue keep encounter order
    return sorted(triggered, key=lambda t: -t.days_overdue)


def get_exams_with_active_rules(campaigns: list[Campaign], exams: list[Exam]) -> list[Exam]:
    """Exams linked to an active campaign that still has a pending rule.

    Pending here includes rules that are not yet overdue; this feeds the
    "has pending rules" indicator, not the decision queue.
    """
    exam_ids: set[str] = set()
    for campaign in campaigns:
        if campaign.status != "active":
            continue
        if any(r.status == "pending" for r in campaign.rules):
            exam_ids.update(campaign.linked_exams)
    return [e for e in exams if e.id in exam_ids]


def get_active_campaign(
    campaigns: list[Campaign],
    now: datetime | date | None = None,
) -> Campaign | None:
    """The active campaign whose date range contains today, else any active one."""
    today = _today(now)
    active = [c for c in campaigns if c.status == "active"]
    for campaign in active:
        start = parse_deadline(campaign.start_date)
        end = parse_deadline(campaign.end_date)
        if start and end and start <= today <= end:
            return campaign
    return active[0] if active else None


def get_global_status(
    bureaucracy: list[BureaucracyDoc],
    campaigns: list[Campaign],
    now: datetime | date | None = None,
) -> str:
    """Priority cascade: red, then yellow, then green. First match wins."""
    if any(d.is_critical and d.status in BLOCKING_DOC_STATUSES for d in bureaucracy):
        return STATUS_RED

    active = get_active_campaign(campaigns, now)
    if active is not None and any(r.status == "triggered" for r in active.rules):
        return STATUS_YELLOW

    return STATUS_GREEN


def count_pending_rules(campaign: Campaign | None) -> int:
    if campaign is None:
        return 0
    return sum(1 for r in campaign.rules if r.status == "pending")


def campaign_progress(campaign: Campaign, now: datetime | date | None = None) -> float:
    """Elapsed share of the campaign's date range, 0-100."""
    start = parse_deadline(campaign.start_date)
    end = parse_deadline(campaign.end_date)
    if start is None or end is None:
        return 0.0
    total = (end - start).days
    if total <= 0:
        return 100.0 if _today(now) >= end else 0.0
    elapsed = (_today(now) - start).days
    return min(100.0, max(0.0, elapsed / total * 100))


def days_remaining(campaign: Campaign, now: datetime | date | None = None) -> int | None:
    end = parse_deadline(campaign.end_date)
    if end is None:
        return None
    return (end - _today(now)).days


def get_passed_cfus(exams: list[Exam]) -> int:
    """Credits from passed exams that count toward the scholarship."""
    return sum(e.cfu for e in exams if e.status == "passed" and e.is_scholarship_critical)
