"""Core data models for mexos.

Documents come out of the store as plain dicts; each model converts with
``from_dict`` / ``to_dict``. Unknown keys are ignored so older documents
keep loading.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field

CAMPAIGN_STATUSES = ("planned", "active", "completed", "failed")
RULE_STATUSES = ("pending", "triggered", "safe")
EXAM_STATUSES = ("study_plan", "enrolled", "planned", "booked", "passed", "dropped")
DOC_STATUSES = ("valid", "expiring_soon", "expired", "pending", "unknown")

DEFAULT_TRACKING_OPTIONS = ["0 mins", "15 mins", "30 mins", "1 hour", "2 hours"]


def new_rule_id() -> str:
    return uuid.uuid4().hex


def _str_list(value) -> list[str]:
    if not value:
        return []
    seen: list[str] = []
    for item in value:
        if isinstance(item, str) and item not in seen:
            seen.append(item)
    return seen


@dataclass
class CampaignRule:
    condition: str  # IF ...
    action: str  # THEN ... (free text, parsed heuristically)
    deadline: str  # BY ... ISO date, may be malformed
    status: str = "pending"  # "pending" | "triggered" | "safe"
    id: str = field(default_factory=new_rule_id)

    @classmethod
    def from_dict(cls, data: dict) -> CampaignRule:
        return cls(
            condition=data.get("condition", ""),
            action=data.get("action", ""),
            deadline=data.get("deadline", ""),
            status=data.get("status", "pending"),
            id=data.get("id") or new_rule_id(),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Campaign:
    id: str
    name: str
    status: str = "planned"  # "planned" | "active" | "completed" | "failed"
    start_date: str = ""
    end_date: str = ""
    focus_areas: list[str] = field(default_factory=list)
    linked_exams: list[str] = field(default_factory=list)  # exam ids
    linked_docs: list[str] = field(default_factory=list)  # bureaucracy doc ids
    rules: list[CampaignRule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Campaign:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            status=data.get("status", "planned"),
            start_date=data.get("start_date", ""),
            end_date=data.get("end_date", ""),
            focus_areas=list(data.get("focus_areas") or []),
            linked_exams=_str_list(data.get("linked_exams")),
            linked_docs=_str_list(data.get("linked_docs")),
            rules=[CampaignRule.from_dict(r) for r in data.get("rules") or [] if isinstance(r, dict)],
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["rules"] = [r.to_dict() for r in self.rules]
        return d


@dataclass
class Exam:
    id: str
    name: str
    cfu: int = 0
    status: str = "study_plan"  # see EXAM_STATUSES
    exam_date: str | None = None
    is_scholarship_critical: bool = False
    strategy_notes: str = ""
    category: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> Exam:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            cfu=int(data.get("cfu") or 0),
            status=data.get("status", "study_plan"),
            exam_date=data.get("exam_date") or None,
            is_scholarship_critical=bool(data.get("is_scholarship_critical", False)),
            strategy_notes=data.get("strategy_notes", ""),
            category=data.get("category", ""),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BureaucracyDoc:
    id: str
    name: str
    type: str = "other"  # "visa" | "residence_permit" | "tax" | "insurance" | "university" | "other"
    status: str = "unknown"  # see DOC_STATUSES
    issue_date: str | None = None
    expiry_date: str | None = None
    notes: str = ""
    is_critical: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> BureaucracyDoc:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            type=data.get("type", "other"),
            status=data.get("status", "unknown"),
            issue_date=data.get("issue_date") or None,
            expiry_date=data.get("expiry_date") or None,
            notes=data.get("notes", ""),
            is_critical=bool(data.get("is_critical", False)),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SkillDefinition:
    id: str
    name: str
    category: str = "other"
    tracking_options: list[str] = field(default_factory=lambda: list(DEFAULT_TRACKING_OPTIONS))
    target_per_day: str = "30 mins"
    years_experience: float = 0
    is_tracked: bool = True
    show_on_cv: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> SkillDefinition:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            category=data.get("category", "other"),
            tracking_options=list(data.get("tracking_options") or DEFAULT_TRACKING_OPTIONS),
            target_per_day=data.get("target_per_day", "30 mins"),
            years_experience=data.get("years_experience") or 0,
            is_tracked=data.get("is_tracked", True) is not False,
            show_on_cv=bool(data.get("show_on_cv", False)),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class HabitEntry:
    date: str  # ISO day, also the document id
    skills: dict[str, str] = field(default_factory=dict)  # skill id -> duration label
    habits: dict = field(default_factory=dict)  # deep_work_hours, sleep_hours, ...

    @classmethod
    def from_dict(cls, data: dict) -> HabitEntry:
        return cls(
            date=data.get("date") or data.get("id", ""),
            skills=dict(data.get("skills") or {}),
            habits=dict(data.get("habits") or {}),
        )

    def to_dict(self) -> dict:
        return {"id": self.date, **asdict(self)}


@dataclass
class TriggeredRule:
    campaign_id: str
    campaign_name: str
    rule_index: int
    rule: CampaignRule
    linked_exams: list[Exam] = field(default_factory=list)  # passed exams excluded
    days_overdue: int = 0


@dataclass
class RuleAction:
    type: str  # "drop_exam" | "change_status" | "manual"
    description: str
    exam_id: str | None = None
    new_status: str | None = None


@dataclass
class HeatmapDay:
    date: str
    minutes: int
    intensity: int  # 0-3


@dataclass
class SkillAnalytics:
    skill_id: str
    skill_name: str

    # Raw metrics
    total_minutes: int
    total_hours: float
    days_practiced: int
    days_since_first_practice: int
    current_streak: int
    longest_streak: int
    last_practice_date: str | None

    # Multipliers
    consistency_percent: int
    consistency_multiplier: float
    recency_multiplier: float

    # Points
    base_points: int
    streak_bonus: int
    experience_bonus: int
    total_points: int

    # Level
    level: int
    level_name: str
    points_to_next_level: int
    progress_percent: int

    heatmap_data: list[HeatmapDay] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)
