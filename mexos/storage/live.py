"""Typed, always-current view over the document store.

LiveData subscribes to every collection the cockpit needs and keeps the
latest snapshot of each as model objects. Derived views (overdue rules,
global status, skill analytics) are recomputed from those snapshots on
each call and are only available once every collection has delivered
its first snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime

from mexos.models import BureaucracyDoc, Campaign, Exam, HabitEntry, SkillAnalytics, SkillDefinition, TriggeredRule
from mexos.skills.algorithm import calculate_all_skill_analytics, rank_tracked_skills
from mexos.storage.store import DocumentStore, ReadyBarrier
from mexos.strategy.rules import (
    evaluate_rules,
    get_active_campaign,
    get_exams_with_active_rules,
    get_global_status,
    get_passed_cfus,
)

logger = logging.getLogger(__name__)

REQUIRED_COLLECTIONS = ("campaigns", "exams", "habits", "skills", "bureaucracy")


def _parse_all(docs: list[dict], parse: Callable[[dict], object], collection: str) -> list:
    parsed = []
    for doc in docs:
        try:
            parsed.append(parse(doc))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed {collection} document {doc.get('id')}: {e}")
    return parsed


class NotReadyError(RuntimeError):
    pass


class LiveData:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self.barrier = ReadyBarrier(REQUIRED_COLLECTIONS)
        self.campaigns: list[Campaign] = []
        self.exams: list[Exam] = []
        self.habits: list[HabitEntry] = []
        self.skills: list[SkillDefinition] = []
        self.bureaucracy: list[BureaucracyDoc] = []
        self._unsubscribers = [
            store.subscribe("campaigns", self._on_campaigns),
            store.subscribe("exams", self._on_exams),
            store.subscribe("habits", self._on_habits),
            store.subscribe("skills", self._on_skills),
            store.subscribe("bureaucracy", self._on_bureaucracy),
        ]

    @property
    def is_ready(self) -> bool:
        return self.barrier.is_ready

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def triggered_rules(self, now: datetime | date | None = None) -> list[TriggeredRule]:
        self._require_ready()
        return evaluate_rules(self.campaigns, self.exams, now)

    def exams_with_active_rules(self) -> list[Exam]:
        self._require_ready()
        return get_exams_with_active_rules(self.campaigns, self.exams)

    def global_status(self, now: datetime | date | None = None) -> str:
        self._require_ready()
        return get_global_status(self.bureaucracy, self.campaigns, now)

    def active_campaign(self, now: datetime | date | None = None) -> Campaign | None:
        self._require_ready()
        return get_active_campaign(self.campaigns, now)

    def passed_cfus(self) -> int:
        self._require_ready()
        return get_passed_cfus(self.exams)

    def skill_analytics(self, today: date | None = None, tracked_only: bool = True) -> list[SkillAnalytics]:
        self._require_ready()
        if tracked_only:
            return rank_tracked_skills(self.skills, self.habits, today)
        return calculate_all_skill_analytics(self.skills, self.habits, today)

    def _require_ready(self) -> None:
        if not self.barrier.is_ready:
            raise NotReadyError(f"Still waiting for: {', '.join(sorted(self.barrier.missing))}")

    def _on_campaigns(self, docs: list[dict]) -> None:
        self.campaigns = _parse_all(docs, Campaign.from_dict, "campaigns")
        self.barrier.mark("campaigns")

    def _on_exams(self, docs: list[dict]) -> None:
        exams = _parse_all(docs, Exam.from_dict, "exams")
        self.exams = sorted(exams, key=lambda e: (e.exam_date is None, e.exam_date or ""))
        self.barrier.mark("exams")

    def _on_habits(self, docs: list[dict]) -> None:
        habits = _parse_all(docs, HabitEntry.from_dict, "habits")
        self.habits = sorted(habits, key=lambda h: h.date, reverse=True)
        self.barrier.mark("habits")

    def _on_skills(self, docs: list[dict]) -> None:
        self.skills = _parse_all(docs, SkillDefinition.from_dict, "skills")
        self.barrier.mark("skills")

    def _on_bureaucracy(self, docs: list[dict]) -> None:
        self.bureaucracy = _parse_all(docs, BureaucracyDoc.from_dict, "bureaucracy")
        self.barrier.mark("bureaucracy")
