"""Tests for mexos.seed."""

from __future__ import annotations

from datetime import date

from mexos.seed import build_seed, seed_store
from mexos.storage.live import LiveData
from mexos.storage.store import DocumentStore

TODAY = date(2025, 1, 5)


class TestSeedStore:
    def test_seeds_empty_store(self, store: DocumentStore):
        assert seed_store(store, TODAY)
        stats = store.repo.get_stats()
        assert stats == {"campaigns": 1, "exams": 4, "habits": 7, "skills": 2, "bureaucracy": 3}

    def test_skips_when_data_exists(self, store: DocumentStore):
        store.set("exams", "mine", {"name": "Mine"})
        assert not seed_store(store, TODAY)
        assert store.repo.get_stats()["campaigns"] == 0

    def test_demo_profile_state(self, store: DocumentStore):
        seed_store(store, TODAY)
        live = LiveData(store)

        triggered = live.triggered_rules(TODAY)
        assert len(triggered) == 1
        assert triggered[0].days_overdue == 3
        assert [e.id for e in triggered[0].linked_exams] == ["computability", "web_info_mgmt"]

        assert live.global_status(TODAY) == "green"
        assert live.active_campaign(TODAY).id == "winter_campaign"
        assert live.passed_cfus() == 6

        analytics = live.skill_analytics(TODAY)
        assert {a.skill_id for a in analytics} == {"python_practice", "italian_practice"}
        assert all(a.days_practiced > 0 for a in analytics)


class TestBuildSeed:
    def test_dates_relative_to_today(self):
        seed = build_seed(TODAY)
        habit_dates = [h["date"] for h in seed["habits"]]
        assert max(habit_dates) == "2025-01-04"
        assert min(habit_dates) == "2024-12-29"

    def test_rule_ids_unique(self):
        rules = build_seed(TODAY)["campaigns"][0]["rules"]
        assert len({r["id"] for r in rules}) == len(rules)
