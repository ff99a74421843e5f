"""Shared test fixtures for mexos."""

from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

import pytest

from mexos.activity import DecisionJournal
from mexos.models import Campaign, Exam
from mexos.storage.db import get_connection
from mexos.storage.repository import Repository
from mexos.storage.store import DocumentStore
from mexos.strategy.commands import RuleCommands

TODAY = date(2025, 1, 5)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def db_conn(db_path: Path) -> sqlite3.Connection:
    conn = get_connection(db_path)
    yield conn
    conn.close()


@pytest.fixture
def repo(db_conn: sqlite3.Connection) -> Repository:
    return Repository(db_conn)


@pytest.fixture
def store(repo: Repository) -> DocumentStore:
    return DocumentStore(repo)


@pytest.fixture
def journal(tmp_path: Path) -> DecisionJournal:
    return DecisionJournal(tmp_path / "decisions.jsonl")


@pytest.fixture
def commands(store: DocumentStore, journal: DecisionJournal) -> RuleCommands:
    return RuleCommands(store, journal, clock=lambda: TODAY)


@pytest.fixture
def exam_docs() -> list[dict]:
    return [
        {"id": "databases", "name": "Databases", "cfu": 9, "status": "enrolled",
         "exam_date": "2025-01-20", "is_scholarship_critical": True},
        {"id": "algebra", "name": "Linear Algebra", "cfu": 6, "status": "passed",
         "exam_date": "2024-12-10", "is_scholarship_critical": True},
        {"id": "networks", "name": "Networks", "cfu": 6, "status": "planned",
         "exam_date": "2025-02-01", "is_scholarship_critical": False},
    ]


@pytest.fixture
def campaign_doc() -> dict:
    """Active campaign with one overdue drop rule and one future booking rule."""
    return {
        "id": "finals_prep",
        "name": "Finals Prep",
        "status": "active",
        "start_date": "2024-12-15",
        "end_date": "2025-02-15",
        "focus_areas": ["Databases"],
        "linked_exams": ["databases", "algebra"],
        "linked_docs": [],
        "rules": [
            {
                "id": "rule-drop",
                "condition": "Project topic not assigned",
                "action": "DROP Databases",
                "deadline": "2025-01-01",
                "status": "pending",
            },
            {
                "id": "rule-book",
                "condition": "Mock exam below 60%",
                "action": "Book the February session",
                "deadline": "2025-01-10",
                "status": "pending",
            },
        ],
    }


@pytest.fixture
def exams(exam_docs: list[dict]) -> list[Exam]:
    return [Exam.from_dict(d) for d in exam_docs]


@pytest.fixture
def campaign(campaign_doc: dict) -> Campaign:
    return Campaign.from_dict(campaign_doc)


@pytest.fixture
def populated_store(store: DocumentStore, exam_docs: list[dict], campaign_doc: dict) -> DocumentStore:
    """Store pre-loaded with the sample campaign and exams."""
    store.set_many("exams", exam_docs)
    store.set("campaigns", campaign_doc["id"], campaign_doc)
    return store
