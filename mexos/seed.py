"""Demo data for a fresh mexos database.

Dates are placed relative to ``today`` so a freshly seeded cockpit always
has an active campaign, one overdue rule, one upcoming rule, and a week of
practice history.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

from mexos.models import DEFAULT_TRACKING_OPTIONS, new_rule_id
from mexos.storage.store import DocumentStore

logger = logging.getLogger(__name__)


def _day(today: date, offset: int) -> str:
    return (today + timedelta(days=offset)).isoformat()


def build_seed(today: date) -> dict[str, list[dict]]:
    exams = [
        {
            "id": "computability",
            "name": "Computability",
            "cfu": 6,
            "status": "booked",
            "exam_date": _day(today, 12),
            "strategy_notes": "Main event. Deep work every morning.",
            "is_scholarship_critical": True,
            "category": "Mandatory Core",
        },
        {
            "id": "economics",
            "name": "Economics",
            "cfu": 6,
            "status": "enrolled",
            "exam_date": _day(today, 16),
            "strategy_notes": "Easy win",
            "is_scholarship_critical": True,
            "category": "Mandatory Core",
        },
        {
            "id": "web_info_mgmt",
            "name": "Web Info Management",
            "cfu": 6,
            "status": "enrolled",
            "exam_date": _day(today, 19),
            "strategy_notes": "Kill switch if no project",
            "is_scholarship_critical": True,
            "category": "Mandatory Core",
        },
        {
            "id": "sw_verification",
            "name": "Software Verification",
            "cfu": 6,
            "status": "passed",
            "exam_date": _day(today, -20),
            "strategy_notes": "Oral exam",
            "is_scholarship_critical": True,
            "category": "Mandatory Core",
        },
    ]

    bureaucracy = [
        {
            "id": "residence_permit",
            "name": "Residence Permit",
            "type": "residence_permit",
            "status": "valid",
            "issue_date": _day(today, -200),
            "expiry_date": _day(today, 165),
            "notes": "Renew 60 days before expiry",
            "is_critical": True,
        },
        {
            "id": "tax_code",
            "name": "Tax Code",
            "type": "tax",
            "status": "valid",
            "notes": "Permanent, no expiry",
            "is_critical": False,
        },
        {
            "id": "health_insurance",
            "name": "Health Coverage",
            "type": "insurance",
            "status": "pending",
            "notes": "Verify national health system registration",
            "is_critical": True,
        },
    ]

    campaigns = [
        {
            "id": "winter_campaign",
            "name": "Winter Campaign",
            "status": "active",
            "start_date": _day(today, -14),
            "end_date": _day(today, 30),
            "focus_areas": ["Computability", "Web Info Management"],
            "linked_exams": ["computability", "web_info_mgmt", "sw_verification"],
            "linked_docs": ["residence_permit"],
            "rules": [
                {
                    "id": new_rule_id(),
                    "condition": "Project topic not assigned",
                    "action": "DROP Web Info Management",
                    "deadline": _day(today, -3),
                    "status": "pending",
                },
                {
                    "id": new_rule_id(),
                    "condition": "Mock exam score below 60%",
                    "action": "Book the second exam session",
                    "deadline": _day(today, 5),
                    "status": "pending",
                },
            ],
        },
    ]

    skills = [
        {
            "id": "python_practice",
            "name": "Python",
            "category": "programming",
            "tracking_options": list(DEFAULT_TRACKING_OPTIONS),
            "target_per_day": "30 mins",
            "years_experience": 2,
            "is_tracked": True,
            "show_on_cv": True,
        },
        {
            "id": "italian_practice",
            "name": "Italian",
            "category": "language",
            "tracking_options": list(DEFAULT_TRACKING_OPTIONS),
            "target_per_day": "15 mins",
            "years_experience": 0,
            "is_tracked": True,
            "show_on_cv": False,
        },
    ]

    pattern = ["30 mins", "1 hour", "0 mins", "30 mins", "2 hours", "15 mins", "30 mins"]
    habits = []
    for offset, label in enumerate(pattern, start=1):
        day = _day(today, -offset)
        habits.append({
            "id": day,
            "date": day,
            "skills": {"python_practice": label, "italian_practice": "15 mins" if offset % 2 else "0 mins"},
            "habits": {"deep_work_hours": 0, "sleep_hours": 0, "gym_session": False},
        })

    return {
        "exams": exams,
        "bureaucracy": bureaucracy,
        "campaigns": campaigns,
        "skills": skills,
        "habits": habits,
    }


def seed_store(store: DocumentStore, today: date | None = None) -> bool:
    """Write demo data into an empty store. Returns False if data already exists."""
    if not store.repo.is_empty():
        logger.info("Data already exists, skipping seed")
        return False

    for collection, docs in build_seed(today or date.today()).items():
        store.set_many(collection, docs)
        logger.info(f"Seeded {len(docs)} {collection}")
    return True
