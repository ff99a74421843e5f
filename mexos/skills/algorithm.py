"""Skill mastery scoring.

A skill's proficiency is derived from its practice log:
1. Total practice time (volume)
2. Consistency (share of days practiced since the first session)
3. Recency (how long since the last session)
4. Streaks (longest run of consecutive practice days)
5. Prior experience (years before tracking started)

The log is sparse: a day without an entry, or with a zero duration, is a
day without practice. Entries dated after ``today`` or with malformed
dates are ignored.
"""

from __future__ import annotations

import math
import re
from datetime import date, timedelta

from mexos.models import HabitEntry, HeatmapDay, SkillAnalytics, SkillDefinition

LEVEL_THRESHOLDS = [
    (1, "Novice", 0),
    (2, "Beginner", 100),
    (3, "Intermediate", 300),
    (4, "Advanced", 600),
    (5, "Expert", 1000),
]

HEATMAP_DAYS = 90
DEFAULT_TARGET_MINUTES = 30
POINTS_PER_HOUR = 10
POINTS_PER_EXPERIENCE_YEAR = 50
STREAK_POINTS_PER_DAY = 2
STREAK_MILESTONE_DAYS = 7
STREAK_MILESTONE_POINTS = 5

_HOURS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*h(?:ou)?r?s?(?![a-z])", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+(?:\.\d+)?)\s*m(?:in(?:ute)?s?)?(?![a-z])", re.IGNORECASE)
_NUMBER_RE = re.compile(r"(\d+(?:\.\d+)?)")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_duration_minutes(label) -> int:
    """Convert a duration label ("30 mins", "1 hour", "1h 15m") to minutes.

    A bare number counts as minutes; anything unparseable is 0.
    """
    if not isinstance(label, str) or not label.strip():
        return 0

    hours = _HOURS_RE.search(label)
    minutes = _MINUTES_RE.search(label)
    total = 0.0
    if hours:
        total += float(hours.group(1)) * 60
    if minutes:
        total += float(minutes.group(1))
    if not hours and not minutes:
        number = _NUMBER_RE.search(label)
        if number:
            total = float(number.group(1))
    return _round_half_up(total)


def _parse_day(value: str) -> date | None:
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        return None


def practice_by_day(skill_id: str, entries: list[HabitEntry], today: date) -> dict[date, int]:
    """Minutes practiced per calendar day, up to and including today."""
    minutes: dict[date, int] = {}
    for entry in entries:
        day = _parse_day(entry.date)
        if day is None or day > today:
            continue
        value = parse_duration_minutes(entry.skills.get(skill_id))
        if value > 0:
            minutes[day] = minutes.get(day, 0) + value
    return minutes


def current_streak(minutes: dict[date, int], today: date) -> int:
    """Consecutive practice days ending today, or yesterday if today is still empty."""
    day = today
    if minutes.get(day, 0) == 0:
        day -= timedelta(days=1)
    streak = 0
    while minutes.get(day, 0) > 0:
        streak += 1
        day -= timedelta(days=1)
    return streak


def longest_streak(minutes: dict[date, int]) -> int:
    longest = 0
    run = 0
    previous: date | None = None
    for day in sorted(d for d, m in minutes.items() if m > 0):
        if previous is not None and (day - previous).days == 1:
            run += 1
        else:
            run = 1
        previous = day
        longest = max(longest, run)
    return longest


def consistency_multiplier(percent: int) -> float:
    if percent >= 80:
        return 1.5
    if percent >= 50:
        return 1.2
    if percent >= 25:
        return 1.0
    return 0.8


def recency_multiplier(days_since_last: int | None) -> float:
    if days_since_last is None:
        return 0.7
    if days_since_last <= 1:
        return 1.0
    if days_since_last <= 7:
        return 0.85
    return 0.7


def streak_bonus(longest: int) -> int:
    milestones = longest // STREAK_MILESTONE_DAYS
    return longest * STREAK_POINTS_PER_DAY + milestones * STREAK_MILESTONE_POINTS


def calculate_level(points: int) -> tuple[int, str, int, int]:
    """Return (level, name, points to next level, progress percent within tier)."""
    for i in range(len(LEVEL_THRESHOLDS) - 1, -1, -1):
        level, name, min_points = LEVEL_THRESHOLDS[i]
        if points >= min_points or i == 0:
            if i == len(LEVEL_THRESHOLDS) - 1:
                return level, name, 0, 100
            next_min = LEVEL_THRESHOLDS[i + 1][2]
            progress = _round_half_up((points - min_points) / (next_min - min_points) * 100)
            return level, name, next_min - points, min(100, max(0, progress))
    raise AssertionError("unreachable")


def _intensity(minutes: int, target: int) -> int:
    if minutes <= 0:
        return 0
    if minutes >= target:
        return 3
    if minutes * 2 >= target:
        return 2
    return 1


def heatmap(minutes: dict[date, int], target: int, today: date) -> list[HeatmapDay]:
    """One cell per day for the trailing window, oldest first."""
    cells = []
    for offset in range(HEATMAP_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        value = minutes.get(day, 0)
        cells.append(HeatmapDay(date=day.isoformat(), minutes=value, intensity=_intensity(value, target)))
    return cells


def calculate_skill_analytics(
    skill: SkillDefinition,
    entries: list[HabitEntry],
    today: date | None = None,
) -> SkillAnalytics:
    today = today or date.today()
    minutes = practice_by_day(skill.id, entries, today)

    total_minutes = sum(minutes.values())
    total_hours = _round_half_up(total_minutes / 60 * 10) / 10
    days_practiced = len(minutes)

    first = min(minutes) if minutes else None
    last = max(minutes) if minutes else None
    days_since_first = (today - first).days + 1 if first else 0

    if days_since_first > 0:
        consistency = _round_half_up(days_practiced / days_since_first * 100)
        consistency = min(100, max(0, consistency))
    else:
        consistency = 0

    streak_now = current_streak(minutes, today)
    streak_best = longest_streak(minutes)

    c_mult = consistency_multiplier(consistency)
    r_mult = recency_multiplier((today - last).days if last else None)

    base_points = _round_half_up(total_hours * POINTS_PER_HOUR)
    bonus = streak_bonus(streak_best)
    experience = _round_half_up((skill.years_experience or 0) * POINTS_PER_EXPERIENCE_YEAR)

    # Multipliers apply to practice points only, not to bonuses
    total_points = _round_half_up(base_points * c_mult * r_mult) + bonus + experience

    level, level_name, to_next, progress = calculate_level(total_points)

    target = parse_duration_minutes(skill.target_per_day) or DEFAULT_TARGET_MINUTES

    return SkillAnalytics(
        skill_id=skill.id,
        skill_name=skill.name,
        total_minutes=total_minutes,
        total_hours=total_hours,
        days_practiced=days_practiced,
        days_since_first_practice=days_since_first,
        current_streak=streak_now,
        longest_streak=streak_best,
        last_practice_date=last.isoformat() if last else None,
        consistency_percent=consistency,
        consistency_multiplier=c_mult,
        recency_multiplier=r_mult,
        base_points=base_points,
        streak_bonus=bonus,
        experience_bonus=experience,
        total_points=total_points,
        level=level,
        level_name=level_name,
        points_to_next_level=to_next,
        progress_percent=progress,
        heatmap_data=heatmap(minutes, target, today),
    )


def calculate_all_skill_analytics(
    skills: list[SkillDefinition],
    entries: list[HabitEntry],
    today: date | None = None,
) -> list[SkillAnalytics]:
    """Analytics for every definition, in definition order."""
    today = today or date.today()
    return [calculate_skill_analytics(skill, entries, today) for skill in skills]


def rank_tracked_skills(
    skills: list[SkillDefinition],
    entries: list[HabitEntry],
    today: date | None = None,
) -> list[SkillAnalytics]:
    """Analytics for tracked skills only, highest total points first."""
    tracked = [s for s in skills if s.is_tracked]
    analytics = calculate_all_skill_analytics(tracked, entries, today)
    return sorted(analytics, key=lambda a: a.total_points, reverse=True)
