"""Query key builders for cached admin_ui reads.

Rules:
- Keys are tuples; the first element names the query family used by
  invalidation (``("students",)`` matches every students query).
- Never include PII (names, free-text beyond the search term the caller typed).
- Normalize optional params to ``None`` so equivalent requests share a key.
"""

from __future__ import annotations

from datetime import date as date_type
from typing import Any, Optional, Sequence, Tuple

QueryKey = Tuple[Any, ...]

STUDENTS = "students"
INCIDENTS = "incidents"
RISK_ASSESSMENTS = "risk-assessments"
DASHBOARD_STATS = "dashboard-stats"
SECTIONS = "sections"
TEACHERS = "teachers"
USER_PROFILE = "user-profile"
PERMISSIONS = "permissions"
NEE = "nee"
DROPOUTS = "dropouts"
DESERTION_TREND = "desertion-trend"
GRADES = "grades"
ASSIGNMENTS = "assignments"
TEACHER_DATA = "teacher-data"
APP_SETTINGS = "app-settings"

RECENT_INCIDENTS_LIMIT = 5


def as_key(value: Sequence[Any] | str) -> QueryKey:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def matches(filter_key: Sequence[Any] | str, key: QueryKey) -> bool:
    """True when ``key`` starts with every element of ``filter_key``."""

    prefix = as_key(filter_key)
    return key[: len(prefix)] == prefix


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def students_paginated(
    *, page: int, page_size: int, section_id: Optional[str], search: Optional[str]
) -> QueryKey:
    return (STUDENTS, "paginated", int(page), int(page_size), _clean(section_id), _clean(search))


def dashboard_stats() -> QueryKey:
    return (DASHBOARD_STATS,)


def recent_incidents(limit: int = RECENT_INCIDENTS_LIMIT) -> QueryKey:
    return (INCIDENTS, "recent", int(limit))


def incidents_list(*, status: Optional[str], student_id: Optional[str]) -> QueryKey:
    return (INCIDENTS, "list", _clean(status), _clean(student_id))


def desertion_trend(day: date_type) -> QueryKey:
    return (DESERTION_TREND, day.isoformat())


def sections() -> QueryKey:
    return (SECTIONS,)


def grades() -> QueryKey:
    return (GRADES,)


def teacher_data(teacher_id: str) -> QueryKey:
    return (TEACHER_DATA, teacher_id)


def user_profile(profile_id: str) -> QueryKey:
    return (USER_PROFILE, profile_id)


def app_settings() -> QueryKey:
    return (APP_SETTINGS,)


def permissions_list(*, status: Optional[str]) -> QueryKey:
    return (PERMISSIONS, "list", _clean(status))


def nee_list() -> QueryKey:
    return (NEE, "list")


def dropouts_list() -> QueryKey:
    return (DROPOUTS, "list")


def risk_assessments(*, level: Optional[str]) -> QueryKey:
    return (RISK_ASSESSMENTS, "list", _clean(level))


def assignments_list(*, teacher_id: Optional[str]) -> QueryKey:
    return (ASSIGNMENTS, "list", _clean(teacher_id))
