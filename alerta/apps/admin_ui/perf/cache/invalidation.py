"""Entity-to-query invalidation after writes, plus the optimistic paths."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

from . import keys
from .keys import QueryKey
from .query_cache import QueryCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

RELATED_QUERY_KEYS: Dict[str, Tuple[QueryKey, ...]] = {
    "student": ((keys.STUDENTS,), (keys.INCIDENTS,), (keys.RISK_ASSESSMENTS,)),
    "incident": ((keys.INCIDENTS,), (keys.STUDENTS,), (keys.DASHBOARD_STATS,)),
    "section": ((keys.SECTIONS,), (keys.STUDENTS,), (keys.TEACHERS,)),
    "user": ((keys.USER_PROFILE,), (keys.PERMISSIONS,)),
    "permission": ((keys.PERMISSIONS,), (keys.DASHBOARD_STATS,)),
    "nee": ((keys.NEE,), (keys.STUDENTS,)),
    "dropout": ((keys.DROPOUTS,), (keys.DESERTION_TREND,), (keys.DASHBOARD_STATS,)),
    "risk": ((keys.RISK_ASSESSMENTS,), (keys.DASHBOARD_STATS,)),
    "grade": ((keys.GRADES,), (keys.SECTIONS,), (keys.STUDENTS,)),
    "assignment": ((keys.ASSIGNMENTS,), (keys.TEACHERS,), (keys.TEACHER_DATA,)),
    "settings": ((keys.APP_SETTINGS,),),
}


def related_query_keys(entity_type: str) -> Tuple[QueryKey, ...]:
    return RELATED_QUERY_KEYS.get(entity_type, ())


def invalidate_related(
    cache: QueryCache, entity_type: str, entity_id: Optional[str] = None
) -> List[QueryKey]:
    """Invalidate the query families declared for ``entity_type``.

    Unknown entity types invalidate nothing.
    """

    touched: List[QueryKey] = []
    for filter_key in related_query_keys(entity_type):
        touched.extend(cache.invalidate_queries(filter_key))
    logger.debug(
        "Invalidated %d cached queries after %s change (%s)",
        len(touched),
        entity_type,
        entity_id or "-",
    )
    return touched


def _patch_student(item: Any, student_id: str, changes: Mapping[str, Any]) -> Any:
    if isinstance(item, dict) and item.get("id") == student_id:
        return {**item, **changes}
    return item


def _patch_students_payload(old: Any, student_id: str, changes: Mapping[str, Any]) -> Any:
    if isinstance(old, dict) and isinstance(old.get("students"), list):
        return {
            **old,
            "students": [_patch_student(item, student_id, changes) for item in old["students"]],
        }
    if isinstance(old, list):
        return [_patch_student(item, student_id, changes) for item in old]
    return old


async def optimistic_student_edit(
    cache: QueryCache,
    student_id: str,
    changes: Mapping[str, Any],
    mutate: Callable[[], Awaitable[T]],
) -> T:
    """Patch cached student lists before writing; restore them if the write fails."""

    students_filter = (keys.STUDENTS,)
    snapshots = cache.get_queries_data(students_filter)
    cache.set_queries_data(
        students_filter,
        lambda old: _patch_students_payload(old, student_id, changes),
    )
    try:
        return await cache.run_mutation(mutate)
    except Exception:
        for key, data in snapshots:
            cache.set_query_data(key, data)
        logger.info("Rolled back optimistic edit of student %s", student_id)
        raise
    finally:
        cache.invalidate_queries(students_filter)


def record_incident_created(
    cache: QueryCache,
    incident: Mapping[str, Any],
    *,
    limit: int = keys.RECENT_INCIDENTS_LIMIT,
) -> None:
    """Invalidate incident reads and put the new incident on top of the recent list."""

    cache.invalidate_queries((keys.INCIDENTS,))
    cache.invalidate_queries((keys.DASHBOARD_STATS,))

    def _prepend(old: Any) -> Any:
        if not isinstance(old, list):
            return None
        return [dict(incident), *old[: max(limit - 1, 0)]]

    cache.set_query_data(keys.recent_incidents(limit), _prepend)


__all__ = [
    "RELATED_QUERY_KEYS",
    "invalidate_related",
    "optimistic_student_edit",
    "record_incident_created",
    "related_query_keys",
]
