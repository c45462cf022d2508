import pytest

from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.invalidation import (
    RELATED_QUERY_KEYS,
    invalidate_related,
    optimistic_student_edit,
    record_incident_created,
)
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache

pytestmark = pytest.mark.no_db_cleanup

ALL_FAMILIES = [
    ("students", "paginated", 0, 20, None, None),
    ("incidents", "list", None, None),
    ("incidents", "recent", 5),
    ("risk-assessments", None),
    ("dashboard-stats",),
    ("sections",),
    ("teachers",),
    ("user-profile", "p-1"),
    ("permissions", None),
    ("nee",),
    ("dropouts",),
    ("desertion-trend", "2024-05-01"),
    ("grades",),
    ("assignments", None),
    ("teacher-data", "t-1"),
    ("app-settings",),
]


async def _no_sleep(_delay):
    return None


def _filled_cache() -> QueryCache:
    cache = QueryCache(sleep=_no_sleep)
    for key in ALL_FAMILIES:
        cache.set_query_data(key, {"value": key[0]})
    return cache


@pytest.mark.parametrize("entity_type", sorted(RELATED_QUERY_KEYS))
def test_invalidation_touches_exactly_related_families(entity_type):
    cache = _filled_cache()

    touched = invalidate_related(cache, entity_type, "id-1")

    expected_families = {family[0] for family in RELATED_QUERY_KEYS[entity_type]}
    assert {key[0] for key in touched} == expected_families & {key[0] for key in ALL_FAMILIES}
    for key in ALL_FAMILIES:
        entry = cache._entries[key]
        assert entry.invalidated is (key[0] in expected_families)


def test_student_mutation_invalidates_students_incidents_and_risks():
    assert RELATED_QUERY_KEYS["student"] == (
        (keys.STUDENTS,),
        (keys.INCIDENTS,),
        (keys.RISK_ASSESSMENTS,),
    )


def test_unknown_entity_invalidates_nothing():
    cache = _filled_cache()
    assert invalidate_related(cache, "unknown") == []


async def test_optimistic_edit_patches_then_invalidates_on_success():
    cache = QueryCache(sleep=_no_sleep)
    page_key = keys.students_paginated(page=0, page_size=20, section_id=None, search=None)
    cache.set_query_data(
        page_key,
        {"students": [{"id": "s-1", "first_name": "Ana"}, {"id": "s-2", "first_name": "Luis"}]},
    )
    seen = {}

    async def mutate():
        seen["during"] = cache.get_query_data(page_key)["students"][0]["first_name"]
        return {"id": "s-1", "first_name": "Anita"}

    result = await optimistic_student_edit(cache, "s-1", {"first_name": "Anita"}, mutate)

    assert result["first_name"] == "Anita"
    assert seen["during"] == "Anita"
    assert cache._entries[page_key].invalidated is True


async def test_optimistic_edit_restores_snapshot_on_failure():
    cache = QueryCache(sleep=_no_sleep)
    page_key = keys.students_paginated(page=0, page_size=20, section_id=None, search=None)
    original = {"students": [{"id": "s-1", "first_name": "Ana"}], "total": 1}
    cache.set_query_data(page_key, original)

    async def mutate():
        raise RuntimeError("write rejected")

    with pytest.raises(RuntimeError):
        await optimistic_student_edit(cache, "s-1", {"first_name": "Anita"}, mutate)

    assert cache.get_query_data(page_key) == original
    assert cache._entries[page_key].invalidated is True


def test_new_incident_is_prepended_to_cached_recent_list():
    cache = QueryCache()
    recent_key = keys.recent_incidents()
    cache.set_query_data(recent_key, [{"id": f"i-{n}"} for n in range(5)])
    cache.set_query_data(keys.dashboard_stats(), {"total_students": 1})

    record_incident_created(cache, {"id": "new"})

    recent = cache.get_query_data(recent_key)
    assert [item["id"] for item in recent] == ["new", "i-0", "i-1", "i-2", "i-3"]
    assert cache._entries[recent_key].invalidated is False
    assert cache._entries[keys.dashboard_stats()].invalidated is True


def test_new_incident_without_cached_list_creates_nothing():
    cache = QueryCache()
    record_incident_created(cache, {"id": "new"})
    assert keys.recent_incidents() not in cache
