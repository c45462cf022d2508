import pytest
from fakeredis import aioredis as fakeredis_aioredis

from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.persistence import (
    STORAGE_KEY,
    FileCachePersister,
    RedisCachePersister,
)
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.core.cache import CacheClient, CacheConfig

pytestmark = pytest.mark.no_db_cleanup


class _Clock:
    def __init__(self, now: float = 50_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_dehydrate_hydrate_restores_entries():
    clock = _Clock()
    source = QueryCache(clock=clock)
    source.set_query_data(keys.sections(), [{"id": "sec-1"}])
    source.set_query_data(keys.user_profile("p-1"), {"id": "p-1"})
    source.invalidate_queries(keys.USER_PROFILE)

    target = QueryCache(clock=clock)
    assert target.hydrate(source.dehydrate()) == 2
    assert target.get_query_data(keys.sections()) == [{"id": "sec-1"}]
    assert target._entries[keys.user_profile("p-1")].invalidated is True


def test_hydrate_ignores_other_buster():
    source = QueryCache(buster="v0")
    source.set_query_data(keys.sections(), [])

    target = QueryCache(buster="v1")
    assert target.hydrate(source.dehydrate()) == 0
    assert len(target) == 0


def test_hydrate_ignores_payload_older_than_max_age():
    clock = _Clock()
    source = QueryCache(clock=clock)
    source.set_query_data(keys.sections(), [])
    payload = source.dehydrate()

    clock.now += 24 * 60 * 60 + 1
    target = QueryCache(clock=clock)
    assert target.hydrate(payload) == 0


def test_hydrate_keeps_entries_already_in_memory():
    source = QueryCache()
    source.set_query_data(keys.sections(), ["persisted"])

    target = QueryCache()
    target.set_query_data(keys.sections(), ["live"])
    assert target.hydrate(source.dehydrate()) == 0
    assert target.get_query_data(keys.sections()) == ["live"]


async def test_file_persister_round_trip(tmp_path):
    path = tmp_path / "cache" / "query-cache.json"
    cache = QueryCache(persister=FileCachePersister(path))
    cache.set_query_data(keys.grades(), [{"id": "g-1", "name": "1ro"}])

    assert await cache.persist() is True
    assert path.exists()

    restored = QueryCache(persister=FileCachePersister(path))
    assert await restored.restore() == 1
    assert restored.get_query_data(keys.grades()) == [{"id": "g-1", "name": "1ro"}]


async def test_file_persister_ignores_corrupt_file(tmp_path):
    path = tmp_path / "query-cache.json"
    path.write_text("{not json", encoding="utf-8")

    cache = QueryCache(persister=FileCachePersister(path))
    assert await cache.restore() == 0


async def test_redis_persister_round_trip():
    redis = fakeredis_aioredis.FakeRedis(decode_responses=True)
    client = CacheClient(CacheConfig(), client=redis)
    persister = RedisCachePersister(client)

    cache = QueryCache(persister=persister)
    cache.set_query_data(keys.app_settings(), {"app_name": "Alerta Educativa"})
    await cache.persist()

    assert await redis.ttl(STORAGE_KEY) > 0

    restored = QueryCache(persister=persister)
    assert await restored.restore() == 1
    assert restored.get_query_data(keys.app_settings()) == {"app_name": "Alerta Educativa"}

    await persister.remove()
    assert await redis.get(STORAGE_KEY) is None


def test_cache_config_from_url():
    config = CacheConfig.from_url("rediss://:s3cret@cache.internal:6380/2")

    assert (config.host, config.port, config.db) == ("cache.internal", 6380, 2)
    assert config.password == "s3cret"
    assert config.ssl is True
    assert CacheConfig.from_url("redis://localhost").db == 0

    with pytest.raises(ValueError):
        CacheConfig.from_url("http://localhost:6379")
