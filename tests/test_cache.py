"""Tests for the namespaced import cache."""

import logging
from unittest.mock import MagicMock

from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from inventory_import.domain.job import ImportType
from inventory_import.services.cache import (
    CacheNamespace,
    ImportCache,
    job_key,
    template_key,
    tenant_products_key,
    tenant_stats_key,
    validation_key,
)


def test_set_and_get_round_trip(cache) -> None:
    cache.set(tenant_products_key(4), {"tornillo": 1})

    assert cache.get(tenant_products_key(4)) == {"tornillo": 1}
    assert cache.get(tenant_products_key(5)) is None


def test_each_namespace_uses_its_ttl(cache, redis_client) -> None:
    cache.set(tenant_products_key(1), {})
    cache.set(job_key("import-1"), {})
    cache.set(validation_key("abc"), [])

    assert 1790 <= redis_client.ttl("test:cache:productosEmpresa:tenant:1") <= 1800
    assert 7190 <= redis_client.ttl("test:cache:trabajos:import-1") <= 7200
    assert 590 <= redis_client.ttl("test:cache:validacion:abc") <= 600


def test_keys_do_not_collide_across_namespaces(cache) -> None:
    cache.set(tenant_products_key(1), "products")
    cache.set(tenant_stats_key(1), "stats")

    assert cache.get(tenant_products_key(1)) == "products"
    assert cache.get(tenant_stats_key(1)) == "stats"


def test_invalidate_removes_only_that_entry(cache) -> None:
    cache.set(tenant_products_key(1), {"a": 1})
    cache.set(tenant_products_key(2), {"b": 2})

    cache.invalidate(tenant_products_key(1))

    assert cache.get(tenant_products_key(1)) is None
    assert cache.get(tenant_products_key(2)) == {"b": 2}


def test_get_or_load_reads_through_once(cache) -> None:
    calls = []

    def loader():
        calls.append(1)
        return {"columns": ["nombre"]}

    assert cache.get_or_load(template_key(ImportType.PRODUCTS), loader) == {"columns": ["nombre"]}
    assert cache.get_or_load(template_key(ImportType.PRODUCTS), loader) == {"columns": ["nombre"]}
    assert len(calls) == 1


def test_redis_failure_degrades_to_miss(caplog) -> None:
    client = MagicMock()
    client.get.side_effect = RedisTimeoutError("too slow")
    client.set.side_effect = RedisError("down")
    client.delete.side_effect = RedisError("down")
    cache = ImportCache(client)

    with caplog.at_level(logging.ERROR):
        assert cache.get(job_key("x")) is None
        assert cache.set(job_key("x"), {"a": 1}) is False
        cache.invalidate(job_key("x"))

    assert len([r for r in caplog.records if r.levelno == logging.ERROR]) == 3


def test_get_or_load_still_loads_when_redis_is_down() -> None:
    client = MagicMock()
    client.get.side_effect = RedisError("down")
    client.set.side_effect = RedisError("down")
    cache = ImportCache(client)

    assert cache.get_or_load(tenant_products_key(1), lambda: {"x": 1}) == {"x": 1}


def test_corrupt_entry_is_dropped(cache, redis_client) -> None:
    redis_client.set("test:cache:trabajos:bad", "{not json")

    assert cache.get(job_key("bad")) is None
    assert redis_client.get("test:cache:trabajos:bad") is None


def test_stats_and_clear_all(cache) -> None:
    cache.set(tenant_products_key(1), {})
    cache.set(tenant_products_key(2), {})
    cache.set(job_key("j"), {})

    stats = cache.stats()
    assert stats[CacheNamespace.TENANT_PRODUCTS.prefix] == 2
    assert stats[CacheNamespace.JOBS.prefix] == 1
    assert stats[CacheNamespace.TEMPLATES.prefix] == 0

    assert cache.clear_all() == 3
    assert sum(cache.stats().values()) == 0
