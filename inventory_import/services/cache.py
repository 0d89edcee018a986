"""Namespaced Redis cache for import metadata and job snapshots.

Each namespace owns a key prefix and a TTL, and keys are only ever built
through the typed helpers below so tenant-scoped entries cannot collide.
The cache is a best-effort mirror: any Redis failure is logged and reported
to callers as a miss.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable

from redis import Redis
from redis.exceptions import RedisError

from inventory_import.core.config import get_settings
from inventory_import.domain.job import ImportType
from inventory_import.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamespaceSpec:
    prefix: str
    ttl: timedelta


class CacheNamespace(Enum):
    TEMPLATES = NamespaceSpec("plantillas", timedelta(hours=1))
    TENANT_PRODUCTS = NamespaceSpec("productosEmpresa", timedelta(minutes=30))
    JOBS = NamespaceSpec("trabajos", timedelta(hours=2))
    VALIDATION = NamespaceSpec("validacion", timedelta(minutes=10))
    STATS = NamespaceSpec("estadisticas", timedelta(hours=1))

    @property
    def prefix(self) -> str:
        return self.value.prefix

    @property
    def ttl(self) -> timedelta:
        return self.value.ttl


@dataclass(frozen=True)
class CacheKey:
    namespace: CacheNamespace
    key: str


def template_key(import_type: ImportType) -> CacheKey:
    return CacheKey(CacheNamespace.TEMPLATES, import_type.value)


def tenant_products_key(tenant_id: int) -> CacheKey:
    return CacheKey(CacheNamespace.TENANT_PRODUCTS, f"tenant:{int(tenant_id)}")


def job_key(job_id: str) -> CacheKey:
    return CacheKey(CacheNamespace.JOBS, job_id)


def validation_key(content_hash: str) -> CacheKey:
    return CacheKey(CacheNamespace.VALIDATION, content_hash)


def tenant_stats_key(tenant_id: int) -> CacheKey:
    return CacheKey(CacheNamespace.STATS, f"tenant:{int(tenant_id)}")


class ImportCache:
    """get/set/invalidate over Redis with per-namespace TTLs."""

    def __init__(self, client: Redis, prefix: str = "importacion"):
        self.client = client
        self.prefix = prefix

    def _redis_key(self, key: CacheKey) -> str:
        return f"{self.prefix}:cache:{key.namespace.prefix}:{key.key}"

    def get(self, key: CacheKey) -> Any | None:
        try:
            raw = self.client.get(self._redis_key(key))
        except RedisError as e:
            logger.error(f"Cache read failed for {key.namespace.prefix}:{key.key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Discarding corrupt cache entry {key.namespace.prefix}:{key.key}")
            self.invalidate(key)
            return None

    def set(self, key: CacheKey, payload: Any, ttl: timedelta | None = None) -> bool:
        ttl = ttl or key.namespace.ttl
        try:
            self.client.set(
                self._redis_key(key),
                json.dumps(payload, default=str),
                ex=int(ttl.total_seconds()),
            )
        except RedisError as e:
            logger.error(f"Cache write failed for {key.namespace.prefix}:{key.key}: {e}")
            return False
        except (TypeError, ValueError) as e:
            logger.error(f"Payload for {key.namespace.prefix}:{key.key} is not JSON: {e}")
            return False
        return True

    def invalidate(self, key: CacheKey) -> None:
        try:
            self.client.delete(self._redis_key(key))
        except RedisError as e:
            logger.error(f"Cache invalidation failed for {key.namespace.prefix}:{key.key}: {e}")

    def get_or_load(self, key: CacheKey, loader: Callable[[], Any]) -> Any:
        """Read-through helper: return the cached payload or load and store it."""
        cached = self.get(key)
        if cached is not None:
            return cached
        payload = loader()
        if payload is not None:
            self.set(key, payload)
        return payload

    def clear_namespace(self, namespace: CacheNamespace) -> int:
        pattern = f"{self.prefix}:cache:{namespace.prefix}:*"
        removed = 0
        try:
            for redis_key in self.client.scan_iter(match=pattern, count=500):
                removed += self.client.delete(redis_key)
        except RedisError as e:
            logger.error(f"Failed to clear cache namespace {namespace.prefix}: {e}")
        return removed

    def clear_all(self) -> int:
        removed = sum(self.clear_namespace(namespace) for namespace in CacheNamespace)
        logger.info(f"Cleared {removed} cache entries")
        return removed

    def stats(self) -> dict[str, int]:
        """Number of live keys per namespace; empty when Redis is unreachable."""
        counts: dict[str, int] = {}
        try:
            for namespace in CacheNamespace:
                pattern = f"{self.prefix}:cache:{namespace.prefix}:*"
                counts[namespace.prefix] = sum(
                    1 for _ in self.client.scan_iter(match=pattern, count=500)
                )
        except RedisError as e:
            logger.error(f"Failed to collect cache stats: {e}")
            return {}
        return counts


def build_cache() -> ImportCache:
    settings = get_settings()
    client = create_redis_client(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.cache_socket_timeout,
        socket_connect_timeout=settings.cache_socket_timeout,
    )
    return ImportCache(client, prefix=settings.key_prefix)
