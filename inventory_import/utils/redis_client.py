"""Redis connection helpers shared by the job queue, the cache and Celery."""

from __future__ import annotations

import ssl
from typing import Any

from redis import Redis

TLS_ONLY_HOSTS = (".upstash.io",)


def normalize_redis_url(url: str) -> str:
    """Upgrade ``redis://`` to ``rediss://`` for hosts that only speak TLS."""
    if url.startswith("redis://") and any(host in url for host in TLS_ONLY_HOSTS):
        return url.replace("redis://", "rediss://", 1)
    return url


def is_ssl_url(url: str) -> bool:
    return normalize_redis_url(url).startswith("rediss://")


def create_redis_client(url: str, **kwargs: Any) -> Redis:
    """Create a Redis client for ``url``.

    Args:
        url: Redis connection URL (redis:// or rediss://)
        **kwargs: Passed to ``Redis.from_url`` (decode_responses, socket_timeout, ...)

    Returns:
        Configured Redis client; TLS connections skip certificate verification
        the way hosted providers require.
    """
    url = normalize_redis_url(url)
    client = Redis.from_url(url, **kwargs)
    if is_ssl_url(url):
        client.connection_pool.connection_kwargs["ssl_cert_reqs"] = ssl.CERT_NONE
    return client
