"""Celery application for the import workers."""

import ssl

from celery import Celery

from inventory_import.core.config import get_settings
from inventory_import.utils.redis_client import is_ssl_url, normalize_redis_url

settings = get_settings()

broker_url = normalize_redis_url(settings.broker_url)
backend_url = normalize_redis_url(settings.result_backend_url)
is_ssl = is_ssl_url(broker_url) or is_ssl_url(backend_url)

celery_app = Celery(
    "inventory_importer",
    broker=broker_url,
    backend=backend_url,
    include=["inventory_import.workers.tasks.process_import"],
)

broker_transport_options = {
    # Unacked jobs go back to the queue once a worker has held them this long
    "visibility_timeout": settings.visibility_timeout,
    "queue_order_strategy": "priority",
    "priority_steps": list(range(10)),
    "sep": ":",
}

celery_config = {
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    "task_routes": {"inventory_import.workers.tasks.process_import": {"queue": "imports"}},
    "task_default_queue": "imports",
    "task_default_priority": 2,
    "task_acks_late": True,  # Acknowledge after task completion
    "task_reject_on_worker_lost": True,  # Re-queue if worker dies
    "worker_prefetch_multiplier": 1,  # One job per worker process at a time
    "worker_concurrency": settings.worker_concurrency,
    "task_time_limit": settings.task_time_limit,
    "task_soft_time_limit": max(settings.task_time_limit - 300, 60),
    "result_expires": 3600,
    "broker_connection_retry_on_startup": True,
    "broker_transport_options": broker_transport_options,
    "worker_hijack_root_logger": False,
}

if is_ssl:
    ssl_dict = {"ssl_cert_reqs": ssl.CERT_NONE}
    celery_config["broker_use_ssl"] = ssl_dict
    celery_config["redis_backend_use_ssl"] = ssl_dict

celery_app.conf.update(celery_config)
