#!/usr/bin/env python3
"""Maintenance commands for the import queue: inspect, purge, cache."""

import argparse
import json
import sys

from inventory_import.core.config import get_settings
from inventory_import.core.logging import configure_logging
from inventory_import.services.job_queue import REGISTRY_BY_STATE, get_job_queue


def show_status() -> None:
    from inventory_import.workers.celery_app import celery_app

    settings = get_settings()
    queue = get_job_queue()
    print("=" * 60)
    print("Import queue status")
    print("=" * 60)
    print(f"Broker URL: {settings.broker_url}")
    print(f"Default queue: {celery_app.conf.task_default_queue}")
    print(f"Worker concurrency: {celery_app.conf.worker_concurrency}")
    print("\nJob registries:")
    for state, name in REGISTRY_BY_STATE.items():
        count = queue.client.zcard(queue._registry_key(state))
        print(f"   {name:<10} {count}")
    print("\nBroker backlog:")
    backlog = queue.client.llen("imports") + sum(
        queue.client.llen(f"imports:{step}") for step in range(1, 10)
    )
    print(f"   imports    {backlog}")
    try:
        active = celery_app.control.inspect(timeout=2).active() or {}
    except Exception as e:
        print(f"\nCould not reach workers: {e}")
        return
    print(f"\nActive workers: {len(active)}")
    for worker_name, tasks in active.items():
        print(f"   {worker_name}: {len(tasks)} running")


def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show registry sizes and workers")
    purge = sub.add_parser("purge", help="Delete finished jobs older than N days")
    purge.add_argument("--days", type=int, default=get_settings().job_retention_days)
    sub.add_parser("cache-stats", help="Count cache keys per namespace")
    sub.add_parser("clear-cache", help="Drop every cache entry")
    args = parser.parse_args(argv)

    configure_logging()
    queue = get_job_queue()
    if args.command == "status":
        show_status()
    elif args.command == "purge":
        print(f"Purged {queue.purge_older_than(args.days)} jobs")
    elif args.command == "cache-stats":
        print(json.dumps(queue.cache.stats(), indent=2))
    elif args.command == "clear-cache":
        print(f"Removed {queue.cache.clear_all()} cache entries")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
