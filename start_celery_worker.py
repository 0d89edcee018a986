#!/usr/bin/env python3
"""Start the import worker pool with the configured concurrency."""

import sys
import warnings

from celery.bin import worker

from inventory_import.core.config import get_settings
from inventory_import.core.logging import configure_logging

# Containers commonly run as root; the warning is noise there
warnings.filterwarnings("ignore", category=UserWarning, message=".*superuser privileges.*")
warnings.filterwarnings("ignore", category=RuntimeWarning, message=".*superuser privileges.*")

from inventory_import.workers.celery_app import celery_app  # noqa: E402

if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings.log_level)
    worker_app = worker.worker(app=celery_app)

    sys.argv = [
        "celery",
        "-A",
        "inventory_import.workers.celery_app.celery_app",
        "worker",
        f"--loglevel={settings.log_level.lower()}",
        "--queues=imports",
        "--pool=prefork",
        f"--concurrency={settings.worker_concurrency}",
        "--without-mingle",
        "--without-gossip",
    ] + sys.argv[1:]

    worker_app.run()
