"""
Evacuation refresh worker process entrypoint.

Runs the periodic refresh in the foreground without the HTTP API. Run only
one worker (or one API process with the refresh enabled) per database: the
single-flight guard is process-local.
"""

from __future__ import annotations

import logging
import os

from .core.config import settings
from .core.errors import log_exception
from .scripts.run_migrations import run_migrations_to_head
from .services.evacuation_refresh import RefreshScheduler, build_refresher, refresh_interval_sec

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("worker")


def main() -> int:
    logger.info("Worker booted (pid=%s)", os.getpid())
    if settings.auto_run_migrations:
        try:
            run_migrations_to_head()
        except Exception as exc:
            log_exception(logger, "DB migrations failed", exc=exc)
            return 1

    refresher = build_refresher(settings)
    scheduler = RefreshScheduler(
        refresher,
        refresh_interval_sec(settings),
        run_on_start=settings.evacuation_autostart,
    )
    logger.info("Worker started interval=%ss", scheduler.interval_sec)
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        return 0
    finally:
        refresher.client.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
