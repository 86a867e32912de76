"""
Expiry sweep worker — Celery task that periodically expires contracts past their end date.

Each tick builds a lifecycle engine over the shared session factory and runs
one sweep. Contracts are processed one transaction at a time, so a tick can
interleave safely with API requests touching the same rooms.
"""

from __future__ import annotations

import asyncio
import logging

from rentflow.config import get_settings
from rentflow.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# Keep one asyncio loop per worker process. Creating a new loop for each Celery tick
# causes asyncpg/SQLAlchemy "attached to a different loop" and "another operation in progress".
_worker_loop: asyncio.AbstractEventLoop | None = None


def _get_worker_loop() -> asyncio.AbstractEventLoop:
    global _worker_loop
    if _worker_loop is None or _worker_loop.is_closed():
        _worker_loop = asyncio.new_event_loop()
    asyncio.set_event_loop(_worker_loop)
    return _worker_loop


@celery_app.task(name="rentflow.sweep_expired_contracts")
def sweep_expired_contracts_task() -> int:
    """
    Celery task entry point. Runs the async sweep.

    Scheduled via celery beat (see beat_schedule below).
    """
    loop = _get_worker_loop()
    return loop.run_until_complete(_sweep_expired_contracts())


async def _sweep_expired_contracts() -> int:
    from rentflow.bootstrap import build_engine

    transitioned = await build_engine().sweep_expired()
    logger.info("Expiry sweep transitioned %s contract(s)", transitioned)
    return transitioned


# --- Celery Beat Schedule ---

celery_app.conf.beat_schedule = {
    "sweep-expired-contracts": {
        "task": "rentflow.sweep_expired_contracts",
        "schedule": get_settings().sweep_interval_seconds,
    },
}
