"""
app/scheduler/jobs.py

APScheduler-based timer for periodic circuit synchronization.

Schedule
--------
  circuit_sync: every ``SYNC_INTERVAL_MINUTES`` (default 5), first run
  immediately on start.

Runs never overlap: the job is limited to one instance and missed ticks are
coalesced while a run is still in flight.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on worker boot; shut it down gracefully on SIGINT/SIGTERM.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_sync_settings
from app.domain.sync_run import SyncRunSummary
from app.services.circuit_sync_service import get_circuit_sync_service

logger = logging.getLogger(__name__)

CIRCUIT_SYNC_JOB_ID = "circuit_sync"


def run_circuit_sync() -> SyncRunSummary | None:
    """
    Execute one circuit sync run. Failures are logged and never propagate
    into the scheduler thread.
    """
    logger.info("Scheduler: circuit_sync starting")
    try:
        summary = get_circuit_sync_service().run_once()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scheduler: circuit_sync crashed: %s", exc)
        return None

    logger.info(
        "Scheduler: circuit_sync complete status=%s total=%s succeeded=%s with_errors=%s",
        summary.status,
        summary.circuits_total,
        summary.circuits_succeeded,
        summary.circuits_failed,
    )
    return summary


def build_scheduler(
    *,
    job: Callable[[], object] = run_circuit_sync,
    interval_minutes: int | None = None,
    run_immediately: bool = True,
) -> BackgroundScheduler:
    """
    Build the scheduler with the circuit sync job registered.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    minutes = interval_minutes if interval_minutes is not None else get_sync_settings().interval_minutes
    scheduler = BackgroundScheduler(timezone="UTC")

    # An explicit next_run_time=None would add the job paused.
    first_run: dict[str, datetime] = {}
    if run_immediately:
        first_run["next_run_time"] = datetime.now(timezone.utc)

    scheduler.add_job(
        job,
        trigger="interval",
        minutes=max(1, minutes),
        id=CIRCUIT_SYNC_JOB_ID,
        name="GPON circuit synchronization",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=max(1, minutes) * 60,
        **first_run,
    )
    return scheduler
