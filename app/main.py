from __future__ import annotations

import logging
import os
import signal
import threading
from types import FrameType

logger = logging.getLogger(__name__)

_REQUIRED_UPSTREAM_VARIABLES = (
    "NOTION_API_KEY",
    "NOTION_DATABASE_ID",
    "ZABBIX_URL",
    "ZABBIX_USER",
    "ZABBIX_PASSWORD",
    "UBERSMITH_URL",
    "UBERSMITH_USER",
    "UBERSMITH_PASSWORD",
)


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    database_urls = ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    if not any(os.getenv(name, "").strip() for name in database_urls):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL."
        )

    # --- Upstream credentials -------------------------------------------
    for name in _REQUIRED_UPSTREAM_VARIABLES:
        if not os.getenv(name, "").strip():
            errors.append(f"{name} is not set. Empty strings are not permitted.")

    # --- Worker count ---------------------------------------------------
    raw_workers = os.getenv("SYNC_WORKER_COUNT", "").strip()
    if raw_workers:
        try:
            if int(raw_workers) < 1:
                errors.append(f"SYNC_WORKER_COUNT='{raw_workers}' must be >= 1.")
        except ValueError:
            errors.append(f"SYNC_WORKER_COUNT='{raw_workers}' is not an integer.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the worker process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # APScheduler logs every job execution at INFO.
    logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import session_scope

    try:
        with session_scope() as db:
            db.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def main() -> int:
    """
    Run the circuit sync worker until SIGINT or SIGTERM.
    """

    _validate_env()
    _configure_logging()
    _check_db()
    logger.info("Database connectivity confirmed")

    from app.config import get_sync_settings
    from app.scheduler.jobs import build_scheduler
    from db.session import dispose_engine

    stop_requested = threading.Event()

    def _request_stop(signum: int, _frame: FrameType | None) -> None:
        logger.info("Received %s, shutting down", signal.Signals(signum).name)
        stop_requested.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    settings = get_sync_settings()
    scheduler = build_scheduler(interval_minutes=settings.interval_minutes)
    scheduler.start()
    logger.info(
        "GPON sync worker started interval_minutes=%s workers=%s batch_size=%s dry_run=%s",
        settings.interval_minutes,
        settings.worker_count,
        settings.batch_size,
        settings.dry_run,
    )
    try:
        stop_requested.wait()
    finally:
        # Waits for an in-flight run, including its batch writes.
        scheduler.shutdown(wait=True)
        dispose_engine()
        logger.info("GPON sync worker stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
