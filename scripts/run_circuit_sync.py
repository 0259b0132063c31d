"""
Run one circuit synchronization from the CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict

from app.domain.sync_run import SyncRunStatus
from app.services.circuit_sync_service import build_circuit_sync_service


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one GPON circuit sync.")
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=None,
        help="Log the batches that would be written instead of updating the database.",
    )
    parser.add_argument(
        "--workers",
        dest="workers",
        type=int,
        default=None,
        help="Override SYNC_WORKER_COUNT for this run.",
    )
    args = parser.parse_args()
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be >= 1")

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    service = build_circuit_sync_service(dry_run=args.dry_run, worker_count=args.workers)
    summary = service.run_once()

    print(json.dumps(asdict(summary), indent=2))
    return 1 if summary.status == SyncRunStatus.FAILED else 0


if __name__ == "__main__":
    raise SystemExit(main())
