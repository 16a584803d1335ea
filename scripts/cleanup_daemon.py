"""
Daemon that periodically deletes memories older than the retention window.
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cloud_memory.config import get_settings
from cloud_memory.dependencies import get_cleanup_job

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Memory retention cleanup daemon")
    parser.add_argument(
        "--interval-seconds",
        type=int,
        default=settings.cleanup_interval_seconds,
        help="Seconds between cleanup runs",
    )
    parser.add_argument(
        "--jitter-seconds",
        type=int,
        default=60,
        help="Max random jitter added to sleep",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cleanup and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    job = get_cleanup_job()
    while True:
        try:
            result = job.run()
            logger.info(
                "Cleanup complete, deleted %d memories (%d orphaned objects)",
                result.deleted_count,
                result.orphaned_objects,
            )
        except Exception as exc:
            logger.exception("Cleanup failed: %s", exc)

        if args.once:
            return 0

        sleep_for = args.interval_seconds + random.uniform(0, args.jitter_seconds)
        logger.info("Sleeping for %.1fs", sleep_for)
        time.sleep(sleep_for)


if __name__ == "__main__":
    raise SystemExit(main())
