"""
Daemon that keeps the local snapshot in step with the remote backend.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from serve_tracker.config import get_settings
from serve_tracker.dependencies import get_orchestrator
from serve_tracker.sync import SyncPoller

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Serve tracker sync daemon")
    parser.add_argument(
        "--interval-seconds",
        type=float,
        default=None,
        help="Seconds between syncs (defaults to SYNC_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    orchestrator = get_orchestrator()
    outcome = orchestrator.load()
    logger.info(
        "Sync complete via %s: %d clients, %d serves",
        outcome.path.value,
        len(outcome.clients),
        len(outcome.serves),
    )
    if args.once:
        return 0

    interval = args.interval_seconds or get_settings().sync_interval_seconds
    poller = SyncPoller(orchestrator.load, interval)
    poller.start()
    try:
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        logger.info("Stopping sync daemon")
    finally:
        poller.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
