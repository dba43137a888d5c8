"""
Copies the device-local clients and serve attempts into the remote backend.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from serve_tracker.config import get_settings
from serve_tracker.dependencies import get_db_client, get_storage_client
from serve_tracker.local_store import FileKeyValueStore, LocalStore
from serve_tracker.migration import migrate_local_to_remote
from serve_tracker.remote import RemoteBackend

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Import local serve tracker data")
    parser.add_argument(
        "-d",
        "--data-dir",
        type=str,
        default=None,
        help="Local data directory (defaults to SERVE_TRACKER_LOCAL_DATA_DIR)",
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Clear local clients and serves after a fully successful import",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    settings = get_settings()
    local_store = LocalStore(FileKeyValueStore(args.data_dir or settings.local_data_dir))
    remote = RemoteBackend(get_db_client(), get_storage_client())

    result = migrate_local_to_remote(local_store, remote)
    if not result.success:
        logger.error("Migration failed: %s", result.message)
        return 1

    logger.info(
        "%s (%d clients and %d serves skipped)",
        result.message,
        result.clients_skipped,
        result.serves_skipped,
    )
    if args.clear and not (result.clients_skipped or result.serves_skipped):
        local_store.clear_data()
        logger.info("Local data cleared")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
