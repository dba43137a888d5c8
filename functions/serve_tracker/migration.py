"""
Copies locally stored clients and serve attempts into the remote backend.

Records keep their ids so serve attempts still point at their clients. An
item the backend rejects (including one that already exists) is logged and
skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from serve_tracker.backends import LocalDataBackend
from serve_tracker.local_store import LocalStore
from serve_tracker.notifications import Notification, NotificationKind, Notifier
from serve_tracker.remote import RemoteBackend

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    success: bool
    clients_imported: int = 0
    serves_imported: int = 0
    clients_skipped: int = 0
    serves_skipped: int = 0
    message: str = ""

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "clientsImported": self.clients_imported,
            "servesImported": self.serves_imported,
            "clientsSkipped": self.clients_skipped,
            "servesSkipped": self.serves_skipped,
            "message": self.message,
        }


def migrate_local_to_remote(
    local_store: LocalStore,
    remote: RemoteBackend,
    notifier: Optional[Notifier] = None,
) -> MigrationResult:
    try:
        remote.probe()
    except Exception as e:
        logger.error("Error during migration: %s", e)
        result = MigrationResult(success=False, message=str(e))
        _notify(notifier, NotificationKind.ERROR, "Migration failed", result.message)
        return result

    local = LocalDataBackend(local_store)
    result = MigrationResult(success=True)

    for client in local.get_clients():
        try:
            remote.create_client(client)
            result.clients_imported += 1
        except Exception as e:
            logger.error("Error migrating client %s: %s", client.id, e)
            result.clients_skipped += 1

    for serve in local.get_serve_attempts():
        try:
            remote.create_serve_attempt(serve)
            result.serves_imported += 1
        except Exception as e:
            logger.error("Error migrating serve %s: %s", serve.id, e)
            result.serves_skipped += 1

    result.message = (
        f"Migrated {result.clients_imported} clients and "
        f"{result.serves_imported} serve attempts"
    )
    logger.info(result.message)
    _notify(notifier, NotificationKind.SUCCESS, "Migration complete", result.message)
    return result


def _notify(
    notifier: Optional[Notifier], kind: NotificationKind, title: str, description: str
) -> None:
    if notifier is not None:
        notifier.notify(Notification(kind=kind, title=title, description=description))
