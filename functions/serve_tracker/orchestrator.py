"""
In-memory client/serve collections kept in step with the active backend.

Loads probe the remote backend first and fall back to local storage; a
successful remote load is mirrored into local storage as a backup snapshot.
Mutations go through FallbackDataBackend: after a remote write everything is
reloaded from the remote backend, after a local write the in-memory lists
are patched directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from serve_tracker.backends import DataPath, FallbackDataBackend, LoadOutcome, WriteOutcome
from serve_tracker.connectivity import ConnectionProber
from serve_tracker.errors import ValidationError
from serve_tracker.local_store import LocalStore
from serve_tracker.notifications import Notification, NotificationKind, Notifier
from serve_tracker.records import (
    ClientRecord,
    ServeAttemptRecord,
    coerce_coordinates,
    new_client_id,
    new_serve_id,
)
from serve_tracker.session import BackendProvider, SessionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Messages:
    success: tuple[str, str]
    saved_locally: tuple[str, str]
    error: tuple[str, str]


_LOCAL_SUFFIX = "Connection to remote backend failed, "

MESSAGES = {
    "add_client": _Messages(
        ("Client added successfully", "New client has been created"),
        ("Client saved locally", _LOCAL_SUFFIX + "saved to local storage"),
        ("Error adding client", "Failed to add client"),
    ),
    "update_client": _Messages(
        ("Client updated successfully", "Client information has been updated"),
        ("Client saved locally", _LOCAL_SUFFIX + "saved to local storage"),
        ("Error updating client", "Failed to update client"),
    ),
    "delete_client": _Messages(
        ("Client deleted", "Client and all related records have been removed"),
        ("Client deleted locally", _LOCAL_SUFFIX + "deleted from local storage"),
        ("Error deleting client", "Failed to delete client"),
    ),
    "add_serve": _Messages(
        ("Serve record created", "New serve attempt has been recorded"),
        ("Serve saved locally", _LOCAL_SUFFIX + "saved to local storage"),
        ("Error recording serve", "Failed to record serve attempt"),
    ),
    "update_serve": _Messages(
        ("Serve record updated", "Serve attempt has been updated"),
        ("Serve updated locally", _LOCAL_SUFFIX + "updated in local storage"),
        ("Error updating serve", "Failed to update serve attempt"),
    ),
    "delete_serve": _Messages(
        ("Serve record deleted", "Serve attempt has been removed"),
        ("Serve deleted locally", _LOCAL_SUFFIX + "deleted from local storage"),
        ("Error deleting serve", "Failed to delete serve attempt"),
    ),
}


@dataclass
class OperationResult:
    success: bool
    path: Optional[DataPath] = None
    record: Any = None
    notification: Optional[Notification] = None
    error: Optional[str] = None
    rejected: bool = False


class DataOrchestrator:
    def __init__(
        self,
        backend: FallbackDataBackend,
        local_store: LocalStore,
        prober: ConnectionProber,
        session: SessionState,
        notifier: Notifier,
    ):
        self.backend = backend
        self.local_store = local_store
        self.prober = prober
        self.session = session
        self.notifier = notifier
        self.clients: list[ClientRecord] = []
        self.serves: list[ServeAttemptRecord] = []
        self.last_load_path: Optional[DataPath] = None

    def get_client(self, client_id: str) -> Optional[ClientRecord]:
        return next((c for c in self.clients if c.id == client_id), None)

    def get_serve(self, serve_id: str) -> Optional[ServeAttemptRecord]:
        return next((s for s in self.serves if s.id == serve_id), None)

    def load(self) -> LoadOutcome:
        """Replace the in-memory collections from the active backend."""
        try:
            if self.session.provider == BackendProvider.REMOTE:
                status = self.prober.check_connection()
                logger.debug(
                    "Backend connection status: %s",
                    "connected" if status.connected else "disconnected",
                )
            outcome = self.backend.load()
        except Exception:
            logger.exception("Error loading data")
            fallback = self.backend.fallback
            outcome = LoadOutcome(
                DataPath.LOCAL_FALLBACK,
                fallback.get_clients(),
                fallback.get_serve_attempts(),
            )

        if outcome.path == DataPath.REMOTE:
            logger.debug(
                "Loaded %d clients and %d serve attempts from remote backend",
                len(outcome.clients),
                len(outcome.serves),
            )
            self.local_store.save_data(
                [c.as_dict() for c in outcome.clients],
                [s.as_dict() for s in outcome.serves],
            )

        self.clients = list(outcome.clients)
        self.serves = list(outcome.serves)
        self.last_load_path = outcome.path
        return outcome

    def _notify(self, kind: NotificationKind, message: tuple[str, str]) -> Notification:
        notification = Notification(kind=kind, title=message[0], description=message[1])
        self.notifier.notify(notification)
        return notification

    def _mutate(
        self,
        op: str,
        write: Callable[[], WriteOutcome],
        apply_local: Callable[[Any], None],
    ) -> OperationResult:
        messages = MESSAGES[op]
        try:
            outcome = write()
        except Exception as e:
            logger.error("Error in %s: %s", op, e)
            notification = self._notify(NotificationKind.ERROR, messages.error)
            return OperationResult(success=False, notification=notification, error=str(e))

        if outcome.path == DataPath.REMOTE:
            self.load()
            notification = self._notify(NotificationKind.SUCCESS, messages.success)
        else:
            apply_local(outcome.result)
            kind = (
                NotificationKind.SAVED_LOCALLY if outcome.degraded else NotificationKind.SUCCESS
            )
            notification = self._notify(
                kind, messages.saved_locally if outcome.degraded else messages.success
            )
        return OperationResult(
            success=True, path=outcome.path, record=outcome.result, notification=notification
        )

    def _reject(self, op: str, message: str) -> OperationResult:
        logger.warning("Rejected %s: %s", op, message)
        notification = self._notify(
            NotificationKind.ERROR, (MESSAGES[op].error[0], message)
        )
        return OperationResult(
            success=False, notification=notification, error=message, rejected=True
        )

    @staticmethod
    def _replace(items: list, record) -> list:
        return [record if item.id == record.id else item for item in items]

    @classmethod
    def _upsert(cls, items: list, record) -> list:
        if any(item.id == record.id for item in items):
            return cls._replace(items, record)
        return [*items, record]

    def add_client(self, client: ClientRecord) -> OperationResult:
        try:
            _validate_client(client)
        except ValidationError as e:
            return self._reject("add_client", str(e))
        client.id = client.id or new_client_id()

        def apply_local(_):
            self.clients = self._upsert(self.clients, client)

        return self._mutate("add_client", lambda: self.backend.create_client(client), apply_local)

    def update_client(self, client: ClientRecord) -> OperationResult:
        try:
            if not client.id:
                raise ValidationError("Client ID is missing")
            _validate_client(client)
        except ValidationError as e:
            return self._reject("update_client", str(e))

        def apply_local(_):
            self.clients = self._replace(self.clients, client)

        return self._mutate(
            "update_client", lambda: self.backend.update_client(client), apply_local
        )

    def delete_client(self, client_id: str) -> OperationResult:
        if not client_id:
            return self._reject("delete_client", "Client ID is missing")

        def apply_local(_):
            self.clients = [c for c in self.clients if c.id != client_id]
            self.serves = [s for s in self.serves if s.client_id != client_id]

        return self._mutate(
            "delete_client", lambda: self.backend.delete_client(client_id), apply_local
        )

    def add_serve(self, serve: ServeAttemptRecord) -> OperationResult:
        if not serve.client_id:
            return self._reject("add_serve", "Please select a client")
        serve.id = serve.id or new_serve_id()
        serve.coordinates = coerce_coordinates(serve.coordinates)

        def apply_local(_):
            self.serves = self._upsert(self.serves, serve)

        return self._mutate(
            "add_serve", lambda: self.backend.create_serve_attempt(serve), apply_local
        )

    def update_serve(self, serve: ServeAttemptRecord) -> OperationResult:
        if not serve.id:
            return self._reject("update_serve", "Serve ID is missing")
        if not serve.client_id:
            return self._reject("update_serve", "Please select a client")
        serve.coordinates = coerce_coordinates(serve.coordinates)

        def apply_local(_):
            self.serves = self._replace(self.serves, serve)

        return self._mutate(
            "update_serve", lambda: self.backend.update_serve_attempt(serve), apply_local
        )

    def delete_serve(self, serve_id: str) -> OperationResult:
        if not serve_id:
            return self._reject("delete_serve", "Serve ID is missing")

        def apply_local(_):
            self.serves = [s for s in self.serves if s.id != serve_id]

        return self._mutate(
            "delete_serve", lambda: self.backend.delete_serve_attempt(serve_id), apply_local
        )


def _validate_client(client: ClientRecord) -> None:
    if not client.name or not client.name.strip():
        raise ValidationError("Client name is required")
    if not client.email or not client.email.strip():
        raise ValidationError("Client email is required")
