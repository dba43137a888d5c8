"""
One data-backend interface with remote and local implementations, plus a
decorator that falls back from the remote backend to the local one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol

from serve_tracker.errors import LocalStoreError
from serve_tracker.local_store import LocalStore
from serve_tracker.records import ClientRecord, ServeAttemptRecord
from serve_tracker.remote import RemoteBackend
from serve_tracker.session import SessionState

logger = logging.getLogger(__name__)


class DataBackend(Protocol):
    """Capabilities the orchestrator needs from a storage backend."""

    def get_clients(self) -> list[ClientRecord]:
        ...

    def get_serve_attempts(self) -> list[ServeAttemptRecord]:
        ...

    def create_client(self, client: ClientRecord) -> ClientRecord:
        ...

    def update_client(self, client: ClientRecord) -> ClientRecord:
        ...

    def delete_client(self, client_id: str) -> bool:
        ...

    def create_serve_attempt(self, serve: ServeAttemptRecord) -> ServeAttemptRecord:
        ...

    def update_serve_attempt(self, serve: ServeAttemptRecord) -> ServeAttemptRecord:
        ...

    def delete_serve_attempt(self, serve_id: str) -> bool:
        ...


class RemoteDataBackend:
    """Remote backend whose loads raise instead of degrading to empty lists."""

    def __init__(self, remote: RemoteBackend):
        self.remote = remote

    def get_clients(self) -> list[ClientRecord]:
        return self.remote.fetch_clients()

    def get_serve_attempts(self) -> list[ServeAttemptRecord]:
        return self.remote.fetch_serve_attempts()

    def create_client(self, client: ClientRecord) -> ClientRecord:
        return self.remote.create_client(client)

    def update_client(self, client: ClientRecord) -> ClientRecord:
        return self.remote.update_client(client)

    def delete_client(self, client_id: str) -> bool:
        return self.remote.delete_client(client_id)

    def create_serve_attempt(self, serve: ServeAttemptRecord) -> ServeAttemptRecord:
        return self.remote.create_serve_attempt(serve)

    def update_serve_attempt(self, serve: ServeAttemptRecord) -> ServeAttemptRecord:
        return self.remote.update_serve_attempt(serve)

    def delete_serve_attempt(self, serve_id: str) -> bool:
        return self.remote.delete_serve_attempt(serve_id)


def _parse_all(items: list[dict], parse: Callable[[dict], Any], kind: str) -> list:
    records = []
    for item in items:
        try:
            records.append(parse(item))
        except (TypeError, ValueError) as e:
            logger.warning("Skipping malformed local %s %s: %s", kind, item.get("id"), e)
    return records


class LocalDataBackend:
    """LocalStore adapter; a failed local write raises LocalStoreError."""

    def __init__(self, store: LocalStore):
        self.store = store

    @staticmethod
    def _require(ok: bool, message: str) -> None:
        if not ok:
            raise LocalStoreError(message)

    def get_clients(self) -> list[ClientRecord]:
        return _parse_all(self.store.get_data().clients, ClientRecord.from_dict, "client")

    def get_serve_attempts(self) -> list[ServeAttemptRecord]:
        return _parse_all(
            self.store.get_data().serves, ServeAttemptRecord.from_dict, "serve"
        )

    def create_client(self, client: ClientRecord) -> ClientRecord:
        self._require(self.store.add_client(client.as_dict()), "Could not save client locally")
        return client

    def update_client(self, client: ClientRecord) -> ClientRecord:
        self._require(
            self.store.update_client(client.as_dict()),
            f"Could not update client {client.id} locally",
        )
        return client

    def delete_client(self, client_id: str) -> bool:
        self._require(
            self.store.delete_client(client_id), f"Could not delete client {client_id} locally"
        )
        return True

    def create_serve_attempt(self, serve: ServeAttemptRecord) -> ServeAttemptRecord:
        self._require(self.store.add_serve(serve.as_dict()), "Could not save serve locally")
        return serve

    def update_serve_attempt(self, serve: ServeAttemptRecord) -> ServeAttemptRecord:
        self._require(
            self.store.update_serve(serve.as_dict()),
            f"Could not update serve {serve.id} locally",
        )
        return serve

    def delete_serve_attempt(self, serve_id: str) -> bool:
        self._require(
            self.store.delete_serve(serve_id), f"Could not delete serve {serve_id} locally"
        )
        return True


class DataPath(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"
    LOCAL_FALLBACK = "local_fallback"


@dataclass
class WriteOutcome:
    path: DataPath
    result: Any = None

    @property
    def degraded(self) -> bool:
        return self.path == DataPath.LOCAL_FALLBACK


@dataclass
class LoadOutcome:
    path: DataPath
    clients: list[ClientRecord] = field(default_factory=list)
    serves: list[ServeAttemptRecord] = field(default_factory=list)


class FallbackDataBackend:
    """
    Routes each call to the primary backend unless the session says to use the
    fallback; a primary failure reruns the call against the fallback.

    Calls never probe connectivity: they read the session flag and react to
    raised errors only.
    """

    def __init__(self, primary: DataBackend, fallback: DataBackend, session: SessionState):
        self.primary = primary
        self.fallback = fallback
        self.session = session

    def _run(self, name: str, *args) -> WriteOutcome:
        if self.session.should_use_fallback():
            return WriteOutcome(DataPath.LOCAL, getattr(self.fallback, name)(*args))
        try:
            return WriteOutcome(DataPath.REMOTE, getattr(self.primary, name)(*args))
        except Exception as e:
            logger.error("Remote %s failed, using local storage: %s", name, e)
        return WriteOutcome(DataPath.LOCAL_FALLBACK, getattr(self.fallback, name)(*args))

    def load(self) -> LoadOutcome:
        if self.session.should_use_fallback():
            return LoadOutcome(
                DataPath.LOCAL,
                self.fallback.get_clients(),
                self.fallback.get_serve_attempts(),
            )
        try:
            clients = self.primary.get_clients()
            serves = self.primary.get_serve_attempts()
            return LoadOutcome(DataPath.REMOTE, clients, serves)
        except Exception as e:
            logger.error("Error fetching data from remote backend: %s", e)
            self.session.use_fallback = True
        return LoadOutcome(
            DataPath.LOCAL_FALLBACK,
            self.fallback.get_clients(),
            self.fallback.get_serve_attempts(),
        )

    def create_client(self, client: ClientRecord) -> WriteOutcome:
        return self._run("create_client", client)

    def update_client(self, client: ClientRecord) -> WriteOutcome:
        return self._run("update_client", client)

    def delete_client(self, client_id: str) -> WriteOutcome:
        return self._run("delete_client", client_id)

    def create_serve_attempt(self, serve: ServeAttemptRecord) -> WriteOutcome:
        return self._run("create_serve_attempt", serve)

    def update_serve_attempt(self, serve: ServeAttemptRecord) -> WriteOutcome:
        return self._run("update_serve_attempt", serve)

    def delete_serve_attempt(self, serve_id: str) -> WriteOutcome:
        return self._run("delete_serve_attempt", serve_id)
