"""
Device-local persistence used when the remote backend is unreachable.

The store keeps serialized lists under string keys, mirroring browser local
storage: clients and serve attempts, plus the session flags kept by
session.py.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

CLIENTS_KEY = "serve-tracker-clients"
SERVES_KEY = "serve-tracker-serves"


class KeyValueStore(Protocol):
    """String key/value persistence."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


@dataclass
class InMemoryKeyValueStore:
    """Test double for local persistence."""

    items: dict = None

    def __post_init__(self):
        if self.items is None:
            self.items = {}

    def get(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove(self, key: str) -> None:
        self.items.pop(key, None)


class FileKeyValueStore:
    """
    Key/value store backed by a single JSON file in ``data_dir``.

    Every write rewrites the file through a temp file + rename so a crash
    never leaves a half-written document behind.
    """

    def __init__(self, data_dir: str, filename: str = "local_storage.json"):
        os.makedirs(data_dir, exist_ok=True)
        self.path = os.path.join(data_dir, filename)

    def _read_all(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}

    def _write_all(self, items: dict) -> None:
        directory = os.path.dirname(self.path)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        try:
            return self._read_all().get(key)
        except ValueError:
            logger.warning("Local storage file %s is corrupt; ignoring", self.path)
            return None

    def set(self, key: str, value: str) -> None:
        try:
            items = self._read_all()
        except ValueError:
            items = {}
        items[key] = value
        self._write_all(items)

    def remove(self, key: str) -> None:
        try:
            items = self._read_all()
        except ValueError:
            items = {}
        if key in items:
            del items[key]
            self._write_all(items)


@dataclass
class LocalData:
    clients: list[dict] = field(default_factory=list)
    serves: list[dict] = field(default_factory=list)


class LocalStore:
    """
    Collection operations over a KeyValueStore.

    Records are stored as app-format dicts (see records.py). No operation
    raises: failures are logged and reported as ``False``.
    """

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def _read_list(self, key: str) -> list[dict]:
        raw = self.kv.get(key)
        if not raw:
            return []
        items = json.loads(raw)
        if not isinstance(items, list):
            raise ValueError(f"Expected a list under {key}")
        return items

    def _write_list(self, key: str, items: list[dict]) -> None:
        self.kv.set(key, json.dumps(items, default=str))

    def _modify(self, key: str, action: str, fn: Callable[[list[dict]], Optional[list[dict]]]) -> bool:
        try:
            items = self._read_list(key)
            updated = fn(items)
            if updated is None:
                logger.warning("No matching record in local storage while %s", action)
                return False
            self._write_list(key, updated)
            return True
        except Exception:
            logger.exception("Error %s in local storage", action)
            return False

    def get_data(self) -> LocalData:
        try:
            return LocalData(
                clients=self._read_list(CLIENTS_KEY),
                serves=self._read_list(SERVES_KEY),
            )
        except Exception:
            logger.exception("Error getting data from local storage")
            return LocalData()

    def save_data(self, clients: list[dict], serves: list[dict]) -> bool:
        try:
            clients_json = json.dumps(clients, default=str)
            serves_json = json.dumps(serves, default=str)
            self.kv.set(CLIENTS_KEY, clients_json)
            self.kv.set(SERVES_KEY, serves_json)
            return True
        except Exception:
            logger.exception("Error saving data to local storage")
            return False

    def add_client(self, client: dict) -> bool:
        return self._modify(
            CLIENTS_KEY, "adding client", lambda items: _upsert_by_id(items, client)
        )

    def update_client(self, client: dict) -> bool:
        return self._modify(
            CLIENTS_KEY, "updating client", lambda items: _replace_by_id(items, client)
        )

    def delete_client(self, client_id: str) -> bool:
        removed = self._modify(
            CLIENTS_KEY,
            "deleting client",
            lambda items: [c for c in items if c.get("id") != client_id],
        )
        if not removed:
            return False
        return self._modify(
            SERVES_KEY,
            "deleting client serves",
            lambda items: [s for s in items if s.get("clientId") != client_id],
        )

    def add_serve(self, serve: dict) -> bool:
        return self._modify(
            SERVES_KEY, "adding serve", lambda items: _upsert_by_id(items, serve)
        )

    def update_serve(self, serve: dict) -> bool:
        return self._modify(
            SERVES_KEY, "updating serve", lambda items: _replace_by_id(items, serve)
        )

    def delete_serve(self, serve_id: str) -> bool:
        return self._modify(
            SERVES_KEY,
            "deleting serve",
            lambda items: [s for s in items if s.get("id") != serve_id],
        )

    def clear_data(self) -> bool:
        try:
            self.kv.remove(CLIENTS_KEY)
            self.kv.remove(SERVES_KEY)
            return True
        except Exception:
            logger.exception("Error clearing local storage data")
            return False


def _upsert_by_id(items: list[dict], record: dict) -> list[dict]:
    """Append ``record``, or replace the entry that already has its id."""
    replaced = _replace_by_id(items, record)
    return replaced if replaced is not None else items + [record]


def _replace_by_id(items: list[dict], record: dict) -> Optional[list[dict]]:
    record_id = record.get("id")
    if not record_id or not any(item.get("id") == record_id for item in items):
        return None
    return [record if item.get("id") == record_id else item for item in items]
