import unittest

from serve_tracker.backends import (
    DataPath,
    FallbackDataBackend,
    LocalDataBackend,
    RemoteDataBackend,
)
from serve_tracker.db import InMemoryDbClient
from serve_tracker.errors import BackendError, LocalStoreError
from serve_tracker.local_store import SERVES_KEY, InMemoryKeyValueStore, LocalStore
from serve_tracker.records import ClientRecord, ServeAttemptRecord
from serve_tracker.remote import RemoteBackend
from serve_tracker.session import BackendProvider, SessionState
from serve_tracker.storage import InMemoryStorageClient


def _client(client_id="client-1"):
    return ClientRecord(id=client_id, name="Acme", email="acme@example.com")


class FallbackDataBackendTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.kv = InMemoryKeyValueStore()
        self.local_store = LocalStore(self.kv)
        self.session = SessionState(self.kv)
        self.backend = FallbackDataBackend(
            primary=RemoteDataBackend(RemoteBackend(self.db, InMemoryStorageClient())),
            fallback=LocalDataBackend(self.local_store),
            session=self.session,
        )

    def test_write_goes_to_remote_when_reachable(self):
        outcome = self.backend.create_client(_client())
        self.assertEqual(outcome.path, DataPath.REMOTE)
        self.assertFalse(outcome.degraded)
        self.assertIsNotNone(self.db.get_document("clients", "client-1"))
        self.assertEqual(self.local_store.get_data().clients, [])

    def test_remote_failure_falls_back_to_local(self):
        self.db.fail = BackendError("offline")
        outcome = self.backend.create_client(_client())
        self.assertEqual(outcome.path, DataPath.LOCAL_FALLBACK)
        self.assertTrue(outcome.degraded)
        self.assertEqual(self.local_store.get_data().clients[0]["id"], "client-1")

    def test_fallback_flag_skips_remote(self):
        self.session.use_fallback = True
        outcome = self.backend.create_serve_attempt(
            ServeAttemptRecord(id="serve-1", client_id="client-1")
        )
        self.assertEqual(outcome.path, DataPath.LOCAL)
        self.assertEqual(self.db.calls, [])
        self.assertEqual(len(self.local_store.get_data().serves), 1)

    def test_local_provider_skips_remote(self):
        session = SessionState(InMemoryKeyValueStore(), BackendProvider.LOCAL)
        backend = FallbackDataBackend(
            self.backend.primary, self.backend.fallback, session
        )
        self.assertEqual(backend.delete_client("client-1").path, DataPath.LOCAL)
        self.assertEqual(self.db.calls, [])

    def test_local_failure_after_remote_failure_propagates(self):
        self.db.fail = BackendError("offline")
        with self.assertRaises(LocalStoreError):
            self.backend.update_client(_client("client-missing"))

    def test_load_from_remote(self):
        self.backend.create_client(_client())
        outcome = self.backend.load()
        self.assertEqual(outcome.path, DataPath.REMOTE)
        self.assertEqual([c.id for c in outcome.clients], ["client-1"])

    def test_malformed_remote_serve_keeps_load_on_remote(self):
        self.backend.create_client(_client())
        self.db.create_document(
            "serve_attempts",
            "serve-good",
            {"clientId": "client-1", "timestamp": "2024-01-15T10:30:00+00:00"},
        )
        self.db.create_document(
            "serve_attempts", "serve-bad", {"clientId": "client-1", "timestamp": "not a date"}
        )

        outcome = self.backend.load()

        self.assertEqual(outcome.path, DataPath.REMOTE)
        self.assertEqual([s.id for s in outcome.serves], ["serve-good"])
        self.assertFalse(self.session.use_fallback)

    def test_load_failure_sets_flag_and_reads_local(self):
        self.local_store.add_client(_client("client-local").as_dict())
        self.db.fail = BackendError("offline")

        outcome = self.backend.load()

        self.assertEqual(outcome.path, DataPath.LOCAL_FALLBACK)
        self.assertEqual([c.id for c in outcome.clients], ["client-local"])
        self.assertTrue(self.session.use_fallback)


class LocalDataBackendTests(unittest.TestCase):
    def test_malformed_local_serves_are_skipped(self):
        kv = InMemoryKeyValueStore()
        kv.set(
            SERVES_KEY,
            '[{"id": "serve-1", "clientId": "c1", "timestamp": "not a date"},'
            ' {"id": "serve-2", "clientId": "c1", "timestamp": "2024-01-15T10:00:00Z"}]',
        )
        serves = LocalDataBackend(LocalStore(kv)).get_serve_attempts()
        self.assertEqual([s.id for s in serves], ["serve-2"])

    def test_failed_local_write_raises(self):
        backend = LocalDataBackend(LocalStore(InMemoryKeyValueStore()))
        with self.assertRaises(LocalStoreError):
            backend.update_serve_attempt(ServeAttemptRecord(id="missing", client_id="c1"))


if __name__ == "__main__":
    unittest.main()
