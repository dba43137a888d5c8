import json
import os
import tempfile
import unittest

from serve_tracker.local_store import (
    CLIENTS_KEY,
    SERVES_KEY,
    FileKeyValueStore,
    InMemoryKeyValueStore,
    LocalStore,
)


def _client(client_id="client-1", name="Acme"):
    return {"id": client_id, "name": name, "email": "acme@example.com"}


def _serve(serve_id="serve-1", client_id="client-1"):
    return {"id": serve_id, "clientId": client_id, "status": "attempted"}


class LocalStoreTests(unittest.TestCase):
    def setUp(self):
        self.kv = InMemoryKeyValueStore()
        self.store = LocalStore(self.kv)

    def test_get_data_empty_when_absent(self):
        data = self.store.get_data()
        self.assertEqual(data.clients, [])
        self.assertEqual(data.serves, [])

    def test_get_data_empty_when_corrupt(self):
        self.kv.set(CLIENTS_KEY, "{not json")
        data = self.store.get_data()
        self.assertEqual(data.clients, [])
        self.assertEqual(data.serves, [])

    def test_save_data_overwrites_wholesale(self):
        self.store.add_client(_client("client-old"))
        self.assertTrue(self.store.save_data([_client("client-new")], [_serve()]))
        data = self.store.get_data()
        self.assertEqual([c["id"] for c in data.clients], ["client-new"])
        self.assertEqual(len(data.serves), 1)

    def test_add_and_update_client(self):
        self.assertTrue(self.store.add_client(_client()))
        self.assertTrue(self.store.update_client(_client(name="Acme Legal")))
        self.assertEqual(self.store.get_data().clients[0]["name"], "Acme Legal")

    def test_add_with_existing_id_replaces_record(self):
        self.store.add_client(_client())
        self.assertTrue(self.store.add_client(_client(name="Acme Legal")))
        self.store.add_serve(_serve())
        self.assertTrue(self.store.add_serve(_serve()))

        data = self.store.get_data()
        self.assertEqual([c["name"] for c in data.clients], ["Acme Legal"])
        self.assertEqual([s["id"] for s in data.serves], ["serve-1"])

    def test_update_unknown_client_returns_false_without_change(self):
        self.store.add_client(_client())
        before = self.kv.get(CLIENTS_KEY)
        self.assertFalse(self.store.update_client(_client("client-missing")))
        self.assertEqual(self.kv.get(CLIENTS_KEY), before)

    def test_delete_client_removes_its_serves(self):
        self.store.add_client(_client("client-1"))
        self.store.add_client(_client("client-2"))
        self.store.add_serve(_serve("serve-1", "client-1"))
        self.store.add_serve(_serve("serve-2", "client-2"))

        self.assertTrue(self.store.delete_client("client-1"))

        data = self.store.get_data()
        self.assertEqual([c["id"] for c in data.clients], ["client-2"])
        self.assertEqual([s["id"] for s in data.serves], ["serve-2"])

    def test_serve_update_and_delete(self):
        self.store.add_serve(_serve())
        updated = dict(_serve(), status="completed")
        self.assertTrue(self.store.update_serve(updated))
        self.assertEqual(self.store.get_data().serves[0]["status"], "completed")
        self.assertTrue(self.store.delete_serve("serve-1"))
        self.assertEqual(self.store.get_data().serves, [])

    def test_clear_data_keeps_session_flags(self):
        self.store.add_client(_client())
        self.kv.set("useLocalStorageFallback", "true")
        self.assertTrue(self.store.clear_data())
        self.assertIsNone(self.kv.get(CLIENTS_KEY))
        self.assertIsNone(self.kv.get(SERVES_KEY))
        self.assertEqual(self.kv.get("useLocalStorageFallback"), "true")

    def test_write_failure_returns_false(self):
        class BrokenStore(InMemoryKeyValueStore):
            def set(self, key, value):
                raise OSError("disk full")

        store = LocalStore(BrokenStore())
        self.assertFalse(store.add_client(_client()))
        self.assertFalse(store.save_data([], []))


class FileKeyValueStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def test_values_persist_across_instances(self):
        FileKeyValueStore(self.tmp.name).set("a", "1")
        self.assertEqual(FileKeyValueStore(self.tmp.name).get("a"), "1")

    def test_remove(self):
        kv = FileKeyValueStore(self.tmp.name)
        kv.set("a", "1")
        kv.remove("a")
        kv.remove("never-set")
        self.assertIsNone(kv.get("a"))

    def test_corrupt_file_reads_as_empty(self):
        kv = FileKeyValueStore(self.tmp.name)
        with open(kv.path, "w", encoding="utf-8") as f:
            f.write("{oops")
        self.assertIsNone(kv.get("a"))
        kv.set("a", "1")
        with open(kv.path, "r", encoding="utf-8") as f:
            self.assertEqual(json.load(f), {"a": "1"})

    def test_no_temp_files_left_behind(self):
        kv = FileKeyValueStore(self.tmp.name)
        kv.set("a", "1")
        kv.set("b", "2")
        self.assertEqual(os.listdir(self.tmp.name), ["local_storage.json"])


if __name__ == "__main__":
    unittest.main()
