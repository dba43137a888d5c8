import unittest

from fastapi.testclient import TestClient

from serve_tracker.app import create_app
from serve_tracker.backends import FallbackDataBackend, LocalDataBackend, RemoteDataBackend
from serve_tracker.connectivity import ConnectionProber
from serve_tracker.db import InMemoryDbClient
from serve_tracker.dependencies import (
    get_connection_prober,
    get_local_store,
    get_notifier,
    get_orchestrator,
    get_remote_backend,
    get_serve_recorder,
    get_session_state,
)
from serve_tracker.errors import BackendError
from serve_tracker.local_store import InMemoryKeyValueStore, LocalStore
from serve_tracker.mailer import InMemoryEmailNotifier
from serve_tracker.notifications import InMemoryNotifier
from serve_tracker.orchestrator import DataOrchestrator
from serve_tracker.records import ClientRecord, ServeAttemptRecord
from serve_tracker.remote import RemoteBackend
from serve_tracker.serve_workflow import ServeRecorder
from serve_tracker.session import SessionState
from serve_tracker.storage import InMemoryStorageClient


class ServeTrackerApiTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        self.remote = RemoteBackend(self.db, self.storage)
        kv = InMemoryKeyValueStore()
        self.local_store = LocalStore(kv)
        self.session = SessionState(kv)
        self.notifier = InMemoryNotifier()
        self.prober = ConnectionProber(self.remote, self.session, self.notifier)
        self.orchestrator = DataOrchestrator(
            backend=FallbackDataBackend(
                RemoteDataBackend(self.remote),
                LocalDataBackend(self.local_store),
                self.session,
            ),
            local_store=self.local_store,
            prober=self.prober,
            session=self.session,
            notifier=self.notifier,
        )
        self.emailer = InMemoryEmailNotifier()
        recorder = ServeRecorder(
            self.orchestrator, self.remote, self.notifier, emailer=self.emailer
        )

        app = create_app()
        app.dependency_overrides.update(
            {
                get_orchestrator: lambda: self.orchestrator,
                get_remote_backend: lambda: self.remote,
                get_session_state: lambda: self.session,
                get_notifier: lambda: self.notifier,
                get_serve_recorder: lambda: recorder,
                get_connection_prober: lambda: self.prober,
                get_local_store: lambda: self.local_store,
            }
        )
        self.client = TestClient(app)

    def _create_client(self, **overrides):
        payload = {
            "name": "Jane Doe",
            "email": "jane@x.com",
            "additionalEmails": ["office@x.com"],
            "phone": "555-1111",
        }
        payload.update(overrides)
        response = self.client.post("/api/clients", json=payload)
        self.assertEqual(response.status_code, 201)
        return response.json()["record"]

    def test_client_crud(self):
        created = self._create_client()
        self.assertTrue(created["id"].startswith("client-"))

        listed = self.client.get("/api/clients").json()["clients"]
        self.assertEqual([c["name"] for c in listed], ["Jane Doe"])
        self.assertEqual(listed[0]["additionalEmails"], ["office@x.com"])

        updated = self.client.put(
            f"/api/clients/{created['id']}",
            json={"name": "Jane Smith", "email": "jane@x.com"},
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["path"], "remote")
        self.assertEqual(self.orchestrator.clients[0].name, "Jane Smith")

        deleted = self.client.delete(f"/api/clients/{created['id']}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get("/api/clients").json()["clients"], [])

    def test_invalid_client_is_rejected(self):
        response = self.client.post("/api/clients", json={"name": "", "email": "a@x.com"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Client name is required")

    def test_unknown_ids_return_404(self):
        update = self.client.put(
            "/api/clients/missing", json={"name": "A", "email": "a@x.com"}
        )
        self.assertEqual(update.status_code, 404)
        self.assertEqual(self.client.delete("/api/clients/missing").status_code, 404)
        self.assertEqual(self.client.delete("/api/serves/missing").status_code, 404)
        self.assertEqual(self.client.delete("/api/documents/missing").status_code, 404)

    def test_record_serve_sends_email(self):
        client = self._create_client()

        response = self.client.post(
            "/api/serves",
            json={
                "clientId": client["id"],
                "status": "attempted",
                "caseNumber": "CV-1",
                "coordinates": {"latitude": 40.7, "longitude": -74.0},
                "notes": "No answer",
            },
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["email_sent"])
        self.assertEqual(body["record"]["attemptNumber"], 0)
        self.assertEqual(self.emailer.sent[0].to, ["jane@x.com", "office@x.com"])

        serves = self.client.get(
            "/api/serves", params={"client_id": client["id"]}
        ).json()["serves"]
        self.assertEqual(len(serves), 1)
        self.assertEqual(serves[0]["coordinates"], {"latitude": 40.7, "longitude": -74.0})

        count = self.client.get(
            "/api/attempt-count",
            params={"client_id": client["id"], "case_number": "CV-1"},
        )
        self.assertEqual(count.json()["attempt_number"], 1)

    def test_serve_without_client_is_rejected(self):
        response = self.client.post("/api/serves", json={"notes": "orphan"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.emailer.sent, [])

    def test_update_serve_keeps_timestamp(self):
        client = self._create_client()
        created = self.client.post(
            "/api/serves",
            json={"clientId": client["id"], "timestamp": "2024-01-15T10:30:00Z"},
        ).json()["record"]

        response = self.client.put(
            f"/api/serves/{created['id']}",
            json={"clientId": client["id"], "status": "completed"},
        )

        self.assertEqual(response.status_code, 200)
        serve = self.orchestrator.get_serve(created["id"])
        self.assertEqual(serve.status, "completed")
        self.assertEqual(serve.timestamp.isoformat(), "2024-01-15T10:30:00+00:00")

    def test_remote_failure_saves_locally(self):
        self.db.fail = BackendError("offline")

        response = self.client.post(
            "/api/clients", json={"name": "Jane Doe", "email": "jane@x.com"}
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["path"], "local_fallback")
        self.assertEqual(body["notification"]["kind"], "saved_locally")
        self.assertEqual(len(self.local_store.get_data().clients), 1)

    def test_cases_and_documents(self):
        client = self._create_client()
        case = self.client.post(
            f"/api/clients/{client['id']}/cases", json={"caseNumber": "CV-1"}
        )
        self.assertEqual(case.status_code, 201)
        cases = self.client.get(f"/api/clients/{client['id']}/cases").json()["cases"]
        self.assertEqual(len(cases), 1)

        upload = self.client.post(
            f"/api/clients/{client['id']}/documents",
            files={"file": ("summons.pdf", b"%PDF-1.4", "application/pdf")},
            data={"case_number": "CV-1", "description": "Summons"},
        )
        self.assertEqual(upload.status_code, 201)
        document = upload.json()["document"]
        self.assertEqual(document["fileName"], "summons.pdf")
        self.assertIn(document["filePath"], self.storage.stored_objects)

        listed = self.client.get(
            f"/api/clients/{client['id']}/documents", params={"case_number": "CV-1"}
        ).json()["documents"]
        self.assertEqual(len(listed), 1)

        url = self.client.get(f"/api/documents/{document['id']}/url").json()["url"]
        self.assertIn(document["filePath"], url)

        deleted = self.client.delete(f"/api/documents/{document['id']}")
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.storage.stored_objects, {})

    def test_export_csv_and_remembered_range(self):
        client = self._create_client()
        for ts in ("2024-01-15T10:30:00Z", "2024-02-02T09:00:00Z"):
            self.client.post("/api/serves", json={"clientId": client["id"], "timestamp": ts})

        missing = self.client.get("/api/export", params={"start_date": "2024-01-01"})
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json()["detail"], "Please select both start and end dates")

        response = self.client.get(
            "/api/export", params={"start_date": "2024-01-01", "end_date": "2024-01-31"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/csv"))
        self.assertIn(
            "serve-data-2024-01-01-to-2024-01-31.csv",
            response.headers["content-disposition"],
        )
        lines = response.text.strip().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertIn("Jane Doe", lines[1])

        remembered = self.client.get("/api/export/range").json()
        self.assertEqual(
            remembered, {"start_date": "2024-01-01", "end_date": "2024-01-31"}
        )
        again = self.client.get("/api/export")
        self.assertEqual(again.status_code, 200)

        inverted = self.client.get(
            "/api/export", params={"start_date": "2024-02-01", "end_date": "2024-01-01"}
        )
        self.assertEqual(inverted.status_code, 400)

    def test_set_export_range(self):
        response = self.client.put(
            "/api/export/range", json={"start_date": "2024-03-01", "end_date": "2024-03-31"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.session.get_export_range()[0].isoformat(), "2024-03-01")

    def test_connection_and_sync(self):
        connection = self.client.get("/api/connection").json()
        self.assertTrue(connection["connected"])
        self.assertFalse(connection["using_fallback"])

        self.db.fail = BackendError("offline")
        connection = self.client.get("/api/connection").json()
        self.assertFalse(connection["connected"])
        self.assertTrue(connection["using_fallback"])

        sync = self.client.post("/api/sync").json()
        self.assertEqual(sync["path"], "local")

        notifications = self.client.get("/api/notifications").json()["notifications"]
        self.assertEqual(
            [n["title"] for n in notifications], ["Remote backend connection failed"]
        )

    def test_migrate_and_clear_local_data(self):
        self.local_store.save_data(
            [ClientRecord(id="client-local", name="Acme", email="a@x.com").as_dict()],
            [ServeAttemptRecord(id="serve-local", client_id="client-local").as_dict()],
        )

        response = self.client.post("/api/migrate")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["clients_imported"], 1)
        self.assertEqual([c.id for c in self.orchestrator.clients], ["client-local"])

        cleared = self.client.delete("/api/local-data")
        self.assertEqual(cleared.status_code, 200)
        self.assertEqual(self.local_store.get_data().clients, [])

    def test_migrate_fails_when_backend_unreachable(self):
        self.db.fail = BackendError("offline")
        response = self.client.post("/api/migrate")
        self.assertEqual(response.status_code, 502)


if __name__ == "__main__":
    unittest.main()
