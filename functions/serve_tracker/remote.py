"""
Client for the hosted backend: document database + object storage.

Maps records to the field names the backend stores. The stored naming is
mixed (``client_id`` on cases and documents, ``clientId`` on serve attempts);
it is kept as-is on read and write.

Read helpers degrade to empty results so read paths stay non-fatal; writes
propagate BackendError to the caller. Stored documents that cannot be mapped
to a record are skipped on read.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from serve_tracker.db import DbClient
from serve_tracker.errors import BackendError
from serve_tracker.records import (
    CaseRecord,
    CaseStatus,
    ClientRecord,
    DocumentRecord,
    ServeAttemptRecord,
    ServeStatus,
    coerce_coordinates,
    parse_timestamp,
    utcnow,
)
from serve_tracker.storage import StorageClient

logger = logging.getLogger(__name__)

CLIENTS_COLLECTION = "clients"
SERVE_ATTEMPTS_COLLECTION = "serve_attempts"
CASES_COLLECTION = "cases"
DOCUMENTS_COLLECTION = "documents"


def unique_id() -> str:
    return uuid.uuid4().hex


def client_to_backend(client: ClientRecord) -> dict:
    return {
        "name": client.name,
        "email": client.email,
        "additional_emails": list(client.additional_emails),
        "phone": client.phone or "",
        "address": client.address or "",
        "notes": client.notes or "",
    }


def client_from_backend(doc: dict) -> ClientRecord:
    return ClientRecord(
        id=doc["$id"],
        name=doc.get("name") or "",
        email=doc.get("email") or "",
        additional_emails=list(doc.get("additional_emails") or []),
        phone=doc.get("phone") or "",
        address=doc.get("address") or "",
        notes=doc.get("notes") or "",
        created_at=doc.get("created_at") or doc.get("$createdAt"),
    )


def serve_to_backend(serve: ServeAttemptRecord) -> dict:
    return {
        "clientId": serve.client_id,
        "date": serve.timestamp.date().isoformat(),
        "time": serve.timestamp.strftime("%H:%M:%S"),
        "timestamp": serve.timestamp.isoformat(),
        "address": serve.address or "",
        "notes": serve.notes or "",
        "status": serve.status or ServeStatus.FAILED.value,
        "imageData": serve.image_data or None,
        "coordinates": serve.coordinates.as_dict() if serve.coordinates else None,
        "caseNumber": serve.case_number or "",
        "attemptNumber": serve.attempt_number,
    }


def _serve_timestamp(doc: dict) -> datetime:
    if doc.get("timestamp"):
        return parse_timestamp(doc["timestamp"])
    if doc.get("date"):
        return parse_timestamp(f"{doc['date']}T{doc.get('time') or '00:00:00'}")
    if doc.get("$createdAt"):
        return parse_timestamp(doc["$createdAt"])
    return utcnow()


def serve_from_backend(doc: dict) -> ServeAttemptRecord:
    attempt = doc.get("attemptNumber")
    return ServeAttemptRecord(
        id=doc["$id"],
        client_id=doc.get("clientId") or "",
        timestamp=_serve_timestamp(doc),
        address=doc.get("address") or "",
        coordinates=coerce_coordinates(doc.get("coordinates")),
        image_data=doc.get("imageData") or None,
        notes=doc.get("notes") or "",
        status=doc.get("status") or ServeStatus.ATTEMPTED.value,
        attempt_number=int(attempt) if attempt is not None else None,
        case_number=doc.get("caseNumber") or None,
    )


def case_to_backend(case: CaseRecord) -> dict:
    return {
        "client_id": case.client_id,
        "case_number": case.case_number,
        "case_name": case.case_name or "",
        "description": case.notes or "",
        "status": case.status or CaseStatus.ACTIVE.value,
        "courtName": case.court_name or "",
    }


def case_from_backend(doc: dict) -> CaseRecord:
    return CaseRecord(
        id=doc["$id"],
        client_id=doc.get("client_id") or "",
        case_number=doc.get("case_number") or "",
        case_name=doc.get("case_name") or "",
        court_name=doc.get("courtName") or "",
        notes=doc.get("description") or "",
        status=doc.get("status") or CaseStatus.ACTIVE.value,
    )


def _parse_documents(
    docs: list[dict], parse: Callable[[dict], object], kind: str
) -> list:
    """Map stored documents to records; malformed ones are logged and skipped."""
    records = []
    for doc in docs:
        try:
            records.append(parse(doc))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed %s %s: %s", kind, doc.get("$id"), e)
    return records


def document_from_backend(doc: dict) -> DocumentRecord:
    return DocumentRecord(
        id=doc["$id"],
        client_id=doc.get("client_id") or "",
        case_number=doc.get("caseNumber") or "",
        file_name=doc.get("fileName") or "",
        file_size=int(doc.get("fileSize") or 0),
        file_type=doc.get("fileType") or "",
        file_path=doc.get("filePath") or "",
        description=doc.get("description") or "",
        created_at=doc.get("created_at"),
    )


class RemoteBackend:
    def __init__(self, db: DbClient, storage: StorageClient):
        self.db = db
        self.storage = storage

    def _list(self, collection: str, filters: Optional[dict] = None) -> list[dict]:
        try:
            return self.db.list_documents(collection, filters)
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(f"Failed to list {collection}: {e}") from e

    def _call(self, description: str, fn, *args):
        try:
            return fn(*args)
        except BackendError:
            logger.error("Error %s", description)
            raise
        except Exception as e:
            logger.error("Error %s: %s", description, e)
            raise BackendError(f"Error {description}: {e}") from e

    def probe(self) -> int:
        """One inexpensive read; raises BackendError when unreachable."""
        try:
            return len(self.db.list_documents(CLIENTS_COLLECTION, limit=1))
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(f"Backend unreachable: {e}") from e

    # Clients

    def fetch_clients(self) -> list[ClientRecord]:
        return _parse_documents(
            self._list(CLIENTS_COLLECTION), client_from_backend, "client"
        )

    def get_clients(self) -> list[ClientRecord]:
        try:
            return self.fetch_clients()
        except BackendError as e:
            logger.error("Error fetching clients: %s", e)
            return []

    def create_client(self, client: ClientRecord) -> ClientRecord:
        client_id = client.id or unique_id()
        data = client_to_backend(client)
        data["created_at"] = utcnow().isoformat()
        doc = self._call(
            "creating client", self.db.create_document, CLIENTS_COLLECTION, client_id, data
        )
        return client_from_backend(doc)

    def update_client(self, client: ClientRecord) -> ClientRecord:
        if not client.id:
            raise BackendError("Client ID is missing")
        doc = self._call(
            "updating client",
            self.db.update_document,
            CLIENTS_COLLECTION,
            client.id,
            client_to_backend(client),
        )
        return client_from_backend(doc)

    def delete_client(self, client_id: str) -> bool:
        """
        Delete a client with its cases, documents and serve attempts.

        Runs in dependency order; the first failure aborts the remaining
        steps and propagates (earlier deletions stay deleted).
        """
        logger.info("Deleting client with ID: %s", client_id)

        cases = self._list(CASES_COLLECTION, {"client_id": client_id})
        logger.info("Found %d cases to delete for client %s", len(cases), client_id)
        for case in cases:
            self.delete_client_case(case["$id"])

        documents = self._list(DOCUMENTS_COLLECTION, {"client_id": client_id})
        logger.info("Found %d documents to delete for client %s", len(documents), client_id)
        for doc in documents:
            self.delete_client_document(doc["$id"], doc.get("filePath"))

        serves = self._list(SERVE_ATTEMPTS_COLLECTION, {"clientId": client_id})
        logger.info(
            "Found %d serve attempts to delete for client %s", len(serves), client_id
        )
        for serve in serves:
            self.delete_serve_attempt(serve["$id"])

        self._call(
            "deleting client", self.db.delete_document, CLIENTS_COLLECTION, client_id
        )
        logger.info("Successfully deleted client %s and all related data", client_id)
        return True

    # Serve attempts

    def fetch_serve_attempts(self) -> list[ServeAttemptRecord]:
        return _parse_documents(
            self._list(SERVE_ATTEMPTS_COLLECTION), serve_from_backend, "serve attempt"
        )

    def get_serve_attempts(self) -> list[ServeAttemptRecord]:
        try:
            return self.fetch_serve_attempts()
        except BackendError as e:
            logger.error("Error fetching serve attempts: %s", e)
            return []

    def get_client_serve_attempts(self, client_id: str) -> list[ServeAttemptRecord]:
        try:
            docs = self._list(SERVE_ATTEMPTS_COLLECTION, {"clientId": client_id})
        except BackendError as e:
            logger.error("Error fetching serve attempts for client %s: %s", client_id, e)
            return []
        return _parse_documents(docs, serve_from_backend, "serve attempt")

    def count_serve_attempts(self, client_id: str, case_number: str) -> int:
        docs = self._list(
            SERVE_ATTEMPTS_COLLECTION,
            {"clientId": client_id, "caseNumber": case_number},
        )
        return len(docs)

    def create_serve_attempt(self, serve: ServeAttemptRecord) -> ServeAttemptRecord:
        serve_id = serve.id or unique_id()
        data = serve_to_backend(serve)
        data["created_at"] = utcnow().isoformat()
        doc = self._call(
            "creating serve attempt",
            self.db.create_document,
            SERVE_ATTEMPTS_COLLECTION,
            serve_id,
            data,
        )
        return serve_from_backend(doc)

    def update_serve_attempt(self, serve: ServeAttemptRecord) -> ServeAttemptRecord:
        if not serve.id:
            raise BackendError("Serve ID is missing")
        doc = self._call(
            "updating serve attempt",
            self.db.update_document,
            SERVE_ATTEMPTS_COLLECTION,
            serve.id,
            serve_to_backend(serve),
        )
        return serve_from_backend(doc)

    def delete_serve_attempt(self, serve_id: str) -> bool:
        self._call(
            "deleting serve attempt",
            self.db.delete_document,
            SERVE_ATTEMPTS_COLLECTION,
            serve_id,
        )
        return True

    # Cases

    def get_client_cases(self, client_id: str) -> list[CaseRecord]:
        try:
            docs = self._list(CASES_COLLECTION, {"client_id": client_id})
        except BackendError as e:
            logger.error("Error fetching cases for client %s: %s", client_id, e)
            return []
        logger.info("Found %d cases for client %s", len(docs), client_id)
        return _parse_documents(docs, case_from_backend, "case")

    def find_case(self, client_id: str, case_number: str) -> Optional[CaseRecord]:
        for case in self.get_client_cases(client_id):
            if case.case_number == case_number:
                return case
        return None

    def create_client_case(self, case: CaseRecord) -> CaseRecord:
        case_id = case.id or unique_id()
        data = case_to_backend(case)
        data["created_at"] = utcnow().isoformat()
        doc = self._call(
            "creating client case", self.db.create_document, CASES_COLLECTION, case_id, data
        )
        return case_from_backend(doc)

    def update_case_status(self, case_id: str, status: str) -> bool:
        self._call(
            "updating case status",
            self.db.update_document,
            CASES_COLLECTION,
            case_id,
            {"status": status},
        )
        return True

    def delete_client_case(self, case_id: str) -> bool:
        self._call(
            "deleting client case", self.db.delete_document, CASES_COLLECTION, case_id
        )
        return True

    # Documents

    def upload_client_document(
        self,
        client_id: str,
        file_name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        case_number: Optional[str] = None,
        description: Optional[str] = None,
    ) -> DocumentRecord:
        """
        Store the payload, then create the metadata record referencing it.

        If the metadata record cannot be created the uploaded object is
        removed again before the error propagates.
        """
        file_id = unique_id()
        file_path = f"documents/{client_id}/{file_id}"
        self._call(
            "uploading client document",
            self.storage.upload_bytes,
            file_path,
            content,
            content_type,
        )

        data = {
            "client_id": client_id,
            "caseNumber": case_number or "",
            "fileName": file_name,
            "fileSize": len(content),
            "fileType": content_type,
            "filePath": file_path,
            "description": description or "",
            "created_at": utcnow().isoformat(),
        }
        try:
            doc = self._call(
                "creating document record",
                self.db.create_document,
                DOCUMENTS_COLLECTION,
                unique_id(),
                data,
            )
        except BackendError:
            try:
                self.storage.delete_object(file_path)
            except Exception as cleanup_error:
                logger.error(
                    "Could not remove orphaned upload %s: %s", file_path, cleanup_error
                )
            raise
        return document_from_backend(doc)

    def get_client_documents(
        self, client_id: str, case_number: Optional[str] = None
    ) -> list[DocumentRecord]:
        filters = {"client_id": client_id}
        if case_number:
            filters["caseNumber"] = case_number
        try:
            docs = self._list(DOCUMENTS_COLLECTION, filters)
        except BackendError as e:
            logger.error("Error fetching documents for client %s: %s", client_id, e)
            return []
        return _parse_documents(docs, document_from_backend, "document")

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        try:
            doc = self.db.get_document(DOCUMENTS_COLLECTION, document_id)
        except Exception as e:
            logger.error("Error fetching document %s: %s", document_id, e)
            return None
        if not doc:
            return None
        found = _parse_documents([doc], document_from_backend, "document")
        return found[0] if found else None

    def delete_client_document(self, document_id: str, file_path: Optional[str]) -> bool:
        self._call(
            "deleting client document",
            self.db.delete_document,
            DOCUMENTS_COLLECTION,
            document_id,
        )
        if file_path:
            self._call("deleting document file", self.storage.delete_object, file_path)
        return True

    def get_document_url(self, file_path: str, expires_in: int = 3600) -> str:
        return self._call(
            "getting document URL", self.storage.presign_get, file_path, expires_in
        )
