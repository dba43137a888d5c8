"""
Document database abstraction for Postgres and an in-memory test implementation.

Documents are schemaless dicts grouped in named collections, the way the
hosted backend stores them. Returned documents carry ``$id``, ``$createdAt``
and ``$updatedAt`` next to their stored fields.
"""

from __future__ import annotations

import copy
import time
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from serve_tracker.errors import BackendError, DocumentNotFoundError


class DbClient(Protocol):
    """Interface for document database access."""

    def list_documents(
        self,
        collection: str,
        filters: Optional[dict] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        ...

    def get_document(self, collection: str, document_id: str) -> Optional[dict]:
        ...

    def create_document(self, collection: str, document_id: str, data: dict) -> dict:
        ...

    def update_document(self, collection: str, document_id: str, data: dict) -> dict:
        ...

    def delete_document(self, collection: str, document_id: str) -> None:
        ...


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _matches(data: dict, filters: Optional[dict]) -> bool:
    if not filters:
        return True
    return all(data.get(key) == value for key, value in filters.items())


def _as_document(document_id: str, data: dict, created_at: float, updated_at: float) -> dict:
    document = copy.deepcopy(data)
    document["$id"] = document_id
    document["$createdAt"] = _iso(created_at)
    document["$updatedAt"] = _iso(updated_at)
    return document


class InMemoryDbClient:
    """
    Simple in-memory document database for development and tests.

    Assign an exception to ``fail`` to make every call raise it, which
    simulates an unreachable backend.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, tuple[dict, float, float]]] = {}
        self.fail: Optional[Exception] = None
        self.calls: list[tuple[str, str, Optional[str]]] = []

    def _check(self, op: str, collection: str, document_id: Optional[str] = None) -> None:
        self.calls.append((op, collection, document_id))
        if self.fail is not None:
            raise self.fail

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.collections.clear()
        self.calls.clear()
        self.fail = None

    def list_documents(
        self,
        collection: str,
        filters: Optional[dict] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        self._check("list", collection)
        rows = self.collections.get(collection, {})
        documents = [
            _as_document(doc_id, data, created, updated)
            for doc_id, (data, created, updated) in rows.items()
            if _matches(data, filters)
        ]
        return documents[:limit] if limit else documents

    def get_document(self, collection: str, document_id: str) -> Optional[dict]:
        self._check("get", collection, document_id)
        row = self.collections.get(collection, {}).get(document_id)
        if not row:
            return None
        data, created, updated = row
        return _as_document(document_id, data, created, updated)

    def create_document(self, collection: str, document_id: str, data: dict) -> dict:
        self._check("create", collection, document_id)
        rows = self.collections.setdefault(collection, {})
        if document_id in rows:
            raise BackendError(f"Document {document_id} already exists in {collection}")
        now = time.time()
        rows[document_id] = (copy.deepcopy(data), now, now)
        return _as_document(document_id, data, now, now)

    def update_document(self, collection: str, document_id: str, data: dict) -> dict:
        self._check("update", collection, document_id)
        rows = self.collections.get(collection, {})
        if document_id not in rows:
            raise DocumentNotFoundError(f"Document {document_id} not found in {collection}")
        existing, created, _ = rows[document_id]
        merged = {**existing, **copy.deepcopy(data)}
        now = time.time()
        rows[document_id] = (merged, created, now)
        return _as_document(document_id, merged, created, now)

    def delete_document(self, collection: str, document_id: str) -> None:
        self._check("delete", collection, document_id)
        rows = self.collections.get(collection, {})
        if document_id not in rows:
            raise DocumentNotFoundError(f"Document {document_id} not found in {collection}")
        del rows[document_id]


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_document(self, row: "DocumentRow") -> dict:
        return _as_document(row.id, row.data or {}, row.created_at, row.updated_at)

    def list_documents(
        self,
        collection: str,
        filters: Optional[dict] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        stmt = (
            select(DocumentRow)
            .where(DocumentRow.collection == collection)
            .order_by(DocumentRow.created_at.asc())
        )
        # String equality runs in SQL; other values are compared after loading.
        remaining = {}
        for key, value in (filters or {}).items():
            if isinstance(value, str):
                stmt = stmt.where(DocumentRow.data[key].as_string() == value)
            else:
                remaining[key] = value
        if limit and not remaining:
            stmt = stmt.limit(limit)

        try:
            with self.Session() as session:
                rows = session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to list {collection}: {e}") from e
        documents = [
            self._to_document(row) for row in rows if _matches(row.data or {}, remaining)
        ]
        return documents[:limit] if limit else documents

    def get_document(self, collection: str, document_id: str) -> Optional[dict]:
        try:
            with self.Session() as session:
                row = session.get(DocumentRow, (collection, document_id))
                return self._to_document(row) if row else None
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to get {collection}/{document_id}: {e}") from e

    def create_document(self, collection: str, document_id: str, data: dict) -> dict:
        now = time.time()
        try:
            with self.Session() as session:
                if session.get(DocumentRow, (collection, document_id)):
                    raise BackendError(
                        f"Document {document_id} already exists in {collection}"
                    )
                row = DocumentRow(
                    collection=collection,
                    id=document_id,
                    data=data,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.commit()
                session.refresh(row)
                return self._to_document(row)
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to create {collection}/{document_id}: {e}") from e

    def update_document(self, collection: str, document_id: str, data: dict) -> dict:
        try:
            with self.Session() as session:
                row = session.get(DocumentRow, (collection, document_id))
                if not row:
                    raise DocumentNotFoundError(
                        f"Document {document_id} not found in {collection}"
                    )
                # Reassign so the JSON column is flagged dirty.
                row.data = {**(row.data or {}), **data}
                row.updated_at = time.time()
                session.commit()
                session.refresh(row)
                return self._to_document(row)
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to update {collection}/{document_id}: {e}") from e

    def delete_document(self, collection: str, document_id: str) -> None:
        try:
            with self.Session() as session:
                row = session.get(DocumentRow, (collection, document_id))
                if not row:
                    raise DocumentNotFoundError(
                        f"Document {document_id} not found in {collection}"
                    )
                session.delete(row)
                session.commit()
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to delete {collection}/{document_id}: {e}") from e


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False, index=True)
    updated_at = Column(Float, nullable=False)
