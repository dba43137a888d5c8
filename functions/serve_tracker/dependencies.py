"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from serve_tracker.backends import FallbackDataBackend, LocalDataBackend, RemoteDataBackend
from serve_tracker.config import get_settings
from serve_tracker.connectivity import ConnectionProber
from serve_tracker.db import DbClient, InMemoryDbClient, PostgresDbClient
from serve_tracker.local_store import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    LocalStore,
)
from serve_tracker.mailer import EmailNotifier, FunctionEmailNotifier
from serve_tracker.notifications import InMemoryNotifier
from serve_tracker.orchestrator import DataOrchestrator
from serve_tracker.remote import RemoteBackend
from serve_tracker.serve_workflow import ServeRecorder
from serve_tracker.session import SessionState
from serve_tracker.storage import CosStorageClient, InMemoryStorageClient, StorageClient
from serve_tracker.sync import SyncPoller

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_kv_store: KeyValueStore | None = None
_session_state: SessionState | None = None
_notifier: InMemoryNotifier | None = None
_orchestrator: DataOrchestrator | None = None
_serve_recorder: ServeRecorder | None = None
_sync_poller: SyncPoller | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so remote data persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.cos_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = CosStorageClient(
            bucket=settings.cos_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_key_value_store() -> KeyValueStore:
    global _kv_store
    if _kv_store:
        return _kv_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _kv_store = InMemoryKeyValueStore()
    else:
        _kv_store = FileKeyValueStore(settings.local_data_dir)
    return _kv_store


def get_local_store() -> LocalStore:
    return LocalStore(get_key_value_store())


def get_session_state() -> SessionState:
    global _session_state
    if _session_state:
        return _session_state
    _session_state = SessionState(get_key_value_store(), get_settings().backend_provider)
    return _session_state


def get_notifier() -> InMemoryNotifier:
    global _notifier
    if _notifier:
        return _notifier
    _notifier = InMemoryNotifier()
    return _notifier


def get_remote_backend() -> RemoteBackend:
    return RemoteBackend(get_db_client(), get_storage_client())


def get_connection_prober() -> ConnectionProber:
    return ConnectionProber(get_remote_backend(), get_session_state(), get_notifier())


def get_orchestrator() -> DataOrchestrator:
    """
    Return a singleton orchestrator; it owns the in-memory collections.
    """
    global _orchestrator
    if _orchestrator:
        return _orchestrator

    session = get_session_state()
    local_store = get_local_store()
    backend = FallbackDataBackend(
        primary=RemoteDataBackend(get_remote_backend()),
        fallback=LocalDataBackend(local_store),
        session=session,
    )
    _orchestrator = DataOrchestrator(
        backend=backend,
        local_store=local_store,
        prober=get_connection_prober(),
        session=session,
        notifier=get_notifier(),
    )
    return _orchestrator


def get_email_notifier() -> Optional[EmailNotifier]:
    """Email sender, or None when no send_email function is configured."""
    settings = get_settings()
    if not settings.email_function_url:
        return None
    return FunctionEmailNotifier(
        settings.email_function_url, timeout=settings.email_timeout_seconds
    )


def get_serve_recorder() -> ServeRecorder:
    global _serve_recorder
    if _serve_recorder:
        return _serve_recorder
    _serve_recorder = ServeRecorder(
        orchestrator=get_orchestrator(),
        remote=get_remote_backend(),
        notifier=get_notifier(),
        emailer=get_email_notifier(),
    )
    return _serve_recorder


def get_sync_poller() -> Optional[SyncPoller]:
    """Poller reloading the orchestrator, or None when disabled by settings."""
    global _sync_poller
    if _sync_poller:
        return _sync_poller

    settings = get_settings()
    if settings.sync_interval_seconds <= 0:
        return None
    _sync_poller = SyncPoller(get_orchestrator().load, settings.sync_interval_seconds)
    return _sync_poller
