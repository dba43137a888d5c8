"""
HTTP routes for the serve tracker API.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile

from serve_tracker.connectivity import ConnectionProber
from serve_tracker.dependencies import (
    get_connection_prober,
    get_local_store,
    get_notifier,
    get_orchestrator,
    get_remote_backend,
    get_serve_recorder,
    get_session_state,
)
from serve_tracker.errors import BackendError, ExportError
from serve_tracker.export import export_serves
from serve_tracker.local_store import LocalStore
from serve_tracker.migration import migrate_local_to_remote
from serve_tracker.notifications import InMemoryNotifier
from serve_tracker.orchestrator import DataOrchestrator, OperationResult
from serve_tracker.remote import RemoteBackend
from serve_tracker.schemas import (
    AttemptCountResponse,
    CasePayload,
    CaseResponse,
    CasesResponse,
    ClientPayload,
    ClientsResponse,
    ConnectionResponse,
    DocumentResponse,
    DocumentsResponse,
    DocumentUrlResponse,
    ExportRange,
    MigrationResponse,
    MutationResponse,
    NotificationModel,
    NotificationsResponse,
    ServeMutationResponse,
    ServePayload,
    ServesResponse,
    StatusResponse,
    SyncResponse,
)
from serve_tracker.serve_workflow import ServeRecorder, attempt_number
from serve_tracker.session import SessionState

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_result(result: OperationResult) -> None:
    if result.success:
        return
    status_code = 400 if result.rejected else 500
    raise HTTPException(status_code=status_code, detail=result.error or "Operation failed")


def _mutation_fields(result: OperationResult) -> dict:
    record = result.record if hasattr(result.record, "as_dict") else None
    return {
        "success": result.success,
        "path": result.path.value if result.path else None,
        "record": record.as_dict() if record else None,
        "notification": (
            NotificationModel(**result.notification.as_dict())
            if result.notification
            else None
        ),
        "error": result.error,
    }


def _mutation_response(result: OperationResult) -> MutationResponse:
    _check_result(result)
    return MutationResponse(**_mutation_fields(result))


# Clients


@router.get("/clients", response_model=ClientsResponse)
def list_clients(orchestrator: DataOrchestrator = Depends(get_orchestrator)):
    return ClientsResponse(clients=[c.as_dict() for c in orchestrator.clients])


@router.post("/clients", response_model=MutationResponse, status_code=201)
def create_client(
    payload: ClientPayload, orchestrator: DataOrchestrator = Depends(get_orchestrator)
):
    return _mutation_response(orchestrator.add_client(payload.to_record()))


@router.put("/clients/{client_id}", response_model=MutationResponse)
def update_client(
    client_id: str,
    payload: ClientPayload,
    orchestrator: DataOrchestrator = Depends(get_orchestrator),
):
    if orchestrator.get_client(client_id) is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return _mutation_response(orchestrator.update_client(payload.to_record(client_id)))


@router.delete("/clients/{client_id}", response_model=MutationResponse)
def delete_client(
    client_id: str, orchestrator: DataOrchestrator = Depends(get_orchestrator)
):
    if orchestrator.get_client(client_id) is None:
        raise HTTPException(status_code=404, detail="Client not found")
    return _mutation_response(orchestrator.delete_client(client_id))


# Serve attempts


@router.get("/serves", response_model=ServesResponse)
def list_serves(
    client_id: Optional[str] = Query(None),
    orchestrator: DataOrchestrator = Depends(get_orchestrator),
):
    serves = orchestrator.serves
    if client_id:
        serves = [s for s in serves if s.client_id == client_id]
    return ServesResponse(serves=[s.as_dict() for s in serves])


@router.post("/serves", response_model=ServeMutationResponse, status_code=201)
def create_serve(
    payload: ServePayload, recorder: ServeRecorder = Depends(get_serve_recorder)
):
    outcome = recorder.record(payload.to_record())
    _check_result(outcome.operation)
    return ServeMutationResponse(
        **_mutation_fields(outcome.operation),
        email_sent=outcome.email.success if outcome.email else None,
        email_message=outcome.email.message if outcome.email else None,
    )


@router.put("/serves/{serve_id}", response_model=MutationResponse)
def update_serve(
    serve_id: str,
    payload: ServePayload,
    orchestrator: DataOrchestrator = Depends(get_orchestrator),
):
    existing = orchestrator.get_serve(serve_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Serve attempt not found")
    serve = payload.to_record(serve_id)
    if payload.timestamp is None:
        serve.timestamp = existing.timestamp
    return _mutation_response(orchestrator.update_serve(serve))


@router.delete("/serves/{serve_id}", response_model=MutationResponse)
def delete_serve(serve_id: str, orchestrator: DataOrchestrator = Depends(get_orchestrator)):
    if orchestrator.get_serve(serve_id) is None:
        raise HTTPException(status_code=404, detail="Serve attempt not found")
    return _mutation_response(orchestrator.delete_serve(serve_id))


@router.get("/attempt-count", response_model=AttemptCountResponse)
def attempt_count(
    client_id: str = Query(..., min_length=1),
    case_number: str = Query(..., min_length=1),
    remote: RemoteBackend = Depends(get_remote_backend),
):
    return AttemptCountResponse(
        client_id=client_id,
        case_number=case_number,
        attempt_number=attempt_number(remote, client_id, case_number),
    )


# Cases and documents (remote only)


@router.get("/clients/{client_id}/cases", response_model=CasesResponse)
def list_cases(client_id: str, remote: RemoteBackend = Depends(get_remote_backend)):
    return CasesResponse(cases=[c.as_dict() for c in remote.get_client_cases(client_id)])


@router.post("/clients/{client_id}/cases", response_model=CaseResponse, status_code=201)
def create_case(
    client_id: str,
    payload: CasePayload,
    remote: RemoteBackend = Depends(get_remote_backend),
):
    try:
        case = remote.create_client_case(payload.to_record(client_id))
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return CaseResponse(case=case.as_dict())


@router.get("/clients/{client_id}/documents", response_model=DocumentsResponse)
def list_documents(
    client_id: str,
    case_number: Optional[str] = Query(None),
    remote: RemoteBackend = Depends(get_remote_backend),
):
    documents = remote.get_client_documents(client_id, case_number)
    return DocumentsResponse(documents=[d.as_dict() for d in documents])


@router.post(
    "/clients/{client_id}/documents", response_model=DocumentResponse, status_code=201
)
async def upload_document(
    client_id: str,
    file: UploadFile = File(...),
    case_number: str | None = Form(None),
    description: str | None = Form(None),
    remote: RemoteBackend = Depends(get_remote_backend),
):
    if not file.filename:
        raise HTTPException(status_code=400, detail="File required")
    content = await file.read()
    try:
        document = remote.upload_client_document(
            client_id,
            file.filename,
            content,
            content_type=file.content_type or "application/octet-stream",
            case_number=case_number,
            description=description,
        )
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return DocumentResponse(document=document.as_dict())


@router.delete("/documents/{document_id}", response_model=StatusResponse)
def delete_document(document_id: str, remote: RemoteBackend = Depends(get_remote_backend)):
    document = remote.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    try:
        remote.delete_client_document(document.id, document.file_path)
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return StatusResponse(status="ok")


@router.get("/documents/{document_id}/url", response_model=DocumentUrlResponse)
def document_url(
    document_id: str,
    expires_in: int = Query(3600, ge=60, le=86400),
    remote: RemoteBackend = Depends(get_remote_backend),
):
    document = remote.get_document(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    try:
        url = remote.get_document_url(document.file_path, expires_in=expires_in)
    except BackendError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return DocumentUrlResponse(url=url)


# Sync and status


@router.post("/sync", response_model=SyncResponse)
def sync(orchestrator: DataOrchestrator = Depends(get_orchestrator)):
    outcome = orchestrator.load()
    return SyncResponse(
        path=outcome.path.value, clients=len(outcome.clients), serves=len(outcome.serves)
    )


@router.get("/connection", response_model=ConnectionResponse)
def connection(prober: ConnectionProber = Depends(get_connection_prober)):
    status = prober.check_connection()
    return ConnectionResponse(
        **status.as_dict(), using_fallback=prober.should_use_fallback()
    )


@router.get("/notifications", response_model=NotificationsResponse)
def notifications(
    since: float = Query(0.0, ge=0),
    notifier: InMemoryNotifier = Depends(get_notifier),
):
    return NotificationsResponse(
        notifications=[NotificationModel(**n.as_dict()) for n in notifier.recent(since)]
    )


# Export


@router.get("/export")
def export_csv(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    orchestrator: DataOrchestrator = Depends(get_orchestrator),
    session: SessionState = Depends(get_session_state),
):
    remembered_start, remembered_end = session.get_export_range()
    start_date = start_date or remembered_start
    end_date = end_date or remembered_end
    if not start_date or not end_date:
        raise HTTPException(
            status_code=400, detail="Please select both start and end dates"
        )
    try:
        result = export_serves(
            orchestrator.serves, orchestrator.clients, start_date, end_date, session
        )
    except ExportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return Response(
        content=result.content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@router.get("/export/range", response_model=ExportRange)
def get_export_range(session: SessionState = Depends(get_session_state)):
    start, end = session.get_export_range()
    return ExportRange(start_date=start, end_date=end)


@router.put("/export/range", response_model=ExportRange)
def set_export_range(
    payload: ExportRange, session: SessionState = Depends(get_session_state)
):
    session.set_export_range(payload.start_date, payload.end_date)
    return payload


# Local data


@router.delete("/local-data", response_model=StatusResponse)
def clear_local_data(local_store: LocalStore = Depends(get_local_store)):
    if not local_store.clear_data():
        raise HTTPException(status_code=500, detail="Failed to clear local data")
    return StatusResponse(status="ok")


@router.post("/migrate", response_model=MigrationResponse)
def migrate(
    local_store: LocalStore = Depends(get_local_store),
    remote: RemoteBackend = Depends(get_remote_backend),
    notifier: InMemoryNotifier = Depends(get_notifier),
    orchestrator: DataOrchestrator = Depends(get_orchestrator),
):
    result = migrate_local_to_remote(local_store, remote, notifier)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.message)
    orchestrator.load()
    return MigrationResponse(
        success=result.success,
        clients_imported=result.clients_imported,
        serves_imported=result.serves_imported,
        clients_skipped=result.clients_skipped,
        serves_skipped=result.serves_skipped,
        message=result.message,
    )
