"""
Pydantic schemas for the serve tracker API.

Request bodies accept the camelCase names the front end sends as well as
snake_case.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from serve_tracker.records import (
    CaseRecord,
    CaseStatus,
    ClientRecord,
    ServeAttemptRecord,
    ServeStatus,
    parse_timestamp,
    utcnow,
)


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ClientPayload(_Payload):
    id: Optional[str] = None
    name: str = ""
    email: str = ""
    additional_emails: list[str] = Field(default_factory=list, alias="additionalEmails")
    phone: str = ""
    address: str = ""
    notes: str = ""

    def to_record(self, client_id: Optional[str] = None) -> ClientRecord:
        return ClientRecord(
            id=client_id or self.id or "",
            name=self.name,
            email=self.email,
            additional_emails=[e for e in self.additional_emails if e],
            phone=self.phone,
            address=self.address,
            notes=self.notes,
        )


class ServePayload(_Payload):
    id: Optional[str] = None
    client_id: str = Field(default="", alias="clientId")
    timestamp: Optional[datetime] = None
    address: str = ""
    # Validated by coerce_coordinates; malformed values become None.
    coordinates: Optional[Any] = None
    image_data: Optional[str] = Field(default=None, alias="imageData")
    notes: str = ""
    status: str = ServeStatus.ATTEMPTED.value
    attempt_number: Optional[int] = Field(default=None, alias="attemptNumber")
    case_number: Optional[str] = Field(default=None, alias="caseNumber")

    def to_record(self, serve_id: Optional[str] = None) -> ServeAttemptRecord:
        return ServeAttemptRecord(
            id=serve_id or self.id or "",
            client_id=self.client_id,
            timestamp=parse_timestamp(self.timestamp) if self.timestamp else utcnow(),
            address=self.address,
            coordinates=self.coordinates,
            image_data=self.image_data or None,
            notes=self.notes,
            status=self.status or ServeStatus.ATTEMPTED.value,
            attempt_number=self.attempt_number,
            case_number=self.case_number or None,
        )


class CasePayload(_Payload):
    case_number: str = Field(..., min_length=1, alias="caseNumber")
    case_name: str = Field(default="", alias="caseName")
    court_name: str = Field(default="", alias="courtName")
    notes: str = ""
    status: str = CaseStatus.ACTIVE.value

    def to_record(self, client_id: str) -> CaseRecord:
        return CaseRecord(
            id="",
            client_id=client_id,
            case_number=self.case_number,
            case_name=self.case_name,
            court_name=self.court_name,
            notes=self.notes,
            status=self.status,
        )


class NotificationModel(BaseModel):
    kind: str
    title: str
    description: str = ""
    created_at: float


class MutationResponse(BaseModel):
    success: bool
    path: Optional[str] = None
    record: Optional[dict] = None
    notification: Optional[NotificationModel] = None
    error: Optional[str] = None


class ServeMutationResponse(MutationResponse):
    email_sent: Optional[bool] = None
    email_message: Optional[str] = None


class ClientsResponse(BaseModel):
    clients: list[dict]


class ServesResponse(BaseModel):
    serves: list[dict]


class CaseResponse(BaseModel):
    case: dict


class CasesResponse(BaseModel):
    cases: list[dict]


class DocumentResponse(BaseModel):
    document: dict


class DocumentsResponse(BaseModel):
    documents: list[dict]


class DocumentUrlResponse(BaseModel):
    url: str


class AttemptCountResponse(BaseModel):
    client_id: str
    case_number: str
    attempt_number: int


class SyncResponse(BaseModel):
    path: str
    clients: int
    serves: int


class ConnectionResponse(BaseModel):
    connected: bool
    provider: str
    error: Optional[str] = None
    using_fallback: bool


class NotificationsResponse(BaseModel):
    notifications: list[NotificationModel]


class ExportRange(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class StatusResponse(BaseModel):
    status: str


class MigrationResponse(BaseModel):
    success: bool
    clients_imported: int
    serves_imported: int
    clients_skipped: int
    serves_skipped: int
    message: str
