"""
Record types shared by the local store, the remote backend and the API.

Records serialize to the camelCase dicts the front end and the local store
use; the remote backend has its own field mapping (see remote.py).
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ServeStatus(str, Enum):
    ATTEMPTED = "attempted"
    COMPLETED = "completed"
    FAILED = "failed"


class CaseStatus(str, Enum):
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


def new_client_id() -> str:
    return f"client-{uuid.uuid4()}"


def new_serve_id() -> str:
    return f"serve-{uuid.uuid4()}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO string (or datetime) into an aware datetime, UTC if naive."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def as_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude}


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def coerce_coordinates(value: Any) -> Optional[Coordinates]:
    """
    Return Coordinates for a well-formed latitude/longitude pair, else None.

    Accepts a Coordinates instance, a dict with latitude/longitude keys or a
    two-item sequence. Never raises.
    """
    if value is None:
        return None
    if isinstance(value, Coordinates):
        lat, lng = value.latitude, value.longitude
    elif isinstance(value, dict):
        lat, lng = value.get("latitude"), value.get("longitude")
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        lat, lng = value
    else:
        return None
    if not (_is_number(lat) and _is_number(lng)):
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return Coordinates(latitude=float(lat), longitude=float(lng))


@dataclass
class ClientRecord:
    id: str
    name: str
    email: str
    additional_emails: list[str] = field(default_factory=list)
    phone: str = ""
    address: str = ""
    notes: str = ""
    created_at: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "additionalEmails": list(self.additional_emails),
            "phone": self.phone,
            "address": self.address,
            "notes": self.notes,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ClientRecord":
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            email=data.get("email") or "",
            additional_emails=list(data.get("additionalEmails") or []),
            phone=data.get("phone") or "",
            address=data.get("address") or "",
            notes=data.get("notes") or "",
            created_at=data.get("createdAt"),
        )

    def all_emails(self) -> list[str]:
        return [e for e in [self.email, *self.additional_emails] if e]


@dataclass
class ServeAttemptRecord:
    id: str
    client_id: str
    timestamp: datetime = field(default_factory=utcnow)
    address: str = ""
    coordinates: Optional[Coordinates] = None
    image_data: Optional[str] = None
    notes: str = ""
    status: str = ServeStatus.ATTEMPTED.value
    attempt_number: Optional[int] = None
    case_number: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "clientId": self.client_id,
            "timestamp": self.timestamp.isoformat(),
            "address": self.address,
            "coordinates": self.coordinates.as_dict() if self.coordinates else None,
            "imageData": self.image_data,
            "notes": self.notes,
            "status": self.status,
            "attemptNumber": self.attempt_number,
            "caseNumber": self.case_number,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ServeAttemptRecord":
        raw_timestamp = data.get("timestamp")
        attempt = data.get("attemptNumber")
        return cls(
            id=data.get("id") or "",
            client_id=data.get("clientId") or "",
            timestamp=parse_timestamp(raw_timestamp) if raw_timestamp else utcnow(),
            address=data.get("address") or "",
            coordinates=coerce_coordinates(data.get("coordinates")),
            image_data=data.get("imageData") or None,
            notes=data.get("notes") or "",
            status=data.get("status") or ServeStatus.ATTEMPTED.value,
            attempt_number=int(attempt) if attempt is not None else None,
            case_number=data.get("caseNumber") or None,
        )


@dataclass
class CaseRecord:
    id: str
    client_id: str
    case_number: str
    case_name: str = ""
    court_name: str = ""
    notes: str = ""
    status: str = CaseStatus.ACTIVE.value

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "clientId": self.client_id,
            "caseNumber": self.case_number,
            "caseName": self.case_name,
            "courtName": self.court_name,
            "notes": self.notes,
            "status": self.status,
        }


@dataclass
class DocumentRecord:
    id: str
    client_id: str
    file_name: str
    file_size: int
    file_type: str
    file_path: str
    case_number: str = ""
    description: str = ""
    created_at: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "clientId": self.client_id,
            "caseNumber": self.case_number,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "fileType": self.file_type,
            "filePath": self.file_path,
            "description": self.description,
            "createdAt": self.created_at,
        }
