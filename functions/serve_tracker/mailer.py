"""
Client for the deployable send_email function (see functions/main.py).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests

from serve_tracker.records import Coordinates

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds


@dataclass
class EmailMessage:
    to: list[str]
    subject: str
    body: str
    image_data: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    def as_payload(self) -> dict:
        payload = {"to": self.to, "subject": self.subject, "body": self.body}
        if self.image_data:
            payload["imageData"] = self.image_data
        if self.coordinates:
            payload["coordinates"] = self.coordinates.as_dict()
        return payload


@dataclass
class EmailResult:
    success: bool
    message: str


class EmailNotifier(Protocol):
    def send(self, message: EmailMessage) -> EmailResult:
        ...


@dataclass
class InMemoryEmailNotifier:
    """Test double that records messages instead of sending them."""

    sent: list[EmailMessage] = field(default_factory=list)
    fail_with: Optional[str] = None

    def send(self, message: EmailMessage) -> EmailResult:
        if self.fail_with:
            return EmailResult(success=False, message=self.fail_with)
        self.sent.append(message)
        return EmailResult(success=True, message="Email recorded")


class FunctionEmailNotifier:
    """
    Calls the send_email callable function over HTTPS.

    Uses the callable protocol: the payload goes under ``data`` and the reply
    comes back under ``result`` (or ``error``). Never raises.
    """

    def __init__(self, function_url: str, timeout: float = REQUEST_TIMEOUT):
        self.function_url = function_url
        self.timeout = timeout

    def send(self, message: EmailMessage) -> EmailResult:
        try:
            response = requests.post(
                self.function_url,
                json={"data": message.as_payload()},
                timeout=self.timeout,
            )
            body = response.json() if response.content else {}
        except (requests.RequestException, ValueError) as e:
            logger.error("Error sending email: %s", e)
            return EmailResult(success=False, message=str(e))

        if response.status_code != 200 or "error" in body:
            error = body.get("error") or {}
            detail = error.get("message") or f"HTTP {response.status_code}"
            logger.error("Email function returned an error: %s", detail)
            return EmailResult(success=False, message=detail)

        result = body.get("result") or {}
        return EmailResult(
            success=bool(result.get("success", True)),
            message=result.get("message", "Email sent"),
        )

