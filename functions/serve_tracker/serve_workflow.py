"""
Recording a serve attempt: attempt numbering, case status, save, email.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from serve_tracker.mailer import EmailMessage, EmailNotifier, EmailResult
from serve_tracker.notifications import Notification, NotificationKind, Notifier
from serve_tracker.orchestrator import DataOrchestrator, OperationResult
from serve_tracker.records import (
    CaseStatus,
    ClientRecord,
    ServeAttemptRecord,
    ServeStatus,
    coerce_coordinates,
)
from serve_tracker.remote import RemoteBackend

logger = logging.getLogger(__name__)


def next_case_status(outcome: str, current: Optional[str]) -> Optional[str]:
    """
    Case status after a serve attempt with the given outcome.

    A completed serve closes the case; any other outcome marks it in progress
    unless it is already closed. Returns None when the status stays as is.
    """
    if outcome == ServeStatus.COMPLETED.value:
        target = CaseStatus.CLOSED.value
    elif current == CaseStatus.CLOSED.value:
        return None
    else:
        target = CaseStatus.IN_PROGRESS.value
    return None if target == current else target


def update_case_status(
    remote: RemoteBackend, client_id: str, case_number: str, outcome: str
) -> bool:
    case = remote.find_case(client_id, case_number)
    if case is None:
        logger.info("No case %s found for client %s", case_number, client_id)
        return False
    status = next_case_status(outcome, case.status)
    if status is None:
        return True
    return remote.update_case_status(case.id, status)


def attempt_number(remote: RemoteBackend, client_id: str, case_number: str) -> int:
    """Number of serve attempts the remote backend already holds for the case."""
    try:
        return remote.count_serve_attempts(client_id, case_number)
    except Exception as e:
        logger.error("Error fetching attempt count: %s", e)
        return 0


def build_serve_email(client: ClientRecord, serve: ServeAttemptRecord) -> EmailMessage:
    when = serve.timestamp
    body = (
        f"A new serve attempt has been recorded for {client.name} on "
        f"{when.strftime('%Y-%m-%d')} at {when.strftime('%H:%M:%S')}. "
        f"Status: {serve.status}. Notes: {serve.notes or 'No notes.'}"
    )
    if serve.case_number:
        body += f" Case: {serve.case_number}."
    return EmailMessage(
        to=client.all_emails(),
        subject=f"New Serve Attempt for {client.name}",
        body=body,
        image_data=serve.image_data,
        coordinates=serve.coordinates,
    )


@dataclass
class ServeRecordResult:
    operation: OperationResult
    email: Optional[EmailResult] = None

    @property
    def success(self) -> bool:
        return self.operation.success


class ServeRecorder:
    def __init__(
        self,
        orchestrator: DataOrchestrator,
        remote: RemoteBackend,
        notifier: Notifier,
        emailer: Optional[EmailNotifier] = None,
    ):
        self.orchestrator = orchestrator
        self.remote = remote
        self.notifier = notifier
        self.emailer = emailer

    def record(self, serve: ServeAttemptRecord) -> ServeRecordResult:
        if serve.coordinates is not None and coerce_coordinates(serve.coordinates) is None:
            logger.warning("Invalid coordinates detected, setting to None")
        serve.coordinates = coerce_coordinates(serve.coordinates)

        if serve.client_id and serve.case_number:
            if serve.attempt_number is None:
                serve.attempt_number = attempt_number(
                    self.remote, serve.client_id, serve.case_number
                )
            try:
                if update_case_status(
                    self.remote, serve.client_id, serve.case_number, serve.status
                ):
                    logger.info("Case status updated for case %s", serve.case_number)
            except Exception as e:
                logger.error("Error updating case status: %s", e)

        operation = self.orchestrator.add_serve(serve)
        if not operation.success:
            return ServeRecordResult(operation=operation)

        return ServeRecordResult(operation=operation, email=self._send_email(serve))

    def _send_email(self, serve: ServeAttemptRecord) -> Optional[EmailResult]:
        if self.emailer is None:
            return None
        client = self.orchestrator.get_client(serve.client_id)
        if client is None or not client.all_emails():
            return None
        result = self.emailer.send(build_serve_email(client, serve))
        if not result.success:
            self.notifier.notify(
                Notification(
                    kind=NotificationKind.ERROR,
                    title="Email Error",
                    description=f"Failed to send email: {result.message}",
                )
            )
        return result
