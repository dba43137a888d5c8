"""
CSV export of serve attempts over an inclusive calendar-date range.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional

import pandas as pd

from serve_tracker.errors import ExportError
from serve_tracker.records import ClientRecord, ServeAttemptRecord
from serve_tracker.session import SessionState

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Serve ID",
    "Client ID",
    "Client Name",
    "Case Number",
    "Attempt Number",
    "Date",
    "Time",
    "Timestamp",
    "Status",
    "Address",
    "Latitude",
    "Longitude",
    "Notes",
    "Has Image",
]


@dataclass
class ExportResult:
    filename: str
    content: str
    row_count: int


def _range_bounds(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    if start_date > end_date:
        raise ExportError("Start date must be on or before end date")
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_date, time.max, tzinfo=timezone.utc)
    return start, end


def filter_serves_by_range(
    serves: Iterable[ServeAttemptRecord], start_date: date, end_date: date
) -> list[ServeAttemptRecord]:
    """Serves whose timestamp falls from start 00:00:00 through end 23:59:59.999999."""
    start, end = _range_bounds(start_date, end_date)
    selected = [s for s in serves if start <= s.timestamp <= end]
    return sorted(selected, key=lambda s: s.timestamp)


def _row(serve: ServeAttemptRecord, client: Optional[ClientRecord]) -> dict:
    coords = serve.coordinates
    return {
        "Serve ID": serve.id,
        "Client ID": serve.client_id,
        "Client Name": client.name if client else "",
        "Case Number": serve.case_number or "",
        "Attempt Number": serve.attempt_number if serve.attempt_number is not None else "",
        "Date": serve.timestamp.strftime("%Y-%m-%d"),
        "Time": serve.timestamp.strftime("%H:%M:%S"),
        "Timestamp": serve.timestamp.isoformat(),
        "Status": serve.status,
        "Address": serve.address or "",
        "Latitude": coords.latitude if coords else "",
        "Longitude": coords.longitude if coords else "",
        "Notes": serve.notes or "",
        "Has Image": "Yes" if serve.image_data else "No",
    }


def serves_to_csv(
    serves: Iterable[ServeAttemptRecord], clients: Iterable[ClientRecord]
) -> str:
    by_id = {c.id: c for c in clients}
    rows = [_row(s, by_id.get(s.client_id)) for s in serves]
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    return df.to_csv(index=False)


def export_filename(start_date: date, end_date: date) -> str:
    return f"serve-data-{start_date:%Y-%m-%d}-to-{end_date:%Y-%m-%d}.csv"


def export_serves(
    serves: Iterable[ServeAttemptRecord],
    clients: Iterable[ClientRecord],
    start_date: date,
    end_date: date,
    session: Optional[SessionState] = None,
) -> ExportResult:
    """
    Build the CSV for serves in the range and remember the range in the session.

    Raises ExportError when the start date is after the end date.
    """
    selected = filter_serves_by_range(serves, start_date, end_date)
    if session is not None:
        session.set_export_range(start_date, end_date)
    logger.info(
        "Exporting %d serve attempts from %s to %s", len(selected), start_date, end_date
    )
    return ExportResult(
        filename=export_filename(start_date, end_date),
        content=serves_to_csv(selected, clients),
        row_count=len(selected),
    )
