import csv
import io
import unittest
from datetime import date, datetime, timezone

from serve_tracker.errors import ExportError
from serve_tracker.export import (
    CSV_COLUMNS,
    export_filename,
    export_serves,
    filter_serves_by_range,
    serves_to_csv,
)
from serve_tracker.local_store import InMemoryKeyValueStore
from serve_tracker.records import ClientRecord, Coordinates, ServeAttemptRecord
from serve_tracker.session import SessionState


def _serve(serve_id, when, **kwargs):
    return ServeAttemptRecord(id=serve_id, client_id="client-1", timestamp=when, **kwargs)


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class ExportTests(unittest.TestCase):
    def setUp(self):
        self.clients = [ClientRecord(id="client-1", name="Jane Doe", email="jane@x.com")]
        self.serves = [
            _serve("before", _utc(2023, 12, 31, 23, 59, 59)),
            _serve("first-moment", _utc(2024, 1, 1, 0, 0, 0)),
            _serve(
                "middle",
                _utc(2024, 1, 15, 10, 30),
                coordinates=Coordinates(40.7128, -74.006),
                image_data="data:image/jpeg;base64,AAA",
                case_number="CV-1",
                attempt_number=1,
                notes="Left notice, \"no answer\"",
            ),
            _serve("last-moment", _utc(2024, 1, 31, 23, 59, 59, 999999)),
            _serve("after", _utc(2024, 2, 1, 0, 0, 0)),
        ]

    def test_filter_is_inclusive_on_calendar_dates(self):
        selected = filter_serves_by_range(
            self.serves, date(2024, 1, 1), date(2024, 1, 31)
        )
        self.assertEqual(
            [s.id for s in selected], ["first-moment", "middle", "last-moment"]
        )

    def test_inverted_range_raises(self):
        with self.assertRaises(ExportError):
            filter_serves_by_range(self.serves, date(2024, 2, 1), date(2024, 1, 1))

    def test_january_export_rows(self):
        session = SessionState(InMemoryKeyValueStore())

        result = export_serves(
            self.serves, self.clients, date(2024, 1, 1), date(2024, 1, 31), session
        )

        self.assertEqual(result.filename, "serve-data-2024-01-01-to-2024-01-31.csv")
        self.assertEqual(result.row_count, 3)
        rows = list(csv.DictReader(io.StringIO(result.content)))
        self.assertEqual(list(rows[0].keys()), CSV_COLUMNS)
        self.assertEqual([r["Serve ID"] for r in rows], ["first-moment", "middle", "last-moment"])

        middle = rows[1]
        self.assertEqual(middle["Client Name"], "Jane Doe")
        self.assertEqual(middle["Case Number"], "CV-1")
        self.assertEqual(middle["Attempt Number"], "1")
        self.assertEqual(middle["Date"], "2024-01-15")
        self.assertEqual(middle["Time"], "10:30:00")
        self.assertEqual(middle["Latitude"], "40.7128")
        self.assertEqual(middle["Longitude"], "-74.006")
        self.assertEqual(middle["Has Image"], "Yes")
        self.assertEqual(middle["Notes"], 'Left notice, "no answer"')
        self.assertEqual(rows[0]["Has Image"], "No")
        self.assertEqual(rows[0]["Latitude"], "")

        self.assertEqual(
            session.get_export_range(), (date(2024, 1, 1), date(2024, 1, 31))
        )

    def test_empty_export_has_header_only(self):
        content = serves_to_csv([], self.clients)
        self.assertEqual(content.strip(), ",".join(CSV_COLUMNS))

    def test_unknown_client_leaves_name_blank(self):
        serve = ServeAttemptRecord(
            id="s1", client_id="client-gone", timestamp=_utc(2024, 1, 2)
        )
        rows = list(csv.DictReader(io.StringIO(serves_to_csv([serve], self.clients))))
        self.assertEqual(rows[0]["Client Name"], "")

    def test_filename(self):
        self.assertEqual(
            export_filename(date(2024, 3, 5), date(2024, 3, 9)),
            "serve-data-2024-03-05-to-2024-03-09.csv",
        )


if __name__ == "__main__":
    unittest.main()
