from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from tests._support import auth_headers, make_client, open_session, seed_employee, seed_employer, seed_event, utc
from timetrack.models import AttendanceEvent, AttendanceEventType
from timetrack.services.timesheets import derive_timesheet, derive_timesheets

UTC = ZoneInfo("UTC")
IN = AttendanceEventType.CLOCK_IN
OUT = AttendanceEventType.CLOCK_OUT


def _event(event_id: int, event_type: AttendanceEventType, captured_at: datetime, employee_id: int = 1) -> AttendanceEvent:
    return AttendanceEvent(
        id=event_id,
        employee_profile_id=employee_id,
        company_id=1,
        event_type=event_type,
        captured_at=captured_at,
        location_lat=0.0,
        location_lng=0.0,
        accuracy_meters=5.0,
    )


class DeriveTimesheetTests(unittest.TestCase):
    def test_first_in_and_first_following_out(self) -> None:
        events = [
            _event(1, IN, utc(2026, 3, 2, 9, 0)),
            _event(2, OUT, utc(2026, 3, 2, 17, 30)),
        ]
        row = derive_timesheet(events, date(2026, 3, 2), UTC)
        self.assertIsNotNone(row)
        self.assertEqual(row.clock_in_id, 1)
        self.assertEqual(row.clock_out_id, 2)
        self.assertAlmostEqual(row.hours_worked, 8.5)

    def test_missing_clock_out_leaves_hours_unset(self) -> None:
        row = derive_timesheet([_event(1, IN, utc(2026, 3, 2, 9, 0))], date(2026, 3, 2), UTC)
        self.assertIsNotNone(row)
        self.assertIsNone(row.clock_out_id)
        self.assertIsNone(row.hours_worked)

    def test_day_without_clock_in_has_no_row(self) -> None:
        self.assertIsNone(derive_timesheet([], date(2026, 3, 2), UTC))
        self.assertIsNone(derive_timesheet([_event(1, OUT, utc(2026, 3, 2, 17))], date(2026, 3, 2), UTC))

    def test_clock_out_before_clock_in_is_ignored(self) -> None:
        events = [
            _event(3, OUT, utc(2026, 3, 2, 8, 0)),
            _event(4, IN, utc(2026, 3, 2, 9, 0)),
            _event(5, IN, utc(2026, 3, 2, 10, 0)),
            _event(6, OUT, utc(2026, 3, 2, 12, 0)),
            _event(7, OUT, utc(2026, 3, 2, 18, 0)),
        ]
        row = derive_timesheet(events, date(2026, 3, 2), UTC)
        self.assertEqual((row.clock_in_id, row.clock_out_id), (4, 6))
        self.assertAlmostEqual(row.hours_worked, 3.0)

    def test_day_boundaries_follow_company_timezone(self) -> None:
        istanbul = ZoneInfo("Europe/Istanbul")
        # 22:30 UTC on the 1st is 01:30 local on the 2nd.
        events = [
            _event(1, IN, utc(2026, 3, 1, 22, 30)),
            _event(2, OUT, utc(2026, 3, 2, 6, 30)),
        ]
        self.assertIsNone(derive_timesheet(events, date(2026, 3, 1), istanbul))
        row = derive_timesheet(events, date(2026, 3, 2), istanbul)
        self.assertAlmostEqual(row.hours_worked, 8.0)

    def test_naive_timestamps_are_treated_as_utc(self) -> None:
        events = [
            _event(1, IN, datetime(2026, 3, 2, 9, 0)),
            _event(2, OUT, datetime(2026, 3, 2, 10, 15, tzinfo=timezone.utc)),
        ]
        row = derive_timesheet(events, date(2026, 3, 2), UTC)
        self.assertAlmostEqual(row.hours_worked, 1.25)

    def test_derive_timesheets_groups_by_employee_and_day(self) -> None:
        events = [
            _event(1, IN, utc(2026, 3, 2, 9), employee_id=1),
            _event(2, IN, utc(2026, 3, 2, 10), employee_id=2),
            _event(3, OUT, utc(2026, 3, 2, 17), employee_id=1),
            _event(4, IN, utc(2026, 3, 3, 9), employee_id=1),
        ]
        rows = derive_timesheets(events, UTC)
        self.assertEqual(
            [(row.employee_profile_id, row.date, row.hours_worked) for row in rows],
            [(1, date(2026, 3, 2), 8.0), (2, date(2026, 3, 2), None), (1, date(2026, 3, 3), None)],
        )


class TimesheetApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.app, self.client = make_client()
        self.db = open_session(self.app)
        self.company, owner = seed_employer(self.db, company_name="Acme", email="owner@acme.test")
        self.headers = auth_headers(self.app, owner)
        self.alice = seed_employee(self.db, self.company, name="Alice", email="alice@acme.test")

    def tearDown(self) -> None:
        self.db.close()
        self.app.state.engine.dispose()

    def test_company_timesheets_for_range(self) -> None:
        seed_event(self.db, self.alice, IN, utc(2026, 3, 2, 9))
        seed_event(self.db, self.alice, OUT, utc(2026, 3, 2, 13))
        seed_event(self.db, self.alice, IN, utc(2026, 3, 3, 9))

        response = self.client.get(
            "/reports/timesheets",
            params={"startDate": "2026-03-02", "endDate": "2026-03-03"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        timesheets = response.json()["timesheets"]
        self.assertEqual(len(timesheets), 1)
        self.assertEqual(timesheets[0]["employeeName"], "Alice")
        self.assertEqual(timesheets[0]["date"], "2026-03-02")
        self.assertAlmostEqual(timesheets[0]["hoursWorked"], 4.0)

    def test_my_timesheets_resolves_profile_by_email(self) -> None:
        owner_profile = seed_employee(self.db, self.company, name="Owner", email="owner@acme.test")
        seed_event(self.db, owner_profile, IN, utc(2026, 3, 2, 8))
        seed_event(self.db, self.alice, IN, utc(2026, 3, 2, 9))

        response = self.client.get(
            "/timesheets/me",
            params={"startDate": "2026-03-01", "endDate": "2026-03-05"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["employeeProfileId"] for row in response.json()["timesheets"]], [owner_profile.id])


if __name__ == "__main__":
    unittest.main()
