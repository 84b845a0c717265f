"""Derive per-day timesheet rows from raw clock events.

Timesheets are never stored; they are recomputed from AttendanceEvent
pairs whenever a report needs them.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from timetrack.errors import bad_request
from timetrack.models import AttendanceEvent, AttendanceEventType
from timetrack.timeutil import as_utc, local_day, range_bounds_utc


@dataclass(frozen=True)
class TimesheetRow:
    employee_profile_id: int
    employee_name: str
    date: date
    clock_in_id: int
    clock_in_at: datetime
    clock_out_id: int | None
    clock_out_at: datetime | None
    hours_worked: float | None


def _sort_key(event: AttendanceEvent) -> tuple[datetime, int]:
    return as_utc(event.captured_at), event.id or 0


def derive_timesheet(
    events: Iterable[AttendanceEvent],
    day: date,
    tz: ZoneInfo,
    *,
    employee_name: str = "",
) -> TimesheetRow | None:
    """Pair the first CLOCK_IN of ``day`` with the first CLOCK_OUT after it.

    ``events`` must belong to a single employee. Returns None when the day has
    no CLOCK_IN.
    """
    day_events = sorted((event for event in events if local_day(event.captured_at, tz) == day), key=_sort_key)

    clock_in = next((event for event in day_events if event.event_type is AttendanceEventType.CLOCK_IN), None)
    if clock_in is None:
        return None

    clock_in_at = as_utc(clock_in.captured_at)
    clock_out = next(
        (
            event
            for event in day_events
            if event.event_type is AttendanceEventType.CLOCK_OUT and _sort_key(event) > _sort_key(clock_in)
        ),
        None,
    )

    clock_out_at = as_utc(clock_out.captured_at) if clock_out is not None else None
    hours_worked = None
    if clock_out_at is not None:
        hours_worked = (clock_out_at - clock_in_at).total_seconds() / 3600

    return TimesheetRow(
        employee_profile_id=clock_in.employee_profile_id,
        employee_name=employee_name,
        date=day,
        clock_in_id=clock_in.id,
        clock_in_at=clock_in_at,
        clock_out_id=clock_out.id if clock_out is not None else None,
        clock_out_at=clock_out_at,
        hours_worked=hours_worked,
    )


def derive_timesheets(events: Iterable[AttendanceEvent], tz: ZoneInfo) -> list[TimesheetRow]:
    grouped: dict[tuple[int, date], list[AttendanceEvent]] = defaultdict(list)
    names: dict[int, str] = {}
    for event in events:
        grouped[(event.employee_profile_id, local_day(event.captured_at, tz))].append(event)
        if event.employee is not None:
            names[event.employee_profile_id] = event.employee.name

    rows: list[TimesheetRow] = []
    for (employee_id, day), day_events in sorted(grouped.items(), key=lambda item: (item[0][1], item[0][0])):
        row = derive_timesheet(day_events, day, tz, employee_name=names.get(employee_id, ""))
        if row is not None:
            rows.append(row)
    return rows


def fetch_events(
    db: Session,
    *,
    company_id: int,
    start_date: date,
    end_date: date,
    tz: ZoneInfo,
    employee_id: int | None = None,
) -> list[AttendanceEvent]:
    """Company events with captured_at in [start_date, end_date), local midnights."""
    if end_date < start_date:
        raise bad_request("End date must be on or after start date", code="INVALID_DATE_RANGE")

    start_utc, end_utc = range_bounds_utc(start_date, end_date, tz)
    stmt = (
        select(AttendanceEvent)
        .options(selectinload(AttendanceEvent.employee))
        .where(
            AttendanceEvent.company_id == company_id,
            AttendanceEvent.captured_at >= start_utc,
            AttendanceEvent.captured_at < end_utc,
        )
        .order_by(AttendanceEvent.captured_at.asc(), AttendanceEvent.id.asc())
    )
    if employee_id is not None:
        stmt = stmt.where(AttendanceEvent.employee_profile_id == employee_id)
    return list(db.scalars(stmt).all())


def company_timesheets(
    db: Session,
    *,
    company_id: int,
    start_date: date,
    end_date: date,
    tz: ZoneInfo,
    employee_id: int | None = None,
) -> list[TimesheetRow]:
    events = fetch_events(
        db,
        company_id=company_id,
        start_date=start_date,
        end_date=end_date,
        tz=tz,
        employee_id=employee_id,
    )
    return derive_timesheets(events, tz)
