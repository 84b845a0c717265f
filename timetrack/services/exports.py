from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from io import BytesIO, StringIO
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy.orm import Session

from timetrack.errors import bad_request
from timetrack.models import AttendanceEvent
from timetrack.services.timesheets import TimesheetRow, derive_timesheets, fetch_events
from timetrack.timeutil import as_utc


class ExportFormat(str, Enum):
    CSV = "CSV"
    EXCEL = "EXCEL"


class ReportType(str, Enum):
    ATTENDANCE = "ATTENDANCE"
    TIMESHEET = "TIMESHEET"


ATTENDANCE_HEADERS = [
    "Date",
    "Time",
    "Employee Name",
    "Employee Email",
    "Event Type",
    "Location Lat",
    "Location Lng",
    "Accuracy (meters)",
    "Address",
]

TIMESHEET_HEADERS = [
    "Date",
    "Employee Name",
    "Clock In",
    "Clock Out",
    "Hours Worked",
]

CONTENT_TYPES = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.EXCEL: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}
FILE_EXTENSIONS = {
    ExportFormat.CSV: "csv",
    ExportFormat.EXCEL: "xlsx",
}

HEADER_FILL = PatternFill(fill_type="solid", fgColor="0B4F73")
HEADER_FONT = Font(bold=True, color="FFFFFF")
THIN_SIDE = Side(style="thin", color="D5E2EC")
THIN_BORDER = Border(left=THIN_SIDE, right=THIN_SIDE, top=THIN_SIDE, bottom=THIN_SIDE)


@dataclass(frozen=True)
class ExportFilters:
    company_id: int
    start_date: date
    end_date: date
    export_format: ExportFormat
    report_type: ReportType
    employee_id: int | None = None


@dataclass(frozen=True)
class ExportFile:
    content: bytes
    content_type: str
    filename: str


def _parse_date(raw: str | None, label: str) -> date:
    if not raw:
        raise bad_request(f"{label} is required")
    try:
        return date.fromisoformat(raw.strip()[:10])
    except ValueError as exc:
        raise bad_request(f"Invalid {label.lower()}") from exc


def _parse_format(raw: str | None) -> ExportFormat:
    try:
        return ExportFormat((raw or ExportFormat.CSV.value).strip().upper())
    except ValueError as exc:
        raise bad_request("Unsupported format", code="UNSUPPORTED_FORMAT") from exc


def _parse_report_type(raw: str | None) -> ReportType:
    try:
        return ReportType((raw or ReportType.ATTENDANCE.value).strip().upper())
    except ValueError as exc:
        raise bad_request("Unsupported report type", code="UNSUPPORTED_REPORT_TYPE") from exc


def _parse_employee_id(raw: str | None) -> int | None:
    if raw is None or not raw.strip() or raw.strip().lower() == "all":
        return None
    if not raw.strip().isdigit():
        raise bad_request("Invalid employee id")
    return int(raw.strip())


def build_filters(company_id: int, params: Mapping[str, str | None]) -> ExportFilters:
    """Turn raw query parameters into validated export criteria."""
    start_date = _parse_date(params.get("startDate"), "Start date")
    end_date = _parse_date(params.get("endDate"), "End date")
    if end_date < start_date:
        raise bad_request("End date must be on or after start date", code="INVALID_DATE_RANGE")
    return ExportFilters(
        company_id=company_id,
        start_date=start_date,
        end_date=end_date,
        export_format=_parse_format(params.get("format")),
        report_type=_parse_report_type(params.get("reportType")),
        employee_id=_parse_employee_id(params.get("employeeId")),
    )


def export_filename(filters: ExportFilters) -> str:
    extension = FILE_EXTENSIONS[filters.export_format]
    return f"report-{filters.start_date.isoformat()}-{filters.end_date.isoformat()}.{extension}"


def _format_number(value: float | None) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return format(Decimal(repr(float(value))), "f")


def attendance_rows(events: list[AttendanceEvent], tz: ZoneInfo) -> list[list[Any]]:
    rows: list[list[Any]] = []
    for event in events:
        local_ts = as_utc(event.captured_at).astimezone(tz)
        employee = event.employee
        rows.append(
            [
                local_ts.date().isoformat(),
                local_ts.strftime("%H:%M:%S"),
                employee.name if employee is not None else "",
                (employee.email or "") if employee is not None else "",
                event.event_type.value,
                _format_number(event.location_lat),
                _format_number(event.location_lng),
                _format_number(event.accuracy_meters),
                event.address or "",
            ]
        )
    return rows


def _local_time(value: datetime | None, tz: ZoneInfo) -> str:
    if value is None:
        return ""
    return as_utc(value).astimezone(tz).strftime("%H:%M:%S")


def timesheet_rows(timesheets: list[TimesheetRow], tz: ZoneInfo) -> list[list[Any]]:
    return [
        [
            row.date.isoformat(),
            row.employee_name,
            _local_time(row.clock_in_at, tz),
            _local_time(row.clock_out_at, tz),
            "" if row.hours_worked is None else f"{row.hours_worked:.2f}",
        ]
        for row in timesheets
    ]


def build_csv(headers: list[str], rows: list[list[Any]]) -> bytes:
    stream = StringIO()
    stream.write(",".join(headers) + "\n")
    writer = csv.writer(stream, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerows(rows)
    return stream.getvalue().encode("utf-8")


def _style_header(ws: Worksheet, row: int = 1) -> None:
    for cell in ws[row]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = THIN_BORDER


def _auto_width(ws: Worksheet) -> None:
    for column_cells in ws.iter_cols(min_row=1, max_row=ws.max_row, min_col=1, max_col=ws.max_column):
        col_letter = get_column_letter(column_cells[0].column)
        max_len = max(len("" if cell.value is None else str(cell.value)) for cell in column_cells)
        ws.column_dimensions[col_letter].width = min(max_len + 2, 45)


def build_xlsx(headers: list[str], rows: list[list[Any]], *, title: str) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = title
    ws.append(headers)
    for row in rows:
        ws.append(row)
    _style_header(ws)
    ws.freeze_panes = "A2"
    _auto_width(ws)

    stream = BytesIO()
    wb.save(stream)
    return stream.getvalue()


def render_report(filters: ExportFilters, headers: list[str], rows: list[list[Any]]) -> ExportFile:
    if filters.export_format is ExportFormat.EXCEL:
        title = "Timesheets" if filters.report_type is ReportType.TIMESHEET else "Attendance"
        content = build_xlsx(headers, rows, title=title)
    else:
        content = build_csv(headers, rows)
    return ExportFile(
        content=content,
        content_type=CONTENT_TYPES[filters.export_format],
        filename=export_filename(filters),
    )


def export_report(db: Session, filters: ExportFilters, tz: ZoneInfo) -> ExportFile:
    events = fetch_events(
        db,
        company_id=filters.company_id,
        start_date=filters.start_date,
        end_date=filters.end_date,
        tz=tz,
        employee_id=filters.employee_id,
    )
    if filters.report_type is ReportType.TIMESHEET:
        return render_report(filters, TIMESHEET_HEADERS, timesheet_rows(derive_timesheets(events, tz), tz))
    return render_report(filters, ATTENDANCE_HEADERS, attendance_rows(events, tz))
