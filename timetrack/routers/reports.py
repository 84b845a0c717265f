from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from timetrack.audit import audit_request
from timetrack.db import get_app_settings, get_db
from timetrack.errors import bad_request
from timetrack.schemas import TimesheetListResponse, TimesheetRead
from timetrack.security import EmployerContext, Identity, require_employer_company, require_identity
from timetrack.services.attendance import employee_for_user
from timetrack.services.exports import build_filters, export_report
from timetrack.services.identity import require_company
from timetrack.services.timesheets import TimesheetRow, company_timesheets
from timetrack.settings import Settings, resolve_timezone

router = APIRouter(tags=["reports"])


def _timesheet_response(rows: list[TimesheetRow]) -> TimesheetListResponse:
    return TimesheetListResponse(timesheets=[TimesheetRead.model_validate(row) for row in rows])


@router.get("/reports/export")
def export_report_endpoint(
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    filters = build_filters(context.company_id, request.query_params)
    company = require_company(db, context.company_id)
    tz = resolve_timezone(company.timezone, fallback=settings.default_timezone)
    export_file = export_report(db, filters, tz)

    audit_request(
        db,
        request,
        action="REPORT_EXPORTED",
        entity_type="report",
        details={
            "start_date": filters.start_date.isoformat(),
            "end_date": filters.end_date.isoformat(),
            "format": filters.export_format.value,
            "report_type": filters.report_type.value,
            "employee_id": filters.employee_id,
        },
    )
    return Response(
        content=export_file.content,
        media_type=export_file.content_type,
        headers={"Content-Disposition": f'attachment; filename="{export_file.filename}"'},
    )


@router.get("/reports/timesheets", response_model=TimesheetListResponse)
def company_timesheets_endpoint(
    start_date: date = Query(alias="startDate"),
    end_date: date = Query(alias="endDate"),
    employee_id: int | None = Query(default=None, alias="employeeId"),
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> TimesheetListResponse:
    company = require_company(db, context.company_id)
    rows = company_timesheets(
        db,
        company_id=context.company_id,
        start_date=start_date,
        end_date=end_date,
        tz=resolve_timezone(company.timezone, fallback=settings.default_timezone),
        employee_id=employee_id,
    )
    return _timesheet_response(rows)


@router.get("/timesheets/me", response_model=TimesheetListResponse)
def my_timesheets_endpoint(
    start_date: date = Query(alias="startDate"),
    end_date: date = Query(alias="endDate"),
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> TimesheetListResponse:
    if identity.company_id is None:
        raise bad_request("No company found", code="NO_COMPANY")
    employee = employee_for_user(db, user=identity.user, company_id=identity.company_id)
    if employee is None:
        return TimesheetListResponse(timesheets=[])

    company = require_company(db, identity.company_id)
    rows = company_timesheets(
        db,
        company_id=identity.company_id,
        start_date=start_date,
        end_date=end_date,
        tz=resolve_timezone(company.timezone, fallback=settings.default_timezone),
        employee_id=employee.id,
    )
    return _timesheet_response(rows)
