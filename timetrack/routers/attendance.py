from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from timetrack.audit import audit_request
from timetrack.db import get_db
from timetrack.errors import bad_request
from timetrack.schemas import (
    AttendanceEventCreate,
    AttendanceEventRead,
    ClockRequest,
    ClockResponse,
    LastEventResponse,
)
from timetrack.security import Identity, require_identity
from timetrack.services.attendance import clock, last_event_for_user, record_for_user

router = APIRouter(tags=["attendance"])


def _require_company_id(identity: Identity) -> int:
    if identity.company_id is None:
        raise bad_request("No company found", code="NO_COMPANY")
    return identity.company_id


@router.post("/attendance/clock", response_model=ClockResponse, status_code=status.HTTP_201_CREATED)
def clock_endpoint(
    payload: ClockRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ClockResponse:
    event, employee = clock(db, payload)
    request.state.employee_id = employee.id
    request.state.event_id = event.id
    audit_request(
        db,
        request,
        action="ATTENDANCE_CLOCK",
        company_id=event.company_id,
        entity_type="attendance_event",
        entity_id=str(event.id),
        details={
            "event_type": event.event_type.value,
            "employee_profile_id": employee.id,
            "nfc_card_id": event.nfc_card_id,
        },
    )
    return ClockResponse(
        success=True,
        event_type=event.event_type,
        employee_name=employee.name,
        attendance_event=AttendanceEventRead.model_validate(event),
    )


@router.post("/attendance/events", response_model=AttendanceEventRead, status_code=status.HTTP_201_CREATED)
def record_event_endpoint(
    payload: AttendanceEventCreate,
    request: Request,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> AttendanceEventRead:
    event = record_for_user(db, user=identity.user, company_id=_require_company_id(identity), payload=payload)
    request.state.employee_id = event.employee_profile_id
    request.state.event_id = event.id
    audit_request(
        db,
        request,
        action="ATTENDANCE_EVENT_RECORDED",
        entity_type="attendance_event",
        entity_id=str(event.id),
        details={"event_type": event.event_type.value},
    )
    return AttendanceEventRead.model_validate(event)


@router.get("/attendance/last-event", response_model=LastEventResponse)
def last_event_endpoint(
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> LastEventResponse:
    event = last_event_for_user(db, user=identity.user, company_id=_require_company_id(identity))
    return LastEventResponse(event=AttendanceEventRead.model_validate(event) if event is not None else None)
