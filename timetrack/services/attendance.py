from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from timetrack.errors import bad_request
from timetrack.models import AttendanceEvent, AttendanceEventType, EmployeeProfile, NFCCard, User
from timetrack.schemas import AttendanceEventCreate, ClockRequest
from timetrack.services.nfc import normalize_uid
from timetrack.timeutil import as_utc

EMPLOYEE_UNRESOLVED_MESSAGE = "Employee not found or inactive"


@dataclass
class ClockSubject:
    employee: EmployeeProfile
    card: NFCCard | None


def record_event(
    db: Session,
    *,
    employee: EmployeeProfile,
    event_type: AttendanceEventType,
    location_lat: float,
    location_lng: float,
    accuracy_meters: float,
    address: str | None = None,
    device_info: str | None = None,
    nfc_card: NFCCard | None = None,
    captured_at: datetime | None = None,
) -> AttendanceEvent:
    event = AttendanceEvent(
        employee_profile_id=employee.id,
        company_id=employee.company_id,
        nfc_card_id=nfc_card.id if nfc_card is not None else None,
        event_type=event_type,
        captured_at=as_utc(captured_at),
        location_lat=location_lat,
        location_lng=location_lng,
        accuracy_meters=accuracy_meters,
        address=address,
        device_info=device_info,
    )
    db.add(event)
    if nfc_card is not None:
        nfc_card.last_used_at = event.captured_at
    db.commit()
    db.refresh(event)
    return event


def resolve_clock_subject(db: Session, identifier: str | None) -> ClockSubject:
    """Resolve a tapped card UID, or failing that an employee code, to an active employee."""
    if not identifier or not identifier.strip():
        raise bad_request("NFC card ID or employee code is required")

    card = db.scalar(
        select(NFCCard).where(
            NFCCard.uid == normalize_uid(identifier),
            NFCCard.is_active.is_(True),
        )
    )
    if card is not None:
        employee = card.employee
        if employee is None or not employee.is_active:
            raise bad_request(EMPLOYEE_UNRESOLVED_MESSAGE, code="EMPLOYEE_NOT_FOUND")
        return ClockSubject(employee=employee, card=card)

    employee = db.scalar(
        select(EmployeeProfile).where(
            EmployeeProfile.employee_code == identifier.strip(),
            EmployeeProfile.is_active.is_(True),
        )
    )
    if employee is None:
        raise bad_request(EMPLOYEE_UNRESOLVED_MESSAGE, code="EMPLOYEE_NOT_FOUND")
    return ClockSubject(employee=employee, card=None)


def latest_event_for_employee(db: Session, *, employee_id: int) -> AttendanceEvent | None:
    return db.scalar(
        select(AttendanceEvent)
        .where(AttendanceEvent.employee_profile_id == employee_id)
        .order_by(AttendanceEvent.captured_at.desc(), AttendanceEvent.id.desc())
        .limit(1)
    )


def next_event_type(last_event: AttendanceEvent | None) -> AttendanceEventType:
    if last_event is not None and last_event.event_type is AttendanceEventType.CLOCK_IN:
        return AttendanceEventType.CLOCK_OUT
    return AttendanceEventType.CLOCK_IN


def clock(db: Session, payload: ClockRequest, *, now: datetime | None = None) -> tuple[AttendanceEvent, EmployeeProfile]:
    subject = resolve_clock_subject(db, payload.nfc_card_id)
    event_type = payload.event_type
    if event_type is None:
        event_type = next_event_type(latest_event_for_employee(db, employee_id=subject.employee.id))

    event = record_event(
        db,
        employee=subject.employee,
        event_type=event_type,
        location_lat=payload.location_lat,
        location_lng=payload.location_lng,
        accuracy_meters=payload.accuracy_meters,
        address=payload.address,
        device_info=payload.device_info,
        nfc_card=subject.card,
        captured_at=now,
    )
    return event, subject.employee


def employee_for_user(db: Session, *, user: User, company_id: int) -> EmployeeProfile | None:
    return db.scalar(
        select(EmployeeProfile).where(
            EmployeeProfile.company_id == company_id,
            func.lower(EmployeeProfile.email) == user.email.lower(),
            EmployeeProfile.is_active.is_(True),
        )
    )


def record_for_user(
    db: Session,
    *,
    user: User,
    company_id: int,
    payload: AttendanceEventCreate,
    now: datetime | None = None,
) -> AttendanceEvent:
    employee = employee_for_user(db, user=user, company_id=company_id)
    if employee is None:
        raise bad_request(EMPLOYEE_UNRESOLVED_MESSAGE, code="EMPLOYEE_NOT_FOUND")
    return record_event(
        db,
        employee=employee,
        event_type=payload.event_type,
        location_lat=payload.location_lat,
        location_lng=payload.location_lng,
        accuracy_meters=payload.accuracy_meters,
        address=payload.address,
        captured_at=now,
    )


def last_event_for_user(db: Session, *, user: User, company_id: int) -> AttendanceEvent | None:
    employee = employee_for_user(db, user=user, company_id=company_id)
    if employee is None:
        return None
    return latest_event_for_employee(db, employee_id=employee.id)
