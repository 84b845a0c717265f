"""Typeahead lookups.

Every search returns plain ``{id, text, type}`` dicts; callers that may not
see an entity get an empty list rather than an error.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from timetrack.models import AttendanceEvent, Company, EmployeeProfile, NFCCard, User

MIN_QUERY_LENGTH = 2
SUGGESTION_LIMIT = 5
ATTENDANCE_EVENT_SCAN_LIMIT = 20


def normalize_query(raw: str | None) -> str | None:
    query = (raw or "").strip().lower()
    if len(query) < MIN_QUERY_LENGTH:
        return None
    return query


def _matches(query: str, *columns: Any):
    return or_(*(func.lower(column).contains(query, autoescape=True) for column in columns))


def _suggestion(entity_id: int, text: str, entity_type: str) -> dict[str, Any]:
    return {"id": entity_id, "text": text, "type": entity_type}


def _unique_by_id(suggestions: list[dict[str, Any]], limit: int) -> list[dict[str, Any]]:
    seen: set[int] = set()
    result: list[dict[str, Any]] = []
    for item in suggestions:
        if item["id"] in seen:
            continue
        seen.add(item["id"])
        result.append(item)
        if len(result) >= limit:
            break
    return result


def search_attendance(db: Session, *, company_id: int, query: str) -> list[dict[str, Any]]:
    """Employees with recent events, deduplicated from the newest matching events."""
    events = db.scalars(
        select(AttendanceEvent)
        .join(EmployeeProfile, AttendanceEvent.employee_profile_id == EmployeeProfile.id)
        .options(selectinload(AttendanceEvent.employee))
        .where(
            AttendanceEvent.company_id == company_id,
            _matches(query, EmployeeProfile.name, EmployeeProfile.email, EmployeeProfile.employee_code),
        )
        .order_by(AttendanceEvent.captured_at.desc(), AttendanceEvent.id.desc())
        .limit(ATTENDANCE_EVENT_SCAN_LIMIT)
    ).all()

    suggestions = []
    for event in events:
        employee = event.employee
        text = employee.name or employee.email or employee.employee_code or "Unknown Employee"
        suggestions.append(_suggestion(employee.id, text, "Attendance"))
    return _unique_by_id(suggestions, SUGGESTION_LIMIT)


def search_companies(db: Session, *, query: str) -> list[dict[str, Any]]:
    companies = db.scalars(
        select(Company)
        .where(_matches(query, Company.name, Company.slug))
        .order_by(Company.name.asc(), Company.id.asc())
        .limit(SUGGESTION_LIMIT)
    ).all()
    return _unique_by_id([_suggestion(company.id, company.name, "Company") for company in companies], SUGGESTION_LIMIT)


def search_employees(db: Session, *, company_id: int, query: str) -> list[dict[str, Any]]:
    employees = db.scalars(
        select(EmployeeProfile)
        .where(
            EmployeeProfile.company_id == company_id,
            _matches(query, EmployeeProfile.name, EmployeeProfile.email),
        )
        .order_by(EmployeeProfile.name.asc(), EmployeeProfile.id.asc())
        .limit(SUGGESTION_LIMIT)
    ).all()
    return _unique_by_id(
        [_suggestion(employee.id, employee.name or employee.email or "", "Employee") for employee in employees],
        SUGGESTION_LIMIT,
    )


def search_nfc_cards(db: Session, *, company_id: int, query: str) -> list[dict[str, Any]]:
    cards = db.scalars(
        select(NFCCard)
        .join(EmployeeProfile, NFCCard.employee_profile_id == EmployeeProfile.id)
        .options(selectinload(NFCCard.employee))
        .where(
            NFCCard.company_id == company_id,
            _matches(query, NFCCard.uid, EmployeeProfile.name, EmployeeProfile.email),
        )
        .order_by(NFCCard.registered_at.desc(), NFCCard.id.desc())
        .limit(SUGGESTION_LIMIT)
    ).all()
    suggestions = []
    for card in cards:
        owner = card.employee.name or card.employee.email or "Unknown"
        suggestions.append(_suggestion(card.id, f"{owner} ({card.uid})", "NFC Card"))
    return _unique_by_id(suggestions, SUGGESTION_LIMIT)


def search_users(db: Session, *, query: str) -> list[dict[str, Any]]:
    users = db.scalars(
        select(User)
        .where(_matches(query, User.name, User.email))
        .order_by(User.email.asc(), User.id.asc())
        .limit(SUGGESTION_LIMIT)
    ).all()
    return _unique_by_id([_suggestion(user.id, user.name or user.email, user.role.value) for user in users], SUGGESTION_LIMIT)
