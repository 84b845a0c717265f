from __future__ import annotations

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timetrack.errors import conflict, not_found
from timetrack.models import EmployeeProfile, NFCCard
from timetrack.schemas import EmployeeCreate, EmployeeUpdate

EMPLOYEE_EXISTS_MESSAGE = "Employee already exists in your company"
EMPLOYEE_CODE_TAKEN_MESSAGE = "Employee ID already exists. Please use a different ID."


def find_company_member(
    db: Session,
    *,
    company_id: int,
    email: str | None,
    employee_code: str | None,
    exclude_id: int | None = None,
) -> EmployeeProfile | None:
    """Return a profile in the company that already uses the email or employee code."""
    matchers = []
    if email:
        matchers.append(EmployeeProfile.email == email)
    if employee_code:
        matchers.append(EmployeeProfile.employee_code == employee_code)
    if not matchers:
        return None

    stmt = select(EmployeeProfile).where(EmployeeProfile.company_id == company_id, or_(*matchers))
    if exclude_id is not None:
        stmt = stmt.where(EmployeeProfile.id != exclude_id)
    return db.scalar(stmt.limit(1))


def find_by_employee_code(db: Session, employee_code: str) -> EmployeeProfile | None:
    return db.scalar(select(EmployeeProfile).where(EmployeeProfile.employee_code == employee_code))


def ensure_can_add_employee(db: Session, *, company_id: int, email: str, employee_code: str | None) -> None:
    if find_company_member(db, company_id=company_id, email=email, employee_code=employee_code) is not None:
        raise conflict(EMPLOYEE_EXISTS_MESSAGE, code="EMPLOYEE_EXISTS")
    if employee_code and find_by_employee_code(db, employee_code) is not None:
        raise conflict(EMPLOYEE_CODE_TAKEN_MESSAGE, code="EMPLOYEE_CODE_TAKEN")


def create_employee(db: Session, *, company_id: int, payload: EmployeeCreate) -> EmployeeProfile:
    ensure_can_add_employee(
        db,
        company_id=company_id,
        email=payload.email,
        employee_code=payload.employee_code,
    )
    employee = EmployeeProfile(
        company_id=company_id,
        name=payload.name,
        email=payload.email,
        employee_code=payload.employee_code,
        phone=payload.phone,
        address=payload.address,
        is_active=True,
    )
    db.add(employee)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict(EMPLOYEE_EXISTS_MESSAGE, code="EMPLOYEE_EXISTS") from exc
    db.refresh(employee)
    return employee


def list_active_employees(db: Session, *, company_id: int) -> list[EmployeeProfile]:
    return list(
        db.scalars(
            select(EmployeeProfile)
            .where(EmployeeProfile.company_id == company_id, EmployeeProfile.is_active.is_(True))
            .order_by(EmployeeProfile.created_at.desc(), EmployeeProfile.id.desc())
        ).all()
    )


def get_company_employee(db: Session, *, company_id: int, employee_id: int) -> EmployeeProfile:
    employee = db.scalar(
        select(EmployeeProfile).where(
            EmployeeProfile.id == employee_id,
            EmployeeProfile.company_id == company_id,
        )
    )
    if employee is None:
        raise not_found("Employee not found", code="EMPLOYEE_NOT_FOUND")
    return employee


def update_employee(
    db: Session,
    *,
    company_id: int,
    employee_id: int,
    payload: EmployeeUpdate,
) -> EmployeeProfile:
    employee = get_company_employee(db, company_id=company_id, employee_id=employee_id)

    if payload.email and find_company_member(
        db,
        company_id=company_id,
        email=payload.email,
        employee_code=None,
        exclude_id=employee.id,
    ):
        raise conflict("Another employee already uses this email", code="EMPLOYEE_EMAIL_TAKEN")

    if payload.employee_code:
        duplicate = find_by_employee_code(db, payload.employee_code)
        if duplicate is not None and duplicate.id != employee.id:
            raise conflict(EMPLOYEE_CODE_TAKEN_MESSAGE, code="EMPLOYEE_CODE_TAKEN")

    employee.name = payload.name
    employee.email = payload.email
    employee.employee_code = payload.employee_code
    employee.phone = payload.phone
    employee.address = payload.address
    employee.salary_rate = payload.salary_rate
    employee.employment_start_date = payload.employment_start_date
    if payload.is_active is not None:
        employee.is_active = payload.is_active

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict(EMPLOYEE_CODE_TAKEN_MESSAGE, code="EMPLOYEE_CODE_TAKEN") from exc
    db.refresh(employee)
    return employee


def set_employee_active(db: Session, *, company_id: int, employee_id: int, is_active: bool) -> EmployeeProfile:
    employee = get_company_employee(db, company_id=company_id, employee_id=employee_id)
    employee.is_active = is_active
    db.commit()
    db.refresh(employee)
    return employee


def delete_employee(db: Session, *, company_id: int, employee_id: int) -> None:
    employee = get_company_employee(db, company_id=company_id, employee_id=employee_id)
    db.execute(delete(NFCCard).where(NFCCard.employee_profile_id == employee.id))
    db.delete(employee)
    db.commit()
