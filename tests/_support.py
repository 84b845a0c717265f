from __future__ import annotations

from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from timetrack.main import create_app
from timetrack.models import (
    AttendanceEvent,
    AttendanceEventType,
    Company,
    CompanyMembership,
    EmployeeProfile,
    NFCCard,
    Role,
    User,
)
from timetrack.security import create_access_token, hash_password
from timetrack.settings import Settings

TEST_PASSWORD = "Str0ng!Pass"
_PASSWORD_HASH: str | None = None


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite+pysqlite:///:memory:",
        "jwt_secret": "test-secret",
        "auto_create_schema": True,
        "public_base_url": "https://timetrack.test",
    }
    values.update(overrides)
    return Settings(**values)


def make_client(**overrides) -> tuple[FastAPI, TestClient]:
    app = create_app(make_settings(**overrides))
    return app, TestClient(app)


def open_session(app: FastAPI) -> Session:
    return app.state.session_factory()


def _password_hash() -> str:
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(TEST_PASSWORD)
    return _PASSWORD_HASH


def seed_user(
    db: Session,
    *,
    email: str,
    role: Role = Role.EMPLOYER,
    name: str = "Test User",
    company: Company | None = None,
) -> User:
    user = User(name=name, email=email, password_hash=_password_hash(), role=role)
    db.add(user)
    db.flush()
    if company is not None:
        db.add(CompanyMembership(user_id=user.id, company_id=company.id, role=role))
    db.commit()
    db.refresh(user)
    return user


def seed_company(db: Session, name: str, *, timezone_name: str = "UTC") -> Company:
    company = Company(name=name, slug=name.lower().replace(" ", "-"), timezone=timezone_name)
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def seed_employer(db: Session, *, company_name: str, email: str) -> tuple[Company, User]:
    company = seed_company(db, company_name)
    user = seed_user(db, email=email, company=company)
    return company, user


def seed_employee(
    db: Session,
    company: Company,
    *,
    name: str,
    email: str | None = None,
    employee_code: str | None = None,
    is_active: bool = True,
) -> EmployeeProfile:
    employee = EmployeeProfile(
        company_id=company.id,
        name=name,
        email=email,
        employee_code=employee_code,
        is_active=is_active,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def seed_card(db: Session, employee: EmployeeProfile, uid: str, *, is_active: bool = True) -> NFCCard:
    card = NFCCard(uid=uid, employee_profile_id=employee.id, company_id=employee.company_id, is_active=is_active)
    db.add(card)
    db.commit()
    db.refresh(card)
    return card


def seed_event(
    db: Session,
    employee: EmployeeProfile,
    event_type: AttendanceEventType,
    captured_at: datetime,
    *,
    address: str | None = None,
) -> AttendanceEvent:
    event = AttendanceEvent(
        employee_profile_id=employee.id,
        company_id=employee.company_id,
        event_type=event_type,
        captured_at=captured_at,
        location_lat=40.7128,
        location_lng=-74.006,
        accuracy_meters=12.5,
        address=address,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def auth_headers(app: FastAPI, user: User, company_id: int | None = None) -> dict[str, str]:
    token, _ = create_access_token(
        app.state.settings,
        user_id=user.id,
        role=user.role,
        company_id=company_id,
    )
    return {"Authorization": f"Bearer {token}"}


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
