from __future__ import annotations

import re
import secrets
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timetrack.errors import ApiError, bad_request, conflict, not_found
from timetrack.models import Company, CompanyMembership, Role, User
from timetrack.schemas import CompanySettingsUpdate, OnboardingRequest, RegisterRequest
from timetrack.security import hash_password, verify_password
from timetrack.settings import is_valid_timezone

ONBOARDING_COMPLETE_STEP = 4
_PROFILE_FIELDS = ("phone", "website", "address", "industry", "company_size")


def slugify_company_name(name: str) -> str:
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


def _unique_slug(name: str) -> str:
    base = slugify_company_name(name) or "company"
    stamp = f"{int(datetime.now(timezone.utc).timestamp() * 1000)}{secrets.token_hex(2)}"
    return f"{base}-{stamp}"


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.scalar(select(User).where(func.lower(User.email) == email.strip().lower()))


def register_user(db: Session, payload: RegisterRequest, *, default_timezone: str = "UTC") -> User:
    if find_user_by_email(db, payload.email) is not None:
        raise conflict("User with this email already exists", code="EMAIL_TAKEN")

    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role,
        onboarding_step=0,
        onboarding_completed=False,
    )
    db.add(user)

    if payload.role is Role.EMPLOYER:
        company = Company(
            name=payload.company_name,
            slug=_unique_slug(payload.company_name),
            timezone=default_timezone,
        )
        db.add(company)
        db.flush()
        db.add(CompanyMembership(user_id=user.id, company_id=company.id, role=payload.role))

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict("User with this email already exists", code="EMAIL_TAKEN") from exc

    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = find_user_by_email(db, email)
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_company(db: Session, company_id: int) -> Company:
    company = db.get(Company, company_id)
    if company is None:
        raise not_found("Company not found")
    return company


def complete_onboarding(db: Session, *, user: User, company_id: int, payload: OnboardingRequest) -> User:
    if not is_valid_timezone(payload.timezone):
        raise bad_request("Invalid timezone")

    company = get_company(db, company_id)
    for field_name in _PROFILE_FIELDS:
        setattr(company, field_name, getattr(payload, field_name))
    company.timezone = payload.timezone

    is_complete = payload.step >= 2
    user.onboarding_completed = is_complete
    user.onboarding_step = ONBOARDING_COMPLETE_STEP if is_complete else payload.step
    db.commit()
    db.refresh(user)
    return user


def onboarding_progress(user: User, company: Company | None) -> dict[str, int | bool]:
    if user.onboarding_completed:
        percentage = 100
    else:
        filled = [getattr(company, field_name, None) for field_name in _PROFILE_FIELDS]
        filled.append(company is not None and company.timezone != "UTC")
        total_fields = len(_PROFILE_FIELDS) + 1
        percentage = round(sum(1 for value in filled if value) / total_fields * 100)
    return {
        "completed": user.onboarding_completed,
        "step": user.onboarding_step,
        "percentage": percentage,
    }


def update_company_settings(db: Session, *, company_id: int, payload: CompanySettingsUpdate) -> Company:
    company = get_company(db, company_id)
    company.invitation_message = payload.invitation_message
    db.commit()
    db.refresh(company)
    return company


def require_company(db: Session, company_id: int | None) -> Company:
    if company_id is None:
        raise ApiError(status_code=400, code="NO_COMPANY", message="No company found for your account")
    return get_company(db, company_id)
