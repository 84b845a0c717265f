from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from timetrack.db import get_db
from timetrack.errors import not_found
from timetrack.models import Company, EmployeeProfile, NFCCard, Role, User
from timetrack.schemas import AdminCompanyRead, AdminUserRead
from timetrack.security import require_role

router = APIRouter(tags=["admin"], dependencies=[Depends(require_role(Role.ADMIN))])


def _count_by_company(db: Session, column, company_ids: list[int]) -> dict[int, int]:
    if not company_ids:
        return {}
    rows = db.execute(
        select(column, func.count()).where(column.in_(company_ids)).group_by(column)
    ).all()
    return {company_id: count for company_id, count in rows}


def _company_reads(db: Session, companies: list[Company]) -> list[AdminCompanyRead]:
    company_ids = [company.id for company in companies]
    employee_counts = _count_by_company(db, EmployeeProfile.company_id, company_ids)
    card_counts = _count_by_company(db, NFCCard.company_id, company_ids)
    return [
        AdminCompanyRead(
            id=company.id,
            name=company.name,
            slug=company.slug,
            timezone=company.timezone,
            created_at=company.created_at,
            employee_count=employee_counts.get(company.id, 0),
            card_count=card_counts.get(company.id, 0),
        )
        for company in companies
    ]


@router.get("/admin/companies", response_model=list[AdminCompanyRead])
def list_companies(db: Session = Depends(get_db)) -> list[AdminCompanyRead]:
    companies = list(db.scalars(select(Company).order_by(Company.created_at.desc(), Company.id.desc())).all())
    return _company_reads(db, companies)


@router.get("/admin/companies/{company_id}", response_model=AdminCompanyRead)
def get_company(company_id: int, db: Session = Depends(get_db)) -> AdminCompanyRead:
    company = db.get(Company, company_id)
    if company is None:
        raise not_found("Company not found")
    return _company_reads(db, [company])[0]


@router.get("/admin/users", response_model=list[AdminUserRead])
def list_users(db: Session = Depends(get_db)) -> list[AdminUserRead]:
    users = db.scalars(
        select(User).options(selectinload(User.memberships)).order_by(User.created_at.desc(), User.id.desc())
    ).all()
    return [
        AdminUserRead(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            company_ids=[membership.company_id for membership in user.memberships],
            created_at=user.created_at,
        )
        for user in users
    ]
