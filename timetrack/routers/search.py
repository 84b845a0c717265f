from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from timetrack.db import get_db
from timetrack.models import Role
from timetrack.schemas import SuggestionResponse
from timetrack.security import Identity, get_optional_identity
from timetrack.services.search import (
    normalize_query,
    search_attendance,
    search_companies,
    search_employees,
    search_nfc_cards,
    search_users,
)

router = APIRouter(tags=["search"])
logger = logging.getLogger("timetrack.search")


def _employer_company(identity: Identity | None) -> int | None:
    if identity is None or identity.role is not Role.EMPLOYER:
        return None
    return identity.company_id


def _is_admin(identity: Identity | None) -> bool:
    return identity is not None and identity.role is Role.ADMIN


def _empty(entity: str, reason: str) -> SuggestionResponse:
    logger.info("search_empty", extra={"entity": entity, "reason": reason})
    return SuggestionResponse(suggestions=[])


@router.get("/search/attendance", response_model=SuggestionResponse)
def search_attendance_endpoint(
    q: str | None = Query(default=None),
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> SuggestionResponse:
    company_id = _employer_company(identity)
    if company_id is None:
        return _empty("attendance", "unauthorized")
    query = normalize_query(q)
    if query is None:
        return SuggestionResponse()
    return SuggestionResponse(suggestions=search_attendance(db, company_id=company_id, query=query))


@router.get("/search/companies", response_model=SuggestionResponse)
def search_companies_endpoint(
    q: str | None = Query(default=None),
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> SuggestionResponse:
    if not _is_admin(identity):
        return _empty("companies", "unauthorized")
    query = normalize_query(q)
    if query is None:
        return SuggestionResponse()
    return SuggestionResponse(suggestions=search_companies(db, query=query))


@router.get("/search/employees", response_model=SuggestionResponse)
def search_employees_endpoint(
    q: str | None = Query(default=None),
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> SuggestionResponse:
    company_id = _employer_company(identity)
    if company_id is None:
        return _empty("employees", "unauthorized")
    query = normalize_query(q)
    if query is None:
        return SuggestionResponse()
    return SuggestionResponse(suggestions=search_employees(db, company_id=company_id, query=query))


@router.get("/search/nfc-cards", response_model=SuggestionResponse)
def search_nfc_cards_endpoint(
    q: str | None = Query(default=None),
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> SuggestionResponse:
    company_id = _employer_company(identity)
    if company_id is None:
        return _empty("nfc-cards", "unauthorized")
    query = normalize_query(q)
    if query is None:
        return SuggestionResponse()
    return SuggestionResponse(suggestions=search_nfc_cards(db, company_id=company_id, query=query))


@router.get("/search/users", response_model=SuggestionResponse)
def search_users_endpoint(
    q: str | None = Query(default=None),
    identity: Identity | None = Depends(get_optional_identity),
    db: Session = Depends(get_db),
) -> SuggestionResponse:
    if not _is_admin(identity):
        return _empty("users", "unauthorized")
    query = normalize_query(q)
    if query is None:
        return SuggestionResponse()
    return SuggestionResponse(suggestions=search_users(db, query=query))
