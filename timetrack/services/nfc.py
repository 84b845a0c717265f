from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from timetrack.errors import bad_request, conflict, not_found
from timetrack.models import EmployeeProfile, NFCCard

CARD_TAKEN_MESSAGE = "This NFC card is already registered"


def normalize_uid(raw_uid: str) -> str:
    uid = raw_uid.strip().upper()
    if not uid:
        raise bad_request("UID is required")
    return uid


def register_card(
    db: Session,
    *,
    company_id: int,
    uid: str,
    employee_profile_id: int,
    registered_by_user_id: int | None,
) -> NFCCard:
    normalized = normalize_uid(uid)

    # A UID is reserved globally, whichever tenant holds it and whether or not it is active.
    if db.scalar(select(NFCCard.id).where(NFCCard.uid == normalized)) is not None:
        raise conflict(CARD_TAKEN_MESSAGE, code="CARD_TAKEN")

    employee = db.scalar(
        select(EmployeeProfile).where(
            EmployeeProfile.id == employee_profile_id,
            EmployeeProfile.company_id == company_id,
            EmployeeProfile.is_active.is_(True),
        )
    )
    if employee is None:
        raise not_found("Employee not found or is not active", code="EMPLOYEE_NOT_FOUND")

    card = NFCCard(
        uid=normalized,
        employee_profile_id=employee.id,
        company_id=company_id,
        is_active=True,
        registered_by_user_id=registered_by_user_id,
    )
    db.add(card)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict(CARD_TAKEN_MESSAGE, code="CARD_TAKEN") from exc
    db.refresh(card)
    return card


def list_cards(db: Session, *, company_id: int) -> list[NFCCard]:
    return list(
        db.scalars(
            select(NFCCard)
            .options(selectinload(NFCCard.employee))
            .where(NFCCard.company_id == company_id)
            .order_by(NFCCard.registered_at.desc(), NFCCard.id.desc())
        ).all()
    )


def deactivate_card(db: Session, *, company_id: int, card_id: int) -> NFCCard:
    card = db.scalar(
        select(NFCCard)
        .options(selectinload(NFCCard.employee))
        .where(NFCCard.id == card_id, NFCCard.company_id == company_id)
    )
    if card is None:
        raise not_found("NFC card not found", code="CARD_NOT_FOUND")
    card.is_active = False
    db.commit()
    db.refresh(card)
    return card


def card_payload(card: NFCCard) -> dict:
    return {
        "id": card.id,
        "uid": card.uid,
        "employee_profile_id": card.employee_profile_id,
        "employee_name": card.employee.name if card.employee is not None else None,
        "company_id": card.company_id,
        "is_active": card.is_active,
        "registered_at": card.registered_at,
        "last_used_at": card.last_used_at,
    }
