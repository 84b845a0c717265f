from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from timetrack.audit import audit_request
from timetrack.db import get_db
from timetrack.schemas import NFCCardRead, NFCCardRegisterRequest
from timetrack.security import EmployerContext, require_employer_company
from timetrack.services.nfc import card_payload, deactivate_card, list_cards, register_card

router = APIRouter(tags=["nfc"])


@router.post("/nfc/register", response_model=NFCCardRead, status_code=status.HTTP_201_CREATED)
def register_card_endpoint(
    payload: NFCCardRegisterRequest,
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> NFCCardRead:
    card = register_card(
        db,
        company_id=context.company_id,
        uid=payload.uid,
        employee_profile_id=payload.employee_profile_id,
        registered_by_user_id=context.identity.user_id,
    )
    audit_request(
        db,
        request,
        action="NFC_CARD_REGISTERED",
        entity_type="nfc_card",
        entity_id=str(card.id),
        details={"uid": card.uid, "employee_profile_id": card.employee_profile_id},
    )
    return NFCCardRead(**card_payload(card))


@router.get("/nfc/cards", response_model=list[NFCCardRead])
def list_cards_endpoint(
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> list[NFCCardRead]:
    return [NFCCardRead(**card_payload(card)) for card in list_cards(db, company_id=context.company_id)]


@router.post("/nfc/cards/{card_id}/deactivate", response_model=NFCCardRead)
def deactivate_card_endpoint(
    card_id: int,
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> NFCCardRead:
    card = deactivate_card(db, company_id=context.company_id, card_id=card_id)
    audit_request(db, request, action="NFC_CARD_DEACTIVATED", entity_type="nfc_card", entity_id=str(card.id))
    return NFCCardRead(**card_payload(card))
