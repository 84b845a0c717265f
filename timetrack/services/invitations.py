"""Invitation lifecycle: PENDING -> ACCEPTED | EXPIRED.

Expiry is applied lazily: an invitation past ``expires_at`` flips to
EXPIRED the first time someone validates or tries to accept it.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from timetrack.errors import bad_request, conflict, expired, not_found
from timetrack.models import Company, EmployeeProfile, Invitation, InvitationStatus, User
from timetrack.schemas import InvitationCreateRequest
from timetrack.services.employees import ensure_can_add_employee, find_by_employee_code, find_company_member
from timetrack.timeutil import as_utc

TOKEN_BYTES = 32
EXPIRED_MESSAGE = "Invitation has expired"
ALREADY_ACCEPTED_MESSAGE = "Invitation has already been accepted"
DEFAULT_INVITATION_TEMPLATE = (
    "Hi {name}, you have been invited to join {company}. "
    "Accept your invitation here: {link}"
)


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def render_invitation_message(template: str | None, *, name: str, company: str, link: str) -> str:
    # Plain replacement: employer templates may contain other braces.
    message = template or DEFAULT_INVITATION_TEMPLATE
    for placeholder, value in (("{name}", name), ("{company}", company), ("{link}", link)):
        message = message.replace(placeholder, value)
    return message


def create_invitation(
    db: Session,
    *,
    company: Company,
    created_by: User,
    payload: InvitationCreateRequest,
    expiry_days: int,
    now: datetime | None = None,
) -> Invitation:
    ensure_can_add_employee(
        db,
        company_id=company.id,
        email=payload.email,
        employee_code=payload.employee_code,
    )

    now_utc = as_utc(now)
    invitation = Invitation(
        token=generate_token(),
        company_id=company.id,
        email=payload.email,
        name=payload.name,
        employee_code=payload.employee_code,
        phone=payload.phone,
        address=payload.address,
        status=InvitationStatus.PENDING,
        expires_at=now_utc + timedelta(days=expiry_days),
        created_by_user_id=created_by.id,
    )
    db.add(invitation)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict("Could not create invitation token", code="INVITATION_CONFLICT") from exc
    db.refresh(invitation)
    return invitation


def list_invitations(db: Session, *, company_id: int) -> list[Invitation]:
    return list(
        db.scalars(
            select(Invitation)
            .options(selectinload(Invitation.company))
            .where(Invitation.company_id == company_id)
            .order_by(Invitation.created_at.desc(), Invitation.id.desc())
        ).all()
    )


def get_invitation_by_token(db: Session, token: str) -> Invitation:
    if not token or not token.strip():
        raise bad_request("Token is required")
    invitation = db.scalar(
        select(Invitation).options(selectinload(Invitation.company)).where(Invitation.token == token.strip())
    )
    if invitation is None:
        raise not_found("Invitation not found", code="INVITATION_NOT_FOUND")
    return invitation


def _expire_if_due(db: Session, invitation: Invitation, now_utc: datetime) -> bool:
    """Apply lazy expiry; returns True when the invitation is (now) expired."""
    if invitation.status is InvitationStatus.EXPIRED:
        return True
    if invitation.status is not InvitationStatus.PENDING:
        return False
    if now_utc <= as_utc(invitation.expires_at):
        return False

    db.execute(
        update(Invitation)
        .where(Invitation.id == invitation.id, Invitation.status == InvitationStatus.PENDING)
        .values(status=InvitationStatus.EXPIRED)
    )
    db.commit()
    db.refresh(invitation)
    return invitation.status is InvitationStatus.EXPIRED


def validate_invitation(db: Session, token: str, *, now: datetime | None = None) -> tuple[Invitation, str | None]:
    """Look up an invitation and report why it cannot be used, if it cannot."""
    invitation = get_invitation_by_token(db, token)
    if invitation.status is InvitationStatus.ACCEPTED:
        return invitation, ALREADY_ACCEPTED_MESSAGE
    if _expire_if_due(db, invitation, as_utc(now)):
        return invitation, EXPIRED_MESSAGE
    return invitation, None


def accept_invitation(
    db: Session,
    token: str,
    *,
    now: datetime | None = None,
) -> tuple[Invitation, EmployeeProfile]:
    now_utc = as_utc(now)
    invitation = get_invitation_by_token(db, token)

    if invitation.status is InvitationStatus.ACCEPTED:
        raise bad_request(ALREADY_ACCEPTED_MESSAGE, code="ALREADY_ACCEPTED")
    if _expire_if_due(db, invitation, now_utc):
        raise expired(EXPIRED_MESSAGE)

    existing = find_company_member(
        db,
        company_id=invitation.company_id,
        email=invitation.email,
        employee_code=invitation.employee_code,
    )
    if existing is not None:
        raise conflict("You are already an employee in this company", code="EMPLOYEE_EXISTS")

    if invitation.employee_code:
        owner = find_by_employee_code(db, invitation.employee_code)
        if owner is not None and owner.company_id != invitation.company_id:
            raise conflict(
                "Employee ID already exists. Please contact your employer.",
                code="EMPLOYEE_CODE_TAKEN",
            )

    # Claim the invitation first so a concurrent accept blocks on the row and
    # then matches zero rows; the profile insert commits in the same unit.
    claimed = db.execute(
        update(Invitation)
        .where(Invitation.id == invitation.id, Invitation.status == InvitationStatus.PENDING)
        .values(status=InvitationStatus.ACCEPTED, accepted_at=now_utc)
    )
    if claimed.rowcount != 1:
        db.rollback()
        raise conflict(ALREADY_ACCEPTED_MESSAGE, code="ALREADY_ACCEPTED")

    employee = EmployeeProfile(
        company_id=invitation.company_id,
        name=invitation.name,
        email=invitation.email,
        employee_code=invitation.employee_code,
        phone=invitation.phone,
        address=invitation.address,
        is_active=True,
    )
    db.add(employee)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise conflict("You are already an employee in this company", code="EMPLOYEE_EXISTS") from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(invitation)
    db.refresh(employee)
    return invitation, employee
