from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from timetrack.audit import audit_request
from timetrack.db import get_app_settings, get_db
from timetrack.errors import ApiError
from timetrack.schemas import (
    ActionResponse,
    InvitationAcceptRequest,
    InvitationCreateRequest,
    InvitationCreateResponse,
    InvitationRead,
    InvitationValidateResponse,
)
from timetrack.security import EmployerContext, require_employer_company
from timetrack.services.identity import require_company
from timetrack.services.invitations import (
    accept_invitation,
    create_invitation,
    list_invitations,
    render_invitation_message,
    validate_invitation,
)
from timetrack.settings import Settings

router = APIRouter(tags=["invitations"])


@router.post("/invitations", response_model=InvitationCreateResponse, status_code=status.HTTP_201_CREATED)
def create_invitation_endpoint(
    payload: InvitationCreateRequest,
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> InvitationCreateResponse:
    company = require_company(db, context.company_id)
    invitation = create_invitation(
        db,
        company=company,
        created_by=context.identity.user,
        payload=payload,
        expiry_days=settings.invitation_expiry_days,
    )
    invite_url = settings.invite_url(invitation.token)
    audit_request(
        db,
        request,
        action="INVITATION_CREATED",
        entity_type="invitation",
        entity_id=str(invitation.id),
        details={"email": invitation.email, "employee_code": invitation.employee_code},
    )
    return InvitationCreateResponse(
        token=invitation.token,
        invite_url=invite_url,
        expires_at=invitation.expires_at,
        message=render_invitation_message(
            company.invitation_message,
            name=invitation.name,
            company=company.name,
            link=invite_url,
        ),
    )


@router.get("/invitations", response_model=list[InvitationRead])
def list_invitations_endpoint(
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> list[InvitationRead]:
    return [InvitationRead.model_validate(item) for item in list_invitations(db, company_id=context.company_id)]


@router.get("/invitations/validate", response_model=InvitationValidateResponse)
def validate_invitation_endpoint(
    token: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> InvitationValidateResponse:
    invitation, error = validate_invitation(db, token or "")
    return InvitationValidateResponse(invitation=InvitationRead.model_validate(invitation), error=error)


@router.post("/invitations/accept", response_model=ActionResponse)
def accept_invitation_endpoint(
    payload: InvitationAcceptRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ActionResponse:
    try:
        invitation, employee = accept_invitation(db, payload.token)
    except ApiError as exc:
        audit_request(
            db,
            request,
            action="INVITATION_ACCEPT_FAIL",
            success=False,
            details={"code": exc.code},
        )
        raise

    audit_request(
        db,
        request,
        action="INVITATION_ACCEPTED",
        company_id=invitation.company_id,
        entity_type="employee_profile",
        entity_id=str(employee.id),
        details={"invitation_id": invitation.id},
    )
    return ActionResponse(
        success=True,
        message=f"Welcome to {invitation.company.name}! You've been successfully added to the company. "
        "Your employer will be able to see you in their employee list.",
    )
