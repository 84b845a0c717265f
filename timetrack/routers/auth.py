from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from timetrack.audit import audit_request, client_ip
from timetrack.db import get_app_settings, get_db
from timetrack.errors import ApiError
from timetrack.schemas import (
    CompanySettingsRead,
    CompanySettingsUpdate,
    LoginRequest,
    MeResponse,
    OnboardingProgressRead,
    OnboardingRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    UserRead,
)
from timetrack.security import (
    LOGIN_FAILURE_ACTION,
    EmployerContext,
    Identity,
    create_access_token,
    ensure_login_attempt_allowed,
    identity_for_user,
    require_employer_company,
    require_identity,
)
from timetrack.services.identity import (
    authenticate,
    complete_onboarding,
    onboarding_progress,
    register_user,
    require_company,
    update_company_settings,
)
from timetrack.settings import Settings

router = APIRouter(tags=["auth"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
}


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> RegisterResponse:
    user = register_user(db, payload, default_timezone=settings.default_timezone)
    identity = identity_for_user(user)
    audit_request(
        db,
        request,
        action="USER_REGISTERED",
        actor_id=str(user.id),
        company_id=identity.company_id,
        entity_type="user",
        entity_id=str(user.id),
        details={"role": user.role.value},
    )
    return RegisterResponse(success=True, user=UserRead.model_validate(user))


@router.post("/auth/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> TokenResponse:
    ip = client_ip(request)
    request.state.actor = "system"
    request.state.actor_id = "system"

    if ip:
        try:
            ensure_login_attempt_allowed(db, ip)
        except ApiError:
            audit_request(
                db,
                request,
                action=LOGIN_FAILURE_ACTION,
                success=False,
                details={"reason": "TOO_MANY_ATTEMPTS", "email": payload.email},
            )
            raise

    user = authenticate(db, payload.email, payload.password)
    if user is None:
        audit_request(
            db,
            request,
            action=LOGIN_FAILURE_ACTION,
            success=False,
            details={"reason": "INVALID_CREDENTIALS", "email": payload.email},
        )
        raise ApiError(status_code=401, code="INVALID_CREDENTIALS", message="Invalid email or password")

    identity = identity_for_user(user)
    access_token, expires_in = create_access_token(
        settings,
        user_id=user.id,
        role=identity.role,
        company_id=identity.company_id,
    )
    request.state.actor = identity.role.value.lower()
    request.state.actor_id = str(user.id)
    audit_request(db, request, action="LOGIN_SUCCESS", company_id=identity.company_id)
    return TokenResponse(access_token=access_token, expires_in=expires_in)


@router.get("/auth/me", response_model=MeResponse)
def me(response: Response, identity: Identity = Depends(require_identity)) -> MeResponse:
    response.headers.update(NO_CACHE_HEADERS)
    return MeResponse(role=identity.role, id=identity.user_id, email=identity.user.email)


@router.get("/onboarding/progress", response_model=OnboardingProgressRead)
def get_onboarding_progress(
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
) -> OnboardingProgressRead:
    company = require_company(db, identity.company_id) if identity.company_id is not None else None
    return OnboardingProgressRead(**onboarding_progress(identity.user, company))


@router.post("/onboarding", response_model=OnboardingProgressRead)
def submit_onboarding(
    payload: OnboardingRequest,
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> OnboardingProgressRead:
    user = complete_onboarding(db, user=context.identity.user, company_id=context.company_id, payload=payload)
    audit_request(
        db,
        request,
        action="ONBOARDING_UPDATED",
        entity_type="company",
        entity_id=str(context.company_id),
        details={"step": user.onboarding_step, "completed": user.onboarding_completed},
    )
    company = require_company(db, context.company_id)
    return OnboardingProgressRead(**onboarding_progress(user, company))


@router.get("/settings", response_model=CompanySettingsRead)
def get_company_settings(
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> CompanySettingsRead:
    return CompanySettingsRead.model_validate(require_company(db, context.company_id))


@router.put("/settings", response_model=CompanySettingsRead)
def put_company_settings(
    payload: CompanySettingsUpdate,
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> CompanySettingsRead:
    company = update_company_settings(db, company_id=context.company_id, payload=payload)
    audit_request(db, request, action="COMPANY_SETTINGS_UPDATED", entity_type="company", entity_id=str(company.id))
    return CompanySettingsRead.model_validate(company)