from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from timetrack.db import get_app_settings, get_db
from timetrack.errors import ApiError, bad_request, forbidden, unauthorized
from timetrack.models import AuditLog, Role, User
from timetrack.settings import Settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

LOGIN_FAILURE_ACTION = "LOGIN_FAIL"
_MAX_ATTEMPTS = 10
_ATTEMPT_WINDOW = timedelta(minutes=10)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        # Invalid/legacy hash values should not crash auth flow.
        return False


def ensure_login_attempt_allowed(db: Session, ip: str) -> None:
    """Reject logins from an IP with too many recent failures.

    Failures are counted from the audit trail so the limit holds across
    workers and restarts.
    """
    threshold = _utcnow() - _ATTEMPT_WINDOW
    failures = db.scalar(
        select(func.count(AuditLog.id)).where(
            AuditLog.action == LOGIN_FAILURE_ACTION,
            AuditLog.ip == ip,
            AuditLog.ts_utc >= threshold,
        )
    )
    if (failures or 0) >= _MAX_ATTEMPTS:
        raise ApiError(
            status_code=429,
            code="TOO_MANY_ATTEMPTS",
            message="Too many failed login attempts. Please try again later.",
        )


def create_access_token(
    settings: Settings,
    *,
    user_id: int,
    role: Role,
    company_id: int | None,
) -> tuple[str, int]:
    now = _utcnow()
    expires_in = settings.access_token_minutes * 60
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "role": role.value,
        "company_id": company_id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, expires_in


def decode_token(settings: Settings, token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise unauthorized() from exc

    if payload.get("typ") != "access":
        raise unauthorized()

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.isdigit():
        raise unauthorized()
    return payload


@dataclass(frozen=True)
class Identity:
    user: User
    role: Role
    company_id: int | None

    @property
    def user_id(self) -> int:
        return self.user.id


def identity_for_user(user: User) -> Identity:
    # The first membership is the active tenant.
    company_id = user.memberships[0].company_id if user.memberships else None
    return Identity(user=user, role=user.role, company_id=company_id)


def _bind_request_actor(request: Request, identity: Identity) -> None:
    request.state.actor = identity.role.value.lower()
    request.state.actor_id = str(identity.user_id)
    request.state.company_id = identity.company_id


def get_optional_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Identity | None:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    try:
        payload = decode_token(settings, credentials.credentials)
    except ApiError:
        return None

    user = db.get(User, int(payload["sub"]))
    if user is None:
        return None
    identity = identity_for_user(user)
    _bind_request_actor(request, identity)
    return identity


def require_identity(identity: Identity | None = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise unauthorized()
    return identity


def require_role(*roles: Role) -> Callable[..., Identity]:
    allowed = frozenset(roles)

    def _dependency(identity: Identity = Depends(require_identity)) -> Identity:
        if identity.role not in allowed:
            raise forbidden()
        return identity

    return _dependency


@dataclass(frozen=True)
class EmployerContext:
    identity: Identity
    company_id: int


def require_employer_company(identity: Identity | None = Depends(get_optional_identity)) -> EmployerContext:
    if identity is None or identity.role is not Role.EMPLOYER:
        raise unauthorized()
    if identity.company_id is None:
        raise bad_request("No company found for your account", code="NO_COMPANY")
    return EmployerContext(identity=identity, company_id=identity.company_id)
