import re
from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from timetrack.models import AttendanceEventType, InvitationStatus, Role

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_SPECIAL_CHARS = '!@#$%^&*(),.?":{}|<>'


def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Invalid email address")
    return normalized


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


OptionalText = Annotated[str | None, BeforeValidator(_blank_to_none)]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RegisterRequest(ApiModel):
    name: str
    email: str
    password: str
    company_name: str
    role: Role = Role.EMPLOYER

    @field_validator("role")
    @classmethod
    def _validate_role(cls, value: Role) -> Role:
        if value not in (Role.EMPLOYER, Role.EMPLOYEE):
            raise ValueError("Invalid role")
        return value

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("Password must be at least 8 characters")
        if not re.search(r"[A-Z]", value):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", value):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", value):
            raise ValueError("Password must contain at least one number")
        if not any(char in PASSWORD_SPECIAL_CHARS for char in value):
            raise ValueError("Password must contain at least one special character")
        return value

    @field_validator("company_name")
    @classmethod
    def _validate_company_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Company name must be at least 2 characters")
        return value


class UserRead(ApiModel):
    id: int
    name: str | None
    email: str
    role: Role


class RegisterResponse(ApiModel):
    success: bool
    user: UserRead


class LoginRequest(ApiModel):
    email: str
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class TokenResponse(ApiModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int


class MeResponse(ApiModel):
    role: Role
    id: int
    email: str


class OnboardingRequest(ApiModel):
    phone: OptionalText = None
    website: OptionalText = None
    address: OptionalText = None
    industry: OptionalText = None
    company_size: OptionalText = None
    timezone: str = "UTC"
    step: int = Field(ge=1, le=4)

    @field_validator("website")
    @classmethod
    def _validate_website(cls, value: str | None) -> str | None:
        if value is not None and not re.match(r"^https?://[^\s/$.?#].[^\s]*$", value):
            raise ValueError("Invalid website URL")
        return value


class OnboardingProgressRead(ApiModel):
    completed: bool
    step: int
    percentage: int


class CompanySettingsRead(ApiModel):
    invitation_message: str | None


class CompanySettingsUpdate(ApiModel):
    invitation_message: OptionalText = None


class CompanySummary(ApiModel):
    id: int
    name: str


class InvitationCreateRequest(ApiModel):
    name: str
    email: str
    employee_code: OptionalText = Field(default=None, alias="employeeId", max_length=64)
    phone: OptionalText = None
    address: OptionalText = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _normalize_email(value)


class InvitationCreateResponse(ApiModel):
    token: str
    invite_url: str
    expires_at: datetime
    message: str


class InvitationRead(ApiModel):
    id: int
    email: str
    name: str
    employee_code: str | None = Field(default=None, alias="employeeId")
    phone: str | None = None
    address: str | None = None
    status: InvitationStatus
    expires_at: datetime
    accepted_at: datetime | None = None
    created_at: datetime | None = None
    company: CompanySummary | None = None


class InvitationValidateResponse(ApiModel):
    invitation: InvitationRead
    error: str | None = None


class InvitationAcceptRequest(ApiModel):
    token: str

    @field_validator("token")
    @classmethod
    def _validate_token(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Token is required")
        return value


class ActionResponse(ApiModel):
    success: bool
    message: str


class EmployeeCreate(InvitationCreateRequest):
    pass


class EmployeeUpdate(ApiModel):
    name: str
    email: OptionalText = None
    employee_code: OptionalText = Field(default=None, alias="employeeId", max_length=64)
    phone: OptionalText = None
    address: OptionalText = None
    salary_rate: float | None = None
    employment_start_date: date | None = None
    is_active: bool | None = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _normalize_email(value)

    @field_validator("salary_rate")
    @classmethod
    def _validate_salary_rate(cls, value: float | None) -> float | None:
        if value is not None and value < 0:
            raise ValueError("Salary rate cannot be negative")
        return value


class EmployeeStatusUpdate(ApiModel):
    is_active: bool


class EmployeeRead(ApiModel):
    id: int
    company_id: int
    name: str
    email: str | None
    employee_code: str | None = Field(default=None, alias="employeeId")
    phone: str | None
    address: str | None
    salary_rate: float | None
    employment_start_date: date | None
    is_active: bool
    created_at: datetime | None = None


class EmployeeListResponse(ApiModel):
    employees: list[EmployeeRead]


class NFCCardRegisterRequest(ApiModel):
    uid: str
    employee_profile_id: int = Field(ge=1)

    @field_validator("uid")
    @classmethod
    def _validate_uid(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("UID is required")
        return value


class NFCCardRead(ApiModel):
    id: int
    uid: str
    employee_profile_id: int
    employee_name: str | None = None
    company_id: int
    is_active: bool
    registered_at: datetime | None = None
    last_used_at: datetime | None = None


class AttendanceEventRead(ApiModel):
    id: int
    employee_profile_id: int
    company_id: int
    nfc_card_id: int | None = None
    event_type: AttendanceEventType
    captured_at: datetime
    location_lat: float
    location_lng: float
    accuracy_meters: float
    address: str | None = None


class _LocationPayload(ApiModel):
    location_lat: float = Field(ge=-90, le=90)
    location_lng: float = Field(ge=-180, le=180)
    accuracy_meters: float = Field(ge=0)
    address: OptionalText = None


class ClockRequest(_LocationPayload):
    nfc_card_id: OptionalText = None
    device_info: OptionalText = None
    event_type: AttendanceEventType | None = None


class ClockResponse(ApiModel):
    success: bool
    event_type: AttendanceEventType
    employee_name: str
    attendance_event: AttendanceEventRead


class AttendanceEventCreate(_LocationPayload):
    event_type: AttendanceEventType


class LastEventResponse(ApiModel):
    event: AttendanceEventRead | None


class TimesheetRead(ApiModel):
    employee_profile_id: int
    employee_name: str
    date: date
    clock_in_id: int
    clock_in_at: datetime
    clock_out_id: int | None = None
    clock_out_at: datetime | None = None
    hours_worked: float | None = None


class TimesheetListResponse(ApiModel):
    timesheets: list[TimesheetRead]


class Suggestion(ApiModel):
    id: int
    text: str
    type: str


class SuggestionResponse(ApiModel):
    suggestions: list[Suggestion] = Field(default_factory=list)


class AdminCompanyRead(ApiModel):
    id: int
    name: str
    slug: str
    timezone: str
    created_at: datetime | None = None
    employee_count: int = 0
    card_count: int = 0


class AdminUserRead(ApiModel):
    id: int
    name: str | None
    email: str
    role: Role
    company_ids: list[int] = Field(default_factory=list)
    created_at: datetime | None = None
