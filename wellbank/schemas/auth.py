"""Auth and signup request/response schemas.

Field aliases follow the web client's camelCase payloads; snake_case names are accepted too.
"""
import re
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator
from wellbank.models.user import UserRole, SELF_REGISTER_ROLES

PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15
OTP_CODE_LENGTH = 6
PASSWORD_MIN_LENGTH = 8


def _normalize_phone(value: str | None) -> str:
    if value is None:
        return ""
    return re.sub(r"\D", "", value.strip())


def _validate_phone_digits(phone: str) -> None:
    digits = _normalize_phone(phone)
    if not digits:
        raise ValueError("Phone number is required.")
    if len(digits) < PHONE_MIN_DIGITS:
        raise ValueError(f"Phone number must have at least {PHONE_MIN_DIGITS} digits (e.g. +234 801 234 5678).")
    if len(digits) > PHONE_MAX_DIGITS:
        raise ValueError(f"Phone number cannot exceed {PHONE_MAX_DIGITS} digits.")


def _require_identity(v: str) -> str:
    # Identity is matched exactly as typed; only reject blanks
    if not v or not v.strip():
        raise ValueError("Email is required.")
    return v


Identity = Annotated[str, AfterValidator(_require_identity)]


class _CamelModel(BaseModel):
    class Config:
        populate_by_name = True


# --- Registration checkpoint ---


class SaveStepRequest(_CamelModel):
    email: Identity
    step: int = Field(ge=0)
    data: dict[str, Any] | None = Field(default_factory=dict)


class RegistrationStateRequest(_CamelModel):
    email: Identity
    token: str = Field(min_length=1)


class ResumeRegistrationRequest(_CamelModel):
    email: Identity


class ClearRegistrationRequest(_CamelModel):
    email: Identity


class RegistrationStateData(BaseModel):
    step: int
    data: dict[str, Any] | None = None


# --- OTP ---


class OtpSendRequest(_CamelModel):
    type: Literal["phone", "email"]
    destination: str

    @model_validator(mode="after")
    def destination_matches_type(self):
        dest = (self.destination or "").strip()
        if self.type == "phone":
            _validate_phone_digits(dest)
        elif "@" not in dest:
            raise ValueError("A valid email address is required.")
        self.destination = dest
        return self


class OtpVerifyRequest(_CamelModel):
    otp_id: str = Field(alias="otpId")
    code: str

    @field_validator("code")
    @classmethod
    def code_format(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) != OTP_CODE_LENGTH or not v.isdigit():
            raise ValueError(f"Code must be {OTP_CODE_LENGTH} digits.")
        return v


# --- Completion / login ---


class CompleteRegistrationRequest(_CamelModel):
    email: Identity
    verification_token: str = Field(alias="verificationToken", min_length=1)
    password: str = Field(min_length=PASSWORD_MIN_LENGTH)
    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)
    phone_number: str = Field(alias="phoneNumber")
    role: UserRole = UserRole.patient

    @field_validator("phone_number")
    @classmethod
    def phone_valid(cls, v: str) -> str:
        _validate_phone_digits(v or "")
        return (v or "").strip()

    @field_validator("role")
    @classmethod
    def role_self_registerable(cls, v: UserRole) -> UserRole:
        if v not in SELF_REGISTER_ROLES:
            raise ValueError("This role cannot be self-registered.")
        return v


class LoginRequest(_CamelModel):
    email: Identity
    password: str


class RefreshTokenRequest(_CamelModel):
    refresh_token: str = Field(alias="refreshToken")


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    roles: list[UserRole] | None = None
    active_role: UserRole | None = None
    is_email_verified: bool = False

    class Config:
        from_attributes = True
