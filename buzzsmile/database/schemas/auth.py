from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, EmailStr, Field, field_validator


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


NormalizedEmail = Annotated[EmailStr, BeforeValidator(_normalize_email)]


class EmailPayload(BaseModel):
    email: NormalizedEmail


class SignupRequest(EmailPayload):
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=50)
    businessName: Optional[str] = Field(None, max_length=100)

    @field_validator("name", "businessName", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class LoginRequest(EmailPayload):
    password: str


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    businessName: Optional[str] = Field(None, max_length=100)

    @field_validator("name", "businessName", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class ChangePasswordRequest(BaseModel):
    currentPassword: str
    newPassword: str = Field(..., min_length=6)


class ForgotPasswordRequest(EmailPayload):
    pass


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=6)


class DevResetPasswordRequest(EmailPayload):
    newPassword: str = Field(..., min_length=6)
