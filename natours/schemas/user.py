"""
Natours API — User and Authentication Schemas
===============================================

What:  Request bodies for signup/login/password flows and profile updates,
       the stored-user document, and the public user representation.
Security:
    `UserResponse` is the only shape a user leaves the API in. It has no
    password, reset-token or active fields, so they cannot be serialized by
    accident.
"""

import uuid
from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, EmailStr, StringConstraints, field_validator, model_validator

from natours.models.user import Role
from natours.schemas.common import ApiModel
from natours.services.credentials import BCRYPT_MAX_BYTES

UserName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


def _fits_bcrypt(v: str) -> str:
    if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes long")
    return v


Password = Annotated[str, StringConstraints(min_length=8), AfterValidator(_fits_bcrypt)]


def _lower(v: str) -> str:
    return v.lower()


class UserDocument(ApiModel):
    name: UserName
    email: EmailStr
    photo: str = "default.jpg"
    role: Role = Role.USER
    # Plaintext on its way in; the password pipeline stage hashes it
    password: Optional[Password] = None

    _normalize_email = field_validator("email")(_lower)


class SignupRequest(ApiModel):
    name: UserName
    email: EmailStr
    password: Password
    password_confirm: str

    _normalize_email = field_validator("email")(_lower)

    @model_validator(mode="after")
    def passwords_match(self) -> "SignupRequest":
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class LoginRequest(ApiModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(ApiModel):
    email: EmailStr

    _normalize_email = field_validator("email")(_lower)


class ResetPasswordRequest(ApiModel):
    password: Password
    password_confirm: str

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.password_confirm:
            raise ValueError("Passwords are not the same!")
        return self


class UpdatePasswordRequest(ResetPasswordRequest):
    password_current: str


class UpdateMeRequest(ApiModel):
    name: Optional[UserName] = None
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    # Accepted only so the service can reject them with a pointer to the
    # password endpoint instead of silently ignoring them
    password: Optional[str] = None
    password_confirm: Optional[str] = None


class AdminUserUpdate(ApiModel):
    name: Optional[UserName] = None
    email: Optional[EmailStr] = None
    photo: Optional[str] = None
    role: Optional[Role] = None


class UserResponse(ApiModel):
    id: uuid.UUID
    name: str
    email: str
    photo: str
    role: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            photo=user.photo,
            role=user.role,
            created_at=user.created_at,
        )
