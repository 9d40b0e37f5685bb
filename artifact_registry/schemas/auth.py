"""Authentication schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator


class UserRegister(BaseModel):
    """User registration request, also used to validate new accounts."""

    full_name: str = Field(..., min_length=1, max_length=255)
    public_email: EmailStr = Field(..., max_length=255)
    private_email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    password_confirmation: str = Field(..., max_length=128)

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("does not match password")
        return value


class LoginRequest(BaseModel):
    """Login request. The identifier is the user's private e-mail."""

    identifier: str = Field(..., max_length=255)
    password: str = Field(..., max_length=128)


class LoginResponse(BaseModel):
    """JWT token response."""

    token: str
    token_type: str = "bearer"  # noqa: S105


class UserResponse(BaseModel):
    """User information response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    full_name: str
    public_email: str
    is_public_email_verified: bool
    created_at: datetime


class UserUpdate(BaseModel):
    """Partial account update. Omitted fields are left unchanged."""

    full_name: str | None = Field(None, min_length=1, max_length=255)
    public_email: EmailStr | None = Field(None, max_length=255)
    private_email: EmailStr | None = Field(None, max_length=255)
    password: str | None = Field(None, min_length=8, max_length=128)
    password_confirmation: str | None = Field(None, max_length=128)
