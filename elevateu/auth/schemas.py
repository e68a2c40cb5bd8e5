from typing import Optional

from pydantic import BaseModel, EmailStr, Field, validator


def _strip_required(value: str, field: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f"{field} is required")
    return value.strip()


# ==================== REQUEST SCHEMAS ====================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=3, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)

    @validator("first_name")
    def validate_first_name(cls, v):
        v = _strip_required(v, "First name")
        if len(v) < 3:
            raise ValueError("First name must be at least 3 characters")
        return v

    @validator("email")
    def normalize_email(cls, v):
        return v.lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @validator("email")
    def normalize_email(cls, v):
        return v.lower()


class GenerateOTPRequest(BaseModel):
    email: EmailStr
    role: str = "user"
    name: Optional[str] = None

    @validator("role")
    def validate_role(cls, v):
        if v not in ("user", "tutor", "admin"):
            raise ValueError("Invalid role")
        return v


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=8)
    role: str = "user"

    @validator("role")
    def validate_role(cls, v):
        if v not in ("user", "tutor", "admin"):
            raise ValueError("Invalid role")
        return v


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=8)
    new_password: str = Field(..., alias="newPassword", min_length=6, max_length=128)
