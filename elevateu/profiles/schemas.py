import re
from datetime import date
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, validator

PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=3, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=1000)
    dob: Optional[date] = None
    phone: Optional[str] = None
    profile_image: Optional[str] = None
    # Tutor only
    expertise: Optional[str] = Field(None, max_length=200)
    experience: Optional[int] = Field(None, ge=0, le=80)

    @validator("first_name")
    def validate_first_name(cls, v):
        if v is not None and len(v.strip()) < 3:
            raise ValueError("First name must be at least 3 characters")
        return v.strip() if v else v

    @validator("phone")
    def validate_phone(cls, v):
        if v and not PHONE_PATTERN.match(v.strip()):
            raise ValueError("Invalid phone number")
        return v.strip() if v else v

    @validator("dob")
    def validate_dob(cls, v):
        if v and v >= date.today():
            raise ValueError("Date of birth must be in the past")
        return v


class UpdateEmailRequest(BaseModel):
    email: EmailStr


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=8)


class UpdatePasswordRequest(BaseModel):
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=6, max_length=128)


class PasswordOTPRequest(BaseModel):
    otp: str = Field(..., min_length=4, max_length=8)
