from typing import Optional

from pydantic import BaseModel, EmailStr, Field, validator

from elevateu.courses.models import ReviewAction
from elevateu.profiles.schemas import PHONE_PATTERN


class AccountCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=3, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = None

    @validator("email")
    def normalize_email(cls, v):
        return v.lower()

    @validator("phone")
    def validate_phone(cls, v):
        if v and not PHONE_PATTERN.match(v.strip()):
            raise ValueError("Invalid phone number")
        return v


class AccountUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=3, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    bio: Optional[str] = Field(None, max_length=1000)
    phone: Optional[str] = None
    profile_image: Optional[str] = None
    expertise: Optional[str] = Field(None, max_length=200)
    experience: Optional[int] = Field(None, ge=0, le=80)

    @validator("phone")
    def validate_phone(cls, v):
        if v and not PHONE_PATTERN.match(v.strip()):
            raise ValueError("Invalid phone number")
        return v


class VerificationDecision(BaseModel):
    tutor_id: str
    action: ReviewAction
    reason: Optional[str] = Field(None, max_length=1000)
