import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, validator

CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{3,20}$")


class DiscountType(str, Enum):
    PERCENT = "percent"
    FIXED = "fixed"


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _code(value: str) -> str:
    value = value.strip().upper()
    if not CODE_PATTERN.match(value):
        raise ValueError("Code must be 3-20 letters, digits, '-' or '_'")
    return value


class CouponCreate(BaseModel):
    code: str
    discount_type: DiscountType = DiscountType.PERCENT
    discount: float = Field(..., gt=0)
    min_amount: float = Field(0, ge=0)
    max_discount: Optional[float] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    expires_at: datetime
    is_active: bool = True
    description: Optional[str] = Field(None, max_length=300)

    @validator("code")
    def normalize_code(cls, v):
        return _code(v)

    @validator("discount")
    def validate_discount(cls, v, values):
        if values.get("discount_type") == DiscountType.PERCENT and v > 100:
            raise ValueError("Percent discount cannot exceed 100")
        return v

    @validator("expires_at")
    def validate_expiry(cls, v):
        v = _naive_utc(v)
        if v <= datetime.utcnow():
            raise ValueError("Expiry date must be in the future")
        return v


class CouponUpdate(BaseModel):
    coupon_id: str
    code: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount: Optional[float] = Field(None, gt=0)
    min_amount: Optional[float] = Field(None, ge=0)
    max_discount: Optional[float] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    description: Optional[str] = Field(None, max_length=300)

    @validator("code")
    def normalize_code(cls, v):
        return _code(v) if v is not None else v

    @validator("expires_at")
    def validate_expiry(cls, v):
        v = _naive_utc(v)
        if v is not None and v <= datetime.utcnow():
            raise ValueError("Expiry date must be in the future")
        return v


class ApplyCouponRequest(BaseModel):
    course_id: str
    code: str

    @validator("code")
    def normalize_code(cls, v):
        return v.strip().upper()
