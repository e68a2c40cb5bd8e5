import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, validator

from elevateu.wallet.models import PaymentMethodType, WithdrawalAction

IFSC_PATTERN = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
ACCOUNT_PATTERN = re.compile(r"^[0-9]{9,18}$")


class PaymentMethodCreate(BaseModel):
    type: PaymentMethodType
    email: Optional[EmailStr] = None
    account_number: Optional[str] = None
    ifsc: Optional[str] = None
    bank_name: Optional[str] = Field(None, max_length=100)
    holder_name: Optional[str] = Field(None, max_length=100)
    is_default: bool = False

    @validator("ifsc")
    def validate_ifsc(cls, v):
        if v is None:
            return v
        v = v.strip().upper()
        if not IFSC_PATTERN.match(v):
            raise ValueError("Invalid IFSC code")
        return v

    @validator("account_number")
    def validate_account_number(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not ACCOUNT_PATTERN.match(v):
            raise ValueError("Invalid account number")
        return v

    @validator("is_default", always=True)
    def validate_required_fields(cls, v, values):
        method = values.get("type")
        if method == PaymentMethodType.BANK:
            missing = [f for f in ("account_number", "ifsc", "bank_name", "holder_name") if not values.get(f)]
            if missing:
                raise ValueError(f"Bank details require: {', '.join(missing)}")
        elif method == PaymentMethodType.GPAY and not values.get("email"):
            raise ValueError("GPay requires an email")
        return v


class WithdrawalCreate(BaseModel):
    amount: float = Field(..., gt=0)
    method_id: Optional[str] = None


class AdminWithdrawal(BaseModel):
    amount: float = Field(..., gt=0)
    note: Optional[str] = Field(None, max_length=300)


class WithdrawalDecision(BaseModel):
    request_id: str
    action: WithdrawalAction
    note: Optional[str] = Field(None, max_length=500)

    @validator("note", always=True)
    def note_required_on_reject(cls, v, values):
        if values.get("action") == WithdrawalAction.REJECT and not (v and v.strip()):
            raise ValueError("A note is required when rejecting a withdrawal")
        return v
