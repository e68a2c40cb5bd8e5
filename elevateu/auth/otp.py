"""
One-time passwords for signup, password reset, email change and password change.
Only the sha256 of a code is stored.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.core.config import OTP_LENGTH, OTP_MAX_ATTEMPTS, TOKEN_EXPIRY

# Window to finish signup once the signup code is verified
VERIFIED_GRACE_SECONDS = 30 * 60


class OTPType(str, Enum):
    SIGNUP = "signup"
    RESET = "reset"
    EMAIL_VERIFY = "email-verify"
    PASSWORD_CHANGE = "password-change"


def generate_otp() -> str:
    return str(secrets.randbelow(10 ** OTP_LENGTH)).zfill(OTP_LENGTH)


def _hash(code: str) -> str:
    return hashlib.sha256(code.strip().encode()).hexdigest()


def _key(email: str, role: str, otp_type: OTPType) -> dict:
    return {"email": email.strip().lower(), "role": role, "otp_type": OTPType(otp_type).value}


async def issue_otp(
    db: AsyncIOMotorDatabase,
    email: str,
    role: str,
    otp_type: OTPType,
    payload: Optional[dict] = None,
    ttl_seconds: Optional[int] = None,
) -> str:
    """Replace any outstanding code for (email, role, type) and return the new one"""
    key = _key(email, role, otp_type)
    code = generate_otp()
    now = datetime.utcnow()

    await db.otps.delete_many(key)
    await db.otps.insert_one({
        **key,
        "code_hash": _hash(code),
        "payload": payload or {},
        "attempts": 0,
        "verified": False,
        "created_at": now,
        "expires_at": now + timedelta(seconds=ttl_seconds or TOKEN_EXPIRY["OTP"]),
    })
    return code


async def verify_otp(
    db: AsyncIOMotorDatabase,
    email: str,
    role: str,
    otp_type: OTPType,
    code: str,
    consume: bool = True,
) -> dict:
    """
    Check a submitted code.

    consume=True deletes the record on success; otherwise it is marked
    verified and kept for a later consume_verified() call.

    Raises:
        400: Missing, expired, wrong or exhausted code
    """
    key = _key(email, role, otp_type)
    record = await db.otps.find_one({**key, "verified": False})
    if not record:
        raise HTTPException(status_code=400, detail="OTP not found. Please request a new one.")

    now = datetime.utcnow()
    if record["expires_at"] < now:
        await db.otps.delete_one({"_id": record["_id"]})
        raise HTTPException(status_code=400, detail="OTP expired. Please request a new one.")

    if record.get("attempts", 0) >= OTP_MAX_ATTEMPTS:
        await db.otps.delete_one({"_id": record["_id"]})
        raise HTTPException(status_code=400, detail="Too many invalid attempts. Please request a new OTP.")

    if not hmac.compare_digest(record["code_hash"], _hash(code or "")):
        await db.otps.update_one({"_id": record["_id"]}, {"$inc": {"attempts": 1}})
        raise HTTPException(status_code=400, detail="Invalid OTP")

    if consume:
        await db.otps.delete_one({"_id": record["_id"]})
    else:
        await db.otps.update_one(
            {"_id": record["_id"]},
            {"$set": {
                "verified": True,
                "verified_at": now,
                "expires_at": now + timedelta(seconds=VERIFIED_GRACE_SECONDS),
            }},
        )
    return record


async def consume_verified(db: AsyncIOMotorDatabase, email: str, role: str, otp_type: OTPType) -> bool:
    record = await db.otps.find_one_and_delete({
        **_key(email, role, otp_type),
        "verified": True,
        "expires_at": {"$gte": datetime.utcnow()},
    })
    return record is not None


async def get_pending(db: AsyncIOMotorDatabase, email: str, role: str, otp_type: OTPType) -> Optional[dict]:
    return await db.otps.find_one({**_key(email, role, otp_type), "verified": False})
