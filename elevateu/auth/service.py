"""
Account service
Signup, login, password reset and Google sign-in shared by every role.
"""

from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from elevateu.auth import otp as otp_store
from elevateu.auth.otp import OTPType
from elevateu.auth.passwords import hash_password, verify_password
from elevateu.auth.roles import Role, collection_for, id_field, id_prefix
from elevateu.core import mailer
from elevateu.core.config import TOKEN_EXPIRY
from elevateu.core.logger import auth_logger
from elevateu.core.utils import generate_id, utcnow


def public_profile(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    doc.pop("password_hash", None)
    return doc


def new_account_document(
    role: Role,
    email: str,
    first_name: str,
    last_name: Optional[str] = None,
    password_hash: Optional[str] = None,
    google_id: Optional[str] = None,
    profile_image: Optional[str] = None,
    is_verified: bool = False,
) -> dict:
    """Build the stored document for a new account of any role"""
    role = Role(role)
    now = utcnow()
    doc = {
        id_field(role): generate_id(id_prefix(role)),
        "email": email.lower(),
        "password_hash": password_hash,
        "google_id": google_id,
        "first_name": first_name,
        "last_name": last_name or "",
        "bio": None,
        "dob": None,
        "phone": None,
        "profile_image": profile_image,
        "is_verified": is_verified,
        "is_active": True,
        "is_blocked": False,
        "last_login": None,
        "created_at": now,
        "updated_at": now,
    }

    if role == Role.TUTOR:
        doc.update({
            "expertise": None,
            "experience": None,
            "verification_status": "unverified",
            "is_admin_verified": False,
            "total_earnings": 0.0,
            "course_count": 0,
        })
    elif role == Role.USER:
        doc.update({"bookmarks": [], "cart": []})

    return doc


async def find_by_email(db: AsyncIOMotorDatabase, role: Role, email: str) -> Optional[dict]:
    return await collection_for(db, role).find_one({"email": email.strip().lower()})


async def insert_account(db: AsyncIOMotorDatabase, role: Role, doc: dict) -> dict:
    try:
        await collection_for(db, role).insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Email already registered")
    return doc


# ==================== OTP ====================

async def send_signup_otp(db: AsyncIOMotorDatabase, email: str, role: Role, name: Optional[str] = None):
    """
    Issue a signup OTP for an email that is not registered yet for `role`.

    Raises:
        409: Email already registered
        502: Mail server refused the message
    """
    if await find_by_email(db, role, email):
        raise HTTPException(status_code=409, detail="Email already registered")

    code = await otp_store.issue_otp(db, email, Role(role).value, OTPType.SIGNUP)
    await _deliver(mailer.send_otp_email, email, name or email.split("@")[0], code)
    auth_logger.info("Signup OTP issued for %s (%s)", email, Role(role).value)


async def _deliver(send, email: str, name: str, code: str):
    try:
        await send(email, name, code)
    except mailer.EmailDeliveryError:
        raise HTTPException(status_code=502, detail="Failed to send email. Please try again.")


# ==================== SIGNUP / LOGIN ====================

async def register(db: AsyncIOMotorDatabase, role: Role, email: str, password: str,
                   first_name: str, last_name: Optional[str] = None,
                   require_otp: bool = True) -> dict:
    """
    Create a password account.

    Raises:
        403: Email was not verified through the signup OTP
        409: Email already registered
    """
    if await find_by_email(db, role, email):
        raise HTTPException(status_code=409, detail="Email already registered")

    if require_otp and not await otp_store.consume_verified(db, email, Role(role).value, OTPType.SIGNUP):
        raise HTTPException(status_code=403, detail="Email not verified. Please verify the OTP first.")

    doc = new_account_document(
        role, email, first_name, last_name,
        password_hash=hash_password(password),
        is_verified=require_otp,
    )
    await insert_account(db, role, doc)
    auth_logger.info("%s registered: %s", Role(role).value.capitalize(), doc[id_field(role)])
    return doc


async def authenticate(db: AsyncIOMotorDatabase, role: Role, email: str, password: str) -> dict:
    """
    Check credentials and return the account.
    A deactivated account is reactivated by a successful login.

    Raises:
        401: Wrong password
        403: Account blocked
        404: Unknown email
        400: Account has no password (Google sign-in only)
    """
    account = await find_by_email(db, role, email)
    if not account:
        raise HTTPException(status_code=404, detail=f"{Role(role).value.capitalize()} not found")

    if not account.get("password_hash"):
        raise HTTPException(status_code=400, detail="This account uses Google sign-in. Please continue with Google.")

    if not verify_password(password, account["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if account.get("is_blocked"):
        raise HTTPException(status_code=403, detail="Access denied. Your account has been blocked.")

    changes = {"last_login": utcnow()}
    if not account.get("is_active", True):
        changes["is_active"] = True
        auth_logger.info("Reactivating %s %s on login", Role(role).value, account[id_field(role)])

    await collection_for(db, role).update_one({"_id": account["_id"]}, {"$set": changes})
    account.update(changes)
    return account


async def google_sign_in(db: AsyncIOMotorDatabase, role: Role, profile: dict) -> dict:
    """Find the account for a Google profile, linking or creating it as needed"""
    collection = collection_for(db, role)
    account = await collection.find_one({"email": profile["email"]})

    if account:
        if account.get("is_blocked"):
            raise HTTPException(status_code=403, detail="Access denied. Your account has been blocked.")
        changes = {"last_login": utcnow(), "is_active": True, "is_verified": True}
        if not account.get("google_id"):
            changes["google_id"] = profile["google_id"]
        if not account.get("profile_image") and profile.get("profile_image"):
            changes["profile_image"] = profile["profile_image"]
        await collection.update_one({"_id": account["_id"]}, {"$set": changes})
        account.update(changes)
        return account

    doc = new_account_document(
        role,
        profile["email"],
        profile["first_name"],
        profile.get("last_name"),
        google_id=profile["google_id"],
        profile_image=profile.get("profile_image"),
        is_verified=True,
    )
    doc["last_login"] = utcnow()
    await insert_account(db, role, doc)
    auth_logger.info("%s created via Google: %s", Role(role).value.capitalize(), doc[id_field(role)])
    return doc


# ==================== PASSWORD RESET ====================

async def start_password_reset(db: AsyncIOMotorDatabase, role: Role, email: str):
    account = await find_by_email(db, role, email)
    if not account:
        raise HTTPException(status_code=404, detail=f"{Role(role).value.capitalize()} not found")

    code = await otp_store.issue_otp(
        db, email, Role(role).value, OTPType.RESET,
        ttl_seconds=TOKEN_EXPIRY["RESET_OTP"],
    )
    await _deliver(mailer.send_reset_password_email, account["email"], account.get("first_name") or "", code)
    auth_logger.info("Password reset OTP issued for %s %s", Role(role).value, account[id_field(role)])


async def reset_password(db: AsyncIOMotorDatabase, role: Role, email: str, code: str, password: str):
    account = await find_by_email(db, role, email)
    if not account:
        raise HTTPException(status_code=404, detail=f"{Role(role).value.capitalize()} not found")

    await otp_store.verify_otp(db, email, Role(role).value, OTPType.RESET, code)

    await collection_for(db, role).update_one(
        {"_id": account["_id"]},
        {"$set": {"password_hash": hash_password(password), "updated_at": utcnow()}},
    )
    auth_logger.info("Password reset for %s %s", Role(role).value, account[id_field(role)])
