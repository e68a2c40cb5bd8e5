"""
Profile service
Operations every role performs on its own account.
"""

from datetime import date, datetime

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth import otp as otp_store
from elevateu.auth.guard import AccountContext
from elevateu.auth.otp import OTPType
from elevateu.auth.passwords import hash_password, verify_password
from elevateu.auth.roles import Role, collection_for, id_field, PRIVATE_FIELDS
from elevateu.core import mailer
from elevateu.core.logger import auth_logger
from elevateu.core.utils import utcnow, full_name
from elevateu.notifications.models import NotificationType
from elevateu.notifications.service import notify_admins

TUTOR_ONLY_FIELDS = ("expertise", "experience")


async def load_profile(db: AsyncIOMotorDatabase, role: Role, account_id: str) -> dict:
    profile = await collection_for(db, role).find_one({id_field(role): account_id}, PRIVATE_FIELDS)
    if not profile:
        raise HTTPException(status_code=404, detail=f"{Role(role).value.capitalize()} not found")
    return profile


async def update_profile(db: AsyncIOMotorDatabase, role: Role, account_id: str, changes: dict) -> dict:
    if Role(role) != Role.TUTOR:
        for field in TUTOR_ONLY_FIELDS:
            changes.pop(field, None)

    if not changes:
        raise HTTPException(status_code=400, detail="No changes provided")

    # BSON stores datetimes, not dates
    if isinstance(changes.get("dob"), date) and not isinstance(changes["dob"], datetime):
        changes["dob"] = datetime.combine(changes["dob"], datetime.min.time())

    changes["updated_at"] = utcnow()
    await collection_for(db, role).update_one({id_field(role): account_id}, {"$set": changes})
    return await load_profile(db, role, account_id)


async def _send_otp(email: str, name: str, code: str):
    try:
        await mailer.send_otp_email(email, name, code)
    except mailer.EmailDeliveryError:
        raise HTTPException(status_code=502, detail="Failed to send email. Please try again.")


# ==================== EMAIL CHANGE ====================

async def request_email_change(db: AsyncIOMotorDatabase, account: AccountContext, new_email: str):
    """
    Send an OTP to the new address; the email only changes after verify_email_change.

    Raises:
        400: Same as current email
        409: Email used by another account of this role
    """
    new_email = new_email.lower()
    if new_email == (account.email or "").lower():
        raise HTTPException(status_code=400, detail="New email is the same as the current email")

    if await collection_for(db, account.role).find_one({"email": new_email}, {"_id": 1}):
        raise HTTPException(status_code=409, detail="Email already in use")

    code = await otp_store.issue_otp(
        db, new_email, account.role.value, OTPType.EMAIL_VERIFY,
        payload={"account_id": account.account_id},
    )
    await _send_otp(new_email, account.first_name or new_email, code)


async def verify_email_change(db: AsyncIOMotorDatabase, account: AccountContext, new_email: str, code: str) -> dict:
    new_email = new_email.lower()
    pending = await otp_store.get_pending(db, new_email, account.role.value, OTPType.EMAIL_VERIFY)
    if not pending or pending.get("payload", {}).get("account_id") != account.account_id:
        raise HTTPException(status_code=400, detail="OTP not found. Please request a new one.")

    await otp_store.verify_otp(db, new_email, account.role.value, OTPType.EMAIL_VERIFY, code)

    if await collection_for(db, account.role).find_one({"email": new_email}, {"_id": 1}):
        raise HTTPException(status_code=409, detail="Email already in use")

    await collection_for(db, account.role).update_one(
        {id_field(account.role): account.account_id},
        {"$set": {"email": new_email, "is_verified": True, "updated_at": utcnow()}},
    )
    auth_logger.info("Email changed for %s %s", account.role.value, account.account_id)
    return await load_profile(db, account.role, account.account_id)


# ==================== PASSWORD CHANGE ====================

async def request_password_change(db: AsyncIOMotorDatabase, account: AccountContext,
                                  current_password: str, new_password: str):
    """Check the current password and mail an OTP; the new hash waits in the OTP record"""
    stored = await collection_for(db, account.role).find_one(
        {id_field(account.role): account.account_id}, {"password_hash": 1},
    )
    if not stored or not stored.get("password_hash"):
        raise HTTPException(status_code=400, detail="This account uses Google sign-in and has no password")

    if not verify_password(current_password, stored["password_hash"]):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    if verify_password(new_password, stored["password_hash"]):
        raise HTTPException(status_code=400, detail="New password must differ from the current password")

    code = await otp_store.issue_otp(
        db, account.email, account.role.value, OTPType.PASSWORD_CHANGE,
        payload={"password_hash": hash_password(new_password)},
    )
    await _send_otp(account.email, account.first_name or account.email, code)


async def resend_password_otp(db: AsyncIOMotorDatabase, account: AccountContext):
    pending = await otp_store.get_pending(db, account.email, account.role.value, OTPType.PASSWORD_CHANGE)
    if not pending:
        raise HTTPException(status_code=400, detail="No password change in progress")

    code = await otp_store.issue_otp(
        db, account.email, account.role.value, OTPType.PASSWORD_CHANGE,
        payload=pending.get("payload"),
    )
    await _send_otp(account.email, account.first_name or account.email, code)


async def verify_password_change(db: AsyncIOMotorDatabase, account: AccountContext, code: str):
    record = await otp_store.verify_otp(db, account.email, account.role.value, OTPType.PASSWORD_CHANGE, code)
    new_hash = record.get("payload", {}).get("password_hash")
    if not new_hash:
        raise HTTPException(status_code=400, detail="No password change in progress")

    await collection_for(db, account.role).update_one(
        {id_field(account.role): account.account_id},
        {"$set": {"password_hash": new_hash, "updated_at": utcnow()}},
    )
    auth_logger.info("Password changed for %s %s", account.role.value, account.account_id)


# ==================== ACCOUNT ====================

async def deactivate(db: AsyncIOMotorDatabase, account: AccountContext):
    """Soft delete; logging in again reactivates the account"""
    await collection_for(db, account.role).update_one(
        {id_field(account.role): account.account_id},
        {"$set": {"is_active": False, "deactivated_at": utcnow(), "updated_at": utcnow()}},
    )
    auth_logger.info("%s %s deactivated", account.role.value, account.account_id)


async def request_tutor_verification(db: AsyncIOMotorDatabase, account: AccountContext) -> dict:
    """
    Raises:
        400: Already verified / already pending / profile incomplete
    """
    profile = account.profile
    if profile.get("is_admin_verified"):
        raise HTTPException(status_code=400, detail="Profile already verified")
    if profile.get("verification_status") == "pending":
        raise HTTPException(status_code=400, detail="Verification request already pending")

    missing = [field for field in ("first_name", "bio", "expertise") if not profile.get(field)]
    if missing:
        raise HTTPException(
            status_code=400,
            detail={"message": "Complete your profile before requesting verification", "missing": missing},
        )

    await db.tutors.update_one(
        {"tutor_id": account.account_id},
        {"$set": {"verification_status": "pending", "verification_requested_at": utcnow(), "updated_at": utcnow()}},
    )
    await notify_admins(
        db, NotificationType.VERIFY_PROFILE,
        f"{full_name(profile) or account.email} requested profile verification",
        reference_id=account.account_id,
    )
    return await load_profile(db, Role.TUTOR, account.account_id)
