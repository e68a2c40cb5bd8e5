from fastapi import APIRouter, Depends, HTTPException, Request, Response
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth.guard import AccountContext, verify_access_token
from elevateu.auth.roles import Role
from elevateu.auth.tokens import clear_auth_cookies
from elevateu.core.database import get_db
from elevateu.core.rate_limiting import limit, role_scoped
from elevateu.core.utils import success
from elevateu.profiles import service
from elevateu.profiles.schemas import (
    ProfileUpdate, UpdateEmailRequest, VerifyEmailRequest,
    UpdatePasswordRequest, PasswordOTPRequest,
)


def build_profile_router(role: Role) -> APIRouter:
    role = Role(role)
    name = role.value.capitalize()
    router = APIRouter(tags=[f"{name} - Profile"])
    current_account = verify_access_token(role)

    @router.get("/profile")
    @limit("read")
    @role_scoped(role.value)
    async def load_profile(
        request: Request,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        profile = await service.load_profile(db, role, account.account_id)
        return success("Profile loaded", profile)

    async def _update(payload: ProfileUpdate, account: AccountContext, db: AsyncIOMotorDatabase):
        changes = payload.dict(exclude_unset=True, exclude_none=True)
        profile = await service.update_profile(db, role, account.account_id, changes)
        return success("Profile updated successfully", profile)

    @router.post("/update-profile")
    @limit("standard")
    @role_scoped(role.value)
    async def update_profile(
        request: Request,
        payload: ProfileUpdate,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        return await _update(payload, account, db)

    if role == Role.USER:
        @router.post("/update-profile/{account_id}")
        @limit("standard")
        @role_scoped(role.value)
        async def update_profile_by_id(
            request: Request,
            account_id: str,
            payload: ProfileUpdate,
            account: AccountContext = Depends(current_account),
            db: AsyncIOMotorDatabase = Depends(get_db),
        ):
            if account_id != account.account_id:
                raise HTTPException(status_code=403, detail="You can only update your own profile")
            return await _update(payload, account, db)

    # ==================== EMAIL ====================

    @router.patch("/update-email")
    @limit("standard")
    @role_scoped(role.value)
    async def update_email(
        request: Request,
        payload: UpdateEmailRequest,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await service.request_email_change(db, account, payload.email)
        return success("OTP sent to the new email")

    @router.patch("/verify-email")
    @limit("strict")
    @role_scoped(role.value)
    async def verify_email(
        request: Request,
        payload: VerifyEmailRequest,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        profile = await service.verify_email_change(db, account, payload.email, payload.otp)
        return success("Email updated successfully", profile)

    # ==================== PASSWORD ====================

    @router.patch("/profile/update-password")
    @limit("standard")
    @role_scoped(role.value)
    async def update_password(
        request: Request,
        payload: UpdatePasswordRequest,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await service.request_password_change(db, account, payload.current_password, payload.new_password)
        return success("OTP sent to your email")

    @router.patch("/profile/update-password/re-send-otp")
    @limit("strict")
    @role_scoped(role.value)
    async def resend_password_otp(
        request: Request,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await service.resend_password_otp(db, account)
        return success("OTP re-sent to your email")

    @router.patch("/profile/update-password/verify-otp")
    @limit("strict")
    @role_scoped(role.value)
    async def verify_password_otp(
        request: Request,
        payload: PasswordOTPRequest,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await service.verify_password_change(db, account, payload.otp)
        return success("Password updated successfully")

    @router.patch("/profile/deactivate-account")
    @limit("standard")
    @role_scoped(role.value)
    async def deactivate_account(
        request: Request,
        response: Response,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await service.deactivate(db, account)
        clear_auth_cookies(response, role.value)
        return success("Account deactivated")

    if role == Role.TUTOR:
        @router.patch("/request-verification/{tutor_id}")
        @limit("standard")
        @role_scoped(role.value)
        async def request_verification(
            request: Request,
            tutor_id: str,
            account: AccountContext = Depends(current_account),
            db: AsyncIOMotorDatabase = Depends(get_db),
        ):
            if tutor_id != account.account_id:
                raise HTTPException(status_code=403, detail="You can only request verification for yourself")
            profile = await service.request_tutor_verification(db, account)
            return success("Verification request sent", profile)

    return router
