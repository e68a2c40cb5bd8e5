"""
Authentication routes
User and tutor share one router factory; admins get a smaller bootstrap router.
Common OTP routes live under /api.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth import oauth, service
from elevateu.auth import otp as otp_store
from elevateu.auth.otp import OTPType
from elevateu.auth.guard import AccountContext, verify_access_token
from elevateu.auth.roles import Role, collection_for, id_field
from elevateu.auth.schemas import (
    RegisterRequest, LoginRequest, GenerateOTPRequest, VerifyOTPRequest,
    ForgotPasswordRequest, ResetPasswordRequest,
)
from elevateu.auth.tokens import (
    TokenError, clear_auth_cookies, decode_token, read_cookie_token,
    set_access_cookie, set_auth_cookies,
)
from elevateu.core.config import ADMIN_SIGNUP_ENABLED, CLIENT_URL
from elevateu.core.database import get_db
from elevateu.core.logger import auth_logger
from elevateu.core.rate_limiting import limit, role_scoped
from elevateu.core.utils import success


def _session_body(role: Role, account: dict) -> dict:
    profile = service.public_profile(account)
    return {"role": role.value, role.value: profile}


def build_auth_router(role: Role) -> APIRouter:
    """Signup / login / OAuth routes for a self-registering role (user, tutor)"""
    role = Role(role)
    name = role.value.capitalize()
    router = APIRouter(tags=[f"Auth - {name}"])
    current_account = verify_access_token(role)
    current_account_any = verify_access_token(role, allow_blocked=True)

    @router.post("/signup")
    @limit("auth")
    @role_scoped(role.value)
    async def signup(
        request: Request,
        response: Response,
        payload: RegisterRequest,
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        """Create an account; the email must have a verified signup OTP"""
        account = await service.register(
            db, role, payload.email, payload.password, payload.first_name, payload.last_name,
        )
        set_auth_cookies(response, role.value, account[id_field(role)])
        return success(f"{name} registered successfully", _session_body(role, account))

    @router.post("/login")
    @limit("strict")
    @role_scoped(role.value)
    async def login(
        request: Request,
        response: Response,
        payload: LoginRequest,
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        account = await service.authenticate(db, role, payload.email, payload.password)
        set_auth_cookies(response, role.value, account[id_field(role)])
        auth_logger.info("%s logged in: %s", name, account[id_field(role)])
        return success(f"{name} logged in successfully", _session_body(role, account))

    @router.delete("/logout")
    async def logout(response: Response):
        clear_auth_cookies(response, role.value)
        return success("Logged out successfully")

    @router.post("/forgot-password")
    @limit("strict")
    @role_scoped(role.value)
    async def forgot_password(
        request: Request,
        payload: ForgotPasswordRequest,
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await service.start_password_reset(db, role, payload.email)
        return success("Password reset OTP sent to your email")

    @router.post("/reset-password")
    @limit("strict")
    @role_scoped(role.value)
    async def reset_password(
        request: Request,
        payload: ResetPasswordRequest,
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await service.reset_password(db, role, payload.email, payload.otp, payload.new_password)
        return success("Password reset successfully")

    # ==================== GOOGLE OAUTH ====================

    @router.get("/google")
    async def google_login():
        return RedirectResponse(oauth.authorization_url(role.value), status_code=302)

    @router.get("/auth-callback")
    async def google_callback(
        code: Optional[str] = None,
        state: Optional[str] = None,
        error: Optional[str] = None,
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        failure = RedirectResponse(f"/api/{role.value}/auth-failure", status_code=302)
        if error or not code or not state:
            return failure

        try:
            oauth.verify_state(state, role.value)
            profile = await oauth.fetch_google_profile(code, role.value)
        except oauth.OAuthError as e:
            auth_logger.warning("Google sign-in failed for %s: %s", role.value, e)
            return failure

        try:
            account = await service.google_sign_in(db, role, profile)
        except HTTPException as e:
            auth_logger.warning("Google sign-in refused for %s: %s", profile["email"], e.detail)
            return failure

        redirect_path = "" if role == Role.USER else f"/{role.value}"
        response = RedirectResponse(f"{CLIENT_URL}{redirect_path}/dashboard", status_code=302)
        set_auth_cookies(response, role.value, account[id_field(role)])
        return response

    @router.get("/auth-failure")
    async def google_failure():
        raise HTTPException(status_code=401, detail="Google authentication failed")

    # ==================== SESSION ====================

    @router.get("/auth-load")
    @limit("read")
    @role_scoped(role.value)
    async def auth_load(request: Request, account: AccountContext = Depends(current_account)):
        return success(f"{name} authenticated", _session_body(role, account.profile))

    @router.get("/isblocked")
    @limit("read")
    @role_scoped(role.value)
    async def is_blocked(request: Request, account: AccountContext = Depends(current_account_any)):
        if account.is_blocked:
            raise HTTPException(
                status_code=403,
                detail={"message": "Your account has been blocked", "isBlocked": True},
            )
        return success(f"{name} is not blocked", {"isBlocked": False})

    if role == Role.TUTOR:
        @router.get("/is-verified")
        @limit("read")
        @role_scoped(role.value)
        async def is_verified(request: Request, account: AccountContext = Depends(current_account)):
            profile = account.profile
            return success("Verification status", {
                "isVerified": bool(profile.get("is_admin_verified")),
                "status": profile.get("verification_status", "unverified"),
            })

    return router


# ==================== ADMIN ====================

def build_admin_auth_router() -> APIRouter:
    router = APIRouter(tags=["Auth - Admin"])

    @router.post("/signup")
    @limit("auth")
    @role_scoped("admin")
    async def signup(
        request: Request,
        response: Response,
        payload: RegisterRequest,
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        """Bootstrap the first admin; later admins only when explicitly enabled"""
        if not ADMIN_SIGNUP_ENABLED and await db.admins.count_documents({}) > 0:
            raise HTTPException(status_code=403, detail="Admin registration is closed")

        account = await service.register(
            db, Role.ADMIN, payload.email, payload.password,
            payload.first_name, payload.last_name, require_otp=False,
        )
        set_auth_cookies(response, Role.ADMIN.value, account["admin_id"])
        return success("Admin registered successfully", _session_body(Role.ADMIN, account))

    @router.post("/login")
    @limit("strict")
    @role_scoped("admin")
    async def login(
        request: Request,
        response: Response,
        payload: LoginRequest,
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        account = await service.authenticate(db, Role.ADMIN, payload.email, payload.password)
        set_auth_cookies(response, Role.ADMIN.value, account["admin_id"])
        auth_logger.info("Admin logged in: %s", account["admin_id"])
        return success("Admin logged in successfully", _session_body(Role.ADMIN, account))

    @router.delete("/logout")
    async def logout(response: Response):
        clear_auth_cookies(response, Role.ADMIN.value)
        return success("Logged out successfully")

    @router.patch("/refresh-token")
    async def refresh_token(
        request: Request,
        response: Response,
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        """Mint a new access cookie from the admin refresh cookie"""
        token = read_cookie_token(request.cookies, Role.ADMIN.value, "refresh")
        try:
            subject = decode_token(token, Role.ADMIN.value, "refresh")["sub"]
        except TokenError as e:
            raise HTTPException(status_code=401, detail=str(e))

        if not await collection_for(db, Role.ADMIN).find_one({"admin_id": subject}, {"_id": 1}):
            raise HTTPException(status_code=404, detail="Admin not found")

        set_access_cookie(response, Role.ADMIN.value, subject)
        return success("Access token refreshed")

    return router


# ==================== COMMON OTP ====================

common_router = APIRouter(tags=["Auth - Common"])


@common_router.post("/generate-otp")
@limit("strict")
async def generate_otp(
    request: Request,
    payload: GenerateOTPRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Send a signup OTP to an email not yet registered for the role"""
    await service.send_signup_otp(db, payload.email, Role(payload.role), payload.name)
    return success("OTP sent to your email")


@common_router.post("/verify-otp")
@limit("strict")
async def verify_otp(
    request: Request,
    payload: VerifyOTPRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Verify a signup OTP; signup must follow within the grace window"""
    await otp_store.verify_otp(
        db, payload.email, payload.role, OTPType.SIGNUP, payload.otp, consume=False,
    )
    return success("OTP verified successfully")
