"""
Role guard
Resolves the caller of a protected route from the role's cookie pair.
An expired access cookie is re-minted from a valid refresh cookie.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, Response
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth.roles import Role, collection_for, id_field
from elevateu.auth.tokens import TokenError, decode_token, read_cookie_token, set_access_cookie
from elevateu.core.database import get_db
from elevateu.core.logger import auth_logger


class AccountContext:
    """Authenticated account for the current request"""

    def __init__(self, role: Role, account_id: str, profile: dict):
        self.role = role
        self.account_id = account_id
        self.email = profile.get("email")
        self.first_name = profile.get("first_name")
        self.is_blocked = profile.get("is_blocked", False)
        self.profile = profile

    @property
    def display_name(self) -> str:
        parts = [self.profile.get("first_name"), self.profile.get("last_name")]
        return " ".join(p for p in parts if p) or (self.email or "")


async def load_account(db: AsyncIOMotorDatabase, role: Role, account_id: str) -> Optional[dict]:
    return await collection_for(db, role).find_one({id_field(role): account_id})


def _subject_from_cookies(request: Request, response: Response, role: Role) -> str:
    access = read_cookie_token(request.cookies, role.value, "access")
    try:
        return decode_token(access, role.value, "access")["sub"]
    except TokenError as access_error:
        refresh = read_cookie_token(request.cookies, role.value, "refresh")
        if not refresh:
            raise HTTPException(status_code=401, detail=str(access_error))
        try:
            subject = decode_token(refresh, role.value, "refresh")["sub"]
        except TokenError as refresh_error:
            raise HTTPException(status_code=401, detail=str(refresh_error))

        set_access_cookie(response, role.value, subject)
        auth_logger.debug("Access token refreshed for %s %s", role.value, subject)
        return subject


def verify_access_token(role: Role, allow_blocked: bool = False):
    """
    Dependency factory: validates the caller holds a session for `role`.

    Raises:
        401: Missing / invalid / expired tokens
        403: Account blocked
        404: Account no longer exists
    """
    role = Role(role)

    async def dependency(
        request: Request,
        response: Response,
        db: AsyncIOMotorDatabase = Depends(get_db),
    ) -> AccountContext:
        subject = _subject_from_cookies(request, response, role)

        profile = await load_account(db, role, subject)
        if not profile:
            raise HTTPException(status_code=404, detail="User not found")

        if profile.get("is_blocked") and not allow_blocked:
            raise HTTPException(status_code=403, detail="Access denied. Your account has been blocked.")

        return AccountContext(role, subject, profile)

    dependency.__name__ = f"verify_{role.value}_access_token"
    return dependency


get_current_user = verify_access_token(Role.USER)
get_current_tutor = verify_access_token(Role.TUTOR)
get_current_admin = verify_access_token(Role.ADMIN)


async def authenticate_socket_token(db: AsyncIOMotorDatabase, role: Role, token: str) -> AccountContext:
    """Websocket variant: no response to refresh cookies on, so access token only"""
    try:
        subject = decode_token(token, role.value, "access")["sub"]
    except TokenError as e:
        raise PermissionError(str(e))

    profile = await load_account(db, role, subject)
    if not profile or profile.get("is_blocked"):
        raise PermissionError("Unauthorized")
    return AccountContext(role, subject, profile)
