"""
Google OAuth (authorization-code flow)
Identity verification is delegated to Google; we only read the verified
email / profile returned by the userinfo endpoint.
"""

from datetime import datetime, timedelta
from urllib.parse import urlencode

import httpx
import jwt

from elevateu.core.config import (
    GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, SERVER_URL,
    ACCESS_TOKEN_SECRET, JWT_ALGORITHM,
)
from elevateu.core.logger import auth_logger

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

STATE_TTL_SECONDS = 10 * 60


class OAuthError(Exception):
    pass


def callback_url(role: str) -> str:
    return f"{SERVER_URL}/api/{role}/auth-callback"


def create_state(role: str) -> str:
    """Signed, short-lived state so the callback knows the role and can reject forgeries"""
    payload = {
        "role": role,
        "purpose": "google-oauth",
        "exp": datetime.utcnow() + timedelta(seconds=STATE_TTL_SECONDS),
    }
    return jwt.encode(payload, ACCESS_TOKEN_SECRET, algorithm=JWT_ALGORITHM)


def verify_state(state: str, role: str) -> None:
    try:
        payload = jwt.decode(state, ACCESS_TOKEN_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        raise OAuthError("Invalid OAuth state")
    if payload.get("purpose") != "google-oauth" or payload.get("role") != role:
        raise OAuthError("Invalid OAuth state")


def authorization_url(role: str) -> str:
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": callback_url(role),
        "response_type": "code",
        "scope": "openid profile email",
        "state": create_state(role),
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def fetch_google_profile(code: str, role: str) -> dict:
    """
    Exchange the authorization code and return the Google profile:
    {google_id, email, first_name, last_name, profile_image}
    """
    async with httpx.AsyncClient(timeout=20) as client:
        token_response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": callback_url(role),
                "grant_type": "authorization_code",
            },
        )
        if token_response.status_code != 200:
            auth_logger.warning("Google token exchange failed: %s", token_response.text)
            raise OAuthError("Google token exchange failed")

        access_token = token_response.json().get("access_token")
        userinfo_response = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    if userinfo_response.status_code != 200:
        raise OAuthError("Could not load Google profile")

    info = userinfo_response.json()
    if not info.get("email") or not info.get("email_verified", False):
        raise OAuthError("Google account email is not verified")

    return {
        "google_id": info.get("sub"),
        "email": info["email"].lower(),
        "first_name": info.get("given_name") or info["email"].split("@")[0],
        "last_name": info.get("family_name", ""),
        "profile_image": info.get("picture"),
    }
