"""
JWT issuing and cookie transport
Each role carries its own access / refresh cookie pair.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Response

from elevateu.core.config import (
    ACCESS_TOKEN_SECRET, REFRESH_TOKEN_SECRET, JWT_ALGORITHM,
    TOKEN_EXPIRY, TOKEN_NAMES, IS_PRODUCTION, COOKIE_DOMAIN,
)

ISSUER = "elevateu-api"

_SECRETS = {"access": ACCESS_TOKEN_SECRET, "refresh": REFRESH_TOKEN_SECRET}
_LIFETIMES = {"access": TOKEN_EXPIRY["ACCESS"], "refresh": TOKEN_EXPIRY["REFRESH"]}


class TokenError(Exception):
    pass


def create_token(subject: str, role: str, token_type: str = "access") -> str:
    now = datetime.utcnow()
    payload = {
        "sub": subject,
        "role": role,
        "type": token_type,
        "jti": str(uuid.uuid4()),
        "iss": ISSUER,
        "iat": now,
        "exp": now + timedelta(seconds=_LIFETIMES[token_type]),
    }
    return jwt.encode(payload, _SECRETS[token_type], algorithm=JWT_ALGORITHM)


def decode_token(token: str, role: str, token_type: str = "access") -> dict:
    """
    Verify signature, expiry, issuer, token type and role.

    Raises:
        TokenError: on any mismatch
    """
    if not token:
        raise TokenError("Token not found")
    try:
        payload = jwt.decode(token, _SECRETS[token_type], algorithms=[JWT_ALGORITHM], issuer=ISSUER)
    except jwt.ExpiredSignatureError:
        raise TokenError("Token expired")
    except jwt.InvalidTokenError:
        raise TokenError("Invalid token")

    if payload.get("type") != token_type or payload.get("role") != role:
        raise TokenError("Invalid token")
    return payload


# ==================== COOKIES ====================

def cookie_options() -> dict:
    # SameSite=None requires Secure, so plain-HTTP development uses Lax
    return {
        "httponly": True,
        "secure": IS_PRODUCTION,
        "samesite": "none" if IS_PRODUCTION else "lax",
        "domain": COOKIE_DOMAIN if IS_PRODUCTION else None,
        "path": "/",
    }


def access_cookie_name(role: str) -> str:
    return TOKEN_NAMES[role]["access"]


def refresh_cookie_name(role: str) -> str:
    return TOKEN_NAMES[role]["refresh"]


def set_access_cookie(response: Response, role: str, subject: str) -> str:
    token = create_token(subject, role, "access")
    response.set_cookie(access_cookie_name(role), token, max_age=TOKEN_EXPIRY["ACCESS"], **cookie_options())
    return token


def set_auth_cookies(response: Response, role: str, subject: str) -> None:
    set_access_cookie(response, role, subject)
    refresh = create_token(subject, role, "refresh")
    response.set_cookie(refresh_cookie_name(role), refresh, max_age=TOKEN_EXPIRY["REFRESH"], **cookie_options())


def clear_auth_cookies(response: Response, role: str) -> None:
    options = cookie_options()
    for name in (access_cookie_name(role), refresh_cookie_name(role)):
        response.delete_cookie(
            name,
            path=options["path"],
            domain=options["domain"],
            secure=options["secure"],
            httponly=True,
            samesite=options["samesite"],
        )


def read_cookie_token(cookies: dict, role: str, token_type: str = "access") -> Optional[str]:
    name = access_cookie_name(role) if token_type == "access" else refresh_cookie_name(role)
    return cookies.get(name)
