"""
ElevateU Configuration
Environment-driven settings shared by every router
"""

import os
from types import MappingProxyType


def require_env(key: str) -> str:
    """Get required environment variable or crash"""
    value = os.getenv(key)
    if not value:
        raise RuntimeError(f"FATAL: Missing required environment variable: {key}")
    return value


def _env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


ENVIRONMENT = os.getenv("NODE_ENV", os.getenv("ENVIRONMENT", "development"))
IS_PRODUCTION = ENVIRONMENT == "production"

# ==================== DATABASE ====================

MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "elevateu")

# ==================== CLIENTS / CORS ====================

CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173")
CLIENT_URL_2 = os.getenv("CLIENT_URL_2")
ALLOWED_ORIGINS = [origin for origin in (CLIENT_URL, CLIENT_URL_2) if origin]
COOKIE_DOMAIN = os.getenv("DOMAIN")

# ==================== TOKENS ====================

ROLES = ("user", "tutor", "admin")

ACCESS_TOKEN_SECRET = os.getenv("ACCESS_TOKEN_SECRET", "dev-access-secret")
REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", "dev-refresh-secret")
JWT_ALGORITHM = "HS256"

# Seconds
TOKEN_EXPIRY = MappingProxyType({
    "ACCESS": 24 * 60 * 60,
    "REFRESH": 7 * 24 * 60 * 60,
    "OTP": 5 * 60,
    "RESET_OTP": 10 * 60,
})

TOKEN_NAMES = MappingProxyType({
    role: MappingProxyType({
        "access": os.getenv(f"{role.upper()}_ACCESS_TOKEN_NAME", f"{role}_access_token"),
        "refresh": os.getenv(f"{role.upper()}_REFRESH_TOKEN_NAME", f"{role}_refresh_token"),
    })
    for role in ROLES
})

ADMIN_SIGNUP_ENABLED = _env_bool("ADMIN_SIGNUP_ENABLED")

# ==================== SECURITY ====================

BCRYPT_SALT_ROUNDS = 10
OTP_LENGTH = 6
OTP_MAX_ATTEMPTS = 5

# ==================== RATE LIMITS ====================

RATE_LIMITS = MappingProxyType({
    "strict": "3 per 15 minutes",
    "auth": "10 per 15 minutes",
    "standard": "100 per 15 minutes",
    "read": "200 per 15 minutes",
    "public": "50 per 15 minutes",
})
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)

# ==================== PAGINATION ====================

PAGINATION = MappingProxyType({
    "DEFAULT_PAGE": 1,
    "DEFAULT_LIMIT": 10,
    "MAX_LIMIT": 100,
})

# ==================== PAYMENTS ====================

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
RAZORPAY_SECRET_KEY = os.getenv("RAZORPAY_SECRET_KEY", "")
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", "")
CURRENCY = "INR"

# Percentage of every sale kept by the platform
PLATFORM_FEE_PERCENT = float(os.getenv("PLATFORM_FEE_PERCENT", "10"))
MIN_WITHDRAWAL_AMOUNT = float(os.getenv("MIN_WITHDRAWAL_AMOUNT", "100"))
PLATFORM_WALLET_OWNER = "platform"

# ==================== EMAIL ====================

SENDER_EMAIL = os.getenv("SENDER_EMAIL")
SENDER_PASS = os.getenv("SENDER_PASS")
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))

# ==================== OAUTH ====================

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
SERVER_URL = os.getenv("SERVER_URL", "http://localhost:9000")

# ==================== NOTIFICATIONS ====================

NOTIFICATION_RETENTION_DAYS = int(os.getenv("NOTIFICATION_RETENTION_DAYS", "7"))
NOTIFICATION_PURGE_INTERVAL_SECONDS = int(os.getenv("NOTIFICATION_PURGE_INTERVAL_SECONDS", "3600"))

# ==================== LOGGING ====================

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if not IS_PRODUCTION else "INFO")
