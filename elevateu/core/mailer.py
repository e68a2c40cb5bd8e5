"""
Email Service
Plain-text transactional mail over SMTP (OTP, password reset)
"""

import asyncio
import smtplib
from email.message import EmailMessage

from elevateu.core.config import SENDER_EMAIL, SENDER_PASS, SMTP_HOST, SMTP_PORT, TOKEN_EXPIRY
from elevateu.core.logger import get_module_logger

logger = get_module_logger("mail")

SIGNATURE = """
Best regards,
The ElevateU Team
www.ElevateU.edu
elevateulms@gmail.com
"""


class EmailDeliveryError(Exception):
    pass


def _send_sync(to: str, subject: str, body: str) -> None:
    message = EmailMessage()
    message["From"] = SENDER_EMAIL
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=20) as server:
        server.starttls()
        server.login(SENDER_EMAIL, SENDER_PASS)
        server.send_message(message)


async def send_email(to: str, subject: str, body: str) -> bool:
    """
    Send one email without blocking the event loop.

    Returns False when no SMTP credentials are configured (local development).
    Raises EmailDeliveryError when the SMTP server rejects the message.
    """
    if not SENDER_EMAIL or not SENDER_PASS:
        logger.warning("SMTP not configured, skipping mail '%s' to %s", subject, to)
        return False

    try:
        await asyncio.to_thread(_send_sync, to, subject, body)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Error sending mail to %s: %s", to, e)
        raise EmailDeliveryError("Error sending mail") from e

    logger.info("Mail '%s' sent to %s", subject, to)
    return True


async def send_otp_email(email: str, name: str, otp: str) -> bool:
    minutes = TOKEN_EXPIRY["OTP"] // 60
    body = f"""
Dear {name},

Welcome to ElevateU!

To ensure the security of your account, we require you to verify your email address. Please use the One-Time Password (OTP) provided below to complete your email verification:

Your OTP Code: {otp}

This code is valid for the next {minutes} minutes.
If you did not request this OTP, please ignore this email or contact our support team for assistance.
{SIGNATURE}"""
    return await send_email(email, "ElevateU Verification Message", body)


async def send_reset_password_email(email: str, name: str, otp: str) -> bool:
    minutes = TOKEN_EXPIRY["RESET_OTP"] // 60
    body = f"""
Dear {name},

We received a request to reset your password for your ElevateU account associated with this email address. If you didn't request a password reset, please ignore this email.

To reset your password, please use the One-Time Password (OTP) provided below:

{otp}

This code will expire in {minutes} minutes for your security. If the OTP has expired, you can request a new password reset OTP from the ElevateU website.
{SIGNATURE}"""
    return await send_email(email, "ElevateU Reset Password OTP", body)
