"""
Razorpay gateway
The SDK is synchronous, so calls run in a worker thread.
"""

import asyncio
import hashlib
import hmac

import razorpay

from elevateu.core.config import RAZORPAY_KEY_ID, RAZORPAY_SECRET_KEY, RAZORPAY_WEBHOOK_SECRET, CURRENCY
from elevateu.core.logger import payment_logger

razorpay_client = razorpay.Client(auth=(RAZORPAY_KEY_ID, RAZORPAY_SECRET_KEY))


class GatewayError(Exception):
    pass


def to_paise(amount: float) -> int:
    return int(round(amount * 100))


async def create_gateway_order(amount: float, receipt: str, notes: dict) -> dict:
    order_data = {
        "amount": to_paise(amount),
        "currency": CURRENCY,
        "receipt": receipt,
        "notes": notes,
    }
    try:
        return await asyncio.to_thread(razorpay_client.order.create, data=order_data)
    except (razorpay.errors.BadRequestError, razorpay.errors.ServerError) as e:
        payment_logger.error("Razorpay order creation failed: %s", e)
        raise GatewayError(str(e)) from e


def verify_payment_signature(order_id: str, payment_id: str, signature: str) -> bool:
    """HMAC-SHA256 of "order_id|payment_id" with the key secret"""
    if not signature:
        return False
    message = f"{order_id}|{payment_id}"
    generated_signature = hmac.new(
        RAZORPAY_SECRET_KEY.encode(),
        message.encode(),
        hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(generated_signature, signature)


def verify_webhook_signature(body: bytes, signature: str) -> bool:
    if not signature:
        return False
    try:
        razorpay_client.utility.verify_webhook_signature(body.decode(), signature, RAZORPAY_WEBHOOK_SECRET)
    except razorpay.errors.SignatureVerificationError:
        return False
    return True
