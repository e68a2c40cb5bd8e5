"""
Course orders
create -> (verify-payment | webhook) -> settle, or -> failed.
Settlement is guarded by a conditional status update so it runs once per order.
"""

from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from elevateu.auth.guard import AccountContext
from elevateu.core.config import CURRENCY, PLATFORM_FEE_PERCENT, PLATFORM_WALLET_OWNER, RAZORPAY_KEY_ID
from elevateu.core.logger import payment_logger
from elevateu.core.utils import generate_id, round_money
from elevateu.coupons import pricing
from elevateu.courses import database as courses_db
from elevateu.learning import service as learning
from elevateu.notifications.models import NotificationType
from elevateu.notifications.service import create_notification
from elevateu.orders import gateway
from elevateu.wallet import service as wallet
from elevateu.wallet.models import TransactionPurpose, TransactionType


class PaymentStatus:
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


def split_revenue(final_price: float) -> tuple:
    """(tutor share, platform fee)"""
    fee = round_money(final_price * PLATFORM_FEE_PERCENT / 100)
    return round_money(final_price - fee), fee


async def create_order(db: AsyncIOMotorDatabase, user: AccountContext, course_id: str) -> dict:
    """
    Raises:
        404: Course not found / not published
        409: Already enrolled
        400: Free course (use enroll-course)
        502: Gateway refused the order
    """
    course = await courses_db.get_public_course(db, course_id)
    if await learning.get_enrollment(db, user.account_id, course_id):
        raise HTTPException(status_code=409, detail="Already enrolled in this course")

    price = await pricing.price_for_user(db, course, user.account_id)
    if price["final_price"] <= 0:
        raise HTTPException(status_code=400, detail="This course is free, enroll directly")

    open_order = await db.orders.find_one(
        {"user_id": user.account_id, "course_id": course_id, "payment_status": PaymentStatus.PENDING}, {"_id": 0},
    )
    if open_order and open_order["price"]["final_price"] == price["final_price"]:
        payment_logger.info("Reusing pending order %s for %s / %s", open_order["order_id"], user.account_id, course_id)
        return _checkout(open_order)
    if open_order:
        # price changed since the last checkout (coupon applied or removed)
        await mark_failed(db, open_order["razorpay_order_id"], reason="Superseded by a new checkout")

    coupon = None
    if price["coupon_code"]:
        coupon = await pricing.find_coupon(db, price["coupon_code"])

    order_id = generate_id("ORD")
    try:
        gateway_order = await gateway.create_gateway_order(
            price["final_price"],
            receipt=order_id,
            notes={"order_id": order_id, "user_id": user.account_id, "course_id": course_id},
        )
    except gateway.GatewayError:
        raise HTTPException(status_code=502, detail="Could not create payment order. Please try again.")

    now = datetime.utcnow()
    order = {
        "order_id": order_id,
        "razorpay_order_id": gateway_order["id"],
        "user_id": user.account_id,
        "user_data": {"name": user.display_name, "email": user.email},
        "course_id": course_id,
        "course_name": course["title"],
        "tutor_id": course["tutor_id"],
        "payment_status": PaymentStatus.PENDING,
        "price": {
            "original_price": price["original_price"],
            "course_discount": price["course_discount"],
            "coupon_code": price["coupon_code"],
            "coupon_discount": price["coupon_discount"],
            "final_price": price["final_price"],
        },
        "coupon_id": coupon["coupon_id"] if coupon else None,
        "amount_paise": gateway.to_paise(price["final_price"]),
        "currency": CURRENCY,
        "razorpay_payment_id": None,
        "razorpay_signature": None,
        "created_at": now,
        "updated_at": now,
    }
    await db.orders.insert_one(order)
    order.pop("_id", None)
    payment_logger.info("Order %s created for %s / %s (%s)", order_id, user.account_id, course_id, price["final_price"])

    return _checkout(order)


def _checkout(order: dict) -> dict:
    return {
        "order": order,
        "key_id": RAZORPAY_KEY_ID,
        "razorpay_order_id": order["razorpay_order_id"],
        "amount": order["amount_paise"],
        "currency": order["currency"],
    }


async def settle_order(db: AsyncIOMotorDatabase, razorpay_order_id: str, payment_id: str,
                       signature: Optional[str] = None, via: str = "verify") -> tuple:
    """
    Move an order to success and deliver the purchase. Returns (order, settled_now).
    Only the caller that wins the status update moves money; later calls
    (the webhook after the frontend verify, a double click) are no-ops.
    """
    now = datetime.utcnow()
    order = await db.orders.find_one_and_update(
        {"razorpay_order_id": razorpay_order_id, "payment_status": {"$in": [PaymentStatus.PENDING, PaymentStatus.FAILED]}},
        {"$set": {
            "payment_status": PaymentStatus.SUCCESS,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
            "verified_via": via,
            "paid_at": now,
            "updated_at": now,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if not order:
        existing = await db.orders.find_one({"razorpay_order_id": razorpay_order_id}, {"_id": 0})
        if not existing:
            raise HTTPException(status_code=404, detail="Order not found")
        return existing, False

    order.pop("_id", None)
    await _deliver_purchase(db, order)
    payment_logger.info("Order %s settled via %s", order["order_id"], via)
    return order, True


async def _deliver_purchase(db: AsyncIOMotorDatabase, order: dict):
    final_price = order["price"]["final_price"]
    course = await courses_db.get_course(db, order["course_id"]) or {
        "course_id": order["course_id"], "tutor_id": order["tutor_id"], "title": order["course_name"],
    }

    _, created = await learning.enroll_user(db, order["user_id"], course, order["order_id"], final_price)
    if not created:
        payment_logger.warning("Order %s paid for an existing enrollment, flagged for refund", order["order_id"])
        await db.orders.update_one(
            {"order_id": order["order_id"]},
            {"$set": {"refund_required": True, "updated_at": datetime.utcnow()}},
        )
        order["refund_required"] = True
        await create_notification(
            db, order["user_id"], "user", NotificationType.PAYMENT_UPDATE,
            f"You already own '{order['course_name']}'; this payment will be refunded", order["order_id"],
        )
        return

    if order.get("coupon_id") and not await pricing.claim_coupon(db, order["coupon_id"], order["user_id"]):
        payment_logger.warning("Coupon %s could not be claimed for order %s", order["coupon_id"], order["order_id"])

    tutor_share, platform_fee = split_revenue(final_price)
    await wallet.credit(
        db, order["tutor_id"], "tutor", tutor_share, TransactionPurpose.COURSE_PURCHASE,
        f"Sale of '{order['course_name']}'", reference=order["order_id"], platform_fee=platform_fee,
    )
    await db.tutors.update_one({"tutor_id": order["tutor_id"]}, {"$inc": {"total_earnings": tutor_share}})

    if platform_fee > 0:
        await wallet.credit(
            db, PLATFORM_WALLET_OWNER, "admin", platform_fee, TransactionPurpose.COMMISSION,
            f"Commission on '{order['course_name']}'", reference=order["order_id"],
        )

    # Paid through the gateway; the user's ledger shows the purchase without touching the balance
    user_wallet = await wallet.get_or_create_wallet(db, order["user_id"], "user")
    await wallet.record_transaction(
        db, user_wallet, TransactionType.DEBIT, TransactionPurpose.COURSE_PURCHASE, final_price,
        description=f"Purchase of '{order['course_name']}'", reference=order["order_id"],
    )

    await db.applied_coupons.delete_one({"user_id": order["user_id"], "course_id": order["course_id"]})
    await db.users.update_one({"user_id": order["user_id"]}, {"$pull": {"cart": order["course_id"]}})

    await create_notification(
        db, order["tutor_id"], "tutor", NotificationType.NEW_ENROLLMENT,
        f"{order['user_data']['name']} enrolled in '{order['course_name']}'", order["course_id"],
    )
    await create_notification(
        db, order["user_id"], "user", NotificationType.PAYMENT_UPDATE,
        f"Payment of {final_price:g} {order['currency']} for '{order['course_name']}' was successful", order["order_id"],
    )


async def mark_failed(db: AsyncIOMotorDatabase, razorpay_order_id: str, reason: Optional[str] = None,
                      user_id: Optional[str] = None) -> Optional[dict]:
    """pending -> failed; None when the order is not pending (or not the user's)"""
    query = {"razorpay_order_id": razorpay_order_id, "payment_status": PaymentStatus.PENDING}
    if user_id:
        query["user_id"] = user_id
    order = await db.orders.find_one_and_update(
        query,
        {"$set": {"payment_status": PaymentStatus.FAILED, "failure_reason": reason, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if order:
        order.pop("_id", None)
        payment_logger.info("Order %s marked failed: %s", order["order_id"], reason)
        await create_notification(
            db, order["user_id"], "user", NotificationType.PAYMENT_UPDATE,
            f"Payment for '{order['course_name']}' failed", order["order_id"],
        )
    return order
