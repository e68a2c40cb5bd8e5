import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel

from elevateu.auth.guard import AccountContext, get_current_admin, get_current_user
from elevateu.core.database import get_db
from elevateu.core.logger import payment_logger
from elevateu.core.rate_limiting import limit
from elevateu.core.utils import success, page_params, page_meta, search_regex
from elevateu.courses.models import CourseRef
from elevateu.orders import gateway, service


class PaymentVerifyRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentFailedRequest(BaseModel):
    reason: Optional[str] = None


# ==================== USER ====================

user_router = APIRouter(tags=["User - Orders"])


@user_router.post("/create-order", status_code=201)
@limit("standard")
async def create_order(
    request: Request,
    payload: CourseRef,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return success("Order created", await service.create_order(db, user, payload.course_id))


@user_router.post("/verify-payment")
@limit("standard")
async def verify_payment(
    request: Request,
    payload: PaymentVerifyRequest,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """
    Check the checkout signature and settle the order.
    Calling it again for a settled order returns the order unchanged.
    """
    order = await db.orders.find_one(
        {"razorpay_order_id": payload.razorpay_order_id, "user_id": user.account_id}, {"_id": 0},
    )
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    if not gateway.verify_payment_signature(
        payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature,
    ):
        payment_logger.warning("Invalid payment signature for order %s", order["order_id"])
        raise HTTPException(status_code=400, detail="Payment verification failed")

    order, settled_now = await service.settle_order(
        db, payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature, via="verify",
    )
    message = "Payment verified successfully" if settled_now else "Payment already verified"
    return success(message, order)


@user_router.patch("/failed-payment/{razorpay_order_id}")
@limit("standard")
async def failed_payment(
    request: Request,
    razorpay_order_id: str,
    payload: Optional[PaymentFailedRequest] = None,
    user: AccountContext = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    reason = payload.reason if payload else None
    order = await service.mark_failed(db, razorpay_order_id, reason or "Payment failed at checkout", user.account_id)
    if not order:
        existing = await db.orders.find_one(
            {"razorpay_order_id": razorpay_order_id, "user_id": user.account_id}, {"_id": 0},
        )
        if not existing:
            raise HTTPException(status_code=404, detail="Order not found")
        raise HTTPException(status_code=400, detail=f"Order is already {existing['payment_status']}")
    return success("Payment marked as failed", order)


# ==================== WEBHOOK ====================

webhook_router = APIRouter(tags=["Payments"])


@webhook_router.post("/payments/webhook")
async def razorpay_webhook(request: Request, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Razorpay events, authenticated by X-Razorpay-Signature instead of cookies"""
    body = await request.body()
    if not gateway.verify_webhook_signature(body, request.headers.get("X-Razorpay-Signature")):
        payment_logger.warning("Webhook signature verification failed")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        event_data = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")

    event = event_data.get("event")
    payment_entity = event_data.get("payload", {}).get("payment", {}).get("entity", {})
    razorpay_order_id = payment_entity.get("order_id")

    if event == "payment.captured" and razorpay_order_id:
        order = await db.orders.find_one({"razorpay_order_id": razorpay_order_id}, {"_id": 0})
        if not order:
            payment_logger.warning("Webhook: no order for %s", razorpay_order_id)
            return {"status": "ok"}
        if payment_entity.get("amount") != order["amount_paise"] or payment_entity.get("currency") != order["currency"]:
            payment_logger.error("Webhook: amount / currency mismatch for %s", razorpay_order_id)
            return {"status": "error", "message": "Amount mismatch"}
        await service.settle_order(db, razorpay_order_id, payment_entity.get("id"), via="webhook")

    elif event == "payment.failed" and razorpay_order_id:
        await service.mark_failed(db, razorpay_order_id, payment_entity.get("error_description"))

    return {"status": "ok"}


# ==================== ADMIN ====================

admin_router = APIRouter(tags=["Admin - Orders"])


@admin_router.get("/orders")
@limit("read")
async def load_order_details(
    request: Request,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    search: Optional[str] = None,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    query = {}
    if status and status != "all":
        query["payment_status"] = status
    if search:
        pattern = search_regex(search)
        query["$or"] = [
            {"course_name": pattern},
            {"user_data.name": pattern},
            {"user_data.email": pattern},
            {"order_id": pattern},
        ]

    total = await db.orders.count_documents(query)
    orders = await db.orders.find(query, {"_id": 0, "razorpay_signature": 0}).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit).to_list(length=limit)
    return success("Orders loaded", orders, pagination=page_meta(total, page, limit))
