"""
Wallet service
Balances only move through single-document conditional updates; every
movement appends a transaction to the ledger.
"""

from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from elevateu.core.config import CURRENCY, MIN_WITHDRAWAL_AMOUNT, PLATFORM_WALLET_OWNER
from elevateu.core.logger import payment_logger
from elevateu.core.utils import generate_id, round_money
from elevateu.notifications.models import NotificationType
from elevateu.notifications.service import create_notification, notify_admins
from elevateu.wallet.models import (
    TransactionType, TransactionPurpose, TransactionStatus, WithdrawalStatus,
)


def wallet_owner(role: str, account_id: str) -> str:
    """Admins share the platform wallet"""
    return PLATFORM_WALLET_OWNER if role == "admin" else account_id


async def get_or_create_wallet(db: AsyncIOMotorDatabase, owner_id: str, owner_role: str) -> dict:
    now = datetime.utcnow()
    wallet = await db.wallets.find_one_and_update(
        {"owner_id": owner_id, "owner_role": owner_role},
        {"$setOnInsert": {
            "wallet_id": generate_id("WAL"),
            "balance": 0.0,
            "total_earnings": 0.0,
            "total_withdrawals": 0.0,
            "currency": CURRENCY,
            "payment_methods": [],
            "created_at": now,
            "updated_at": now,
        }},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    wallet.pop("_id", None)
    return wallet


async def record_transaction(
    db: AsyncIOMotorDatabase,
    wallet: dict,
    transaction_type: TransactionType,
    purpose: TransactionPurpose,
    amount: float,
    status: TransactionStatus = TransactionStatus.COMPLETED,
    description: str = "",
    reference: Optional[str] = None,
    platform_fee: float = 0.0,
) -> dict:
    now = datetime.utcnow()
    transaction = {
        "transaction_id": generate_id("TXN"),
        "wallet_id": wallet["wallet_id"],
        "owner_id": wallet["owner_id"],
        "owner_role": wallet["owner_role"],
        "type": TransactionType(transaction_type).value,
        "purpose": TransactionPurpose(purpose).value,
        "amount": round_money(amount),
        "platform_fee": round_money(platform_fee),
        "status": TransactionStatus(status).value,
        "description": description,
        "reference": reference,
        "created_at": now,
        "updated_at": now,
    }
    await db.transactions.insert_one(transaction)
    transaction.pop("_id", None)
    return transaction


async def credit(
    db: AsyncIOMotorDatabase,
    owner_id: str,
    owner_role: str,
    amount: float,
    purpose: TransactionPurpose,
    description: str,
    reference: Optional[str] = None,
    platform_fee: float = 0.0,
    earning: bool = True,
) -> dict:
    """Add to a balance; refunds pass earning=False so they do not count as income"""
    wallet = await get_or_create_wallet(db, owner_id, owner_role)
    amount = round_money(amount)
    increments = {"balance": amount}
    if earning:
        increments["total_earnings"] = amount

    await db.wallets.update_one(
        {"wallet_id": wallet["wallet_id"]},
        {"$inc": increments, "$set": {"updated_at": datetime.utcnow()}},
    )
    return await record_transaction(
        db, wallet, TransactionType.CREDIT, purpose, amount,
        description=description, reference=reference, platform_fee=platform_fee,
    )


async def debit_if_available(db: AsyncIOMotorDatabase, wallet_id: str, amount: float) -> bool:
    """
    Single conditional update: the balance check and the debit happen together,
    so concurrent withdrawals can never drive the balance negative.
    """
    amount = round_money(amount)
    result = await db.wallets.update_one(
        {"wallet_id": wallet_id, "balance": {"$gte": amount}},
        {"$inc": {"balance": -amount, "total_withdrawals": amount}, "$set": {"updated_at": datetime.utcnow()}},
    )
    return result.modified_count == 1


async def load_wallet(db: AsyncIOMotorDatabase, owner_id: str, owner_role: str, limit: int = 10) -> dict:
    wallet = await get_or_create_wallet(db, owner_id, owner_role)
    transactions = await db.transactions.find(
        {"wallet_id": wallet["wallet_id"]}, {"_id": 0},
    ).sort([("created_at", -1), ("_id", -1)]).limit(limit).to_list(length=limit)
    wallet["balance"] = round_money(wallet["balance"])
    return {"wallet": wallet, "transactions": transactions}


# ==================== PAYMENT METHODS ====================

async def add_payment_method(db: AsyncIOMotorDatabase, owner_id: str, owner_role: str, method: dict) -> dict:
    wallet = await get_or_create_wallet(db, owner_id, owner_role)
    method = dict(method)
    method["method_id"] = generate_id("PM")
    method["type"] = method["type"].value if hasattr(method["type"], "value") else method["type"]
    method["created_at"] = datetime.utcnow()

    methods = list(wallet.get("payment_methods") or [])
    # First method becomes the default
    if not methods:
        method["is_default"] = True
    elif method.get("is_default"):
        for existing in methods:
            existing["is_default"] = False
    methods.append(method)

    await db.wallets.update_one(
        {"wallet_id": wallet["wallet_id"]},
        {"$set": {"payment_methods": methods, "updated_at": datetime.utcnow()}},
    )
    return method


def pick_payment_method(wallet: dict, method_id: Optional[str]) -> dict:
    methods = wallet.get("payment_methods") or []
    if not methods:
        raise HTTPException(status_code=400, detail="Add bank or GPay details before requesting a withdrawal")
    if method_id:
        for method in methods:
            if method["method_id"] == method_id:
                return method
        raise HTTPException(status_code=404, detail="Payment method not found")
    return next((m for m in methods if m.get("is_default")), methods[0])


# ==================== WITHDRAWALS ====================

async def request_withdrawal(db: AsyncIOMotorDatabase, owner_id: str, owner_role: str,
                             owner_name: str, amount: float, method_id: Optional[str] = None) -> dict:
    """
    Reserve the amount now (conditional debit) and queue the request for an admin.

    Raises:
        400: Below minimum, no payment method, or insufficient balance
    """
    amount = round_money(amount)
    if amount < MIN_WITHDRAWAL_AMOUNT:
        raise HTTPException(status_code=400, detail=f"Minimum withdrawal amount is {MIN_WITHDRAWAL_AMOUNT:g}")

    wallet = await get_or_create_wallet(db, owner_id, owner_role)
    method = pick_payment_method(wallet, method_id)

    if not await debit_if_available(db, wallet["wallet_id"], amount):
        raise HTTPException(status_code=400, detail="Insufficient wallet balance")

    request_id = generate_id("WDR")
    transaction = await record_transaction(
        db, wallet, TransactionType.DEBIT, TransactionPurpose.WITHDRAWAL, amount,
        status=TransactionStatus.PENDING,
        description="Withdrawal request",
        reference=request_id,
    )

    now = datetime.utcnow()
    withdrawal = {
        "request_id": request_id,
        "wallet_id": wallet["wallet_id"],
        "owner_id": owner_id,
        "owner_name": owner_name,
        "owner_role": owner_role,
        "amount": amount,
        "payment_method": {k: v for k, v in method.items() if k != "created_at"},
        "status": WithdrawalStatus.PENDING.value,
        "admin_note": None,
        "transaction_id": transaction["transaction_id"],
        "created_at": now,
        "updated_at": now,
    }
    await db.withdrawal_requests.insert_one(withdrawal)
    withdrawal.pop("_id", None)

    await notify_admins(
        db, NotificationType.WITHDRAW_REQUEST,
        f"{owner_name} requested a withdrawal of {amount:g} {CURRENCY}",
        reference_id=request_id,
    )
    payment_logger.info("Withdrawal %s requested by %s %s for %s", request_id, owner_role, owner_id, amount)
    return withdrawal


async def admin_withdraw(db: AsyncIOMotorDatabase, amount: float, admin_id: str, note: Optional[str] = None) -> dict:
    """Withdraw from the platform wallet; completed immediately"""
    amount = round_money(amount)
    wallet = await get_or_create_wallet(db, PLATFORM_WALLET_OWNER, "admin")
    if not await debit_if_available(db, wallet["wallet_id"], amount):
        raise HTTPException(status_code=400, detail="Insufficient wallet balance")

    transaction = await record_transaction(
        db, wallet, TransactionType.DEBIT, TransactionPurpose.WITHDRAWAL, amount,
        description=note or f"Platform withdrawal by {admin_id}",
        reference=admin_id,
    )
    payment_logger.info("Platform withdrawal of %s by admin %s", amount, admin_id)
    return transaction


async def decide_withdrawal(db: AsyncIOMotorDatabase, request_id: str, action: str,
                            note: Optional[str], admin_id: str) -> dict:
    """
    pending -> processing -> completed, or pending/processing -> rejected.
    Rejection credits the reserved amount back.

    Raises:
        404: Unknown request
        400: Transition not allowed from the current status
    """
    withdrawal = await db.withdrawal_requests.find_one({"request_id": request_id}, {"_id": 0})
    if not withdrawal:
        raise HTTPException(status_code=404, detail="Withdrawal request not found")

    open_statuses = [WithdrawalStatus.PENDING.value, WithdrawalStatus.PROCESSING.value]
    if action == "processing":
        allowed, target = [WithdrawalStatus.PENDING.value], WithdrawalStatus.PROCESSING
    elif action == "approve":
        allowed, target = open_statuses, WithdrawalStatus.COMPLETED
    else:
        allowed, target = open_statuses, WithdrawalStatus.REJECTED

    now = datetime.utcnow()
    updated = await db.withdrawal_requests.find_one_and_update(
        {"request_id": request_id, "status": {"$in": allowed}},
        {"$set": {
            "status": target.value,
            "admin_note": note,
            "processed_by": admin_id,
            "updated_at": now,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=400, detail=f"Request is already {withdrawal['status']}")
    updated.pop("_id", None)

    transaction_status = {
        WithdrawalStatus.PROCESSING: TransactionStatus.PROCESSING,
        WithdrawalStatus.COMPLETED: TransactionStatus.COMPLETED,
        WithdrawalStatus.REJECTED: TransactionStatus.FAILED,
    }[target]
    await db.transactions.update_one(
        {"transaction_id": withdrawal["transaction_id"]},
        {"$set": {"status": transaction_status.value, "updated_at": now}},
    )

    amount = withdrawal["amount"]
    if target == WithdrawalStatus.REJECTED:
        await db.wallets.update_one(
            {"wallet_id": withdrawal["wallet_id"]},
            {"$inc": {"balance": amount, "total_withdrawals": -amount}, "$set": {"updated_at": now}},
        )
        wallet = await db.wallets.find_one({"wallet_id": withdrawal["wallet_id"]}, {"_id": 0})
        await record_transaction(
            db, wallet, TransactionType.CREDIT, TransactionPurpose.REFUND, amount,
            description="Withdrawal rejected, amount returned",
            reference=request_id,
        )
        await create_notification(
            db, withdrawal["owner_id"], withdrawal["owner_role"], NotificationType.WITHDRAW_REJECTED,
            f"Your withdrawal of {amount:g} {CURRENCY} was rejected: {note}", request_id,
        )
    elif target == WithdrawalStatus.COMPLETED:
        await create_notification(
            db, withdrawal["owner_id"], withdrawal["owner_role"], NotificationType.WITHDRAW_APPROVED,
            f"Your withdrawal of {amount:g} {CURRENCY} has been approved", request_id,
        )

    payment_logger.info("Withdrawal %s -> %s by admin %s", request_id, target.value, admin_id)
    return updated
