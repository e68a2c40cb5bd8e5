from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth.guard import AccountContext, get_current_admin, get_current_tutor, verify_access_token
from elevateu.auth.roles import Role
from elevateu.core.config import PLATFORM_WALLET_OWNER
from elevateu.core.database import get_db
from elevateu.core.rate_limiting import limit, role_scoped
from elevateu.core.utils import success, page_params, page_meta, search_regex
from elevateu.wallet import service
from elevateu.wallet.models import TransactionPurpose, TransactionType, WithdrawalStatus
from elevateu.wallet.schemas import AdminWithdrawal, PaymentMethodCreate, WithdrawalCreate, WithdrawalDecision


def build_wallet_router(role: Role) -> APIRouter:
    """GET /wallet for one role; admins all see the platform wallet"""
    role = Role(role)
    router = APIRouter(tags=[f"{role.value.capitalize()} - Wallet"])
    current_account = verify_access_token(role)

    @router.get("/wallet")
    @limit("read")
    @role_scoped(role.value)
    async def load_wallet(
        request: Request,
        limit: int = 10,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        _, limit, _ = page_params(1, limit)
        owner_id = service.wallet_owner(role.value, account.account_id)
        return success("Wallet loaded", await service.load_wallet(db, owner_id, role.value, limit))

    return router


# ==================== TUTOR ====================

tutor_router = APIRouter(tags=["Tutor - Wallet"])


@tutor_router.get("/bank-details")
@limit("read")
async def load_bank_details(
    request: Request,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    wallet = await service.get_or_create_wallet(db, tutor.account_id, "tutor")
    return success("Payment methods loaded", wallet.get("payment_methods", []))


@tutor_router.post("/bank-details", status_code=201)
@limit("standard")
async def add_bank_details(
    request: Request,
    payload: PaymentMethodCreate,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    method = await service.add_payment_method(db, tutor.account_id, "tutor", payload.dict())
    return success("Payment method added", method)


@tutor_router.post("/withdrawal-request", status_code=201)
@limit("standard")
async def create_withdrawal_request(
    request: Request,
    payload: WithdrawalCreate,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    withdrawal = await service.request_withdrawal(
        db, tutor.account_id, "tutor", tutor.display_name, payload.amount, payload.method_id,
    )
    return success("Withdrawal request submitted", withdrawal)


@tutor_router.get("/withdrawal-request")
@limit("read")
async def load_withdrawal_requests(
    request: Request,
    page: int = 1,
    limit: int = 10,
    status: Optional[WithdrawalStatus] = None,
    tutor: AccountContext = Depends(get_current_tutor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    query = {"owner_id": tutor.account_id, "owner_role": "tutor"}
    if status:
        query["status"] = status.value
    total = await db.withdrawal_requests.count_documents(query)
    requests = await db.withdrawal_requests.find(query, {"_id": 0}).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit).to_list(length=limit)
    return success("Withdrawal requests loaded", requests, pagination=page_meta(total, page, limit))


# ==================== ADMIN ====================

admin_router = APIRouter(tags=["Admin - Wallet"])


@admin_router.post("/wallet/withdraw")
@limit("standard")
async def withdraw_platform_amount(
    request: Request,
    payload: AdminWithdrawal,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    transaction = await service.admin_withdraw(db, payload.amount, admin.account_id, payload.note)
    return success("Withdrawal completed", transaction)


@admin_router.get("/withdraw-request")
@limit("read")
async def load_withdraw_requests(
    request: Request,
    page: int = 1,
    limit: int = 10,
    status: Optional[WithdrawalStatus] = None,
    search: Optional[str] = None,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    query = {}
    if status:
        query["status"] = status.value
    if search:
        query["owner_name"] = search_regex(search)
    total = await db.withdrawal_requests.count_documents(query)
    requests = await db.withdrawal_requests.find(query, {"_id": 0}).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit).to_list(length=limit)
    return success("Withdrawal requests loaded", requests, pagination=page_meta(total, page, limit))


@admin_router.patch("/withdraw-request/approve-or-reject")
@limit("standard")
async def approve_or_reject_withdraw_request(
    request: Request,
    payload: WithdrawalDecision,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    """Move a request to processing, approve it, or reject it (refunding the amount)"""
    updated = await service.decide_withdrawal(
        db, payload.request_id, payload.action.value, payload.note, admin.account_id,
    )
    return success(f"Withdrawal request {updated['status']}", updated)


@admin_router.get("/transactions")
@limit("read")
async def load_transactions(
    request: Request,
    page: int = 1,
    limit: int = 10,
    transaction_type: Optional[TransactionType] = Query(None, alias="type"),
    purpose: Optional[TransactionPurpose] = None,
    owner_role: Optional[Role] = None,
    platform_only: bool = False,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    query = {}
    if transaction_type:
        query["type"] = transaction_type.value
    if purpose:
        query["purpose"] = purpose.value
    if owner_role:
        query["owner_role"] = owner_role.value
    if platform_only:
        query["owner_id"] = PLATFORM_WALLET_OWNER

    total = await db.transactions.count_documents(query)
    transactions = await db.transactions.find(query, {"_id": 0}).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit).to_list(length=limit)
    return success("Transactions loaded", transactions, pagination=page_meta(total, page, limit))
