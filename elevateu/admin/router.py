"""
Admin account management
Users and tutors share one router factory; tutor verification and the
dashboard live alongside.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.admin.schemas import AccountCreate, AccountUpdate, VerificationDecision
from elevateu.analytics import service as analytics
from elevateu.auth import service as accounts
from elevateu.auth.guard import AccountContext, get_current_admin
from elevateu.auth.passwords import hash_password
from elevateu.auth.roles import Role, collection_for, id_field, PRIVATE_FIELDS
from elevateu.core.database import get_db
from elevateu.core.logger import api_logger
from elevateu.core.rate_limiting import limit, role_scoped
from elevateu.core.utils import success, page_params, page_meta, search_regex
from elevateu.courses.models import ReviewAction
from elevateu.notifications.models import NotificationType
from elevateu.notifications.service import create_notification


def build_account_management_router(role: Role) -> APIRouter:
    """/add-user, /users-details, /user-details/{id}, ... (same for tutor)"""
    role = Role(role)
    name = role.value
    label = name.capitalize()
    router = APIRouter(tags=[f"Admin - {label}s"])

    async def _require(db: AsyncIOMotorDatabase, account_id: str) -> dict:
        account = await collection_for(db, role).find_one({id_field(role): account_id}, PRIVATE_FIELDS)
        if not account:
            raise HTTPException(status_code=404, detail=f"{label} not found")
        return account

    @router.post(f"/add-{name}", status_code=201)
    @limit("standard")
    @role_scoped(name)
    async def add_account(
        request: Request,
        payload: AccountCreate,
        admin: AccountContext = Depends(get_current_admin),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        if await accounts.find_by_email(db, role, payload.email):
            raise HTTPException(status_code=409, detail="Email already registered")

        doc = accounts.new_account_document(
            role, payload.email, payload.first_name, payload.last_name,
            password_hash=hash_password(payload.password), is_verified=True,
        )
        doc["phone"] = payload.phone
        await accounts.insert_account(db, role, doc)
        api_logger.info("%s %s added by admin %s", label, doc[id_field(role)], admin.account_id)
        return success(f"{label} added successfully", accounts.public_profile(doc))

    @router.get(f"/{name}s-details")
    @limit("read")
    @role_scoped(name)
    async def load_accounts(
        request: Request,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        status: Optional[str] = None,
        admin: AccountContext = Depends(get_current_admin),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        page, limit, skip = page_params(page, limit)
        query = {}
        if search:
            pattern = search_regex(search)
            query["$or"] = [{"first_name": pattern}, {"last_name": pattern}, {"email": pattern}]
        if status == "blocked":
            query["is_blocked"] = True
        elif status == "active":
            query["is_blocked"] = {"$ne": True}

        collection = collection_for(db, role)
        total = await collection.count_documents(query)
        items = await collection.find(query, PRIVATE_FIELDS).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit).to_list(length=limit)
        return success(f"{label}s loaded", items, pagination=page_meta(total, page, limit))

    @router.get(f"/{name}-details/{{account_id}}")
    @limit("read")
    @role_scoped(name)
    async def load_account_details(
        request: Request,
        account_id: str,
        admin: AccountContext = Depends(get_current_admin),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        account = await _require(db, account_id)
        if role == Role.USER:
            account["enrolled_count"] = await db.enrolled_courses.count_documents({"user_id": account_id})
        else:
            account["courses"] = await db.courses.find(
                {"tutor_id": account_id}, {"_id": 0, "course_id": 1, "title": 1, "status": 1, "enroll_count": 1},
            ).to_list(length=None)
        return success(f"{label} loaded", account)

    @router.post(f"/update-{name}-details/{{account_id}}")
    @limit("standard")
    @role_scoped(name)
    async def update_account_details(
        request: Request,
        account_id: str,
        payload: AccountUpdate,
        admin: AccountContext = Depends(get_current_admin),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await _require(db, account_id)
        changes = payload.dict(exclude_unset=True, exclude_none=True)
        if role != Role.TUTOR:
            changes.pop("expertise", None)
            changes.pop("experience", None)
        if not changes:
            raise HTTPException(status_code=400, detail="No changes provided")

        changes["updated_at"] = datetime.utcnow()
        await collection_for(db, role).update_one({id_field(role): account_id}, {"$set": changes})
        return success(f"{label} updated successfully", await _require(db, account_id))

    @router.patch(f"/toggle-{name}-block/{{account_id}}")
    @limit("standard")
    @role_scoped(name)
    async def toggle_block(
        request: Request,
        account_id: str,
        admin: AccountContext = Depends(get_current_admin),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        account = await _require(db, account_id)
        blocked = not account.get("is_blocked", False)
        await collection_for(db, role).update_one(
            {id_field(role): account_id},
            {"$set": {"is_blocked": blocked, "updated_at": datetime.utcnow()}},
        )
        api_logger.info("%s %s %s by admin %s", label, account_id, "blocked" if blocked else "unblocked", admin.account_id)
        return success(f"{label} {'blocked' if blocked else 'unblocked'} successfully", {"is_blocked": blocked})

    @router.delete(f"/delete-{name}/{{account_id}}")
    @limit("standard")
    @role_scoped(name)
    async def delete_account(
        request: Request,
        account_id: str,
        admin: AccountContext = Depends(get_current_admin),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        await _require(db, account_id)
        if role == Role.TUTOR and await db.courses.count_documents({"tutor_id": account_id}):
            raise HTTPException(status_code=409, detail="Tutor has courses and cannot be deleted")

        await collection_for(db, role).delete_one({id_field(role): account_id})
        await db.notifications.delete_many({"recipient_id": account_id, "recipient_role": name})
        if role == Role.USER:
            await db.applied_coupons.delete_many({"user_id": account_id})
        api_logger.info("%s %s deleted by admin %s", label, account_id, admin.account_id)
        return success(f"{label} deleted successfully")

    return router


# ==================== TUTOR VERIFICATION ====================

verification_router = APIRouter(tags=["Admin - Tutors"])


@verification_router.get("/verification-request")
@limit("read")
async def load_verification_requests(
    request: Request,
    page: int = 1,
    limit: int = 10,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    page, limit, skip = page_params(page, limit)
    query = {"verification_status": "pending"}
    total = await db.tutors.count_documents(query)
    tutors = await db.tutors.find(query, PRIVATE_FIELDS).sort("verification_requested_at", 1).skip(skip).limit(limit).to_list(length=limit)
    return success("Verification requests loaded", tutors, pagination=page_meta(total, page, limit))


@verification_router.post("/control-verification")
@limit("standard")
async def approve_or_reject_verification(
    request: Request,
    payload: VerificationDecision,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    approved = payload.action == ReviewAction.APPROVE
    if not approved and not (payload.reason and payload.reason.strip()):
        raise HTTPException(status_code=400, detail="A reason is required when rejecting")

    result = await db.tutors.update_one(
        {"tutor_id": payload.tutor_id, "verification_status": "pending"},
        {"$set": {
            "verification_status": "approved" if approved else "rejected",
            "is_admin_verified": approved,
            "verification_note": None if approved else payload.reason.strip(),
            "verified_at": datetime.utcnow() if approved else None,
            "updated_at": datetime.utcnow(),
        }},
    )
    if result.matched_count == 0:
        if not await db.tutors.find_one({"tutor_id": payload.tutor_id}, {"_id": 1}):
            raise HTTPException(status_code=404, detail="Tutor not found")
        raise HTTPException(status_code=400, detail="No pending verification request for this tutor")

    if approved:
        await create_notification(
            db, payload.tutor_id, "tutor", NotificationType.PROFILE_APPROVED,
            "Your profile has been verified. You can now publish courses.",
        )
    else:
        await create_notification(
            db, payload.tutor_id, "tutor", NotificationType.PROFILE_REJECTED,
            f"Your verification request was rejected: {payload.reason.strip()}",
        )

    tutor = await db.tutors.find_one({"tutor_id": payload.tutor_id}, PRIVATE_FIELDS)
    return success(f"Tutor {'approved' if approved else 'rejected'}", tutor)


# ==================== DASHBOARD ====================

dashboard_router = APIRouter(prefix="/dashboard", tags=["Admin - Dashboard"])


@dashboard_router.get("")
@limit("read")
async def dashboard_details(
    request: Request,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return success("Dashboard loaded", await analytics.dashboard_totals(db))


@dashboard_router.get("/best-selling-course")
@limit("read")
async def best_selling_course(
    request: Request,
    limit: int = 5,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return success("Best selling courses loaded", await analytics.best_selling_courses(db, limit))


@dashboard_router.get("/best-selling-category")
@limit("read")
async def best_selling_category(
    request: Request,
    limit: int = 5,
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    return success("Best selling categories loaded", await analytics.best_selling_categories(db, limit))


@dashboard_router.get("/revenue-chart-data")
@limit("read")
async def revenue_chart(
    request: Request,
    period: str = "monthly",
    admin: AccountContext = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    if period not in analytics.PERIODS:
        raise HTTPException(status_code=400, detail="period must be one of: " + ", ".join(analytics.PERIODS))
    return success("Revenue chart loaded", await analytics.revenue_chart(db, period))
