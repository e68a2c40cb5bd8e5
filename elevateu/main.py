import asyncio
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from elevateu.admin.router import build_account_management_router, verification_router, dashboard_router
from elevateu.auth.roles import Role
from elevateu.auth.router import build_auth_router, build_admin_auth_router, common_router
from elevateu.categories.router import router as categories_router
from elevateu.core.config import ALLOWED_ORIGINS, ENVIRONMENT
from elevateu.core.database import db_manager, create_indexes
from elevateu.core.errors import register_exception_handlers
from elevateu.core.logger import configure_logging, log_requests, api_logger
from elevateu.core.rate_limiting import limiter, rate_limit_exceeded_handler
from elevateu.coupons.admin_router import router as admin_coupons_router
from elevateu.coupons.user_router import router as user_coupons_router
from elevateu.courses.admin_router import router as admin_courses_router
from elevateu.courses.catalog_router import router as catalog_router
from elevateu.courses.tutor_router import router as tutor_courses_router
from elevateu.learning.router import router as learning_router
from elevateu.notifications.router import build_notification_router, socket_router
from elevateu.notifications.service import purge_loop
from elevateu.orders.router import user_router as user_orders_router, webhook_router, admin_router as admin_orders_router
from elevateu.profiles.router import build_profile_router
from elevateu.users.router import router as user_library_router
from elevateu.wallet.router import build_wallet_router, tutor_router as tutor_wallet_router, admin_router as admin_wallet_router

configure_logging()

app = FastAPI(title="ElevateU API")
app.state.limiter = limiter
app.state.started_at = time.time()

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.middleware("http")(log_requests)

register_exception_handlers(app)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.on_event("startup")
async def startup_event():
    if db_manager.db is None:
        db_manager.connect()
    await create_indexes(db_manager.get_database())
    app.state.purge_task = asyncio.create_task(purge_loop(db_manager.get_database))
    api_logger.info("ElevateU API started (%s)", ENVIRONMENT)


@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "purge_task", None)
    if task:
        task.cancel()
    db_manager.disconnect()


# ==================== ROUTER REGISTRATION ====================

# user
app.include_router(build_auth_router(Role.USER), prefix="/api/user")
app.include_router(build_profile_router(Role.USER), prefix="/api/user")
app.include_router(build_notification_router(Role.USER), prefix="/api/user")
app.include_router(build_wallet_router(Role.USER), prefix="/api/user")
app.include_router(user_library_router, prefix="/api/user")
app.include_router(learning_router, prefix="/api/user")
app.include_router(user_coupons_router, prefix="/api/user")
app.include_router(user_orders_router, prefix="/api/user")

# tutor
app.include_router(build_auth_router(Role.TUTOR), prefix="/api/tutor")
app.include_router(build_profile_router(Role.TUTOR), prefix="/api/tutor")
app.include_router(build_notification_router(Role.TUTOR), prefix="/api/tutor")
app.include_router(build_wallet_router(Role.TUTOR), prefix="/api/tutor")
app.include_router(tutor_wallet_router, prefix="/api/tutor")
app.include_router(tutor_courses_router, prefix="/api/tutor")

# admin
app.include_router(build_admin_auth_router(), prefix="/api/admin")
app.include_router(build_profile_router(Role.ADMIN), prefix="/api/admin")
app.include_router(build_notification_router(Role.ADMIN), prefix="/api/admin")
app.include_router(build_wallet_router(Role.ADMIN), prefix="/api/admin")
app.include_router(admin_wallet_router, prefix="/api/admin")
app.include_router(categories_router, prefix="/api/admin")
app.include_router(admin_coupons_router, prefix="/api/admin")
app.include_router(admin_courses_router, prefix="/api/admin")
app.include_router(admin_orders_router, prefix="/api/admin")
app.include_router(build_account_management_router(Role.USER), prefix="/api/admin")
app.include_router(build_account_management_router(Role.TUTOR), prefix="/api/admin")
app.include_router(verification_router, prefix="/api/admin")
app.include_router(dashboard_router, prefix="/api/admin")

# shared
app.include_router(common_router, prefix="/api")
app.include_router(catalog_router, prefix="/api")
app.include_router(webhook_router, prefix="/api")
app.include_router(socket_router)
# ============================================================


@app.get("/health")
async def health():
    database_ok = await db_manager.ping()
    return {
        "status": "ok" if database_ok else "degraded",
        "database": "connected" if database_ok else "unavailable",
        "uptime_seconds": round(time.time() - app.state.started_at, 1),
        "environment": ENVIRONMENT,
    }
