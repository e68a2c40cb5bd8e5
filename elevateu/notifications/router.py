from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from elevateu.auth.guard import AccountContext, authenticate_socket_token, verify_access_token
from elevateu.auth.roles import Role, get_role
from elevateu.auth.tokens import read_cookie_token
from elevateu.core.database import get_db
from elevateu.core.logger import socket_logger
from elevateu.core.rate_limiting import limit, role_scoped
from elevateu.core.utils import success
from elevateu.notifications import service
from elevateu.notifications.manager import manager
from elevateu.notifications.schemas import ReadNotificationsRequest


def build_notification_router(role: Role) -> APIRouter:
    role = Role(role)
    router = APIRouter(tags=[f"{role.value.capitalize()} - Notifications"])
    current_account = verify_access_token(role)

    @router.get("/load-notifications")
    @limit("read")
    @role_scoped(role.value)
    async def load_notifications(
        request: Request,
        unread: bool = False,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        notifications = await service.list_notifications(db, role.value, account.account_id, unread_only=unread)
        return success("Notifications loaded", notifications)

    @router.post("/read-notifications")
    @limit("standard")
    @role_scoped(role.value)
    async def read_notifications(
        request: Request,
        payload: ReadNotificationsRequest,
        account: AccountContext = Depends(current_account),
        db: AsyncIOMotorDatabase = Depends(get_db),
    ):
        updated = await service.mark_read(db, role.value, account.account_id, payload.ids)
        return success("Notifications marked as read", {"updated": updated})

    return router


# ==================== LIVE DELIVERY ====================

socket_router = APIRouter()


@socket_router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, db: AsyncIOMotorDatabase = Depends(get_db)):
    """
    Query: role (user | tutor | admin), optional token.
    Falls back to the role's access cookie when no token is given.
    """
    role = get_role(websocket.query_params.get("role", "user"))
    if role is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    token = websocket.query_params.get("token") or read_cookie_token(websocket.cookies, role.value, "access")
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        account = await authenticate_socket_token(db, role, token)
    except PermissionError as e:
        socket_logger.info("Socket rejected: %s", e)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket, role.value, account.account_id)
    try:
        await websocket.send_json({"event": "registered", "data": {"role": role.value, "id": account.account_id}})
        while True:
            # Clients only keep the socket alive; nothing they send is processed
            await websocket.receive_text()
    except WebSocketDisconnect:
        socket_logger.debug("Socket closed by client: %s %s", role.value, account.account_id)
    finally:
        manager.disconnect(websocket, role.value, account.account_id)
