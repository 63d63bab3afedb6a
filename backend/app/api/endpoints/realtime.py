"""
Realtime WebSocket endpoint

Connect with: ws://host/ws?token=<jwt_token>

The token is optional. Anonymous sockets still receive public broadcasts;
an authenticated socket also gets its own notifications, and admins get
project request and contact message alerts.
"""

from typing import Optional, Tuple

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from sqlalchemy import select

from app.core.database import AsyncSessionLocal
from app.core.exceptions import DigiDiplomaError
from app.core.logging_config import logger
from app.core.security import decode_token, ACCESS_TOKEN_TYPE
from app.models.user import User
from app.services.notification_service import notification_manager, EventType

router = APIRouter()


async def identify(token: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """(user_id, role) of the active user behind an access token, or (None, None)"""
    if not token:
        return None, None
    try:
        payload = decode_token(token)
    except DigiDiplomaError:
        return None, None
    if payload.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
        return None, None
    user_id = payload.get("sub")
    if not user_id:
        return None, None

    # Role and status come from the row so deactivation or demotion applies to open tokens
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.id == str(user_id)))
        user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None, None
    return str(user.id), user.user_type


@router.websocket("/ws")
async def realtime_websocket(
    websocket: WebSocket,
    token: Optional[str] = Query(None)
):
    user_id, role = await identify(token)
    connection = await notification_manager.connect(websocket, user_id, role)

    try:
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": EventType.PONG, "data": None})
    except WebSocketDisconnect:
        pass
    except ValueError as e:
        # Non-JSON frame
        logger.debug(f"[Realtime] Closing socket after bad frame: {e}")
    finally:
        await notification_manager.disconnect(connection.connection_id)
