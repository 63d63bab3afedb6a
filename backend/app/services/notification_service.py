"""
Realtime Notification Manager

Fans out platform events to connected browsers over /ws:
- Material uploads, edits, deletes and download stats
- Subject, user, notice, announcement and course changes
- New project requests and contact messages (admins only)

Every message is JSON {"type", "data", "timestamp"}. Sends never raise;
sockets that fail are pruned.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from fastapi import WebSocket

from app.core.logging_config import logger


class EventType:
    """Event names the frontend listens for"""
    CONNECTED = "connected"
    PONG = "pong"

    MATERIAL_UPLOADED = "material_uploaded"
    MATERIAL_UPDATED = "material_updated"
    MATERIAL_DELETED = "material_deleted"
    MATERIAL_STATS_UPDATED = "material_stats_updated"

    SUBJECT_CREATED = "subject_created"
    SUBJECT_UPDATED = "subject_updated"
    SUBJECT_DELETED = "subject_deleted"
    SUBJECTS_IMPORTED = "subjects_imported"

    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"

    NOTICE_CREATED = "notice_created"
    NOTICE_UPDATED = "notice_updated"
    NOTICE_DELETED = "notice_deleted"

    ANNOUNCEMENT_CREATED = "new-announcement"
    ANNOUNCEMENT_UPDATED = "announcement-updated"
    ANNOUNCEMENT_DELETED = "announcement-deleted"

    COURSE_LAUNCHED = "course_launched"
    COURSE_UPDATED = "course_updated"
    COURSE_DELETED = "course_deleted"

    PROJECT_REQUEST_NEW = "project_request_new"
    CONTACT_MESSAGE_NEW = "contact_message_new"

    NOTIFICATION = "notification"
    MAINTENANCE_CHANGED = "maintenance_changed"


@dataclass
class ClientConnection:
    """One open socket; anonymous visitors have no user_id"""
    websocket: WebSocket
    user_id: Optional[str] = None
    role: Optional[str] = None
    connection_id: str = field(default_factory=lambda: uuid4().hex)
    connected_at: datetime = field(default_factory=datetime.utcnow)


def _envelope(event: str, data: Any) -> Dict[str, Any]:
    return {
        "type": event,
        "data": data,
        "timestamp": datetime.utcnow().isoformat(),
    }


class NotificationManager:
    """
    Registry of open sockets.

    A user may hold several sockets (tabs); each gets its own connection id.
    """

    def __init__(self):
        self._connections: Dict[str, ClientConnection] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, user_id: Optional[str] = None,
                      role: Optional[str] = None) -> ClientConnection:
        await websocket.accept()
        connection = ClientConnection(websocket=websocket, user_id=user_id, role=role)
        async with self._lock:
            self._connections[connection.connection_id] = connection
        logger.info(f"[Realtime] Client connected (user={user_id or 'anonymous'}, total={self.connection_count})")
        await self._send(connection, _envelope(EventType.CONNECTED, {
            "connectionId": connection.connection_id,
            "authenticated": user_id is not None,
        }))
        return connection

    async def disconnect(self, connection_id: str):
        async with self._lock:
            connection = self._connections.pop(connection_id, None)
        if connection:
            logger.info(f"[Realtime] Client disconnected (user={connection.user_id or 'anonymous'})")

    async def _send(self, connection: ClientConnection, message: Dict[str, Any]) -> bool:
        try:
            await connection.websocket.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"[Realtime] Send to {connection.connection_id} failed: {e}")
            return False

    async def _fan_out(self, targets: List[ClientConnection], message: Dict[str, Any]) -> int:
        dead = []
        delivered = 0
        for connection in targets:
            if await self._send(connection, message):
                delivered += 1
            else:
                dead.append(connection.connection_id)
        for connection_id in dead:
            await self.disconnect(connection_id)
        return delivered

    async def broadcast(self, event: str, data: Any) -> int:
        """Send to every connected client; returns the number reached"""
        async with self._lock:
            targets = list(self._connections.values())
        return await self._fan_out(targets, _envelope(event, data))

    async def broadcast_to_admins(self, event: str, data: Any) -> int:
        async with self._lock:
            targets = [c for c in self._connections.values() if c.role == "admin"]
        return await self._fan_out(targets, _envelope(event, data))

    async def send_to_user(self, user_id: str, event: str, data: Any) -> int:
        async with self._lock:
            targets = [c for c in self._connections.values() if c.user_id == str(user_id)]
        return await self._fan_out(targets, _envelope(event, data))

    # ==================== Event Broadcasting Helpers ====================

    async def notify_material_uploaded(self, material: Dict[str, Any]):
        await self.broadcast(EventType.MATERIAL_UPLOADED, {"material": material})

    async def notify_material_updated(self, material: Dict[str, Any]):
        await self.broadcast(EventType.MATERIAL_UPDATED, {"material": material})

    async def notify_material_deleted(self, material_id: str):
        await self.broadcast(EventType.MATERIAL_DELETED, {"id": material_id})

    async def notify_material_stats(self, material_id: str, downloads: int, rating: float = None):
        await self.broadcast(EventType.MATERIAL_STATS_UPDATED, {
            "id": material_id,
            "downloads": downloads,
            "rating": rating,
        })

    async def notify_subject_change(self, event: str, payload: Dict[str, Any]):
        await self.broadcast(event, payload)

    async def notify_user_change(self, event: str, user_id: str, payload: Optional[Dict[str, Any]] = None):
        await self.broadcast(event, {"id": user_id, **(payload or {})})

    async def notify_notice_change(self, event: str, payload: Dict[str, Any]):
        await self.broadcast(event, payload)

    async def notify_announcement_change(self, event: str, payload: Dict[str, Any]):
        await self.broadcast(event, payload)

    async def notify_course_change(self, event: str, payload: Dict[str, Any]):
        await self.broadcast(event, payload)

    async def notify_project_request(self, request: Dict[str, Any]):
        await self.broadcast_to_admins(EventType.PROJECT_REQUEST_NEW, request)

    async def notify_contact_message(self, message: Dict[str, Any]):
        await self.broadcast_to_admins(EventType.CONTACT_MESSAGE_NEW, message)


# Global manager instance
notification_manager = NotificationManager()
