"""
Push notifications through Firebase Cloud Messaging.

Disabled (every call returns {"success": False, "reason": "push disabled"})
until FIREBASE_CREDENTIALS_PATH points at a service account file.
"""

import asyncio
from functools import partial
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin.exceptions import FirebaseError

from app.core.config import settings
from app.core.logging_config import logger


PUSH_DISABLED = {"success": False, "reason": "push disabled"}


def _stringify(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    # FCM data payloads only carry string values
    return {str(k): str(v) for k, v in (data or {}).items() if v is not None}


class PushService:

    def __init__(self):
        self._app = None
        self._init_failed = False

    @property
    def is_configured(self) -> bool:
        return bool(settings.FIREBASE_CREDENTIALS_PATH)

    def _get_app(self):
        if self._app is not None or self._init_failed or not self.is_configured:
            return self._app
        try:
            options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
            cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
            self._app = firebase_admin.initialize_app(cred, options, name="digidiploma")
            logger.info("[Push] Firebase app initialized")
        except (ValueError, OSError) as e:
            self._init_failed = True
            logger.log_integration_event("firebase", "initialize", False, error=str(e))
        return self._app

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def send_to_token(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        image_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        app = self._get_app()
        if app is None:
            return dict(PUSH_DISABLED)
        message = messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body, image=image_url),
            data=_stringify(data),
        )
        try:
            message_id = await self._run(messaging.send, message, app=app)
        except (FirebaseError, ValueError) as e:
            logger.warning(f"[Push] Send to token failed: {e}")
            return {"success": False, "error": str(e)}
        logger.info(f"[Push] Sent message {message_id}")
        return {"success": True, "messageId": message_id}

    async def send_to_topic(
        self,
        topic: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        app = self._get_app()
        if app is None:
            return dict(PUSH_DISABLED)
        message = messaging.Message(
            topic=topic,
            notification=messaging.Notification(title=title, body=body),
            data=_stringify(data),
        )
        try:
            message_id = await self._run(messaging.send, message, app=app)
        except (FirebaseError, ValueError) as e:
            logger.warning(f"[Push] Send to topic {topic} failed: {e}")
            return {"success": False, "error": str(e)}
        logger.info(f"[Push] Sent topic message {message_id} to {topic}")
        return {"success": True, "messageId": message_id}

    async def subscribe(self, tokens: List[str], topic: str) -> Dict[str, Any]:
        app = self._get_app()
        if app is None:
            return dict(PUSH_DISABLED)
        try:
            response = await self._run(messaging.subscribe_to_topic, tokens, topic, app=app)
        except (FirebaseError, ValueError) as e:
            logger.warning(f"[Push] Subscribe to {topic} failed: {e}")
            return {"success": False, "error": str(e)}
        return {"success": response.failure_count == 0, "successCount": response.success_count}

    async def unsubscribe(self, tokens: List[str], topic: str) -> Dict[str, Any]:
        app = self._get_app()
        if app is None:
            return dict(PUSH_DISABLED)
        try:
            response = await self._run(messaging.unsubscribe_from_topic, tokens, topic, app=app)
        except (FirebaseError, ValueError) as e:
            logger.warning(f"[Push] Unsubscribe from {topic} failed: {e}")
            return {"success": False, "error": str(e)}
        return {"success": response.failure_count == 0, "successCount": response.success_count}


push_service = PushService()
