"""
Razorpay integration
====================
Thin async wrapper over the razorpay SDK plus signature helpers.

Flow for a paid material:
1. /payments/create-order (or /create-payment-link) -> Razorpay order
2. Frontend opens Razorpay checkout
3. /payments/verify-payment -> check signature, fetch payment, mark completed
4. /payments/webhook -> backup confirmation for closed checkout windows
"""

import asyncio
import hashlib
import hmac
from functools import partial
from typing import Any, Dict, Optional

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError
from requests.exceptions import RequestException

from app.core.config import settings
from app.core.exceptions import ServiceUnavailableError
from app.core.logging_config import logger


# Everything the SDK can raise for a failed gateway call, transport errors included
GATEWAY_ERRORS = (
    BadRequestError,
    GatewayError,
    ServerError,
    SignatureVerificationError,
    RequestException,
)


def _hmac_sha256(secret: str, message: str) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str,
                             secret: Optional[str] = None) -> bool:
    """Checkout signature: HMAC-SHA256("{order_id}|{payment_id}", key_secret)"""
    if not (order_id and payment_id and signature):
        return False
    expected = _hmac_sha256(secret or settings.RAZORPAY_KEY_SECRET, f"{order_id}|{payment_id}")
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(body: bytes, signature: Optional[str], secret: Optional[str] = None) -> bool:
    """Webhook signature: HMAC-SHA256 of the raw request body"""
    secret = secret or settings.RAZORPAY_WEBHOOK_SECRET
    if not signature or not secret:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def build_receipt(material_id: str, user_id: str, timestamp_ms: int) -> str:
    """Razorpay caps receipts at 40 characters"""
    return f"mat_{str(material_id)[:8]}_{str(user_id)[:8]}_{str(timestamp_ms)[-8:]}"[:40]


class RazorpayService:
    """Async facade over razorpay.Client; the SDK is blocking so calls run in the thread pool"""

    def __init__(self):
        self._client = None

    @property
    def is_configured(self) -> bool:
        return settings.is_razorpay_configured()

    def config_status(self) -> Dict[str, Any]:
        key_id = settings.RAZORPAY_KEY_ID.strip()
        key_secret = settings.RAZORPAY_KEY_SECRET.strip()
        configured = self.is_configured
        return {
            "configured": configured,
            "hasKeyId": bool(key_id),
            "hasKeySecret": bool(key_secret),
            "keyIdPrefix": key_id[:8] if key_id else None,
            "keySecretLength": len(key_secret),
            "message": "Razorpay is configured" if configured
            else "Razorpay keys are missing. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET.",
        }

    def _get_client(self) -> razorpay.Client:
        if not self.is_configured:
            raise ServiceUnavailableError(
                "Payment service not configured. Please contact support.",
                code="PAYMENT_NOT_CONFIGURED",
            )
        if self._client is None:
            self._client = razorpay.Client(
                auth=(settings.RAZORPAY_KEY_ID.strip(), settings.RAZORPAY_KEY_SECRET.strip())
            )
        return self._client

    def ensure_configured(self) -> None:
        """Raise PAYMENT_NOT_CONFIGURED before any other validation runs"""
        self._get_client()

    async def _run(self, func, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args, **kwargs))

    async def create_order(self, amount_paise: int, receipt: str, notes: Dict[str, Any]) -> Dict[str, Any]:
        client = self._get_client()
        order = await self._run(client.order.create, data={
            "amount": amount_paise,
            "currency": "INR",
            "receipt": receipt,
            "notes": notes,
        })
        logger.info(f"[Payment] Created Razorpay order {order['id']} for {amount_paise} paise")
        return order

    async def create_payment_link(self, data: Dict[str, Any]) -> Dict[str, Any]:
        client = self._get_client()
        link = await self._run(client.payment_link.create, data)
        logger.info(f"[Payment] Created payment link {link.get('id')}")
        return link

    async def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        client = self._get_client()
        return await self._run(client.payment.fetch, payment_id)

    async def refund(self, payment_id: str, amount_paise: Optional[int] = None,
                     notes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        client = self._get_client()
        data: Dict[str, Any] = {"notes": notes or {}}
        if amount_paise:
            data["amount"] = amount_paise
        refund = await self._run(client.payment.refund, payment_id, data)
        logger.info(f"[Payment] Refund {refund.get('id')} issued for {payment_id}")
        return refund


razorpay_service = RazorpayService()
