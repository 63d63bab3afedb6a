"""
Unit Tests for Razorpay signature helpers and the client wrapper
"""
import hashlib
import hmac
import pytest
from unittest.mock import MagicMock

from app.core.config import settings
from app.core.exceptions import ServiceUnavailableError
from app.services.razorpay_service import (
    RazorpayService,
    verify_payment_signature,
    verify_webhook_signature,
    build_receipt,
)


SECRET = "rzp_test_secret"


def sign(message: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class TestPaymentSignature:

    def test_valid_signature(self):
        signature = sign(b"order_123|pay_456")

        assert verify_payment_signature("order_123", "pay_456", signature, secret=SECRET) is True

    def test_tampered_signature_rejected(self):
        signature = sign(b"order_123|pay_456")
        tampered = ("0" if signature[0] != "0" else "1") + signature[1:]

        assert verify_payment_signature("order_123", "pay_456", tampered, secret=SECRET) is False

    def test_signature_for_other_payment_rejected(self):
        signature = sign(b"order_123|pay_999")

        assert verify_payment_signature("order_123", "pay_456", signature, secret=SECRET) is False

    def test_missing_fields_rejected(self):
        assert verify_payment_signature("", "pay_456", "sig", secret=SECRET) is False
        assert verify_payment_signature("order_123", "pay_456", "", secret=SECRET) is False


class TestWebhookSignature:

    def test_valid_body_signature(self):
        body = b'{"event":"payment.captured"}'

        assert verify_webhook_signature(body, sign(body, "whsec"), secret="whsec") is True

    def test_modified_body_rejected(self):
        signature = sign(b'{"event":"payment.captured"}', "whsec")

        assert verify_webhook_signature(b'{"event":"payment.failed"}', signature, secret="whsec") is False

    def test_missing_signature_rejected(self):
        assert verify_webhook_signature(b"{}", None, secret="whsec") is False


class TestReceipt:

    def test_receipt_at_most_40_chars(self):
        receipt = build_receipt("a" * 36, "b" * 36, 1718000000123)

        assert len(receipt) <= 40
        assert receipt == "mat_aaaaaaaa_bbbbbbbb_00000123"


class TestClientWrapper:

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(settings, "RAZORPAY_KEY_ID", "")
        monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", "")
        service = RazorpayService()

        with pytest.raises(ServiceUnavailableError) as exc:
            service.ensure_configured()

        assert exc.value.code == "PAYMENT_NOT_CONFIGURED"
        assert exc.value.status_code == 503
        assert service.config_status()["configured"] is False

    def test_config_status_masks_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "RAZORPAY_KEY_ID", "rzp_test_abcdef123")
        monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", SECRET)

        status = RazorpayService().config_status()

        assert status["configured"] is True
        assert status["keyIdPrefix"] == "rzp_test"
        assert status["keySecretLength"] == len(SECRET)
        assert SECRET not in str(status)

    async def test_create_order_payload(self, monkeypatch):
        monkeypatch.setattr(settings, "RAZORPAY_KEY_ID", "rzp_test_abcdef123")
        monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", SECRET)
        service = RazorpayService()
        client = MagicMock()
        client.order.create.return_value = {"id": "order_1", "amount": 4900, "currency": "INR"}
        service._client = client

        order = await service.create_order(4900, "rcpt", {"materialId": "m1"})

        assert order["id"] == "order_1"
        client.order.create.assert_called_once_with(data={
            "amount": 4900,
            "currency": "INR",
            "receipt": "rcpt",
            "notes": {"materialId": "m1"},
        })
