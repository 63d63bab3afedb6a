"""
Unit Tests for the email service (SendGrid with SMTP fallback)
"""
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from app.core.config import settings
from app.services.email_service import EmailService, OTP_EMAIL_SUBJECT, CONTACT_ALERT_SUBJECT, render_email


@pytest.fixture
def smtp_service():
    service = EmailService()
    service.sendgrid_api_key = ""
    service.smtp_user = "mailer@example.com"
    service.smtp_password = "app-password"
    service.from_email = "mailer@example.com"
    return service


@pytest.fixture
def sendgrid_service(smtp_service):
    smtp_service.sendgrid_api_key = "SG.test"
    return smtp_service


class TestConfiguration:

    async def test_unconfigured_skips_send(self):
        service = EmailService()
        service.sendgrid_api_key = ""
        service.smtp_user = ""
        service.smtp_password = ""

        with patch("app.services.email_service.aiosmtplib.send", new=AsyncMock()) as send:
            assert await service.send_email("a@example.com", "Hi", "<p>Hi</p>") is False

        send.assert_not_called()

    def test_render_email_wraps_body(self):
        html = render_email("Header", "<p>Body</p>", footer="Footer")

        assert "Header" in html
        assert "<p>Body</p>" in html
        assert "Footer" in html


class TestSmtp:

    async def test_sends_otp_over_smtp(self, smtp_service):
        with patch("app.services.email_service.aiosmtplib.send", new=AsyncMock()) as send:
            sent = await smtp_service.send_otp_email("student@example.com", "123456")

        assert sent is True
        message = send.call_args.args[0]
        assert message["To"] == "student@example.com"
        assert message["Subject"] == OTP_EMAIL_SUBJECT
        assert send.call_args.kwargs["use_tls"] is (smtp_service.smtp_port == 465)

    async def test_smtp_failure_returns_false(self, smtp_service):
        with patch("app.services.email_service.aiosmtplib.send", new=AsyncMock(side_effect=OSError("refused"))):
            assert await smtp_service.send_email("a@example.com", "Hi", "<p>Hi</p>") is False


class TestSendgrid:

    async def test_sendgrid_success(self, sendgrid_service):
        client = MagicMock()
        client.send.return_value = SimpleNamespace(status_code=202, body=b"")

        with patch("app.services.email_service.SendGridAPIClient", return_value=client), \
                patch("app.services.email_service.aiosmtplib.send", new=AsyncMock()) as smtp_send:
            assert await sendgrid_service.send_email("a@example.com", "Hi", "<p>Hi</p>") is True

        client.send.assert_called_once()
        smtp_send.assert_not_called()

    async def test_sendgrid_rejection_falls_back_to_smtp(self, sendgrid_service):
        client = MagicMock()
        client.send.return_value = SimpleNamespace(status_code=403, body=b"forbidden")

        with patch("app.services.email_service.SendGridAPIClient", return_value=client), \
                patch("app.services.email_service.aiosmtplib.send", new=AsyncMock()) as smtp_send:
            assert await sendgrid_service.send_email("a@example.com", "Hi", "<p>Hi</p>") is True

        smtp_send.assert_awaited_once()


class TestAdminAlerts:

    async def test_contact_alert_needs_admin_address(self, smtp_service, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_ALERT_EMAIL", "")

        assert await smtp_service.send_contact_alert("A", "a@example.com", "", "Hello", "Body") is False

    async def test_contact_alert_escapes_input(self, smtp_service, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_ALERT_EMAIL", "admin@example.com")

        with patch.object(smtp_service, "send_email", new=AsyncMock(return_value=True)) as send:
            await smtp_service.send_contact_alert("<b>Eve</b>", "eve@example.com", "", "Hi", "Body")

        to_email, subject, html = send.call_args.args[:3]
        assert to_email == "admin@example.com"
        assert subject == CONTACT_ALERT_SUBJECT
        assert "<b>Eve</b>" not in html
        assert "&lt;b&gt;Eve&lt;/b&gt;" in html
