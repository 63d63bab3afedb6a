"""
Email Service for DigiDiploma
=============================
Handles all outgoing email:
- Email verification OTPs on signup
- Password reset links
- Admin alerts for contact messages and project requests
- Admin replies from the message center

SendGrid is used when SENDGRID_API_KEY is set; SMTP (aiosmtplib) is the
fallback, and also the retry path when SendGrid rejects a message.
"""

import aiosmtplib
import asyncio
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape
from typing import Optional
from datetime import datetime

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from app.core.config import settings
from app.core.logging_config import logger


OTP_EMAIL_SUBJECT = "DigiDiploma - Email Verification OTP"
PASSWORD_RESET_SUBJECT = "DigiDiploma - Password Reset"
CONTACT_ALERT_SUBJECT = "New Contact Message - DigiDiploma"
PROJECT_REQUEST_ALERT_SUBJECT = "New Project Request - DigiDiploma"

_LAYOUT = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: linear-gradient(135deg, #2563eb 0%, #7c3aed 100%); color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }}
        .content {{ background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }}
        .button {{ display: inline-block; background: #2563eb; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; font-weight: 600; margin: 20px 0; }}
        .code {{ font-size: 32px; letter-spacing: 8px; font-weight: 700; text-align: center; margin: 20px 0; }}
        .footer {{ text-align: center; margin-top: 30px; font-size: 12px; color: #6b7280; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>{header}</h1>
        </div>
        <div class="content">
            {body}
        </div>
        <div class="footer">
            <p>{footer}</p>
        </div>
    </div>
</body>
</html>
"""


def render_email(header: str, body: str, footer: Optional[str] = None) -> str:
    """Wrap body HTML in the branded layout"""
    return _LAYOUT.format(
        header=header,
        body=body,
        footer=footer or f"&copy; {datetime.utcnow().year} DigiDiploma. All rights reserved.",
    )


def _paragraphs(text: str) -> str:
    return "".join(f"<p>{escape(line)}</p>" for line in text.splitlines() if line.strip())


class EmailService:
    """Async email service using SendGrid or SMTP"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASS
        self.from_email = settings.SMTP_FROM or settings.SMTP_USER
        self.reply_to = settings.SMTP_REPLY_TO or settings.SMTP_USER
        self.from_name = settings.EMAIL_FROM_NAME
        self.frontend_url = settings.FRONTEND_URL.rstrip("/")
        self.sendgrid_api_key = settings.SENDGRID_API_KEY
        self.sendgrid_from_email = settings.SENDGRID_FROM_EMAIL

    @property
    def use_sendgrid(self) -> bool:
        return bool(self.sendgrid_api_key)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    @property
    def is_configured(self) -> bool:
        """Check if email service is properly configured"""
        return self.use_sendgrid or self.smtp_configured

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """
        Send an email asynchronously.

        Returns True if successful, False otherwise. Never raises: callers
        treat email as best-effort.
        """
        if not self.is_configured:
            logger.warning("[Email] Email service not configured, skipping email send")
            return False

        if self.use_sendgrid:
            if await self._send_via_sendgrid(to_email, subject, html_content, text_content):
                return True
            if not self.smtp_configured:
                return False
            logger.log_integration_event("sendgrid", "send", False, fallback="smtp", to=to_email)

        return await self._send_via_smtp(to_email, subject, html_content, text_content)

    async def _send_via_sendgrid(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """Send email via SendGrid API"""
        try:
            message = Mail(
                from_email=Email(self.sendgrid_from_email, self.from_name),
                to_emails=To(to_email),
                subject=subject,
            )
            if text_content:
                message.add_content(Content("text/plain", text_content))
            message.add_content(Content("text/html", html_content))

            sg = SendGridAPIClient(self.sendgrid_api_key)
            # Run synchronous SendGrid call in thread pool
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(None, sg.send, message)

            if response.status_code in [200, 201, 202]:
                logger.info(f"[Email/SendGrid] Successfully sent email to {to_email}: {subject}")
                return True
            logger.error(f"[Email/SendGrid] Failed with status {response.status_code}: {response.body}")
            return False

        except Exception as e:
            logger.error(f"[Email/SendGrid] Failed to send email to {to_email}: {e}")
            return False

    async def _send_via_smtp(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None
    ) -> bool:
        """Send email via SMTP (implicit TLS on 465, STARTTLS otherwise)"""
        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{self.from_name} <{self.from_email}>"
            message["To"] = to_email
            message["Subject"] = subject
            if self.reply_to:
                message["Reply-To"] = self.reply_to

            # Add plain text version (fallback)
            if text_content:
                message.attach(MIMEText(text_content, "plain"))
            message.attach(MIMEText(html_content, "html"))

            implicit_tls = self.smtp_port == 465
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                use_tls=implicit_tls,
                start_tls=not implicit_tls,
                timeout=30,
            )

            logger.info(f"[Email/SMTP] Successfully sent email to {to_email}: {subject}")
            return True

        except Exception as e:
            logger.error(f"[Email/SMTP] Failed to send email to {to_email}: {e}")
            return False

    # ==========================================
    # Templates
    # ==========================================

    async def send_otp_email(self, to_email: str, otp: str) -> bool:
        """Send the signup verification code"""
        body = f"""
            <p>Hi there,</p>
            <p>Use the code below to verify your email address for DigiDiploma.</p>
            <div class="code">{otp}</div>
            <p style="font-size: 14px; color: #6b7280;">This code expires in {settings.OTP_EXPIRE_MINUTES} minutes.
            If you didn't request it, you can ignore this email.</p>
        """
        text_content = (
            f"Your DigiDiploma verification code is {otp}. "
            f"It expires in {settings.OTP_EXPIRE_MINUTES} minutes."
        )
        return await self.send_email(
            to_email, OTP_EMAIL_SUBJECT, render_email("Verify your email", body), text_content
        )

    async def send_password_reset_email(self, to_email: str, user_name: str, reset_token: str) -> bool:
        reset_link = f"{self.frontend_url}/reset-password?token={reset_token}"
        body = f"""
            <p>Hi {escape(user_name or 'there')},</p>
            <p>We received a request to reset your DigiDiploma password.</p>
            <p style="text-align: center;">
                <a href="{reset_link}" class="button">Reset Password</a>
            </p>
            <p style="font-size: 14px; color: #6b7280;">
                Or copy and paste this link in your browser:<br>
                <code style="word-break: break-all;">{reset_link}</code>
            </p>
            <p style="font-size: 14px; color: #6b7280;">This link will expire in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.</p>
        """
        text_content = f"Reset your DigiDiploma password: {reset_link}"
        return await self.send_email(
            to_email, PASSWORD_RESET_SUBJECT, render_email("Password Reset", body), text_content
        )

    async def send_contact_alert(self, name: str, email: str, phone: str, subject: str, message: str) -> bool:
        """Notify ADMIN_ALERT_EMAIL of a new contact form message"""
        if not settings.ADMIN_ALERT_EMAIL:
            logger.warning("[Email] ADMIN_ALERT_EMAIL not set, skipping contact alert")
            return False
        body = f"""
            <p><strong>From:</strong> {escape(name)} &lt;{escape(email)}&gt;</p>
            <p><strong>Phone:</strong> {escape(phone or '-')}</p>
            <p><strong>Subject:</strong> {escape(subject)}</p>
            <hr>
            {_paragraphs(message)}
        """
        return await self.send_email(
            settings.ADMIN_ALERT_EMAIL, CONTACT_ALERT_SUBJECT, render_email("New Contact Message", body)
        )

    async def send_project_request_alert(self, request) -> bool:
        """Notify ADMIN_ALERT_EMAIL of a new custom project request"""
        if not settings.ADMIN_ALERT_EMAIL:
            logger.warning("[Email] ADMIN_ALERT_EMAIL not set, skipping project request alert")
            return False
        body = f"""
            <p><strong>From:</strong> {escape(request.name)} &lt;{escape(request.email)}&gt;</p>
            <p><strong>Phone:</strong> {escape(request.phone or '-')}</p>
            <p><strong>Branch / Semester:</strong> {escape(request.branch or '-')} / {escape(str(request.semester or '-'))}</p>
            <p><strong>Project idea:</strong> {escape(request.project_idea)}</p>
            <p><strong>Required tools:</strong> {escape(request.required_tools or '-')}</p>
            <p><strong>Deadline:</strong> {escape(request.deadline or '-')}</p>
            <hr>
            {_paragraphs(request.description or '')}
            {_paragraphs(request.notes or '')}
        """
        return await self.send_email(
            settings.ADMIN_ALERT_EMAIL, PROJECT_REQUEST_ALERT_SUBJECT, render_email("New Project Request", body)
        )

    async def send_admin_reply(
        self,
        to_email: str,
        recipient_name: str,
        reply_subject: str,
        header_text: str,
        message_text: str,
        footer_text: str,
        regarding: Optional[str] = None,
    ) -> bool:
        """Reply from the admin message center (contact messages and project requests)"""
        regarding_line = f"<p style=\"color: #6b7280;\">Regarding: {escape(regarding)}</p>" if regarding else ""
        body = f"""
            <p>Hi {escape(recipient_name or 'there')},</p>
            {regarding_line}
            {_paragraphs(message_text)}
        """
        return await self.send_email(
            to_email,
            reply_subject,
            render_email(escape(header_text), body, footer=escape(footer_text)),
            message_text,
        )


# Singleton instance
email_service = EmailService()
