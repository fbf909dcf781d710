"""
Email Service for BidHub

Supports multiple email providers:
- SMTP (Gmail, Outlook, etc.)
- SendGrid
- Console (development and tests)

Every attempt is recorded in email_logs. A failed send is reported in the
returned result and never retried.
"""

import smtplib
import asyncio
import os
import re
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional, Dict, Any
import logging

from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.orm import Session

from bidhub.core.config import settings
from bidhub.db.models import EmailLog
from bidhub.utils.bid_state import utcnow

logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "emails")


class EmailService:
    """
    Email service supporting multiple providers.
    Provides async email sending with template rendering.
    """

    def __init__(self):
        self.jinja_env = Environment(
            loader=FileSystemLoader(TEMPLATES_DIR),
            autoescape=select_autoescape(['html', 'xml'])
        )

    # Read on every send so a changed environment takes effect without a restart
    @property
    def enabled(self) -> bool:
        return settings.EMAIL_ENABLED

    @property
    def provider(self) -> str:
        return settings.EMAIL_PROVIDER

    async def send_email(
        self,
        to_email: str,
        subject: str,
        template_name: str,
        context: Dict[str, Any],
        db: Optional[Session] = None,
        related_bid_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Send an email using the configured provider.

        Args:
            to_email: Recipient email address
            subject: Email subject
            template_name: Name of email template (without .html)
            context: Template context variables
            db: Session used to record the attempt in email_logs (optional)
            related_bid_id: Bid the message is about, for the log (optional)

        Returns:
            Dict with status and message
        """
        email_log = self._create_log(db, to_email, subject, template_name, related_bid_id)

        if not self.enabled:
            logger.info(f"Email disabled. Would send to {to_email}: {subject}")
            self._update_log_status(db, email_log, "disabled", "Email service is disabled")
            return {"status": "disabled", "message": "Email service is disabled"}

        # In test mode, redirect all emails to test recipient
        if settings.EMAIL_TEST_MODE and settings.EMAIL_TEST_RECIPIENT:
            original_to = to_email
            to_email = settings.EMAIL_TEST_RECIPIENT
            logger.info(f"TEST MODE: Redirecting email from {original_to} to {to_email}")

        try:
            html_body = self.render_template(template_name, context)
            text_body = self._html_to_text(html_body)

            if self.provider == "smtp":
                result = await self._send_smtp(to_email, subject, html_body, text_body)
            elif self.provider == "sendgrid":
                result = await self._send_sendgrid(to_email, subject, html_body, text_body)
            elif self.provider == "console":
                result = self._send_console(to_email, subject, text_body)
            else:
                raise ValueError(f"Unknown email provider: {self.provider}")

            self._update_log_status(db, email_log, result["status"], None)
            logger.info(f"Email sent to {to_email} via {self.provider}: {subject}")
            return result

        except Exception as e:
            error_msg = str(e)
            logger.error(f"Failed to send email to {to_email}: {error_msg}")
            self._update_log_status(db, email_log, "failed", error_msg)
            return {"status": "failed", "message": error_msg}

    def _create_log(
        self,
        db: Optional[Session],
        to_email: str,
        subject: str,
        template_name: str,
        related_bid_id: Optional[int],
    ) -> Optional[EmailLog]:
        if db is None:
            return None
        try:
            email_log = EmailLog(
                email_to=to_email,
                subject=subject,
                template_name=template_name,
                status="queued",
                provider=self.provider if self.enabled else "disabled",
                related_bid_id=related_bid_id,
            )
            db.add(email_log)
            db.commit()
            return email_log
        except Exception as e:
            logger.error(f"Failed to create email log: {str(e)}")
            db.rollback()
            return None

    def _update_log_status(
        self,
        db: Optional[Session],
        email_log: Optional[EmailLog],
        status: str,
        error_message: Optional[str] = None,
    ):
        if db is None or email_log is None:
            return
        try:
            email_log.status = status
            if error_message:
                email_log.error_message = error_message
            if status in ("sent", "console"):
                email_log.sent_at = utcnow()
            db.commit()
        except Exception as e:
            logger.error(f"Failed to update email log: {str(e)}")
            db.rollback()

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render an email template with the shared context added."""
        template = self.jinja_env.get_template(f"{template_name}.html")
        return template.render(
            project_name=settings.PROJECT_NAME,
            year=utcnow().year,
            **context
        )

    def _html_to_text(self, html: str) -> str:
        """Convert HTML to plain text (simple version)."""
        text = re.sub(r'<(style|title)[^>]*>.*?</\1>', '', html, flags=re.S | re.I)
        text = re.sub('<[^<]+?>', '', text)
        text = re.sub(r'[ \t]+', ' ', text)
        text = re.sub(r'\n\s*\n', '\n\n', text)
        return text.strip()

    async def _send_smtp(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> Dict[str, Any]:
        """Send email via SMTP."""
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"
        msg['To'] = to_email

        msg.attach(MIMEText(text_body, 'plain'))
        msg.attach(MIMEText(html_body, 'html'))

        try:
            await asyncio.to_thread(self._send_smtp_sync, msg, [to_email])
        except Exception as e:
            raise RuntimeError(f"SMTP error: {str(e)}") from e

        return {
            "status": "sent",
            "message": "Email sent successfully via SMTP",
            "sent_at": utcnow().isoformat(),
        }

    def _send_smtp_sync(self, msg: MIMEMultipart, recipients: List[str]):
        """Synchronous SMTP sending (for asyncio.to_thread)."""
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
            if settings.SMTP_TLS:
                server.starttls()

            if settings.SMTP_USER and settings.SMTP_PASSWORD:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)

            server.sendmail(settings.EMAIL_FROM, recipients, msg.as_string())

    async def _send_sendgrid(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> Dict[str, Any]:
        """Send email via SendGrid API."""
        try:
            from sendgrid import SendGridAPIClient
            from sendgrid.helpers.mail import Mail, Email, To, Content

            message = Mail(
                from_email=Email(settings.EMAIL_FROM, settings.EMAIL_FROM_NAME),
                to_emails=To(to_email),
                subject=subject,
                plain_text_content=Content("text/plain", text_body),
                html_content=Content("text/html", html_body)
            )

            sg = SendGridAPIClient(settings.SENDGRID_API_KEY)
            response = await asyncio.to_thread(sg.send, message)
        except Exception as e:
            raise RuntimeError(f"SendGrid error: {str(e)}") from e

        return {
            "status": "sent",
            "message": "Email sent successfully via SendGrid",
            "sent_at": utcnow().isoformat(),
            "sendgrid_message_id": response.headers.get('X-Message-Id'),
        }

    def _send_console(self, to_email: str, subject: str, text_body: str) -> Dict[str, Any]:
        """'Send' email to the log (for development/testing)."""
        preview = text_body[:500] + ("..." if len(text_body) > 500 else "")
        logger.info(
            f"EMAIL (console)\n"
            f"To: {to_email}\n"
            f"From: {settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>\n"
            f"Subject: {subject}\n"
            f"{preview}"
        )
        return {
            "status": "console",
            "message": "Email logged to console",
            "sent_at": utcnow().isoformat(),
        }


# Singleton instance
email_service = EmailService()
