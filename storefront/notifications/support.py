"""
Contact-form messages: forwarded to the store operator, with an acknowledgement
to the sender. Sent inline so the caller learns whether the operator got it.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from storefront.config import Settings
from storefront.core.errors import DependencyError
from storefront.notifications.email import EmailMessage, EmailSender
from storefront.notifications.templates import render

logger = logging.getLogger(__name__)


class SupportMailer:
    def __init__(self, email_sender: EmailSender, settings: Settings):
        self.email_sender = email_sender
        self.settings = settings

    def submit(self, name: str, email: str, subject: str, message: str) -> str:
        """
        Forward the message to ADMIN_EMAIL and return its delivery id.
        A failed forward raises DependencyError; a failed acknowledgement is only logged.
        """
        context = {
            "name": name,
            "email": email,
            "subject": subject,
            "message": message,
            "store_name": self.settings.STORE_NAME,
            "year": datetime.now(timezone.utc).year,
            "support_url": f"{self.settings.FRONTEND_URL.rstrip('/')}/support",
        }
        try:
            delivery_id = self.email_sender.send(EmailMessage(
                sender=self.settings.EMAIL_FROM,
                to=self.settings.ADMIN_EMAIL,
                reply_to=email,
                subject=f"Support Request: {subject}",
                html=render("support_request.html", context),
            ))
        except Exception as e:
            logger.exception("Support request from %s could not be forwarded", email)
            raise DependencyError("Failed to send message. Please try again later.", details=str(e)) from e
        logger.info("Support request from %s forwarded (id=%s)", email, delivery_id)
        self._acknowledge(email, subject, context)
        return delivery_id

    def _acknowledge(self, email: str, subject: str, context: dict) -> Optional[str]:
        try:
            delivery_id = self.email_sender.send(EmailMessage(
                sender=self.settings.EMAIL_FROM,
                to=email,
                reply_to=self.settings.ADMIN_EMAIL,
                subject=f"We received your message: {subject}",
                html=render("support_ack.html", context),
            ))
        except Exception:
            logger.exception("Support acknowledgement to %s failed", email)
            return None
        return delivery_id
