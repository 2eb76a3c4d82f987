"""Email dispatch: a small sender interface with Resend, console and in-memory backends."""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import List, Optional
from uuid import uuid4

import requests

from storefront.config import Settings
from storefront.core.errors import EmailDeliveryError

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    sender: str
    to: str
    subject: str
    html: str
    reply_to: Optional[str] = None


class EmailSender(ABC):
    """Abstract interface for email dispatch backends."""

    @abstractmethod
    def send(self, message: EmailMessage) -> str:
        """
        Deliver one message and return the provider's delivery id.
        Raises EmailDeliveryError on failure.
        """
        ...


class ResendEmailSender(EmailSender):
    """Sends through the Resend REST API."""

    def __init__(self, api_key: str, api_url: str = "https://api.resend.com/emails",
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        if not api_key:
            raise ValueError("RESEND_API_KEY is required for the resend email backend")
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def send(self, message: EmailMessage) -> str:
        body = {
            "from": message.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.reply_to:
            body["reply_to"] = message.reply_to
        try:
            resp = self.session.post(self.api_url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise EmailDeliveryError("Email provider unreachable", details=str(e)) from e
        if resp.status_code >= 400:
            raise EmailDeliveryError(f"Email provider rejected message ({resp.status_code})", details=resp.text)
        try:
            delivery_id = resp.json().get("id")
        except ValueError:
            delivery_id = None
        if not delivery_id:
            raise EmailDeliveryError("Email provider returned no delivery id", details=resp.text)
        return str(delivery_id)


class ConsoleEmailSender(EmailSender):
    """Logs messages instead of sending them. Default for local development."""

    def send(self, message: EmailMessage) -> str:
        delivery_id = f"console-{uuid4().hex[:12]}"
        logger.info("Email %s to=%s subject=%r", delivery_id, message.to, message.subject)
        return delivery_id


class InMemoryEmailSender(EmailSender):
    """Records messages in memory for test assertions."""

    def __init__(self):
        self.outbox: List[dict] = []
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Email delivery failed"):
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def send(self, message: EmailMessage) -> str:
        if not self.should_succeed:
            raise EmailDeliveryError(self.failure_reason)
        delivery_id = f"email-{uuid4().hex[:12]}"
        self.outbox.append(dict(asdict(message), id=delivery_id))
        return delivery_id

    def reset(self):
        self.outbox.clear()
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"


def build_email_sender(settings: Settings) -> EmailSender:
    backend = settings.EMAIL_BACKEND.strip().lower()
    if backend == "resend":
        return ResendEmailSender(settings.RESEND_API_KEY, settings.RESEND_API_URL, settings.EMAIL_TIMEOUT_SECONDS)
    if backend == "memory":
        return InMemoryEmailSender()
    if backend == "console":
        return ConsoleEmailSender()
    raise ValueError(f"Unknown EMAIL_BACKEND: {settings.EMAIL_BACKEND}")
