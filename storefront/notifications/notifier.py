"""
Order notifications that run after the response has been sent.

Every public method here is scheduled as a background task. A failure is
logged with the order number and never re-raised: by the time these run,
the order is already committed and the client already has its answer.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from storefront.config import Settings
from storefront.notifications.email import EmailMessage, EmailSender
from storefront.notifications.templates import render
from storefront.realtime.broadcaster import Broadcaster, order_topic

logger = logging.getLogger(__name__)

STATUS_EVENT = "order-status-update"


class OrderNotifier:
    def __init__(self, email_sender: EmailSender, broadcaster: Broadcaster, settings: Settings):
        self.email_sender = email_sender
        self.broadcaster = broadcaster
        self.settings = settings

    def _track_url(self, order_number: str, email: Optional[str]) -> str:
        query = urlencode({"orderNumber": order_number, "email": email or ""})
        return f"{self.settings.FRONTEND_URL.rstrip('/')}/track-order?{query}"

    def _context(self, order: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
        ctx = {
            "order": order,
            "store_name": self.settings.STORE_NAME,
            "year": datetime.now(timezone.utc).year,
        }
        ctx.update(extra)
        return ctx

    def _deliver(self, message: EmailMessage, kind: str, order_number: str) -> Optional[str]:
        try:
            delivery_id = self.email_sender.send(message)
        except Exception:
            logger.exception("Failed to send %s email for order %s to %s", kind, order_number, message.to)
            return None
        logger.info("Sent %s email for order %s (id=%s)", kind, order_number, delivery_id)
        return delivery_id

    def order_placed(self, order: Dict[str, Any], customer_email: Optional[str],
                     customer_name: Optional[str] = None) -> List[Optional[str]]:
        """Confirmation to the customer and a new-order notice to the store operator."""
        order_number = order.get("order_number", "")
        name = customer_name or "Customer"
        results: List[Optional[str]] = []
        try:
            if customer_email:
                html = render("order_confirmation.html", self._context(
                    order, customer_name=name, track_url=self._track_url(order_number, customer_email)))
                results.append(self._deliver(EmailMessage(
                    sender=self.settings.EMAIL_FROM,
                    to=customer_email,
                    reply_to=self.settings.ADMIN_EMAIL,
                    subject=f"Order Confirmation - {order_number}",
                    html=html,
                ), "confirmation", order_number))
            else:
                logger.warning("Order %s has no customer email; skipping confirmation", order_number)

            html = render("new_order.html", self._context(
                order, customer_name=name, customer_email=customer_email or "N/A",
                manage_url=f"{self.settings.FRONTEND_URL.rstrip('/')}/admin/orders"))
            results.append(self._deliver(EmailMessage(
                sender=self.settings.EMAIL_FROM,
                to=self.settings.ADMIN_EMAIL,
                reply_to=customer_email,
                subject=f"New Order Received - {order_number}",
                html=html,
            ), "new-order", order_number))
        except Exception:
            # rendering problems land here
            logger.exception("Order %s notification failed", order_number)
        return results

    def status_changed(self, order: Dict[str, Any], status: str, customer_email: Optional[str],
                       customer_name: Optional[str] = None, comment: Optional[str] = None,
                       tracking_number: Optional[str] = None) -> Optional[str]:
        order_number = order.get("order_number", "")
        if not customer_email:
            logger.info("Order %s has no customer email; skipping status email", order_number)
            return None
        try:
            html = render("status_update.html", self._context(
                order, status=status, comment=comment, tracking_number=tracking_number,
                customer_name=customer_name or "Customer",
                track_url=self._track_url(order_number, customer_email)))
            return self._deliver(EmailMessage(
                sender=self.settings.EMAIL_FROM,
                to=customer_email,
                reply_to=self.settings.ADMIN_EMAIL,
                subject=f"Order {order_number} - Status Update",
                html=html,
            ), "status-update", order_number)
        except Exception:
            logger.exception("Order %s status email failed", order_number)
            return None

    async def broadcast_status(self, order_id: str, payload: Dict[str, Any]) -> int:
        try:
            return await self.broadcaster.emit(order_topic(order_id), STATUS_EVENT, payload)
        except Exception:
            logger.exception("Broadcast for order %s failed", order_id)
            return 0
