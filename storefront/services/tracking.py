import logging
from typing import Any, Dict, List, Optional

from storefront.core.errors import ForbiddenError, ValidationError
from storefront.models.order import Order
from storefront.services.orders import OrderService

logger = logging.getLogger(__name__)


class TrackingService:
    """
    Public, unauthenticated order lookup. The caller proves ownership by giving the
    email of the account that placed the order; the comparison ignores case.
    """

    def __init__(self, orders: OrderService):
        self.orders = orders

    def track(self, order_number: str, email: Optional[str]) -> Order:
        if not email or not str(email).strip():
            raise ValidationError("Email is required to track order", details={"field": "email"})
        order = self.orders.get_order_by_number(order_number)
        owner = self.orders.owner_of(order)
        if owner is None or owner.email.strip().lower() != str(email).strip().lower():
            logger.info("Tracking lookup for %s rejected: email mismatch", order_number)
            raise ForbiddenError("Invalid email for this order")
        return order

    def updates(self, order_number: str, email: Optional[str]) -> List[Dict[str, Any]]:
        """Status history only, oldest first."""
        order = self.track(order_number, email)
        return [entry.to_dict() for entry in order.history]
