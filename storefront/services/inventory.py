import logging
from typing import Iterable, List

from storefront.database import FileBackedDB
from storefront.models.order import OrderLine

logger = logging.getLogger(__name__)


class InventoryAdjuster:
    """
    Best-effort stock decrement after an order is placed. Each line is one atomic
    conditional decrement, so concurrent orders can never drive stock below zero.
    Lines without enough stock are skipped: no backorder, nothing surfaced to the buyer.
    """

    def __init__(self, db: FileBackedDB):
        self.db = db

    def decrement(self, product_id: str, quantity: int) -> bool:
        if quantity <= 0:
            return False
        updated = self.db.decrement_if_available("products", "id", product_id, "stock", quantity)
        if updated is None:
            logger.warning("Stock not decremented for product %s (missing or fewer than %d left)",
                           product_id, quantity)
            return False
        return True

    def apply_order(self, lines: Iterable[OrderLine]) -> List[bool]:
        """Decrement stock for every line. Returns one flag per line, True when decremented."""
        results: List[bool] = []
        for line in lines:
            try:
                results.append(self.decrement(line.product_id, line.quantity))
            except Exception:
                # the order is already committed; a stock failure must not undo it
                logger.exception("Stock decrement failed for product %s on order %s",
                                 line.product_id, line.order_id)
                results.append(False)
        return results
