"""
Order lifecycle: placement, status transitions, lookups and admin reporting.

The store has no multi-table transaction. Placement writes the order, then its
lines, then the first history entry, and undoes the earlier writes if a later
one fails. A process crash between those writes can still leave an orphaned order.
"""
import logging
import math
import secrets
import string
import time
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from storefront.config import Settings
from storefront.core.errors import (
    DependencyError,
    DuplicateRecordError,
    NotFoundError,
    ValidationError,
)
from storefront.core.state_machine import StateMachine
from storefront.database import FileBackedDB
from storefront.models.order import (
    MAX_QUANTITY,
    Order,
    OrderLine,
    OrderStatus,
    ShippingAddress,
    StatusHistoryEntry,
    format_money,
    parse_money,
    parse_timestamp,
    sort_history,
    utcnow_iso,
)
from storefront.models.product import json_list
from storefront.models.user import User
from storefront.services.inventory import InventoryAdjuster

logger = logging.getLogger(__name__)

_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """ORD-<epoch millis>-<7 random chars>. Uniqueness is still enforced by the store."""
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(7))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


@dataclass
class LineRequest:
    product_id: str
    name: str
    quantity: int
    price: Decimal
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None


@dataclass
class StatusChange:
    order: Order
    entry: StatusHistoryEntry
    event: Dict[str, Any]


def _parse_lines(raw_items: Any) -> List[LineRequest]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Order items are required", details={"field": "items"})
    lines = []
    for idx, it in enumerate(raw_items):
        if not isinstance(it, dict):
            raise ValidationError("Each order item must be an object", details={"index": idx})
        product_id = str(it.get("id") or it.get("product_id") or "").strip()
        if not product_id:
            raise ValidationError("Each order item needs a product id", details={"index": idx})
        try:
            quantity = int(it.get("quantity"))
        except (TypeError, ValueError, OverflowError):
            raise ValidationError("Quantity must be a positive integer", details={"index": idx})
        if quantity < 1:
            raise ValidationError("Quantity must be a positive integer", details={"index": idx})
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_QUANTITY}", details={"index": idx})
        price = parse_money(it.get("price"), f"items[{idx}].price")
        if price < 0:
            raise ValidationError("Price cannot be negative", details={"index": idx})
        lines.append(LineRequest(
            product_id=product_id,
            name=str(it.get("name") or "").strip(),
            quantity=quantity,
            price=price,
            selected_size=it.get("selectedSize") or it.get("size") or None,
            selected_color=it.get("selectedColor") or it.get("color") or None,
        ))
    return lines


def _optional_money(payload: Dict[str, Any], key: str) -> Optional[Decimal]:
    raw = payload.get(key)
    if raw in (None, ""):
        return None
    return parse_money(raw, key)


class OrderService:
    def __init__(self, db: FileBackedDB, inventory: InventoryAdjuster, settings: Settings):
        self.db = db
        self.inventory = inventory
        self.settings = settings

    # --- placement ---

    def create_order(self, user: User, payload: Dict[str, Any]) -> Order:
        """
        Validate and persist an order with its lines and initial "pending" history entry,
        then decrement stock per line. Payment is assumed to have already succeeded.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Order payload must be an object")
        line_requests = _parse_lines(payload.get("items"))
        address = ShippingAddress.from_request(payload.get("shipping_address"))
        if not address.email:
            address.email = user.email or None
        if not address.full_name:
            address.full_name = user.full_name

        try:
            total_amount = parse_money(payload.get("total_amount"), "total_amount")
        except ValidationError:
            raise ValidationError("Invalid order total", details={"field": "total_amount"})
        if total_amount <= 0:
            raise ValidationError("Invalid order total", details={"field": "total_amount"})

        subtotal = _optional_money(payload, "subtotal")
        if subtotal is None:
            subtotal = sum((lr.price * lr.quantity for lr in line_requests), Decimal("0.00"))

        now = utcnow_iso()
        order = Order(
            order_number="",
            user_id=str(user.id),
            total_amount=total_amount,
            shipping_address=address,
            status=OrderStatus.PENDING,
            payment_status="completed",
            payment_method=str(payload.get("payment_method") or "card"),
            subtotal=subtotal,
            shipping_cost=_optional_money(payload, "shipping_cost"),
            tax=_optional_money(payload, "tax"),
            created_at=now,
            updated_at=now,
        )
        self._insert_order(order)

        order.lines = self._insert_lines(order, line_requests)

        entry = StatusHistoryEntry(order_id=order.id, status=OrderStatus.PENDING,
                                   comment="Order placed successfully", updated_by=None,
                                   created_at=utcnow_iso())
        try:
            saved = self.db.create_record("order_status_history", entry.to_row(), id_field="id")
        except Exception as e:
            logger.exception("History insert failed for order %s; rolling back", order.order_number)
            self._discard_order(order.id)
            raise DependencyError("Failed to create order", details=str(e)) from e
        entry.id = saved["id"]
        order.history = [entry]

        self.inventory.apply_order(order.lines)
        logger.info("Order %s placed by user %s (%d lines, total %s)",
                    order.order_number, order.user_id, len(order.lines), format_money(order.total_amount))
        return order

    def _insert_order(self, order: Order) -> None:
        attempts = max(1, int(self.settings.ORDER_NUMBER_ATTEMPTS))
        for attempt in range(1, attempts + 1):
            order.order_number = generate_order_number()
            try:
                saved = self.db.create_record("orders", order.to_dict(), id_field="id", unique=("order_number",))
            except DuplicateRecordError:
                logger.warning("Order number collision on %s (attempt %d)", order.order_number, attempt)
                continue
            except Exception as e:
                logger.exception("Order insert failed")
                raise DependencyError("Failed to create order", details=str(e)) from e
            order.id = saved["id"]
            return
        raise DependencyError("Could not allocate a unique order number")

    def _insert_lines(self, order: Order, line_requests: List[LineRequest]) -> List[OrderLine]:
        lines = []
        for lr in line_requests:
            product = self.db.get_record("products", "id", lr.product_id)
            image = None
            name = lr.name
            if product:
                image = _first_image(product.get("images"))
                name = name or product.get("name") or ""
            lines.append(OrderLine(
                order_id=order.id,
                product_id=lr.product_id,
                product_name=name or lr.product_id,
                quantity=lr.quantity,
                price=lr.price,
                product_image=image,
                selected_size=lr.selected_size,
                selected_color=lr.selected_color,
                created_at=order.created_at,
            ))
        try:
            saved = self.db.create_records("order_items", [line.to_dict() for line in lines], id_field="id")
        except Exception as e:
            logger.exception("Line insert failed for order %s; rolling back", order.order_number)
            self._discard_order(order.id)
            raise DependencyError("Failed to create order", details=str(e)) from e
        for line, row in zip(lines, saved):
            line.id = row["id"]
        return lines

    def _discard_order(self, order_id: str) -> None:
        # compensating delete; lines may or may not exist yet
        self.db.delete_record("order_items", "order_id", order_id)
        self.db.delete_record("orders", "id", order_id)

    # --- status transitions ---

    def _state_machine(self, current: str) -> StateMachine:
        policy = self.settings.ORDER_STATUS_POLICY.strip().lower()
        allowed = OrderStatus.FORWARD_ONLY if policy == "forward_only" else None
        return StateMachine(state=current, states=OrderStatus.ALL, allowed_transitions=allowed)

    def transition_status(self, order_id: str, status: Any, actor: User, comment: Optional[str] = None,
                          tracking_number: Optional[str] = None) -> StatusChange:
        """
        Move an order to `status`, append a history entry by `actor` and return the
        event payload for live subscribers.
        """
        if not isinstance(status, str) or status.strip().lower() not in OrderStatus.ALL:
            raise ValidationError("Invalid status", details={"status": status, "allowed": OrderStatus.ALL})
        row = self.db.get_record("orders", "id", order_id)
        if not row:
            raise NotFoundError("Order not found")
        order = Order.from_dict(row)

        sm = self._state_machine(order.status)
        change = sm.apply(status, actor=actor.id, comment=comment)

        # history first: a status is never visible without its entry
        entry = StatusHistoryEntry(order_id=order_id, status=sm.state, comment=comment or None,
                                   updated_by=actor.id, created_at=change["created_at"])
        try:
            saved = self.db.create_record("order_status_history", entry.to_row(), id_field="id")
        except Exception as e:
            logger.exception("History insert failed for order %s", order.order_number)
            raise DependencyError("Failed to update order status", details=str(e)) from e
        entry.id = saved["id"]
        entry.updated_by_name = actor.display_name

        updates = {"status": sm.state, "updated_at": utcnow_iso()}
        if tracking_number:
            updates["tracking_number"] = tracking_number
        try:
            updated = self.db.update_record("orders", "id", order_id, updates)
        except Exception as e:
            logger.exception("Status update failed for order %s; dropping history entry", order.order_number)
            self.db.delete_record("order_status_history", "id", entry.id)
            raise DependencyError("Failed to update order status", details=str(e)) from e
        if not updated:
            self.db.delete_record("order_status_history", "id", entry.id)
            raise NotFoundError("Order not found")
        order = Order.from_dict(updated)

        logger.info("Order %s moved %s -> %s by %s", order.order_number, change["from"], sm.state, actor.username)
        event = {
            "orderId": order_id,
            "orderNumber": order.order_number,
            "status": sm.state,
            "comment": comment,
            "trackingNumber": tracking_number,
            "timestamp": entry.created_at,
            "updatedBy": actor.display_name or "Admin",
        }
        return StatusChange(order=order, entry=entry, event=event)

    def update_notes(self, order_id: str, notes: Optional[str]) -> Order:
        updated = self.db.update_record("orders", "id", order_id, {"notes": notes or "", "updated_at": utcnow_iso()})
        if not updated:
            raise NotFoundError("Order not found")
        return Order.from_dict(updated)

    # --- reads ---

    def _users_by_id(self) -> Dict[str, User]:
        return {r["id"]: User.from_dict(r) for r in self.db.list_records("users") if r.get("id")}

    def _attach(self, order: Order, users: Optional[Dict[str, User]] = None) -> Order:
        users = users if users is not None else self._users_by_id()
        order.lines = [OrderLine.from_dict(r) for r in self.db.find_records("order_items", order_id=order.id)]
        history = [StatusHistoryEntry.from_dict(r)
                   for r in self.db.find_records("order_status_history", order_id=order.id)]
        for entry in history:
            if entry.updated_by and entry.updated_by in users:
                entry.updated_by_name = users[entry.updated_by].display_name
        order.history = sort_history(history)
        return order

    def get_order(self, order_id: str) -> Order:
        row = self.db.get_record("orders", "id", order_id)
        if not row:
            raise NotFoundError("Order not found")
        return self._attach(Order.from_dict(row))

    def get_order_for_user(self, order_id: str, user: User) -> Order:
        order = self.get_order(order_id)
        if order.user_id != str(user.id):
            # same answer as a missing order
            raise NotFoundError("Order not found")
        return order

    def get_order_by_number(self, order_number: str) -> Order:
        row = self.db.get_record("orders", "order_number", order_number)
        if not row:
            raise NotFoundError("Order not found")
        return self._attach(Order.from_dict(row))

    def owner_of(self, order: Order) -> Optional[User]:
        row = self.db.get_record("users", "id", order.user_id)
        return User.from_dict(row) if row else None

    def list_user_orders(self, user: User) -> List[Order]:
        rows = self.db.find_records("orders", user_id=user.id)
        users = self._users_by_id()
        orders = [self._attach(Order.from_dict(r), users) for r in rows]
        return sorted(orders, key=lambda o: parse_timestamp(o.created_at), reverse=True)

    def spending_summary(self, user_id: str) -> Dict[str, Any]:
        """Order count and amount spent; cancelled orders count as placed but not spent."""
        orders = [Order.from_dict(r) for r in self.db.find_records("orders", user_id=user_id)]
        spent = sum((o.total_amount for o in orders
                     if o.payment_status == "completed" and o.status != OrderStatus.CANCELLED), Decimal("0.00"))
        return {"total_orders": len(orders), "total_spent": format_money(spent)}

    def list_orders(self, status: Optional[str] = None, search: Optional[str] = None,
                    page: int = 1, limit: int = 20) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        """Admin listing: newest first, optional status filter and order number search."""
        if status and status not in OrderStatus.ALL:
            raise ValidationError("Invalid status", details={"status": status, "allowed": OrderStatus.ALL})
        page = max(1, int(page))
        limit = min(100, max(1, int(limit)))
        orders = [Order.from_dict(r) for r in self.db.list_records("orders")]
        if status:
            orders = [o for o in orders if o.status == status]
        if search:
            needle = search.strip().lower()
            orders = [o for o in orders if needle in o.order_number.lower()]
        orders.sort(key=lambda o: parse_timestamp(o.created_at), reverse=True)

        total = len(orders)
        window = orders[(page - 1) * limit: page * limit]
        lines_by_order: Dict[str, List[OrderLine]] = defaultdict(list)
        wanted = {o.id for o in window}
        for r in self.db.list_records("order_items"):
            if r.get("order_id") in wanted:
                lines_by_order[r["order_id"]].append(OrderLine.from_dict(r))
        users = self._users_by_id()
        out = []
        for o in window:
            o.lines = lines_by_order.get(o.id, [])
            item = o.to_api()
            item.pop("order_status_history", None)
            item["customer"] = _customer_summary(users.get(o.user_id))
            out.append(item)
        pagination = {"total": total, "page": page, "limit": limit, "totalPages": math.ceil(total / limit)}
        return out, pagination

    def dashboard_stats(self) -> Dict[str, Any]:
        orders = [Order.from_dict(r) for r in self.db.list_records("orders")]
        products = self.db.list_records("products")
        users = self._users_by_id()
        revenue = sum((o.total_amount for o in orders if o.payment_status == "completed"), Decimal("0.00"))

        low_stock = []
        for p in products:
            try:
                stock = int(float(p.get("stock") or 0))
            except ValueError:
                stock = 0
            if stock <= self.settings.LOW_STOCK_THRESHOLD:
                low_stock.append({"id": p.get("id"), "name": p.get("name"), "stock": stock})
        low_stock.sort(key=lambda p: p["stock"])

        recent = sorted(orders, key=lambda o: parse_timestamp(o.created_at), reverse=True)[:10]
        recent_out = []
        for o in recent:
            item = o.to_api()
            item.pop("order_items", None)
            item.pop("order_status_history", None)
            item["customer"] = _customer_summary(users.get(o.user_id))
            recent_out.append(item)

        return {
            "totalProducts": len(products),
            "totalOrders": len(orders),
            "totalCustomers": len([u for u in users.values() if not u.is_admin]),
            "totalRevenue": format_money(revenue),
            "pendingOrders": len([o for o in orders if o.status == OrderStatus.PENDING]),
            "lowStockProducts": low_stock[:10],
            "recentOrders": recent_out,
        }

    def customers(self, search: Optional[str] = None, page: int = 1,
                  limit: int = 20) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        """Users who have placed at least one order, with order count and total spent."""
        page = max(1, int(page))
        limit = min(100, max(1, int(limit)))
        by_user: Dict[str, List[Order]] = defaultdict(list)
        for r in self.db.list_records("orders"):
            o = Order.from_dict(r)
            if o.user_id:
                by_user[o.user_id].append(o)
        users = self._users_by_id()
        rows = []
        for user_id, orders in by_user.items():
            user = users.get(user_id)
            if user is None:
                continue
            if search:
                needle = search.strip().lower()
                if needle not in (user.full_name or "").lower() and needle not in user.email.lower():
                    continue
            orders.sort(key=lambda o: parse_timestamp(o.created_at), reverse=True)
            rows.append({
                "id": user.id,
                "name": user.display_name,
                "email": user.email,
                "created_at": user.created_at,
                "order_count": len(orders),
                "total_spent": format_money(sum((o.total_amount for o in orders), Decimal("0.00"))),
                "last_order": orders[0].created_at,
            })
        rows.sort(key=lambda r: parse_timestamp(r["last_order"]), reverse=True)
        total = len(rows)
        pagination = {"total": total, "page": page, "limit": limit, "totalPages": math.ceil(total / limit)}
        return rows[(page - 1) * limit: page * limit], pagination


def _first_image(raw: Any) -> Optional[str]:
    images = json_list(raw)
    return images[0] if images else None


def _customer_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "name": user.display_name, "email": user.email}
