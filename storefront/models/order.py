# storefront/models/order.py
from __future__ import annotations
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Dict, Any, List
import json
import re

from storefront.core.errors import ValidationError


class OrderStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    ALL = [PENDING, PROCESSING, SHIPPED, DELIVERED, CANCELLED]

    # used when ORDER_STATUS_POLICY=forward_only
    FORWARD_ONLY = {
        PENDING: [PROCESSING, SHIPPED, DELIVERED, CANCELLED],
        PROCESSING: [SHIPPED, DELIVERED, CANCELLED],
        SHIPPED: [DELIVERED, CANCELLED],
        DELIVERED: [],
        CANCELLED: [],
    }


CENTS = Decimal("0.01")
MAX_MONEY = Decimal("999999999999.99")
MAX_QUANTITY = 10000
_MONEY_DECORATION = re.compile(r"[\s,$€£]")


def parse_money(value: Any, field_name: str = "amount") -> Decimal:
    """
    Parse a currency amount given as a number or a formatted string ("$1,299.00", "1e3").
    Returns a Decimal quantized to cents. Raises ValidationError if it cannot be parsed
    or is larger than MAX_MONEY.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number", details={"field": field_name})
    if isinstance(value, Decimal):
        amount = value
    else:
        text = repr(value) if isinstance(value, float) else _MONEY_DECORATION.sub("", str(value))
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"{field_name} must be a number", details={"field": field_name, "value": str(value)})
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number", details={"field": field_name, "value": str(value)})
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field_name} is too large", details={"field": field_name, "max": str(MAX_MONEY)})
    try:
        return amount.quantize(CENTS)
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number", details={"field": field_name, "value": str(value)})


def format_money(amount: Optional[Decimal]) -> str:
    return str((amount or Decimal("0")).quantize(CENTS))


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(raw: Any) -> datetime:
    """Parse a stored ISO timestamp. Unparseable or empty values sort first."""
    if isinstance(raw, datetime):
        dt = raw
    else:
        try:
            dt = datetime.fromisoformat(str(raw))
        except (TypeError, ValueError):
            return datetime.min.replace(tzinfo=timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _load_json(raw: Any, default: Any) -> Any:
    if isinstance(raw, (dict, list)):
        return raw
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return default


@dataclass
class ShippingAddress:
    street: str
    city: str
    state: str
    zip_code: str
    country: str
    phone_code: str
    phone: str
    full_name: Optional[str] = None
    email: Optional[str] = None

    REQUIRED = ("address", "city", "state", "zipCode")

    @classmethod
    def from_request(cls, d: Any) -> "ShippingAddress":
        """Build from the checkout form shape ({address, city, state, zipCode, country, phoneCode, phone, ...})."""
        if not isinstance(d, dict):
            raise ValidationError("Complete shipping address is required", details={"field": "shipping_address"})
        missing = [k for k in cls.REQUIRED if not str(d.get(k) or "").strip()]
        if missing:
            raise ValidationError("Complete shipping address is required", details={"missing": missing})
        if not str(d.get("country") or "").strip():
            raise ValidationError("Country is required", details={"missing": ["country"]})
        if not str(d.get("phoneCode") or "").strip() or not str(d.get("phone") or "").strip():
            raise ValidationError("Phone number with country code is required",
                                  details={"missing": [k for k in ("phoneCode", "phone") if not d.get(k)]})
        return cls(
            street=str(d["address"]).strip(),
            city=str(d["city"]).strip(),
            state=str(d["state"]).strip(),
            zip_code=str(d["zipCode"]).strip(),
            country=str(d["country"]).strip(),
            phone_code=str(d["phoneCode"]).strip(),
            phone=str(d["phone"]).strip(),
            full_name=(str(d.get("fullName")).strip() or None) if d.get("fullName") else None,
            email=(str(d.get("email")).strip() or None) if d.get("email") else None,
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ShippingAddress":
        return cls(
            street=d.get("street") or "",
            city=d.get("city") or "",
            state=d.get("state") or "",
            zip_code=d.get("zip_code") or "",
            country=d.get("country") or "",
            phone_code=d.get("phone_code") or "",
            phone=d.get("phone") or "",
            full_name=d.get("full_name") or None,
            email=d.get("email") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OrderLine:
    """
    One purchased product. Name, price and image are copied at order time so the
    line survives later product edits or deletion.
    """
    order_id: str
    product_id: str
    product_name: str
    quantity: int
    price: Decimal
    product_image: Optional[str] = None
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return (self.price * self.quantity).quantize(CENTS)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OrderLine":
        try:
            quantity = int(float(d.get("quantity") or 0))
        except ValueError:
            quantity = 0
        return cls(
            id=d.get("id") or None,
            order_id=str(d.get("order_id") or ""),
            product_id=str(d.get("product_id") or ""),
            product_name=d.get("product_name") or "",
            quantity=quantity,
            price=parse_money(d.get("price") or "0", "price"),
            product_image=d.get("product_image") or None,
            selected_size=d.get("selected_size") or None,
            selected_color=d.get("selected_color") or None,
            created_at=d.get("created_at") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["price"] = format_money(self.price)
        return out

    def to_api(self) -> Dict[str, Any]:
        out = self.to_dict()
        out["line_total"] = format_money(self.line_total)
        return out


@dataclass
class StatusHistoryEntry:
    order_id: str
    status: str
    comment: Optional[str] = None
    updated_by: Optional[str] = None  # None = system generated
    id: Optional[str] = None
    created_at: Optional[str] = None
    # resolved from the users table on read; never stored
    updated_by_name: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StatusHistoryEntry":
        return cls(
            id=d.get("id") or None,
            order_id=str(d.get("order_id") or ""),
            status=d.get("status") or "",
            comment=d.get("comment") or None,
            updated_by=d.get("updated_by") or None,
            created_at=d.get("created_at") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_row(self) -> Dict[str, Any]:
        row = self.to_dict()
        row.pop("updated_by_name", None)
        return row


def sort_history(entries: List[StatusHistoryEntry]) -> List[StatusHistoryEntry]:
    """Ascending by creation time, whatever order the store returned them in."""
    return sorted(entries, key=lambda e: parse_timestamp(e.created_at))


@dataclass
class Order:
    """
    Order domain model. Lines and status history live in their own tables
    and are attached by the order service when loading.
    """
    order_number: str
    user_id: str
    total_amount: Decimal
    shipping_address: ShippingAddress
    status: str = OrderStatus.PENDING
    payment_status: str = "completed"
    payment_method: str = "card"
    subtotal: Optional[Decimal] = None
    shipping_cost: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    lines: List[OrderLine] = field(default_factory=list)
    history: List[StatusHistoryEntry] = field(default_factory=list)

    @property
    def customer_email(self) -> Optional[str]:
        return self.shipping_address.email

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Order":
        if d is None:
            raise ValueError("Cannot construct Order from None")

        def _money(key: str) -> Optional[Decimal]:
            raw = d.get(key)
            if raw in (None, ""):
                return None
            return parse_money(raw, key)

        return cls(
            id=d.get("id") or None,
            order_number=d.get("order_number") or "",
            user_id=str(d.get("user_id") or ""),
            total_amount=_money("total_amount") or Decimal("0.00"),
            shipping_address=ShippingAddress.from_dict(_load_json(d.get("shipping_address"), {})),
            status=d.get("status") or OrderStatus.PENDING,
            payment_status=d.get("payment_status") or "pending",
            payment_method=d.get("payment_method") or "card",
            subtotal=_money("subtotal"),
            shipping_cost=_money("shipping_cost"),
            tax=_money("tax"),
            tracking_number=d.get("tracking_number") or None,
            notes=d.get("notes") or None,
            created_at=d.get("created_at") or None,
            updated_at=d.get("updated_at") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Flat row for the orders table. The shipping address is serialized as JSON text;
        lines and history are stored separately.
        """
        return {
            "id": self.id or "",
            "order_number": self.order_number,
            "user_id": self.user_id,
            "total_amount": format_money(self.total_amount),
            "subtotal": format_money(self.subtotal) if self.subtotal is not None else "",
            "shipping_cost": format_money(self.shipping_cost) if self.shipping_cost is not None else "",
            "tax": format_money(self.tax) if self.tax is not None else "",
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "shipping_address": json.dumps(self.shipping_address.to_dict(), ensure_ascii=False),
            "tracking_number": self.tracking_number or "",
            "notes": self.notes or "",
            "created_at": self.created_at or "",
            "updated_at": self.updated_at or "",
        }

    def to_api(self) -> Dict[str, Any]:
        out = self.to_dict()
        out["shipping_address"] = self.shipping_address.to_dict()
        for key in ("subtotal", "shipping_cost", "tax", "tracking_number", "notes"):
            out[key] = out[key] or None
        out["order_items"] = [line.to_api() for line in self.lines]
        out["order_status_history"] = [entry.to_dict() for entry in sort_history(self.history)]
        return out
