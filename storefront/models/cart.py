# storefront/models/cart.py
from __future__ import annotations
from dataclasses import dataclass, asdict, field
from decimal import Decimal
from typing import List, Dict, Any, Optional
import json
import uuid

from storefront.models.order import parse_money, format_money


@dataclass
class CartItem:
    product_id: str
    quantity: int = 1
    name: Optional[str] = None
    price: Decimal = Decimal("0.00")
    image: Optional[str] = None
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CartItem":
        if d is None:
            raise ValueError("Cannot construct CartItem from None")
        try:
            quantity = int(float(d.get("quantity") or 1))
        except ValueError:
            quantity = 1
        return cls(
            id=d.get("id") or uuid.uuid4().hex,
            product_id=str(d.get("product_id") or ""),
            quantity=quantity,
            name=d.get("name") or None,
            price=parse_money(d.get("price") or "0", "price"),
            image=d.get("image") or None,
            selected_size=d.get("selected_size") or None,
            selected_color=d.get("selected_color") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["price"] = format_money(self.price)
        out["quantity"] = int(self.quantity)
        return out

    def same_variant(self, product_id: str, size: Optional[str], color: Optional[str]) -> bool:
        return (self.product_id == product_id and (self.selected_size or None) == (size or None)
                and (self.selected_color or None) == (color or None))

    def line_total(self) -> Decimal:
        return self.price * int(self.quantity)


@dataclass
class Cart:
    """
    Per-user cart saved as a single row with 'items' serialized as JSON
    (list of CartItem dicts). The row id is the owning user's id.
    """
    user_id: str
    items: List[CartItem] = field(default_factory=list)
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Cart":
        if d is None:
            raise ValueError("Cannot construct Cart from None")
        raw_items = d.get("items") or []
        if isinstance(raw_items, str):
            try:
                raw_items = json.loads(raw_items)
            except ValueError:
                raw_items = []
        items = [CartItem.from_dict(it) for it in raw_items if isinstance(it, dict)]
        return cls(user_id=str(d.get("user_id") or d.get("id") or ""), items=items,
                   updated_at=d.get("updated_at") or None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.user_id,
            "user_id": self.user_id,
            "items": json.dumps([it.to_dict() for it in self.items], ensure_ascii=False),
            "updated_at": self.updated_at or "",
        }

    def to_api(self) -> Dict[str, Any]:
        return {
            "items": [dict(it.to_dict(), line_total=format_money(it.line_total())) for it in self.items],
            "total": format_money(self.total()),
            "count": self.count_items(),
        }

    # business helpers
    def add_item(self, product_id: str, quantity: int = 1, name: Optional[str] = None,
                 price: Decimal = Decimal("0.00"), image: Optional[str] = None,
                 size: Optional[str] = None, color: Optional[str] = None) -> CartItem:
        # same product/size/color merges into the existing line
        for it in self.items:
            if it.same_variant(product_id, size, color):
                it.quantity = int(it.quantity) + int(quantity)
                return it
        item = CartItem(product_id=product_id, quantity=int(quantity), name=name, price=price,
                        image=image, selected_size=size, selected_color=color)
        self.items.append(item)
        return item

    def find_item(self, item_id: str) -> Optional[CartItem]:
        for it in self.items:
            if it.id == item_id:
                return it
        return None

    def remove_item(self, item_id: str) -> bool:
        before = len(self.items)
        self.items = [it for it in self.items if it.id != item_id]
        return len(self.items) != before

    def clear(self) -> None:
        self.items = []

    def total(self) -> Decimal:
        return sum((it.line_total() for it in self.items), Decimal("0.00"))

    def count_items(self) -> int:
        return int(sum(it.quantity for it in self.items))
