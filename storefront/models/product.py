# storefront/models/product.py
from __future__ import annotations
from dataclasses import dataclass, asdict, field
from decimal import Decimal
from typing import Optional, Dict, Any, List
import json

from storefront.models.order import parse_money, format_money


def json_list(raw: Any) -> List[str]:
    if isinstance(raw, list):
        return [str(x) for x in raw]
    if not raw:
        return []
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return [str(raw)]
    return [str(x) for x in parsed] if isinstance(parsed, list) else [str(parsed)]


def _truthy(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw or "").strip().lower() in ("1", "true", "yes", "y", "t")


@dataclass
class Product:
    """
    Catalog product. The CSV-backed store keeps everything as strings, so these
    helpers convert to proper types. `stock` is mutated by order placement.
    """
    id: Optional[str] = None
    name: str = ""
    description: str = ""
    category: str = "general"
    price: Decimal = Decimal("0.00")
    stock: int = 0
    images: List[str] = field(default_factory=list)
    sizes: List[str] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)
    is_new: bool = False
    is_featured: bool = False
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def primary_image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Product":
        if d is None:
            raise ValueError("Cannot construct Product from None")
        try:
            stock = int(float(d.get("stock") or 0))
        except ValueError:
            stock = 0
        return cls(
            id=d.get("id") or None,
            name=str(d.get("name") or ""),
            description=str(d.get("description") or ""),
            category=str(d.get("category") or "general"),
            price=parse_money(d.get("price") or "0", "price"),
            stock=stock,
            images=json_list(d.get("images")),
            sizes=json_list(d.get("sizes")),
            colors=json_list(d.get("colors")),
            is_new=_truthy(d.get("is_new")),
            is_featured=_truthy(d.get("is_featured")),
            created_by=d.get("created_by") or None,
            created_at=d.get("created_at") or None,
            updated_at=d.get("updated_at") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["price"] = format_money(self.price)
        out["stock"] = int(self.stock)
        for key in ("images", "sizes", "colors"):
            out[key] = json.dumps(out[key], ensure_ascii=False)
        return out

    def to_api(self) -> Dict[str, Any]:
        out = asdict(self)
        out["price"] = format_money(self.price)
        return out
