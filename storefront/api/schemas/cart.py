from typing import Optional
from pydantic import BaseModel, Field

from storefront.models.order import MAX_QUANTITY


class CartItemAdd(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=MAX_QUANTITY)
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=MAX_QUANTITY)
