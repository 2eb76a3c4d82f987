# storefront/api/schemas/product.py
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.models.order import MAX_MONEY

MAX_STOCK = 1_000_000


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = ""
    category: Optional[str] = "general"
    price: Decimal = Field(Decimal("0.00"), ge=0, le=MAX_MONEY, decimal_places=2)
    stock: int = Field(0, ge=0, le=MAX_STOCK)
    images: List[str] = []
    sizes: List[str] = []
    colors: List[str] = []
    is_new: bool = False
    is_featured: bool = False


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, le=MAX_MONEY, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0, le=MAX_STOCK)
    images: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    is_new: Optional[bool] = None
    is_featured: Optional[bool] = None


class ProductOut(BaseModel):
    id: Optional[str] = None
    name: str
    description: Optional[str] = ""
    category: Optional[str] = "general"
    price: str
    stock: int
    images: List[str] = []
    sizes: List[str] = []
    colors: List[str] = []
    is_new: bool = False
    is_featured: bool = False
    created_by: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
