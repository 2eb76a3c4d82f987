from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from storefront.api.deps import get_current_user, get_db
from storefront.api.schemas.cart import CartItemAdd, CartItemUpdate
from storefront.core.errors import ValidationError
from storefront.database import FileBackedDB
from storefront.models.cart import Cart
from storefront.models.order import utcnow_iso
from storefront.models.product import Product
from storefront.models.user import User

router = APIRouter(prefix="/api/cart", tags=["cart"])


def _load_cart(db: FileBackedDB, user: User) -> Cart:
    row = db.get_record("carts", "id", user.id)
    return Cart.from_dict(row) if row else Cart(user_id=user.id)


def _save_cart(db: FileBackedDB, cart: Cart) -> Cart:
    """Upsert the single cart row of its user."""
    cart.updated_at = utcnow_iso()
    row = cart.to_dict()
    if not db.update_record("carts", "id", cart.user_id, row):
        db.create_record("carts", row, id_field="id")
    return cart


def _product_or_404(db: FileBackedDB, product_id: str) -> Product:
    row = db.get_record("products", "id", product_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return Product.from_dict(row)


def _check_stock(product: Product, wanted: int) -> None:
    if wanted > product.stock:
        raise ValidationError(f"Only {product.stock} items available in stock",
                              details={"product_id": product.id, "available": product.stock})


@router.get("", response_model=Dict[str, Any])
def get_cart(current_user: User = Depends(get_current_user), db: FileBackedDB = Depends(get_db)):
    return _load_cart(db, current_user).to_api()


@router.get("/count", response_model=Dict[str, int])
def cart_count(current_user: User = Depends(get_current_user), db: FileBackedDB = Depends(get_db)):
    return {"count": _load_cart(db, current_user).count_items()}


@router.post("/items", response_model=Dict[str, Any])
def add_item(item: CartItemAdd, current_user: User = Depends(get_current_user), db: FileBackedDB = Depends(get_db)):
    """
    Add a product to the cart. The same product/size/color merges into one line;
    the merged quantity may not exceed current stock. Price is taken from the catalog.
    """
    product = _product_or_404(db, item.product_id)
    cart = _load_cart(db, current_user)
    already = sum(it.quantity for it in cart.items
                  if it.same_variant(item.product_id, item.selected_size, item.selected_color))
    _check_stock(product, already + item.quantity)
    cart.add_item(product.id, item.quantity, name=product.name, price=product.price,
                  image=product.primary_image, size=item.selected_size, color=item.selected_color)
    return _save_cart(db, cart).to_api()


@router.put("/items/{item_id}", response_model=Dict[str, Any])
def update_item(item_id: str, payload: CartItemUpdate, current_user: User = Depends(get_current_user),
                db: FileBackedDB = Depends(get_db)):
    cart = _load_cart(db, current_user)
    line = cart.find_item(item_id)
    if line is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cart item not found")
    _check_stock(_product_or_404(db, line.product_id), payload.quantity)
    line.quantity = payload.quantity
    return _save_cart(db, cart).to_api()


@router.delete("/items/{item_id}", response_model=Dict[str, Any])
def remove_item(item_id: str, current_user: User = Depends(get_current_user), db: FileBackedDB = Depends(get_db)):
    cart = _load_cart(db, current_user)
    if not cart.remove_item(item_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cart item not found")
    return _save_cart(db, cart).to_api()


@router.delete("", response_model=Dict[str, Any])
def clear_cart(current_user: User = Depends(get_current_user), db: FileBackedDB = Depends(get_db)):
    cart = _load_cart(db, current_user)
    cart.clear()
    return _save_cart(db, cart).to_api()
