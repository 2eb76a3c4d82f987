# storefront/api/routes/users.py
from fastapi import APIRouter, Depends

from storefront.api.deps import get_current_user, get_db, get_order_service
from storefront.database import FileBackedDB
from storefront.models.cart import Cart
from storefront.models.user import User
from storefront.services.orders import OrderService

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/stats")
def user_stats(current_user: User = Depends(get_current_user), db: FileBackedDB = Depends(get_db),
               orders: OrderService = Depends(get_order_service)):
    row = db.get_record("carts", "id", current_user.id)
    cart_items = Cart.from_dict(row).count_items() if row else 0
    return {"stats": dict(orders.spending_summary(current_user.id), cart_items=cart_items)}
