# storefront/api/routes/orders.py
from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Body, Depends

from storefront.api.deps import get_current_user, get_notifier, get_order_service
from storefront.models.user import User
from storefront.notifications.notifier import OrderNotifier
from storefront.services.orders import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("/", status_code=201)
def create_order(
    background_tasks: BackgroundTasks,
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
    notifier: OrderNotifier = Depends(get_notifier),
):
    """
    Place an order for the current user. Payment is assumed to have succeeded already.

    Body:
      { "items": [{id, name, price, quantity, selectedSize?, selectedColor?}],
        "shipping_address": {address, city, state, zipCode, country, phoneCode, phone, email?, fullName?},
        "payment_method", "subtotal", "shipping_cost", "tax", "total_amount" }

    Confirmation emails are sent after the response.
    """
    order = orders.create_order(current_user, payload)
    body = order.to_api()
    background_tasks.add_task(
        notifier.order_placed,
        body,
        order.customer_email or current_user.email,
        order.shipping_address.full_name or current_user.display_name,
    )
    return {"ok": True, "order": body}


@router.get("/my-orders", response_model=List[Dict[str, Any]])
def my_orders(current_user: User = Depends(get_current_user), orders: OrderService = Depends(get_order_service)):
    """The current user's orders, newest first, with lines and status history."""
    return [o.to_api() for o in orders.list_user_orders(current_user)]


@router.get("/{order_id}", response_model=Dict[str, Any])
def get_my_order(order_id: str, current_user: User = Depends(get_current_user),
                 orders: OrderService = Depends(get_order_service)):
    return orders.get_order_for_user(order_id, current_user).to_api()
