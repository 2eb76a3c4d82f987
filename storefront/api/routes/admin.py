# storefront/api/routes/admin.py
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from storefront.api.deps import get_db, get_notifier, get_order_service, require_admin
from storefront.api.schemas.order import NotesUpdate, StatusUpdate
from storefront.database import FileBackedDB
from storefront.models.order import parse_timestamp
from storefront.models.user import User
from storefront.notifications.notifier import OrderNotifier
from storefront.services.orders import OrderService

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/orders", response_model=Dict[str, Any])
def list_orders(
    status: Optional[str] = Query(None, description="filter by order status"),
    search: Optional[str] = Query(None, description="order number substring"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    orders: OrderService = Depends(get_order_service),
):
    rows, pagination = orders.list_orders(status=status, search=search, page=page, limit=limit)
    return {"orders": rows, "pagination": pagination}


@router.get("/orders/{order_id}", response_model=Dict[str, Any])
def get_order(order_id: str, orders: OrderService = Depends(get_order_service)):
    order = orders.get_order(order_id)
    owner = orders.owner_of(order)
    out = order.to_api()
    out["customer"] = owner.mask_secret() if owner else None
    return out


@router.patch("/orders/{order_id}/status", response_model=Dict[str, Any])
def update_order_status(
    order_id: str,
    payload: StatusUpdate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    orders: OrderService = Depends(get_order_service),
    notifier: OrderNotifier = Depends(get_notifier),
):
    """
    Move an order to a new status and append a history entry. Live subscribers of the
    order get an update event, and the customer gets an email unless notify_customer is false.
    Both happen after the response.
    """
    change = orders.transition_status(order_id, payload.status, admin, comment=payload.comment,
                                      tracking_number=payload.tracking_number)
    body = orders.get_order(order_id).to_api()
    background_tasks.add_task(notifier.broadcast_status, order_id, change.event)
    if payload.notify_customer:
        owner = orders.owner_of(change.order)
        email = change.order.customer_email or (owner.email if owner else None)
        name = change.order.shipping_address.full_name or (owner.display_name if owner else None)
        background_tasks.add_task(
            notifier.status_changed, body, change.entry.status, email, name,
            payload.comment, payload.tracking_number or change.order.tracking_number,
        )
    return {"ok": True, "order": body, "history_entry": change.entry.to_dict()}


@router.patch("/orders/{order_id}/notes", response_model=Dict[str, Any])
def update_order_notes(order_id: str, payload: NotesUpdate, orders: OrderService = Depends(get_order_service)):
    order = orders.update_notes(order_id, payload.notes)
    return {"ok": True, "order": order.to_api()}


@router.get("/users", response_model=List[Dict[str, Any]])
def list_users(db: FileBackedDB = Depends(get_db)):
    users = [User.from_dict(r) for r in db.list_records("users")]
    users.sort(key=lambda u: parse_timestamp(u.created_at), reverse=True)
    return [u.mask_secret() for u in users]


@router.get("/customers", response_model=Dict[str, Any])
def list_customers(
    search: Optional[str] = Query(None, description="name or email substring"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    orders: OrderService = Depends(get_order_service),
):
    rows, pagination = orders.customers(search=search, page=page, limit=limit)
    return {"customers": rows, "pagination": pagination}


@router.get("/dashboard/stats", response_model=Dict[str, Any])
def dashboard_stats(orders: OrderService = Depends(get_order_service)):
    return orders.dashboard_stats()
