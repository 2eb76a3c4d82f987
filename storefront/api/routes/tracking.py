from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from storefront.api.deps import get_tracking_service
from storefront.services.tracking import TrackingService

router = APIRouter(prefix="/api/tracking", tags=["tracking"])


@router.get("/track/{order_number}", response_model=Dict[str, Any])
def track_order(order_number: str, email: Optional[str] = Query(None),
                tracking: TrackingService = Depends(get_tracking_service)):
    """
    Public order lookup. Requires the email of the account that placed the order.
    Status history is returned oldest first.
    """
    order = tracking.track(order_number, email)
    out = order.to_api()
    out.pop("notes", None)
    return {"success": True, "order": out}


@router.get("/track/{order_number}/updates", response_model=Dict[str, Any])
def track_order_updates(order_number: str, email: Optional[str] = Query(None),
                        tracking: TrackingService = Depends(get_tracking_service)):
    return {"success": True, "updates": tracking.updates(order_number, email)}
