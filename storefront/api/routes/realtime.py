import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from storefront.realtime.broadcaster import order_topic

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/orders")
async def order_updates(websocket: WebSocket):
    """
    Live order status updates. Clients send
      {"action": "join-order", "order_id": "..."} or {"action": "leave-order", "order_id": "..."}
    and receive {"event": "joined" | "left", "data": {"orderId": ...}} acks, then
    {"event": "order-status-update", "data": {...}} for each change to a joined order.
    """
    broadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action") if isinstance(message, dict) else None
            order_id = str(message.get("order_id") or "") if isinstance(message, dict) else ""
            if action not in ("join-order", "leave-order") or not order_id:
                await websocket.send_json({"event": "error", "data": {"message": "Unknown action"}})
                continue
            if action == "join-order":
                broadcaster.join(order_topic(order_id), websocket)
                await websocket.send_json({"event": "joined", "data": {"orderId": order_id}})
            else:
                broadcaster.leave(order_topic(order_id), websocket)
                await websocket.send_json({"event": "left", "data": {"orderId": order_id}})
    except WebSocketDisconnect:
        logger.debug("Order updates socket disconnected")
    finally:
        broadcaster.leave_all(websocket)
