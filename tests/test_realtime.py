import asyncio

from storefront.realtime.broadcaster import Broadcaster, order_topic


class Recorder:
    def __init__(self):
        self.messages = []

    async def send_json(self, data):
        self.messages.append(data)


def test_emit_reaches_only_topic_members():
    hub = Broadcaster()
    a, b = Recorder(), Recorder()
    hub.join(order_topic("1"), a)
    hub.join(order_topic("2"), b)

    delivered = asyncio.run(hub.emit(order_topic("1"), "order-status-update", {"status": "shipped"}))

    assert delivered == 1
    assert a.messages == [{"event": "order-status-update", "data": {"status": "shipped"}}]
    assert b.messages == []


def test_leave_and_leave_all():
    hub = Broadcaster()
    conn = Recorder()
    hub.join(order_topic("1"), conn)
    hub.join(order_topic("2"), conn)

    hub.leave(order_topic("1"), conn)
    assert hub.subscribers(order_topic("1")) == []
    assert hub.subscribers(order_topic("2")) == [conn]

    hub.leave_all(conn)
    assert hub.subscribers(order_topic("2")) == []
    # emitting to an empty topic is a no-op
    assert asyncio.run(hub.emit(order_topic("2"), "order-status-update", {})) == 0


def test_websocket_join_and_leave(client, app):
    with client.websocket_connect("/ws/orders") as ws:
        ws.send_json({"action": "join-order", "order_id": "abc"})
        assert ws.receive_json() == {"event": "joined", "data": {"orderId": "abc"}}
        assert len(app.state.broadcaster.subscribers("order-abc")) == 1

        ws.send_json({"action": "leave-order", "order_id": "abc"})
        assert ws.receive_json() == {"event": "left", "data": {"orderId": "abc"}}
        assert app.state.broadcaster.subscribers("order-abc") == []

        ws.send_json({"action": "dance"})
        assert ws.receive_json()["event"] == "error"


def test_websocket_disconnect_cleans_up(client, app):
    with client.websocket_connect("/ws/orders") as ws:
        ws.send_json({"action": "join-order", "order_id": "xyz"})
        ws.receive_json()
    assert app.state.broadcaster.subscribers("order-xyz") == []
