import pytest


class FakeConnection:
    def __init__(self, fail=False):
        self.messages = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(data)


@pytest.fixture
def pending_order(make_product, place_order):
    tee = make_product(name="Tee", price="10.00", stock=5)
    return place_order([(tee, 2, "10.00")], total="20.00")


def test_ship_with_tracking_number(client, admin_headers, pending_order, customer_headers):
    oid = pending_order["id"]
    resp = client.patch(f"/api/admin/orders/{oid}/status",
                        json={"status": "shipped", "tracking_number": "TRK123", "comment": "Left the warehouse"},
                        headers=admin_headers)
    assert resp.status_code == 200, resp.text
    order = resp.json()["order"]
    assert order["status"] == "shipped"
    assert order["tracking_number"] == "TRK123"
    history = order["order_status_history"]
    assert [h["status"] for h in history] == ["pending", "shipped"]
    assert history[1]["comment"] == "Left the warehouse"
    assert history[1]["updated_by_name"] == "Store Admin"

    # the customer sees the same state
    resp = client.get(f"/api/orders/{oid}", headers=customer_headers)
    assert resp.json()["status"] == "shipped"
    assert len(resp.json()["order_status_history"]) == 2


def test_unknown_status_is_rejected(client, admin_headers, pending_order, db):
    resp = client.patch(f"/api/admin/orders/{pending_order['id']}/status", json={"status": "lost"},
                        headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid status"
    assert len(db.find_records("order_status_history", order_id=pending_order["id"])) == 1


def test_missing_order_is_not_found(client, admin_headers):
    resp = client.patch("/api/admin/orders/nope/status", json={"status": "shipped"}, headers=admin_headers)
    assert resp.status_code == 404


def test_customers_cannot_change_status(client, customer_headers, pending_order):
    resp = client.patch(f"/api/admin/orders/{pending_order['id']}/status", json={"status": "delivered"},
                        headers=customer_headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "Admin privileges required"


def test_permissive_policy_allows_moving_backwards(client, admin_headers, pending_order):
    oid = pending_order["id"]
    for status in ("delivered", "pending", "pending"):
        resp = client.patch(f"/api/admin/orders/{oid}/status", json={"status": status}, headers=admin_headers)
        assert resp.status_code == 200, resp.text
    statuses = [h["status"] for h in resp.json()["order"]["order_status_history"]]
    assert statuses == ["pending", "delivered", "pending", "pending"]


def test_status_change_is_broadcast_to_subscribers(client, app, admin_headers, pending_order):
    oid = pending_order["id"]
    watcher = FakeConnection()
    dead = FakeConnection(fail=True)
    bystander = FakeConnection()
    app.state.broadcaster.join(f"order-{oid}", watcher)
    app.state.broadcaster.join(f"order-{oid}", dead)
    app.state.broadcaster.join("order-someone-else", bystander)

    resp = client.patch(f"/api/admin/orders/{oid}/status",
                        json={"status": "shipped", "tracking_number": "TRK123", "comment": "On its way"},
                        headers=admin_headers)
    assert resp.status_code == 200, resp.text

    assert len(watcher.messages) == 1
    message = watcher.messages[0]
    assert message["event"] == "order-status-update"
    data = message["data"]
    assert data["orderId"] == oid
    assert data["orderNumber"] == pending_order["order_number"]
    assert data["status"] == "shipped"
    assert data["trackingNumber"] == "TRK123"
    assert data["comment"] == "On its way"
    assert data["updatedBy"] == "Store Admin"
    assert data["timestamp"]
    assert bystander.messages == []
    # the failing connection was dropped
    assert app.state.broadcaster.subscribers(f"order-{oid}") == [watcher]


def test_status_email_sent_to_customer(client, admin_headers, pending_order, mailer):
    mailer.reset()
    resp = client.patch(f"/api/admin/orders/{pending_order['id']}/status",
                        json={"status": "shipped", "tracking_number": "TRK123"}, headers=admin_headers)
    assert resp.status_code == 200

    assert len(mailer.outbox) == 1
    mail = mailer.outbox[0]
    assert mail["to"] == "alice@example.com"
    assert mail["subject"] == f"Order {pending_order['order_number']} - Status Update"
    assert mail["reply_to"] == "ops@hoodshop.test"
    assert "SHIPPED" in mail["html"]
    assert "TRK123" in mail["html"]


def test_notify_customer_false_skips_email(client, admin_headers, pending_order, mailer):
    mailer.reset()
    resp = client.patch(f"/api/admin/orders/{pending_order['id']}/status",
                        json={"status": "processing", "notify_customer": False}, headers=admin_headers)
    assert resp.status_code == 200
    assert mailer.outbox == []


def test_email_failure_does_not_fail_transition(client, admin_headers, pending_order, mailer):
    mailer.configure(should_succeed=False, failure_reason="provider down")
    resp = client.patch(f"/api/admin/orders/{pending_order['id']}/status",
                        json={"status": "delivered"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["order"]["status"] == "delivered"


def test_update_notes(client, admin_headers, pending_order):
    resp = client.patch(f"/api/admin/orders/{pending_order['id']}/notes", json={"notes": "Gift wrap"},
                        headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["order"]["notes"] == "Gift wrap"

    resp = client.patch(f"/api/admin/orders/{pending_order['id']}/notes", json={"notes": ""},
                        headers=admin_headers)
    assert resp.json()["order"]["notes"] is None


def _fail_for_table(monkeypatch, db, method_name, table):
    original = getattr(db, method_name)

    def failing(tbl, *args, **kwargs):
        if tbl == table:
            raise OSError(f"disk full writing {tbl}")
        return original(tbl, *args, **kwargs)

    monkeypatch.setattr(db, method_name, failing)


def test_history_failure_leaves_status_unchanged(client, admin_headers, pending_order, db, monkeypatch):
    oid = pending_order["id"]
    _fail_for_table(monkeypatch, db, "create_record", "order_status_history")

    resp = client.patch(f"/api/admin/orders/{oid}/status", json={"status": "processing"}, headers=admin_headers)
    assert resp.status_code == 500

    monkeypatch.undo()
    assert db.get_record("orders", "id", oid)["status"] == "pending"
    assert [h["status"] for h in db.find_records("order_status_history", order_id=oid)] == ["pending"]


def test_order_update_failure_drops_new_history_entry(client, admin_headers, pending_order, db, monkeypatch):
    oid = pending_order["id"]
    _fail_for_table(monkeypatch, db, "update_record", "orders")

    resp = client.patch(f"/api/admin/orders/{oid}/status", json={"status": "shipped"}, headers=admin_headers)
    assert resp.status_code == 500

    monkeypatch.undo()
    assert db.get_record("orders", "id", oid)["status"] == "pending"
    assert [h["status"] for h in db.find_records("order_status_history", order_id=oid)] == ["pending"]


class TestForwardOnlyPolicy:
    @pytest.fixture
    def settings_overrides(self):
        return {"ORDER_STATUS_POLICY": "forward_only"}

    def test_forward_moves_are_allowed(self, client, admin_headers, pending_order):
        oid = pending_order["id"]
        for status in ("processing", "shipped", "delivered"):
            resp = client.patch(f"/api/admin/orders/{oid}/status", json={"status": status}, headers=admin_headers)
            assert resp.status_code == 200, resp.text

    def test_backward_move_is_rejected(self, client, admin_headers, pending_order, db):
        oid = pending_order["id"]
        client.patch(f"/api/admin/orders/{oid}/status", json={"status": "shipped"}, headers=admin_headers)
        resp = client.patch(f"/api/admin/orders/{oid}/status", json={"status": "processing"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid transition: shipped -> processing"
        assert db.get_record("orders", "id", oid)["status"] == "shipped"

    def test_cancelled_is_terminal(self, client, admin_headers, pending_order):
        oid = pending_order["id"]
        resp = client.patch(f"/api/admin/orders/{oid}/status", json={"status": "cancelled"}, headers=admin_headers)
        assert resp.status_code == 200
        resp = client.patch(f"/api/admin/orders/{oid}/status", json={"status": "pending"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_same_status_adds_history_entry(self, client, admin_headers, pending_order):
        oid = pending_order["id"]
        resp = client.patch(f"/api/admin/orders/{oid}/status",
                            json={"status": "pending", "comment": "Waiting on stock"}, headers=admin_headers)
        assert resp.status_code == 200
        assert len(resp.json()["order"]["order_status_history"]) == 2
