def _fail_for_table(monkeypatch, db, method_name, table):
    original = getattr(db, method_name)

    def failing(tbl, *args, **kwargs):
        if tbl == table:
            raise OSError(f"disk full writing {tbl}")
        return original(tbl, *args, **kwargs)

    monkeypatch.setattr(db, method_name, failing)


def test_line_insert_failure_removes_order(client, customer_headers, order_payload, make_product, db, mailer,
                                           monkeypatch):
    tee = make_product(name="Tee", price="10.00", stock=5)
    _fail_for_table(monkeypatch, db, "create_records", "order_items")

    resp = client.post("/api/orders/", json=order_payload([(tee, 1, "10.00")], total="10.00"),
                       headers=customer_headers)
    assert resp.status_code == 500
    # detail is hidden outside development
    assert resp.json() == {"error": "Internal server error", "details": None}

    monkeypatch.undo()
    assert db.list_records("orders") == []
    assert db.list_records("order_items") == []
    assert db.get_record("products", "id", tee.id)["stock"] == "5"
    assert mailer.outbox == []


def test_history_insert_failure_removes_order_and_lines(client, customer_headers, order_payload, make_product, db,
                                                        monkeypatch):
    tee = make_product(name="Tee", price="10.00", stock=5)
    _fail_for_table(monkeypatch, db, "create_record", "order_status_history")

    resp = client.post("/api/orders/", json=order_payload([(tee, 2, "10.00")], total="20.00"),
                       headers=customer_headers)
    assert resp.status_code == 500

    monkeypatch.undo()
    assert db.list_records("orders") == []
    assert db.list_records("order_items") == []
    assert db.list_records("order_status_history") == []
    assert db.get_record("products", "id", tee.id)["stock"] == "5"


def test_failure_detail_is_exposed_in_development(settings, customer, make_product, order_payload, db, monkeypatch):
    from fastapi.testclient import TestClient
    from storefront.main import create_app

    dev_app = create_app(settings.model_copy(update={"ENV": "development"}))
    dev_db = dev_app.state.db
    _fail_for_table(monkeypatch, dev_db, "create_records", "order_items")
    tee = make_product(name="Tee", price="10.00", stock=5)

    with TestClient(dev_app) as c:
        token = c.post("/api/auth/token", data={"username": "alice", "password": "secret1"}).json()["access_token"]
        resp = c.post("/api/orders/", json=order_payload([(tee, 1, "10.00")], total="10.00"),
                      headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Internal server error"
    assert "disk full" in body["details"]["details"]
