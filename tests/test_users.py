def test_stats_for_new_customer(client, customer_headers):
    resp = client.get("/api/users/stats", headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json() == {"stats": {"total_orders": 0, "total_spent": "0.00", "cart_items": 0}}


def test_stats_count_orders_spending_and_cart(client, customer_headers, admin_headers, make_product, place_order):
    tee = make_product(name="Tee", price="10.00", stock=10)
    place_order([(tee, 2, "10.00")], total="20.00")
    cancelled = place_order([(tee, 1, "10.00")], total="10.00")
    client.patch(f"/api/admin/orders/{cancelled['id']}/status", json={"status": "cancelled"}, headers=admin_headers)
    client.post("/api/cart/items", json={"product_id": tee.id, "quantity": 3}, headers=customer_headers)

    stats = client.get("/api/users/stats", headers=customer_headers).json()["stats"]
    assert stats == {"total_orders": 2, "total_spent": "20.00", "cart_items": 3}


def test_stats_require_login(client):
    assert client.get("/api/users/stats").status_code == 401
