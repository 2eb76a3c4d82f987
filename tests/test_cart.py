import pytest


@pytest.fixture
def hoodie(make_product):
    return make_product(name="Hoodie", price="49.99", stock=5, images='["hoodie.jpg"]')


def test_empty_cart(client, customer_headers):
    resp = client.get("/api/cart", headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json() == {"items": [], "total": "0.00", "count": 0}


def test_add_merges_same_variant(client, customer_headers, hoodie):
    item = {"product_id": hoodie.id, "quantity": 1, "selected_size": "M", "selected_color": "black"}
    client.post("/api/cart/items", json=item, headers=customer_headers)
    resp = client.post("/api/cart/items", json=dict(item, quantity=2), headers=customer_headers)
    assert resp.status_code == 200, resp.text
    cart = resp.json()
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["items"][0]["name"] == "Hoodie"
    assert cart["items"][0]["image"] == "hoodie.jpg"
    assert cart["total"] == "149.97"

    # a different size is its own line
    resp = client.post("/api/cart/items", json=dict(item, selected_size="L"), headers=customer_headers)
    assert len(resp.json()["items"]) == 2
    assert client.get("/api/cart/count", headers=customer_headers).json() == {"count": 4}


def test_add_beyond_stock_is_rejected(client, customer_headers, hoodie):
    client.post("/api/cart/items", json={"product_id": hoodie.id, "quantity": 4}, headers=customer_headers)
    resp = client.post("/api/cart/items", json={"product_id": hoodie.id, "quantity": 2}, headers=customer_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Only 5 items available in stock"


def test_add_unknown_product(client, customer_headers):
    resp = client.post("/api/cart/items", json={"product_id": "nope", "quantity": 1}, headers=customer_headers)
    assert resp.status_code == 404


def test_update_remove_and_clear(client, customer_headers, hoodie, make_product):
    cap = make_product(name="Cap", price="15.00", stock=10)
    resp = client.post("/api/cart/items", json={"product_id": hoodie.id, "quantity": 1}, headers=customer_headers)
    hoodie_line = resp.json()["items"][0]["id"]
    client.post("/api/cart/items", json={"product_id": cap.id, "quantity": 1}, headers=customer_headers)

    resp = client.put(f"/api/cart/items/{hoodie_line}", json={"quantity": 2}, headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json()["total"] == "114.98"

    assert client.put(f"/api/cart/items/{hoodie_line}", json={"quantity": 9},
                      headers=customer_headers).status_code == 400
    assert client.put(f"/api/cart/items/{hoodie_line}", json={"quantity": 0},
                      headers=customer_headers).status_code == 400

    resp = client.delete(f"/api/cart/items/{hoodie_line}", headers=customer_headers)
    assert [it["name"] for it in resp.json()["items"]] == ["Cap"]
    assert client.delete(f"/api/cart/items/{hoodie_line}", headers=customer_headers).status_code == 404

    resp = client.delete("/api/cart", headers=customer_headers)
    assert resp.json()["count"] == 0


def test_carts_are_per_user(client, customer_headers, create_user, token_for, auth_header, hoodie):
    client.post("/api/cart/items", json={"product_id": hoodie.id, "quantity": 1}, headers=customer_headers)
    create_user("bob", password="secret2")
    bob = auth_header(token_for("bob", "secret2"))
    assert client.get("/api/cart", headers=bob).json()["count"] == 0


def test_cart_requires_auth(client):
    assert client.get("/api/cart").status_code == 401
