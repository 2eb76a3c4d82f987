import pytest


@pytest.fixture
def product(make_product):
    return make_product(name="Hoodie", price="49.99", stock=5)


def test_create_and_list_review(client, customer_headers, product):
    resp = client.post(f"/api/products/{product.id}/reviews", json={"rating": 5, "title": "Great", "body": "Warm"},
                       headers=customer_headers)
    assert resp.status_code == 201, resp.text
    review = resp.json()
    assert review["rating"] == 5
    assert review["is_verified_purchase"] is False
    assert review["user_name"] == "Alice Doe"

    resp = client.get(f"/api/products/{product.id}/reviews")
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()] == [review["id"]]


def test_duplicate_review_conflicts(client, customer_headers, product):
    url = f"/api/products/{product.id}/reviews"
    assert client.post(url, json={"rating": 4}, headers=customer_headers).status_code == 201
    resp = client.post(url, json={"rating": 2}, headers=customer_headers)
    assert resp.status_code == 409
    assert resp.json()["error"] == "You have already reviewed this product"


def test_verified_purchase(client, customer_headers, product, place_order):
    place_order([(product, 1, "49.99")], total="49.99")
    resp = client.post(f"/api/products/{product.id}/reviews", json={"rating": 4}, headers=customer_headers)
    assert resp.json()["is_verified_purchase"] is True


@pytest.mark.parametrize("rating", [0, 6, "x"])
def test_rating_out_of_range(client, customer_headers, product, rating):
    resp = client.post(f"/api/products/{product.id}/reviews", json={"rating": rating}, headers=customer_headers)
    assert resp.status_code == 400


def test_review_unknown_product(client, customer_headers):
    assert client.post("/api/products/nope/reviews", json={"rating": 3}, headers=customer_headers).status_code == 404


def test_summary(client, product, create_user, token_for, auth_header):
    for name, rating in (("u1", 5), ("u2", 4), ("u3", 4)):
        create_user(name, password="secret9")
        client.post(f"/api/products/{product.id}/reviews", json={"rating": rating},
                    headers=auth_header(token_for(name, "secret9")))

    resp = client.get(f"/api/products/{product.id}/reviews/summary")
    assert resp.json() == {
        "count": 3,
        "average": 4.33,
        "distribution": {"1": 0, "2": 0, "3": 0, "4": 2, "5": 1},
    }


def test_only_owner_can_edit_or_delete(client, customer_headers, product, create_user, token_for, auth_header):
    review = client.post(f"/api/products/{product.id}/reviews", json={"rating": 3},
                         headers=customer_headers).json()
    url = f"/api/products/{product.id}/reviews/{review['id']}"

    create_user("mallory", password="secret2")
    other = auth_header(token_for("mallory", "secret2"))
    assert client.put(url, json={"rating": 1}, headers=other).status_code == 403
    assert client.delete(url, headers=other).status_code == 403

    resp = client.put(url, json={"rating": 4, "body": "Grew on me"}, headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json()["rating"] == 4
    assert resp.json()["body"] == "Grew on me"
    assert resp.json()["updated_at"]

    assert client.delete(url, headers=customer_headers).status_code == 204
    assert client.get(f"/api/products/{product.id}/reviews").json() == []


def test_helpful_counter(client, customer_headers, product):
    review = client.post(f"/api/products/{product.id}/reviews", json={"rating": 3},
                         headers=customer_headers).json()
    url = f"/api/products/{product.id}/reviews/{review['id']}/helpful"
    client.post(url, headers=customer_headers)
    resp = client.post(url, headers=customer_headers)
    assert resp.json()["helpful_count"] == 2


def test_concurrent_helpful_votes_all_count(client, customer, customer_headers, product, db):
    from concurrent.futures import ThreadPoolExecutor
    from storefront.api.routes.reviews import mark_helpful

    review = client.post(f"/api/products/{product.id}/reviews", json={"rating": 4},
                         headers=customer_headers).json()

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(lambda _: mark_helpful(product.id, review["id"], current_user=customer, db=db), range(12)))

    assert db.get_record("reviews", "id", review["id"])["helpful_count"] == "12"
