# tests/conftest.py
import os
import sys
import tempfile

import pytest
from fastapi.testclient import TestClient

# ensure project root is importable
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# importing storefront.main builds a module-level app; point it at a throwaway
# data dir and the in-memory mailer before that happens
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="test_data_"))
os.environ["EMAIL_BACKEND"] = "memory"

from storefront.config import Settings  # noqa: E402
from storefront.core.security import hash_password  # noqa: E402
from storefront.main import create_app  # noqa: E402
from storefront.models.order import utcnow_iso  # noqa: E402
from storefront.models.product import Product  # noqa: E402
from storefront.models.user import User  # noqa: E402


@pytest.fixture
def settings_overrides():
    """Override in a test module (or parametrize) to tweak Settings for the app under test."""
    return {}


@pytest.fixture
def settings(tmp_path, settings_overrides):
    values = {
        "ENV": "test",
        "DATA_DIR": tmp_path / "data",
        "EMAIL_BACKEND": "memory",
        "JWT_SECRET": "test-secret",
        "ADMIN_EMAIL": "ops@hoodshop.test",
        "FRONTEND_URL": "http://shop.test",
    }
    values.update(settings_overrides)
    return Settings(**values)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    return app.state.db


@pytest.fixture
def mailer(app):
    """The InMemoryEmailSender wired into the app."""
    return app.state.email_sender


@pytest.fixture
def auth_header():
    """
    Helper that returns a callable to build an Authorization header from a token.
    Usage: hdr = auth_header(token)
    """
    def _h(tok: str):
        return {"Authorization": f"Bearer {tok}"}
    return _h


@pytest.fixture
def create_user(db):
    """
    Create a user directly in the store and return the User (with id).
    Usage: user = create_user("alice", password="secret1", is_admin=False)
    """
    def _fn(username="alice", password="secret1", email=None, is_admin=False, full_name=None):
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=hash_password(password),
            is_admin=is_admin,
            full_name=full_name,
            created_at=utcnow_iso(),
        )
        row = db.create_record("users", user.to_dict(), id_field="id")
        return User.from_dict(row)
    return _fn


@pytest.fixture
def token_for(client):
    """
    Obtain an OAuth token for an existing username/password.
    Usage: token = token_for(username, password)
    """
    def _fn(username: str, password: str):
        resp = client.post("/api/auth/token", data={"username": username, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()["access_token"]
    return _fn


@pytest.fixture
def admin(create_user):
    return create_user("admin", password="adminpass", email="admin@example.com", is_admin=True, full_name="Store Admin")


@pytest.fixture
def admin_headers(admin, token_for, auth_header):
    return auth_header(token_for("admin", "adminpass"))


@pytest.fixture
def customer(create_user):
    return create_user("alice", password="secret1", email="alice@example.com", full_name="Alice Doe")


@pytest.fixture
def customer_headers(customer, token_for, auth_header):
    return auth_header(token_for("alice", "secret1"))


@pytest.fixture
def make_product(db):
    """
    Insert a product row and return the Product.
    Usage: product = make_product(name="Hoodie", price="49.99", stock=5)
    """
    def _fn(name="Hoodie", price="49.99", stock=10, **extra):
        product = Product.from_dict({"name": name, "price": price, "stock": stock, **extra})
        product.created_at = utcnow_iso()
        row = db.create_record("products", product.to_dict(), id_field="id")
        return Product.from_dict(row)
    return _fn


SHIPPING_ADDRESS = {
    "address": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zipCode": "62701",
    "country": "US",
    "phoneCode": "+1",
    "phone": "5551234567",
    "fullName": "Alice Doe",
}


@pytest.fixture
def order_payload():
    """
    Build a checkout payload.
    Usage: payload = order_payload([(product, qty, price)], total="20.00")
    """
    def _fn(lines, total="20.00", **overrides):
        items = []
        for product, quantity, price in lines:
            product_id = product.id if isinstance(product, Product) else product
            name = product.name if isinstance(product, Product) else "Item"
            items.append({"id": product_id, "name": name, "price": price, "quantity": quantity})
        payload = {
            "items": items,
            "shipping_address": dict(SHIPPING_ADDRESS),
            "payment_method": "card",
            "shipping_cost": "0.00",
            "tax": "0.00",
            "total_amount": total,
        }
        payload.update(overrides)
        return payload
    return _fn


@pytest.fixture
def place_order(client, customer_headers, order_payload):
    """Place an order as the customer through the API and return the order JSON."""
    def _fn(lines, total="20.00", headers=None, **overrides):
        resp = client.post("/api/orders/", json=order_payload(lines, total, **overrides),
                           headers=headers or customer_headers)
        assert resp.status_code == 201, resp.text
        return resp.json()["order"]
    return _fn
