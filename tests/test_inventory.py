from concurrent.futures import ThreadPoolExecutor

from storefront.models.order import OrderLine
from storefront.services.inventory import InventoryAdjuster


def test_order_decrements_stock(make_product, place_order, db):
    tee = make_product(name="Tee", price="10.00", stock=5)
    cap = make_product(name="Cap", price="5.00", stock=3)
    place_order([(tee, 2, "10.00"), (cap, 3, "5.00")], total="35.00")

    assert db.get_record("products", "id", tee.id)["stock"] == "3"
    assert db.get_record("products", "id", cap.id)["stock"] == "0"


def test_short_stock_is_skipped_and_order_still_placed(make_product, place_order, db):
    tee = make_product(name="Tee", price="10.00", stock=1)
    order = place_order([(tee, 3, "10.00")], total="30.00")

    assert order["status"] == "pending"
    assert len(order["order_items"]) == 1
    # no partial decrement, never negative
    assert db.get_record("products", "id", tee.id)["stock"] == "1"


def test_unknown_product_line_is_kept(place_order, db):
    order = place_order([("ghost-product", 1, "10.00")], total="10.00")
    assert order["order_items"][0]["product_id"] == "ghost-product"
    assert db.list_records("products") == []


def test_apply_order_reports_per_line(make_product, db):
    tee = make_product(name="Tee", price="10.00", stock=2)
    adjuster = InventoryAdjuster(db)
    lines = [
        OrderLine(order_id="o1", product_id=tee.id, product_name="Tee", quantity=1, price=tee.price),
        OrderLine(order_id="o1", product_id=tee.id, product_name="Tee", quantity=5, price=tee.price),
        OrderLine(order_id="o1", product_id=tee.id, product_name="Tee", quantity=1, price=tee.price),
    ]
    assert adjuster.apply_order(lines) == [True, False, True]
    assert db.get_record("products", "id", tee.id)["stock"] == "0"


def test_decrement_failure_does_not_raise(make_product, db, monkeypatch):
    tee = make_product(name="Tee", price="10.00", stock=2)
    adjuster = InventoryAdjuster(db)

    def broken(*args, **kwargs):
        raise OSError("lock timeout")

    monkeypatch.setattr(db, "decrement_if_available", broken)
    line = OrderLine(order_id="o1", product_id=tee.id, product_name="Tee", quantity=1, price=tee.price)
    assert adjuster.apply_order([line]) == [False]


def test_last_unit_race_never_oversells(make_product, db):
    tee = make_product(name="Tee", price="10.00", stock=1)
    adjuster = InventoryAdjuster(db)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: adjuster.decrement(tee.id, 1), range(8)))

    assert results.count(True) == 1
    assert db.get_record("products", "id", tee.id)["stock"] == "0"


def test_concurrent_orders_for_last_unit(app, customer, make_product, order_payload, db):
    tee = make_product(name="Tee", price="10.00", stock=1)
    orders = app.state.orders
    payload = order_payload([(tee, 1, "10.00")], total="10.00")

    with ThreadPoolExecutor(max_workers=2) as pool:
        placed = list(pool.map(lambda _: orders.create_order(customer, dict(payload)), range(2)))

    assert len({o.order_number for o in placed}) == 2
    assert len(db.list_records("orders")) == 2
    assert db.get_record("products", "id", tee.id)["stock"] == "0"
