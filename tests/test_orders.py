"""Tests for order creation, stock bookkeeping and order access."""

from bson.objectid import ObjectId

import orders
from database import find_by_id
from schemas import OrderItem


def order_body(*items, total=None):
    return {
        "orderItems": [{"productId": pid, "quantity": qty, "price": price} for pid, qty, price in items],
        "shippingAddress": {"street": "1 Main St", "city": "Springfield", "zip": "12345", "country": "US"},
        "paymentMethod": "card",
        "totalPrice": total if total is not None else sum(q * p for _, q, p in items),
    }


class TestCreateOrder:
    def test_stock_and_sales_follow_ordered_quantity(self, client, db, customer, make_product):
        pid = make_product(stock_quantity=10)

        resp = client.post("/orders", json=order_body((pid, 3, 50.0)), headers=customer.headers)

        assert resp.status_code == 201
        order = resp.json()
        assert order["status"] == "pending"
        assert order["user_id"] == customer.id
        assert order["items"] == [{"product_id": pid, "quantity": 3, "price": 50.0}]
        assert order["total_price"] == 150.0
        assert order["shipping_address"]["city"] == "Springfield"

        product = find_by_id(db, "product", pid)
        assert product["stock_quantity"] == 7
        assert product["sales"] == 3
        assert product["in_stock"] is True

    def test_empty_items_rejected(self, client, db, customer):
        resp = client.post("/orders", json=order_body(), headers=customer.headers)

        assert resp.status_code == 400
        assert resp.json() == {"detail": "No order items"}
        assert db["order"].count_documents({}) == 0

    def test_missing_products_are_skipped(self, client, db, customer, make_product):
        pid = make_product(stock_quantity=5)
        missing = str(ObjectId())

        resp = client.post(
            "/orders",
            json=order_body((missing, 2, 10.0), (pid, 1, 50.0), ("not-an-id", 1, 5.0)),
            headers=customer.headers,
        )

        assert resp.status_code == 201
        assert len(resp.json()["items"]) == 3
        product = find_by_id(db, "product", pid)
        assert product["stock_quantity"] == 4
        assert product["sales"] == 1
        assert db["order"].count_documents({}) == 1

    def test_one_stock_adjustment_per_line_item(self, db, customer, make_product, monkeypatch):
        calls = []
        real_adjust = orders.adjust_stock

        def counting_adjust(db_, product_id, quantity):
            calls.append((product_id, quantity))
            return real_adjust(db_, product_id, quantity)

        monkeypatch.setattr(orders, "adjust_stock", counting_adjust)
        a = make_product("Amp", stock_quantity=4)
        b = make_product("Cable", stock_quantity=9)
        items = [
            OrderItem(product_id=a, quantity=1, price=1.0),
            OrderItem(product_id=str(ObjectId()), quantity=2, price=1.0),
            OrderItem(product_id=b, quantity=3, price=1.0),
        ]

        orders.create_order(db, customer.id, items, total_price=6.0, payment_method="card")

        assert [c[1] for c in calls] == [1, 2, 3]
        assert find_by_id(db, "product", a)["stock_quantity"] == 3
        assert find_by_id(db, "product", b)["stock_quantity"] == 6

    def test_selling_out_clears_in_stock(self, client, db, customer, make_product):
        pid = make_product(stock_quantity=2)

        client.post("/orders", json=order_body((pid, 2, 50.0)), headers=customer.headers)

        product = find_by_id(db, "product", pid)
        assert product["stock_quantity"] == 0
        assert product["in_stock"] is False

    def test_price_is_snapshotted(self, client, db, customer, admin, make_product):
        pid = make_product(price=50.0)
        order_id = client.post("/orders", json=order_body((pid, 1, 50.0)), headers=customer.headers).json()["id"]

        client.put(f"/products/{pid}", json={"price": 80.0}, headers=admin.headers)

        order = find_by_id(db, "order", order_id)
        assert order["items"][0]["price"] == 50.0

    def test_requires_authentication(self, client, make_product):
        pid = make_product()
        resp = client.post("/orders", json=order_body((pid, 1, 50.0)))
        assert resp.status_code == 401


class TestReadOrders:
    def test_owner_sees_populated_order(self, client, customer, make_product, make_order):
        pid = make_product("Speaker", price=50.0)
        order_id = make_order(customer, pid, quantity=2)

        resp = client.get(f"/orders/{order_id}", headers=customer.headers)

        assert resp.status_code == 200
        order = resp.json()
        assert order["user"]["name"] == "Alice"
        assert order["user"]["email"].endswith("@example.com")
        assert order["items"][0]["product"]["title"] == "Speaker"
        assert order["items"][0]["product"]["price"] == 50.0

    def test_admin_can_read_any_order(self, client, customer, admin, make_product, make_order):
        order_id = make_order(customer, make_product())
        assert client.get(f"/orders/{order_id}", headers=admin.headers).status_code == 200

    def test_non_owner_is_refused(self, client, customer, other_customer, make_product, make_order):
        order_id = make_order(customer, make_product())

        resp = client.get(f"/orders/{order_id}", headers=other_customer.headers)

        assert resp.status_code == 403

    def test_non_owner_is_refused_for_unknown_ids(self, client, other_customer):
        resp = client.get(f"/orders/{ObjectId()}", headers=other_customer.headers)
        assert resp.status_code == 403

    def test_admin_gets_not_found(self, client, admin):
        resp = client.get(f"/orders/{ObjectId()}", headers=admin.headers)
        assert resp.status_code == 404

    def test_my_orders_only_lists_callers_orders(self, client, customer, other_customer, make_product, make_order):
        pid = make_product()
        mine = [make_order(customer, pid), make_order(customer, pid)]
        make_order(other_customer, pid)

        resp = client.get("/orders/myorders", headers=customer.headers)

        assert resp.status_code == 200
        assert [o["id"] for o in resp.json()] == mine

    def test_list_all_orders_is_admin_only(self, client, customer, admin, make_product, make_order):
        make_order(customer, make_product())

        assert client.get("/orders", headers=customer.headers).status_code == 403
        resp = client.get("/orders", headers=admin.headers)
        assert resp.status_code == 200
        assert len(resp.json()) == 1
        assert resp.json()[0]["user"]["name"] == "Alice"


class TestUpdateOrderStatus:
    def test_any_transition_is_accepted(self, client, customer, admin, make_product, make_order):
        order_id = make_order(customer, make_product())

        delivered = client.put(f"/orders/{order_id}/status", json={"status": "delivered"}, headers=admin.headers)
        back = client.put(f"/orders/{order_id}/status", json={"status": "pending"}, headers=admin.headers)

        assert delivered.json()["status"] == "delivered"
        assert back.status_code == 200
        assert back.json()["status"] == "pending"

    def test_unknown_order(self, client, admin):
        resp = client.put(f"/orders/{ObjectId()}/status", json={"status": "shipped"}, headers=admin.headers)
        assert resp.status_code == 404

    def test_customers_cannot_update(self, client, customer, make_product, make_order):
        order_id = make_order(customer, make_product())
        resp = client.put(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=customer.headers)
        assert resp.status_code == 403
