"""Integration tests for the Cart and Order API endpoints via TestClient."""

import pytest
from catalogue.api.routes import product_router
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api.routes import cart_router, order_router
from shared.api import register_exception_handlers

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
CUSTOMER = {"X-User-Id": "cust-1", "X-User-Email": "cust@example.com"}
STRANGER = {"X-User-Id": "stranger-9"}

ADDRESS = {
    "full_name": "Ada Mensah",
    "street": "12 Independence Ave",
    "city": "Accra",
    "postal_code": "GA-123",
    "country": "Ghana",
}


@pytest.fixture()
def client():
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(product_router)
    app.include_router(cart_router)
    app.include_router(order_router)
    return TestClient(app)


def _create_product(client, name="Canvas Tote", price="10.00", stock=5):
    response = client.post("/products", json={"name": name, "price": price, "stock": stock}, headers=ADMIN)
    assert response.status_code == 201
    return response.json()["data"]


def _create_cart(client, headers=CUSTOMER, session_id=None):
    response = client.post("/carts", json={"session_id": session_id}, headers=headers)
    assert response.status_code == 200
    return response.json()["data"]


def _add_item(client, cart_id, product_id, quantity=1):
    response = client.post(f"/carts/{cart_id}/items", json={"product_id": product_id, "quantity": quantity})
    assert response.status_code == 200
    return response.json()["data"]


class TestCartEndpoints:
    def test_add_item_and_totals(self, client):
        product = _create_product(client)
        cart = _create_cart(client)
        cart = _add_item(client, cart["id"], product["id"], 3)

        assert cart["sub_total"] == 30.0
        assert cart["total_quantity"] == 3
        assert cart["items"][0]["price_at_addition"] == 10.0

    def test_update_and_remove_item(self, client):
        product = _create_product(client)
        cart = _create_cart(client)
        _add_item(client, cart["id"], product["id"])

        updated = client.patch(f"/carts/{cart['id']}/items/{product['id']}", json={"quantity": 4})
        assert updated.json()["data"]["total_quantity"] == 4

        removed = client.delete(f"/carts/{cart['id']}/items/{product['id']}")
        assert removed.json()["data"]["items"] == []

    def test_exceeding_stock_is_400(self, client):
        product = _create_product(client, stock=2)
        cart = _create_cart(client)
        _add_item(client, cart["id"], product["id"])

        response = client.patch(f"/carts/{cart['id']}/items/{product['id']}", json={"quantity": 3})
        assert response.status_code == 400
        assert response.json()["status"] == "error"

    def test_discounts(self, client):
        product = _create_product(client, price="50.00")
        cart = _create_cart(client)
        _add_item(client, cart["id"], product["id"], 2)

        applied = client.post(f"/carts/{cart['id']}/discounts", json={"code": "TEN", "value": "10"})
        assert applied.json()["data"]["total_price"] == 90.0
        assert applied.json()["data"]["discounts"] == {"TEN": 10.0}

        removed = client.delete(f"/carts/{cart['id']}/discounts/TEN")
        assert removed.json()["data"]["total_price"] == 100.0

        missing = client.delete(f"/carts/{cart['id']}/discounts/TEN")
        assert missing.status_code == 404

    def test_validate_and_refresh(self, client):
        product = _create_product(client, price="10.00")
        cart = _create_cart(client)
        _add_item(client, cart["id"], product["id"])
        client.patch(f"/products/{product['id']}", json={"price": "11.00"}, headers=ADMIN)

        validation = client.get(f"/carts/{cart['id']}/validate").json()["data"]
        assert validation["valid"] is False
        assert validation["issues"][0]["type"] == "PRICE_CHANGED"

        refreshed = client.post(f"/carts/{cart['id']}/refresh-prices").json()["data"]
        assert refreshed["updated"] == 1
        assert refreshed["cart"]["total_price"] == 11.0

    def test_check_inventory(self, client):
        product = _create_product(client, stock=2)
        cart = _create_cart(client)
        _add_item(client, cart["id"], product["id"], 2)

        response = client.get(f"/carts/{cart['id']}/check-inventory")

        assert response.status_code == 200
        assert response.json()["data"] == [{"product_id": product["id"], "available": True, "remaining_stock": 2}]
        assert client.get("/carts/missing/check-inventory").status_code == 404

    def test_merge_guest_cart(self, client):
        x = _create_product(client, name="Product X", stock=10)
        y = _create_product(client, name="Product Y", stock=10)
        user_cart = _create_cart(client)
        guest_cart = _create_cart(client, headers={}, session_id="sess-42")
        _add_item(client, user_cart["id"], x["id"], 2)
        _add_item(client, guest_cart["id"], x["id"], 1)
        _add_item(client, guest_cart["id"], y["id"], 1)

        merged = client.post(f"/carts/{user_cart['id']}/merge", json={"guest_cart_id": guest_cart["id"]})
        quantities = {line["product_id"]: line["quantity"] for line in merged.json()["data"]["items"]}

        assert quantities == {x["id"]: 3, y["id"]: 1}
        assert client.get(f"/carts/{guest_cart['id']}").status_code == 404

    def test_abandoned_list_requires_admin(self, client):
        assert client.get("/carts/abandoned", headers=CUSTOMER).status_code == 403
        assert client.get("/carts/abandoned", headers=ADMIN).json()["data"] == []


class TestCheckoutFlow:
    def test_cart_to_order_to_cancellation(self, client):
        product = _create_product(client, price="10.00", stock=5)
        cart = _create_cart(client)
        cart = _add_item(client, cart["id"], product["id"], 3)
        assert cart["sub_total"] == 30.0

        response = client.post(
            "/orders",
            json={
                "cart_id": cart["id"],
                "shipping_address": ADDRESS,
                "payment_method": "card",
                "shipping_price": "5",
                "tax_rate": "0.1",
            },
            headers=CUSTOMER,
        )
        assert response.status_code == 201
        order = response.json()["data"]
        assert order["items_price"] == 30.0
        assert order["tax_price"] == 3.0
        assert order["total_price"] == 38.0
        assert order["status"] == "pending"
        assert order["email"] == "cust@example.com"
        assert client.get(f"/products/{product['id']}").json()["data"]["stock"] == 2

        cancelled = client.post(f"/orders/{order['id']}/cancel", json={"reason": "Changed my mind"}, headers=CUSTOMER)
        assert cancelled.json()["data"]["status"] == "cancelled"
        assert client.get(f"/products/{product['id']}").json()["data"]["stock"] == 5

    def test_order_requires_authentication(self, client):
        product = _create_product(client)
        response = client.post(
            "/orders",
            json={
                "items": [{"product_id": product["id"], "quantity": 1}],
                "shipping_address": ADDRESS,
                "payment_method": "card",
            },
        )
        assert response.status_code == 403

    def test_insufficient_stock_is_400(self, client):
        product = _create_product(client, stock=1)
        response = client.post(
            "/orders",
            json={
                "items": [{"product_id": product["id"], "quantity": 2}],
                "shipping_address": ADDRESS,
                "payment_method": "card",
            },
            headers=CUSTOMER,
        )
        assert response.status_code == 400
        assert "Insufficient stock" in response.json()["message"]


class TestOrderEndpoints:
    @pytest.fixture()
    def order(self, client):
        product = _create_product(client, price="20.00", stock=10)
        response = client.post(
            "/orders",
            json={
                "items": [{"product_id": product["id"], "quantity": 1}],
                "shipping_address": ADDRESS,
                "payment_method": "card",
                "shipping_price": "0",
                "tax_rate": "0",
            },
            headers=CUSTOMER,
        )
        return response.json()["data"]

    def test_lookup_by_id_and_number(self, client, order):
        assert client.get(f"/orders/{order['id']}").json()["data"]["order_number"] == order["order_number"]
        assert client.get(f"/orders/number/{order['order_number']}").json()["data"]["id"] == order["id"]

    def test_invalid_status_change_is_400(self, client, order):
        response = client.patch(f"/orders/{order['id']}/status", json={"status": "delivered"}, headers=ADMIN)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot transition from pending to delivered"

    def test_stale_version_is_409(self, client, order):
        client.patch(f"/orders/{order['id']}/status", json={"status": "on_hold"}, headers=ADMIN)
        response = client.patch(
            f"/orders/{order['id']}/status",
            json={"status": "processing", "expected_version": order["version"]},
            headers=ADMIN,
        )
        assert response.status_code == 409

    def test_pay_fulfil_and_history(self, client, order):
        paid = client.post(f"/orders/{order['id']}/pay", json={}, headers=CUSTOMER).json()["data"]
        assert paid["is_paid"] is True
        assert paid["status"] == "processing"

        shipped = client.post(
            f"/orders/{order['id']}/fulfill",
            json={"tracking_number": "TRK-1", "shipping_provider": "DHL"},
            headers=ADMIN,
        ).json()["data"]
        assert shipped["status"] == "shipped"
        assert [entry["status"] for entry in shipped["status_history"]] == ["pending", "processing", "shipped"]

    def test_users_see_only_their_orders(self, client, order):
        mine = client.get("/orders/user/cust-1", headers=CUSTOMER).json()["data"]
        assert [o["id"] for o in mine] == [order["id"]]
        assert client.get("/orders/user/someone-else", headers=CUSTOMER).status_code == 403

    def test_admin_listings(self, client, order):
        assert len(client.get("/orders/pending", headers=ADMIN).json()["data"]) == 1
        assert len(client.get("/orders/status/pending", headers=ADMIN).json()["data"]) == 1
        assert client.get("/orders/recent?limit=5", headers=ADMIN).status_code == 200

    def test_refund_eligibility(self, client, order):
        data = client.get(f"/orders/{order['id']}/refund-eligibility").json()["data"]
        assert data == {"order_id": order["id"], "eligible": False}


class TestOrderAccess:
    @pytest.fixture()
    def order(self, client):
        product = _create_product(client, price="20.00", stock=10)
        response = client.post(
            "/orders",
            json={
                "items": [{"product_id": product["id"], "quantity": 1}],
                "shipping_address": ADDRESS,
                "payment_method": "card",
            },
            headers=CUSTOMER,
        )
        return response.json()["data"]

    def test_only_owner_can_pay(self, client, order):
        response = client.post(f"/orders/{order['id']}/pay", json={}, headers=STRANGER)
        assert response.status_code == 403
        assert response.json()["status"] == "error"
        assert client.get(f"/orders/{order['id']}").json()["data"]["is_paid"] is False

    def test_only_owner_can_cancel(self, client, order):
        response = client.post(f"/orders/{order['id']}/cancel", json={"reason": "Not mine"}, headers=STRANGER)
        assert response.status_code == 403
        assert client.get(f"/orders/{order['id']}").json()["data"]["status"] == "pending"

    def test_admin_can_cancel_any_order(self, client, order):
        response = client.post(f"/orders/{order['id']}/cancel", json={"reason": "Fraud check"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

    def test_customer_cannot_record_payment(self, client, order):
        response = client.post(f"/orders/{order['id']}/payment", json={"payment_id": "pay-1"}, headers=CUSTOMER)
        assert response.status_code == 403
        assert client.get(f"/orders/{order['id']}").json()["data"]["is_paid"] is False

    def test_customer_cannot_fail_payment(self, client, order):
        response = client.post(
            f"/orders/{order['id']}/payment-failure", json={"reason": "Declined"}, headers=CUSTOMER
        )
        assert response.status_code == 403
        assert client.get(f"/orders/{order['id']}").json()["data"]["status"] == "pending"

    def test_admin_records_payment(self, client, order):
        response = client.post(f"/orders/{order['id']}/payment", json={"payment_id": "pay-1"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["data"]["is_paid"] is True

    def test_paying_a_cancelled_order_is_400(self, client, order):
        client.post(f"/orders/{order['id']}/cancel", json={"reason": "Changed my mind"}, headers=CUSTOMER)
        response = client.post(f"/orders/{order['id']}/pay", json={}, headers=CUSTOMER)
        assert response.status_code == 400


class TestPricingEndpoints:
    def test_calculate_totals(self, client):
        response = client.post(
            "/orders/calculate-totals",
            json={
                "items": [{"price": "10.00", "quantity": 3}],
                "shipping_price": "5",
                "tax_rate": "0.1",
            },
        )
        assert response.json()["data"] == {
            "items_price": 30.0,
            "tax_price": 3.0,
            "shipping_price": 5.0,
            "discount_price": 0.0,
            "total_price": 38.0,
        }

    def test_generate_order_number(self, client):
        number = client.get("/orders/generate-number", headers=ADMIN).json()["data"]["order_number"]
        assert number.startswith("ORD-")
