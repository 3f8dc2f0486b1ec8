"""Integration tests for Cart API endpoints via TestClient."""

from ordering.cart.cart import ShoppingCart
from protean import current_domain


def _cart(cart_id):
    return current_domain.repository_for(ShoppingCart).get(cart_id)


class TestCreateCartEndpoint:
    def test_create_cart(self, client):
        response = client.post("/carts", json={"customer_id": "cust-001"})
        assert response.status_code == 201

        cart = _cart(response.json()["cart_id"])
        assert cart.customer_id == "cust-001"
        assert len(cart.items) == 0

    def test_customer_id_required(self, client):
        response = client.post("/carts", json={})
        assert response.status_code == 422


class TestCartItemEndpoints:
    def test_add_item(self, client, cart_with_items):
        cart = _cart(cart_with_items)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2

    def test_adding_same_product_merges_lines(self, client, customer, cart_with_items):
        response = client.post(
            f"/carts/{cart_with_items}/items",
            json={"product_id": "p1", "quantity": 1, "unit_price": 1000},
            headers=customer,
        )
        assert response.status_code == 201
        cart = _cart(cart_with_items)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3
        assert response.json()["item_id"] == str(cart.items[0].id)

    def test_zero_quantity_rejected_by_schema(self, client, customer, cart_with_items):
        response = client.post(
            f"/carts/{cart_with_items}/items",
            json={"product_id": "p2", "quantity": 0, "unit_price": 1000},
            headers=customer,
        )
        assert response.status_code == 422

    def test_update_item_quantity(self, client, customer, cart_with_items):
        item_id = str(_cart(cart_with_items).items[0].id)

        response = client.put(
            f"/carts/{cart_with_items}/items/{item_id}",
            json={"new_quantity": 5},
            headers=customer,
        )

        assert response.status_code == 200
        assert _cart(cart_with_items).items[0].quantity == 5

    def test_update_to_zero_removes_line(self, client, customer, cart_with_items):
        item_id = str(_cart(cart_with_items).items[0].id)
        response = client.put(
            f"/carts/{cart_with_items}/items/{item_id}",
            json={"new_quantity": 0},
            headers=customer,
        )
        assert response.status_code == 200
        assert len(_cart(cart_with_items).items) == 0

    def test_update_unknown_item(self, client, customer, cart_with_items):
        response = client.put(
            f"/carts/{cart_with_items}/items/no-such-item",
            json={"new_quantity": 5},
            headers=customer,
        )
        assert response.status_code == 400

    def test_remove_item(self, client, customer, cart_with_items):
        item_id = str(_cart(cart_with_items).items[0].id)
        response = client.delete(f"/carts/{cart_with_items}/items/{item_id}", headers=customer)
        assert response.status_code == 200
        assert len(_cart(cart_with_items).items) == 0


class TestGetCartEndpoint:
    def test_get_cart(self, client, customer, cart_with_items):
        response = client.get(f"/carts/{cart_with_items}", headers=customer)

        assert response.status_code == 200
        body = response.json()
        assert body["customer_id"] == "cust-001"
        assert body["subtotal"] == 2000
        assert body["items"][0]["line_total"] == 2000
        assert body["checkout_in_progress"] is False

    def test_unknown_cart(self, client, customer):
        response = client.get("/carts/no-such-cart", headers=customer)
        assert response.status_code == 404

    def test_other_customers_cart(self, client, cart_with_items):
        response = client.get(f"/carts/{cart_with_items}", headers={"X-Customer-Id": "cust-002"})
        assert response.status_code == 403

    def test_items_of_other_customers_cart(self, client, cart_with_items):
        response = client.post(
            f"/carts/{cart_with_items}/items",
            json={"product_id": "p2", "quantity": 1, "unit_price": 500},
            headers={"X-Customer-Id": "cust-002"},
        )
        assert response.status_code == 403
        assert len(_cart(cart_with_items).items) == 1


class TestCheckoutEndpoint:
    def test_completed_checkout(self, client, customer, cart_with_items, checkout):
        response = checkout(cart_with_items)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "CONFIRMED"
        assert body["payment_status"] == "COMPLETED"
        assert body["total"] == 2240
        assert body["order_number"].startswith("ORD-")
        assert len(_cart(cart_with_items).items) == 0

    def test_declined_payment(self, client, cart_with_items, checkout, gateway):
        gateway.configure(status="declined")

        response = checkout(cart_with_items)

        assert response.status_code == 402
        body = response.json()
        assert body["order_id"]
        assert body["payment_id"]
        assert body["retryable"] is True
        assert len(_cart(cart_with_items).items) == 1

    def test_gateway_unreachable(self, client, cart_with_items, checkout, gateway):
        gateway.configure(raise_error=True)
        response = checkout(cart_with_items)
        assert response.status_code == 402
        assert response.json()["retryable"] is True

    def test_processing_payment(self, client, cart_with_items, checkout, gateway):
        gateway.configure(status="pending")

        response = checkout(cart_with_items)

        assert response.status_code == 202
        assert response.json()["status"] == "PENDING"
        assert response.json()["message"]

    def test_cart_claimed_while_processing(self, client, customer, cart_with_items, checkout, gateway):
        gateway.configure(status="pending")
        checkout(cart_with_items)

        response = checkout(cart_with_items)

        assert response.status_code == 409
        assert response.json()["cart_id"] == cart_with_items

    def test_empty_cart(self, client, checkout):
        cart_id = client.post("/carts", json={"customer_id": "cust-001"}).json()["cart_id"]
        response = checkout(cart_id)
        assert response.status_code == 400

    def test_delivery_without_address(self, client, cart_with_items, checkout):
        response = checkout(cart_with_items, shipping_method="DELIVERY")
        assert response.status_code == 400

    def test_delivery_to_registered_address(self, client, cart_with_items, checkout, address_book):
        address_book.register("addr-001", "cust-001")
        response = checkout(cart_with_items, shipping_method="DELIVERY", address_id="addr-001")
        assert response.status_code == 201
        assert response.json()["total"] == 2000 + 1500 + 240

    def test_other_customers_cart(self, client, cart_with_items, checkout):
        response = checkout(cart_with_items, headers={"X-Customer-Id": "cust-002"})
        assert response.status_code == 403

    def test_card_details_validated_by_schema(self, client, cart_with_items, checkout):
        response = checkout(
            cart_with_items,
            payment_method="CREDIT_CARD",
            card_details={
                "number": "4111",
                "holder_name": "Ana Torres",
                "expiry_month": 12,
                "expiry_year": 2030,
                "cvv": "123",
            },
        )
        assert response.status_code == 422

    def test_idempotency_key_replays(self, client, customer, cart_with_items, checkout, gateway):
        headers = {**customer, "Idempotency-Key": "key-1"}
        first = checkout(cart_with_items, headers=headers)
        second = checkout(cart_with_items, headers=headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["order_id"] == first.json()["order_id"]
        assert second.json()["replayed"] is True
        assert len(gateway.charge_calls) == 1
