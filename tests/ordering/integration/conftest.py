import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api import admin_router, cart_router, order_router, payment_router
from ordering.api.errors import register_checkout_exception_handlers
from protean.integrations.fastapi import register_exception_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(admin_router)
    register_exception_handlers(app)
    register_checkout_exception_handlers(app)
    return TestClient(app)


@pytest.fixture()
def customer():
    return {"X-Customer-Id": "cust-001"}


@pytest.fixture()
def cart_with_items(client, customer):
    """POST a cart with two units of p1 at 10.00 and return its id."""
    response = client.post("/carts", json={"customer_id": "cust-001"})
    assert response.status_code == 201
    cart_id = response.json()["cart_id"]

    response = client.post(
        f"/carts/{cart_id}/items",
        json={"product_id": "p1", "quantity": 2, "unit_price": 1000},
        headers=customer,
    )
    assert response.status_code == 201
    return cart_id


@pytest.fixture()
def checkout(client, customer):
    def _checkout(cart_id, headers=None, **body):
        payload = {"shipping_method": "PICKUP", "payment_method": "YAPE"}
        payload.update(body)
        return client.post(f"/carts/{cart_id}/checkout", json=payload, headers=headers or customer)

    return _checkout
