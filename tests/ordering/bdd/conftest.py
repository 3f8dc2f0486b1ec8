"""Shared BDD fixtures and step definitions for checkout and orders."""

import pytest
from ordering.addresses.memory_adapter import InMemoryAddressBook
from ordering.cart.cart import ShoppingCart
from ordering.checkout.workflow import CheckoutRequest
from ordering.exceptions import CheckoutError, PaymentError
from ordering.order.order import Order
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def state():
    """Scratchpad shared by the steps of one scenario."""
    return {"cart_id": None, "result": None, "error": None, "order_id": None}


def _checkout(workflow, state, shipping_method, payment_method, address_id=None):
    request = CheckoutRequest(
        customer_id="cust-001",
        cart_id=state["cart_id"],
        shipping_method=shipping_method,
        payment_method=payment_method,
        address_id=address_id,
    )
    try:
        state["result"] = workflow.checkout(request)
        state["order_id"] = state["result"].order_id
    except PaymentError as exc:
        state["error"] = exc
        state["order_id"] = exc.order_id
    except (ValidationError, CheckoutError) as exc:
        state["error"] = exc


def _order(state):
    return current_domain.repository_for(Order).get(state["order_id"])


def _all_orders():
    return current_domain.repository_for(Order)._dao.query.all().items


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a cart for customer "{customer_id}" with {qty:d} units of "{product_id}" at {price:d}'))
def cart_with_items(make_cart, state, customer_id, qty, product_id, price):
    state["cart_id"] = make_cart(customer_id=customer_id, lines=((product_id, qty, price),))


@given("the payment gateway approves charges")
@when("the payment gateway approves charges")
def gateway_approves(gateway):
    gateway.configure(status="approved")


@given("the payment gateway declines charges")
def gateway_declines(gateway):
    gateway.configure(status="declined", failure_reason="Insufficient funds")


@given("the payment gateway leaves charges processing")
def gateway_pending(gateway):
    gateway.configure(status="pending")


@given(parsers.cfparse('customer "{customer_id}" has address "{address_id}"'))
def customer_address(address_book: InMemoryAddressBook, customer_id, address_id):
    address_book.register(address_id, customer_id)


@given(parsers.cfparse('the customer has checked out with "{shipping:w}" and paid with "{payment:w}"'))
def checked_out(workflow, state, shipping, payment):
    _checkout(workflow, state, shipping, payment)
    assert state["error"] is None


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the customer checks out with "{shipping:w}" and pays with "{payment:w}"'))
def checks_out(workflow, state, shipping, payment):
    _checkout(workflow, state, shipping, payment)


@when(parsers.cfparse('the customer checks out with "{shipping:w}" to address "{address_id}" and pays with "{payment:w}"'))
def checks_out_to_address(workflow, state, shipping, address_id, payment):
    _checkout(workflow, state, shipping, payment, address_id=address_id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def order_status_is(state, status):
    assert _order(state).status == status


@then("the cart is empty")
def cart_is_empty(state):
    assert len(current_domain.repository_for(ShoppingCart).get(state["cart_id"]).items) == 0


@then(parsers.cfparse("exactly {count:d} order exists"))
def orders_exist(count):
    assert len(_all_orders()) == count


@then("no order exists")
def no_order_exists():
    assert _all_orders() == []
