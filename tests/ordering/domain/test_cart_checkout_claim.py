"""Tests for the persisted checkout-in-progress claim on a cart."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.exceptions import CheckoutInProgressError


@pytest.fixture()
def cart():
    cart = ShoppingCart.create(customer_id="cust-001")
    cart.add_item("p1", 1, 1000)
    return cart


class TestBeginCheckout:
    def test_claim_marks_cart_in_progress(self, cart):
        cart.begin_checkout("tok-1")
        assert cart.checkout_token == "tok-1"
        assert cart.checkout_in_progress() is True

    def test_second_claim_rejected(self, cart):
        cart.begin_checkout("tok-1")
        with pytest.raises(CheckoutInProgressError) as exc:
            cart.begin_checkout("tok-2")
        assert exc.value.cart_id == str(cart.id)
        assert cart.checkout_token == "tok-1"

    def test_expired_claim_is_taken_over(self, cart):
        started = datetime.now(UTC) - timedelta(seconds=120)
        cart.begin_checkout("tok-1", now=started, ttl_seconds=60)
        cart.begin_checkout("tok-2", ttl_seconds=60)
        assert cart.checkout_token == "tok-2"

    def test_claim_within_ttl_is_in_progress(self, cart):
        started = datetime.now(UTC) - timedelta(seconds=30)
        cart.begin_checkout("tok-1", now=started)
        assert cart.checkout_in_progress(ttl_seconds=60) is True
        assert cart.checkout_in_progress(ttl_seconds=10) is False


class TestEndCheckout:
    def test_owner_releases_claim(self, cart):
        cart.begin_checkout("tok-1")
        assert cart.end_checkout("tok-1") is True
        assert cart.checkout_token is None
        assert cart.checkout_in_progress() is False

    def test_other_token_leaves_claim(self, cart):
        cart.begin_checkout("tok-1")
        assert cart.end_checkout("tok-2") is False
        assert cart.checkout_token == "tok-1"

    def test_release_keeps_lines(self, cart):
        cart.begin_checkout("tok-1")
        cart.end_checkout("tok-1")
        assert len(cart.items) == 1
