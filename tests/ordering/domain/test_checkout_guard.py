"""Tests for the in-process checkout guard."""

import threading

import pytest
from ordering.checkout.guard import CheckoutGuard
from ordering.exceptions import CheckoutInProgressError


class TestCheckoutGuard:
    def test_hold_and_release(self):
        guard = CheckoutGuard()
        with guard.hold("cart-1"):
            assert guard.is_held("cart-1")
        assert not guard.is_held("cart-1")

    def test_nested_hold_on_same_cart_rejected(self):
        guard = CheckoutGuard()
        with guard.hold("cart-1"):
            with pytest.raises(CheckoutInProgressError) as exc:
                with guard.hold("cart-1"):
                    pass
            assert exc.value.cart_id == "cart-1"

    def test_different_carts_are_independent(self):
        guard = CheckoutGuard()
        with guard.hold("cart-1"):
            with guard.hold("cart-2"):
                assert guard.is_held("cart-2")

    def test_released_after_exception(self):
        guard = CheckoutGuard()
        with pytest.raises(RuntimeError):
            with guard.hold("cart-1"):
                raise RuntimeError("boom")
        assert not guard.is_held("cart-1")

    def test_concurrent_holders_exactly_one_wins(self):
        guard = CheckoutGuard()
        entered = threading.Event()
        release = threading.Event()
        outcomes = []

        def first():
            with guard.hold("cart-1"):
                entered.set()
                release.wait(timeout=5)
            outcomes.append("first")

        def second():
            entered.wait(timeout=5)
            try:
                with guard.hold("cart-1"):
                    outcomes.append("second")
            except CheckoutInProgressError:
                outcomes.append("rejected")
            finally:
                release.set()

        threads = [threading.Thread(target=first), threading.Thread(target=second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert sorted(outcomes) == ["first", "rejected"]
