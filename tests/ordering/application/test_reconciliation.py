"""Application tests for settling payments the gateway left processing."""

import pytest
from ordering.cart.cart import ShoppingCart
from ordering.cart.items import AddToCart
from ordering.cart.management import BeginCheckout, EndCheckout
from ordering.checkout.workflow import CLOSED_ORDER_MESSAGE, CheckoutRequest
from ordering.exceptions import CheckoutInProgressError
from ordering.order.order import CancellationActor, Order, OrderStatus
from ordering.payment.payment import Payment, PaymentStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


@pytest.fixture()
def processing(workflow, make_cart, gateway):
    """A checkout whose payment the gateway is still processing."""
    gateway.configure(status="pending")
    cart_id = make_cart(lines=(("p1", 2, 1000),))
    result = workflow.checkout(
        CheckoutRequest(
            customer_id="cust-001",
            cart_id=cart_id,
            shipping_method="PICKUP",
            payment_method="YAPE",
        )
    )
    return result, cart_id


def _cart(cart_id):
    return current_domain.repository_for(ShoppingCart).get(cart_id)


class TestApproved:
    def test_order_confirmed_and_ordered_lines_removed(self, workflow, processing):
        result, cart_id = processing

        settled = workflow.reconcile_payment(result.payment_id, "approved", "chg_123")

        assert settled.succeeded
        assert settled.status == OrderStatus.CONFIRMED.value
        cart = _cart(cart_id)
        assert len(cart.items) == 0
        assert cart.checkout_token is None

    def test_gateway_reference_recorded(self, workflow, processing):
        result, _ = processing
        workflow.reconcile_payment(result.payment_id, "completado", "chg_123")
        payment = current_domain.repository_for(Payment).get(result.payment_id)
        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.gateway_reference == "chg_123"

    def test_lines_added_while_processing_stay(self, workflow, processing):
        result, cart_id = processing
        current_domain.process(
            AddToCart(cart_id=cart_id, product_id="p2", quantity=1, unit_price=500),
            asynchronous=False,
        )

        workflow.reconcile_payment(result.payment_id, "approved")

        assert [(str(i.product_id), i.quantity) for i in _cart(cart_id).items] == [("p2", 1)]

    def test_claim_taken_over_by_a_later_checkout_is_kept(self, workflow, processing):
        result, cart_id = processing
        order = current_domain.repository_for(Order).get(result.order_id)
        current_domain.process(EndCheckout(cart_id=cart_id, token=order.checkout_token), asynchronous=False)
        current_domain.process(BeginCheckout(cart_id=cart_id, token="later-checkout"), asynchronous=False)

        workflow.reconcile_payment(result.payment_id, "approved")

        assert _cart(cart_id).checkout_token == "later-checkout"

    def test_checkout_of_the_cart_running_in_this_process(self, workflow, processing):
        result, cart_id = processing
        with workflow.guard.hold(cart_id):
            with pytest.raises(CheckoutInProgressError):
                workflow.reconcile_payment(result.payment_id, "approved")
        payment = current_domain.repository_for(Payment).get(result.payment_id)
        assert payment.status == PaymentStatus.PENDING.value


class TestApprovedOnClosedOrder:
    @pytest.fixture()
    def cancelled(self, processing):
        """The order was closed while its payment was still at the gateway."""
        result, cart_id = processing
        repo = current_domain.repository_for(Order)
        order = repo.get(result.order_id)
        order.cancel(reason="Closed by support", cancelled_by=CancellationActor.ADMIN.value)
        repo.add(order)
        return result, cart_id

    def test_reported_as_needing_a_refund(self, workflow, cancelled):
        result, _ = cancelled

        settled = workflow.reconcile_payment(result.payment_id, "approved")

        assert settled.message == CLOSED_ORDER_MESSAGE
        assert settled.retryable is False
        assert settled.status == OrderStatus.CANCELLED.value
        assert settled.payment_status == PaymentStatus.COMPLETED.value

    def test_claim_released_and_cart_untouched(self, workflow, cancelled):
        result, cart_id = cancelled

        workflow.reconcile_payment(result.payment_id, "approved")

        cart = _cart(cart_id)
        assert cart.checkout_token is None
        assert cart.items[0].quantity == 2

    def test_cart_can_be_checked_out_again(self, workflow, cancelled, gateway):
        result, cart_id = cancelled
        workflow.reconcile_payment(result.payment_id, "approved")
        gateway.configure(status="approved")

        again = workflow.checkout(
            CheckoutRequest(
                customer_id="cust-001",
                cart_id=cart_id,
                shipping_method="PICKUP",
                payment_method="YAPE",
            )
        )

        assert again.status == OrderStatus.CONFIRMED.value
        assert again.order_id != result.order_id


class TestDeclined:
    def test_order_stays_pending_and_claim_released(self, workflow, processing):
        result, cart_id = processing

        settled = workflow.reconcile_payment(result.payment_id, "rejected")

        assert not settled.succeeded
        assert settled.retryable is True
        assert current_domain.repository_for(Order).get(result.order_id).status == OrderStatus.PENDING.value
        cart = _cart(cart_id)
        assert len(cart.items) == 1
        assert cart.checkout_token is None

    def test_order_can_be_paid_again(self, workflow, processing, gateway):
        result, _ = processing
        workflow.reconcile_payment(result.payment_id, "rejected")
        gateway.configure(status="approved")

        retried = workflow.retry_payment("cust-001", result.order_id, "YAPE")

        assert retried.succeeded


class TestStillProcessing:
    def test_nothing_changes(self, workflow, processing):
        result, cart_id = processing

        settled = workflow.reconcile_payment(result.payment_id, "in_process")

        assert settled.payment_status == PaymentStatus.PENDING.value
        assert settled.message
        assert _cart(cart_id).checkout_token is not None


class TestRejected:
    def test_settled_payment_cannot_be_reconciled_again(self, workflow, processing):
        result, _ = processing
        workflow.reconcile_payment(result.payment_id, "approved")
        with pytest.raises(ValidationError):
            workflow.reconcile_payment(result.payment_id, "rejected")

    def test_unknown_payment(self, workflow):
        with pytest.raises(ObjectNotFoundError):
            workflow.reconcile_payment("no-such-payment", "approved")
