"""Checkout error taxonomy.

Errors a customer can fix by changing their input derive from protean's
``ValidationError`` so the HTTP layer reports them as 400s:

    ValidationError (protean)
    ├── EmptyCartError
    └── InvalidTransitionError
        └── StaleStatusError

Workflow failures that are not input mistakes derive from ``CheckoutError``:

    CheckoutError
    ├── AccessDeniedError        (caller does not own the cart/order)
    ├── CheckoutInProgressError  (another attempt holds the cart)
    ├── AmountMismatchError      (charged amount != persisted order total)
    └── PaymentError             (gateway rejection, timeout or network failure)
"""

from protean.exceptions import ValidationError


class EmptyCartError(ValidationError):
    """Checkout was attempted on a cart with no lines."""


class InvalidTransitionError(ValidationError):
    """An order status change is not in the allowed-edges table."""


class StaleStatusError(InvalidTransitionError):
    """The order moved on since the caller last read it."""


class CheckoutError(Exception):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AccessDeniedError(CheckoutError):
    pass


class CheckoutInProgressError(CheckoutError):
    def __init__(self, cart_id: str) -> None:
        self.cart_id = cart_id
        super().__init__(f"A checkout is already in progress for cart {cart_id}")


class AmountMismatchError(CheckoutError):
    """The amount to charge disagrees with the order's persisted total.

    Always a programming error: amounts are computed server-side.
    """

    def __init__(self, order_id: str, expected: int, received: int) -> None:
        self.order_id = order_id
        self.expected = expected
        self.received = received
        super().__init__(f"Amount {received} does not match order {order_id} total {expected}")


class PaymentError(CheckoutError):
    """A payment attempt did not complete.

    ``message`` is safe to show to the customer. ``retryable`` tells the
    client whether offering "retry payment" on the same order makes sense.
    """

    def __init__(
        self,
        message: str,
        order_id: str | None = None,
        payment_id: str | None = None,
        retryable: bool = True,
    ) -> None:
        self.order_id = order_id
        self.payment_id = payment_id
        self.retryable = retryable
        super().__init__(message)
