"""Ordering bounded context: Shopping Cart, Orders and Payments.

Handles the cart a customer fills, the checkout workflow that freezes it
into an order, the order status lifecycle driven by the back office, and
the payment attempts charged against each order through an external
gateway.
"""

from protean.domain import Domain

from ordering.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
ordering = Domain(name="ordering")
