"""Shopping Cart aggregate (CQRS): the lines a customer intends to buy.

Each line remembers the unit price (in minor units) at the moment the
product was added. Checkout never reads the cart twice: it freezes the
lines into an OrderSnapshot and works from that copy.

A cart carries a "checkout in progress" token while a checkout attempt
holds it. A second attempt on the same cart is rejected until the first
attempt releases the token, checks the cart out, or the token expires.
"""

from datetime import UTC, datetime, timedelta

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from ordering.cart.events import (
    CartCheckedOut,
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)
from ordering.domain import ordering
from ordering.exceptions import CheckoutInProgressError


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)  # minor units at add time
    added_at = DateTime()


@ordering.aggregate
class ShoppingCart:
    customer_id = Identifier(required=True)
    items = HasMany(CartItem)
    checkout_token = String(max_length=64)
    checkout_started_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            created_at=now,
            updated_at=now,
        )

    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})
        return item

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, unit_price):
        """Add a product, or increase the quantity of its existing line.

        An existing line keeps the price it was first added at.
        """
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        if unit_price < 0:
            raise ValidationError({"unit_price": ["Unit price cannot be negative"]})

        existing = next((i for i in self.items if str(i.product_id) == str(product_id)), None)
        now = datetime.now(UTC)

        if existing:
            existing.quantity += quantity
            item_id = str(existing.id)
            price = existing.unit_price
        else:
            item = CartItem(
                product_id=product_id,
                quantity=quantity,
                unit_price=unit_price,
                added_at=now,
            )
            self.add_items(item)
            item_id = str(item.id)
            price = unit_price

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(product_id),
                quantity=quantity,
                unit_price=price,
            )
        )
        return item_id

    def update_item_quantity(self, item_id, new_quantity):
        """Set a line's quantity. Zero removes the line."""
        if new_quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})
        if new_quantity == 0:
            self.remove_item(item_id)
            return

        item = self._find_item(item_id)
        previous_quantity = item.quantity
        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def increase_quantity(self, item_id, by=1):
        item = self._find_item(item_id)
        self.update_item_quantity(item_id, item.quantity + by)

    def decrease_quantity(self, item_id, by=1):
        """Decrease a line's quantity; a line at quantity 1 is removed."""
        item = self._find_item(item_id)
        self.update_item_quantity(item_id, max(item.quantity - by, 0))

    def remove_item(self, item_id):
        item = self._find_item(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                item_id=str(item_id),
            )
        )

    def clear(self):
        """Remove every line and release any checkout token."""
        removed = len(self.items)
        for item in list(self.items):
            self.remove_items(item)

        now = datetime.now(UTC)
        self.checkout_token = None
        self.checkout_started_at = None
        self.updated_at = now

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                removed_lines=removed,
                cleared_at=now,
            )
        )

    def check_out(self, order_id, purchased, token=None):
        """Take the lines a paid order bought out of the cart.

        ``purchased`` is a list of (product_id, quantity). Lines added
        after the order was placed stay in the cart, and a line whose
        quantity was raised keeps the difference. The checkout claim is
        released only when ``token`` is the one holding it.
        """
        removed = 0
        for product_id, quantity in purchased:
            item = next((i for i in self.items if str(i.product_id) == str(product_id)), None)
            if item is None:
                continue
            if item.quantity > quantity:
                item.quantity -= quantity
            else:
                self.remove_items(item)
                removed += 1

        now = datetime.now(UTC)
        if token is not None and self.checkout_token == token:
            self.checkout_token = None
            self.checkout_started_at = None
        self.updated_at = now

        self.raise_(
            CartCheckedOut(
                cart_id=str(self.id),
                order_id=str(order_id),
                removed_lines=removed,
                remaining_lines=len(self.items),
                checked_out_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Checkout guard
    # -------------------------------------------------------------------
    def checkout_in_progress(self, now=None, ttl_seconds=900):
        if not self.checkout_token:
            return False
        if self.checkout_started_at is None:
            return True

        now = now or datetime.now(UTC)
        started_at = self.checkout_started_at
        if started_at.tzinfo is None:
            started_at = started_at.replace(tzinfo=UTC)
        return now - started_at < timedelta(seconds=ttl_seconds)

    def begin_checkout(self, token, now=None, ttl_seconds=900):
        """Claim the cart for one checkout attempt. Expired claims are taken over."""
        now = now or datetime.now(UTC)
        if self.checkout_in_progress(now, ttl_seconds):
            raise CheckoutInProgressError(str(self.id))

        self.checkout_token = token
        self.checkout_started_at = now

    def end_checkout(self, token):
        """Release the claim held by ``token``. Claims held by other attempts are left alone."""
        if self.checkout_token != token:
            return False

        self.checkout_token = None
        self.checkout_started_at = None
        return True
