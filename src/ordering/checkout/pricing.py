"""Order totals, computed from a cart snapshot.

Every figure is an integer in minor units. Tax is applied to the
subtotal only, rounded half-up; shipping is a flat fee per method.
Client-side totals are never consulted.
"""

from dataclasses import asdict, dataclass

from ordering.checkout.snapshot import OrderSnapshot
from ordering.config import CheckoutSettings, get_settings
from ordering.order.order import ShippingMethod
from ordering.shared.money import apply_rate


@dataclass(frozen=True)
class Totals:
    subtotal: int
    shipping: int
    tax: int
    total: int
    currency: str

    def to_dict(self) -> dict:
        return asdict(self)


def shipping_cost(method, settings: CheckoutSettings | None = None) -> int:
    settings = settings or get_settings()
    method = ShippingMethod(method)
    if method is ShippingMethod.PICKUP:
        return 0
    if method is ShippingMethod.NATIONAL:
        return settings.national_shipping_fee
    return settings.delivery_fee


def compute_totals(snapshot: OrderSnapshot, shipping_method, settings: CheckoutSettings | None = None) -> Totals:
    settings = settings or get_settings()
    subtotal = sum(line.line_total for line in snapshot.lines)
    shipping = shipping_cost(shipping_method, settings)
    tax = apply_rate(subtotal, settings.tax_rate)
    return Totals(
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        total=subtotal + shipping + tax,
        currency=settings.currency,
    )
