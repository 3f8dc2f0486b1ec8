"""Money value object and rate arithmetic.

Amounts are always integers in the currency's minor unit (cents, céntimos).
Rates are applied in Decimal and rounded half-up back to the minor unit.
"""

from decimal import ROUND_HALF_UP, Decimal

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Integer, String

from ordering.domain import ordering

VALID_CURRENCIES = frozenset(
    {
        "PEN",
        "USD",
        "EUR",
        "GBP",
        "MXN",
        "BRL",
        "CLP",
        "COP",
        "ARS",
    }
)


def apply_rate(amount: int, rate: Decimal) -> int:
    """Multiply a minor-unit amount by a rate, rounding half-up to the minor unit."""
    return int((Decimal(amount) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@ordering.value_object
class Money:
    """An integer amount in minor units, with its currency."""

    amount = Integer(required=True, min_value=0)
    currency = String(max_length=3, default="PEN")

    @invariant.post
    def currency_must_be_supported(self):
        if self.currency not in VALID_CURRENCIES:
            raise ValidationError({"currency": [f"Unsupported currency: {self.currency}"]})
