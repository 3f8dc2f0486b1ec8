"""Payment gateway port (abstract interface).

Defines the contract every payment gateway adapter implements, so the
payment orchestrator can switch between FakeGateway (dev/test) and
HttpGateway (production) without changing domain or application code.

Amounts cross this boundary as integer minor units. Raw card numbers
cross it exactly once, in ``tokenize_card``; charges only ever see the
token.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class GatewayError(Exception):
    """The gateway could not be reached or gave an unusable answer.

    Adapter-level failure: the payment orchestrator turns it into a FAILED
    payment and never lets it escape to callers.
    """


@dataclass(frozen=True)
class CardDetails:
    number: str
    holder_name: str
    expiry_month: int
    expiry_year: int
    cvv: str

    @property
    def last4(self) -> str:
        return self.number[-4:]

    def __repr__(self) -> str:
        return f"CardDetails(last4={self.last4!r}, holder_name={self.holder_name!r})"


@dataclass(frozen=True)
class ChargeRequest:
    amount_minor_units: int
    currency: str
    method: str
    idempotency_key: str
    card_token: str | None = None


@dataclass(frozen=True)
class ChargeResult:
    """Gateway answer, with ``status`` as the gateway reported it."""

    status: str
    gateway_reference: str | None = None
    message: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def tokenize_card(self, card: CardDetails) -> str:
        """Exchange card details for a single-use token."""
        ...

    @abstractmethod
    def create_charge(self, request: ChargeRequest) -> ChargeResult:
        """Charge the customer. Raises GatewayError on transport failures."""
        ...
