"""Configurable fake payment gateway for development and testing.

Simulates the remote processor without network calls. It can be told to
approve, decline, leave a charge processing, or fail at the transport
level, which covers every branch of the payment orchestrator.
"""

from uuid import uuid4

from ordering.gateway.port import (
    CardDetails,
    ChargeRequest,
    ChargeResult,
    GatewayError,
    PaymentGateway,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.status: str = "approved"
        self.failure_reason: str = "Card declined"
        self.raise_error: bool = False
        self.calls: list[dict] = []

    def configure(
        self,
        status: str = "approved",
        failure_reason: str = "Card declined",
        raise_error: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.status = status
        self.failure_reason = failure_reason
        self.raise_error = raise_error

    @property
    def charge_calls(self) -> list[dict]:
        return [call for call in self.calls if call["method"] == "create_charge"]

    def tokenize_card(self, card: CardDetails) -> str:
        self.calls.append({"method": "tokenize_card", "last4": card.last4})
        if self.raise_error:
            raise GatewayError("Gateway unreachable")
        return f"tok_{uuid4().hex[:16]}"

    def create_charge(self, request: ChargeRequest) -> ChargeResult:
        self.calls.append(
            {
                "method": "create_charge",
                "amount_minor_units": request.amount_minor_units,
                "currency": request.currency,
                "payment_method": request.method,
                "card_token": request.card_token,
                "idempotency_key": request.idempotency_key,
            }
        )

        if self.raise_error:
            raise GatewayError("Gateway timed out")

        if self.status in ("approved", "pending"):
            return ChargeResult(
                status=self.status,
                gateway_reference=f"fake_chg_{uuid4().hex[:12]}",
                message="Charge accepted" if self.status == "approved" else "Charge is processing",
            )
        return ChargeResult(status=self.status, message=self.failure_reason)
