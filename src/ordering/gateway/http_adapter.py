"""HTTP payment gateway adapter.

Talks JSON to a remote payment processor with httpx. Every request is
bounded by the configured timeout; timeouts, connection failures, 5xx
answers and malformed bodies all surface as GatewayError. The adapter
never retries on its own: the idempotency key lets the caller retry
safely later.
"""

import httpx
import structlog

from ordering.gateway.port import (
    CardDetails,
    ChargeRequest,
    ChargeResult,
    GatewayError,
    PaymentGateway,
)

logger = structlog.get_logger(__name__)


class HttpGateway(PaymentGateway):
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, payload: dict, idempotency_key: str | None = None) -> dict:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        try:
            response = self._client.post(path, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("gateway_timeout", path=path)
            raise GatewayError("Payment gateway timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("gateway_unreachable", path=path, error=str(exc))
            raise GatewayError("Payment gateway unreachable") from exc

        # 4xx carries a decline in the body; 5xx means the processor itself failed
        if response.status_code >= 500:
            logger.warning("gateway_server_error", path=path, status_code=response.status_code)
            raise GatewayError(f"Payment gateway answered {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError("Payment gateway returned a malformed response") from exc

    def tokenize_card(self, card: CardDetails) -> str:
        body = self._post(
            "/tokens",
            {
                "card_number": card.number,
                "holder_name": card.holder_name,
                "expiry_month": card.expiry_month,
                "expiry_year": card.expiry_year,
                "cvv": card.cvv,
            },
        )
        token = body.get("token") or body.get("id")
        if not token:
            raise GatewayError(body.get("message") or "Card could not be tokenized")
        return token

    def create_charge(self, request: ChargeRequest) -> ChargeResult:
        payload = {
            "amount": request.amount_minor_units,
            "currency": request.currency,
            "payment_method": request.method,
        }
        if request.card_token:
            payload["source_id"] = request.card_token

        body = self._post("/charges", payload, idempotency_key=request.idempotency_key)
        status = body.get("status")
        if not status:
            raise GatewayError("Payment gateway response carried no status")

        return ChargeResult(
            status=str(status),
            gateway_reference=body.get("id") or body.get("reference"),
            message=body.get("message") or body.get("user_message"),
        )
