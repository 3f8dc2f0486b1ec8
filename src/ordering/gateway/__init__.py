"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- HttpGateway when PAYMENT_GATEWAY_URL is configured
"""

from ordering.config import get_settings
from ordering.gateway.fake_adapter import FakeGateway
from ordering.gateway.http_adapter import HttpGateway
from ordering.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        settings = get_settings()
        if settings.gateway_url:
            _current_gateway = HttpGateway(
                base_url=settings.gateway_url,
                api_key=settings.gateway_api_key,
                timeout=settings.gateway_timeout,
            )
        else:
            _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
