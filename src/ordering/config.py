"""Checkout settings, read once from the environment.

All monetary settings are integer minor units. The tax rate is a decimal
fraction (``0.12`` means 12%).

Environment variables:
    STORE_CURRENCY                  ISO 4217 code (default PEN)
    STORE_TAX_RATE                  decimal fraction (default 0.12)
    STORE_DELIVERY_FEE              minor units (default 1500)
    STORE_NATIONAL_SHIPPING_FEE     minor units (default 2500)
    PAYMENT_GATEWAY_URL             base URL of the gateway HTTP API
    PAYMENT_GATEWAY_API_KEY         bearer token for the gateway
    PAYMENT_GATEWAY_TIMEOUT         seconds (default 10)
    CHECKOUT_LOCK_TTL               seconds a cart stays locked by a
                                    checkout attempt (default 900)
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name) or default
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a decimal number, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class CheckoutSettings:
    currency: str = "PEN"
    tax_rate: Decimal = field(default_factory=lambda: Decimal("0.12"))
    delivery_fee: int = 1500
    national_shipping_fee: int = 2500
    gateway_url: str | None = None
    gateway_api_key: str | None = None
    gateway_timeout: float = 10.0
    checkout_lock_ttl: int = 900

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.tax_rate < Decimal("1"):
            raise ValueError(f"Tax rate must be a fraction between 0 and 1, got {self.tax_rate}")
        if self.delivery_fee < 0 or self.national_shipping_fee < 0:
            raise ValueError("Shipping fees cannot be negative")
        if self.gateway_timeout <= 0:
            raise ValueError("Gateway timeout must be positive")

    @classmethod
    def from_env(cls) -> "CheckoutSettings":
        return cls(
            currency=(os.getenv("STORE_CURRENCY") or "PEN").upper(),
            tax_rate=_env_decimal("STORE_TAX_RATE", "0.12"),
            delivery_fee=_env_int("STORE_DELIVERY_FEE", 1500),
            national_shipping_fee=_env_int("STORE_NATIONAL_SHIPPING_FEE", 2500),
            gateway_url=os.getenv("PAYMENT_GATEWAY_URL") or None,
            gateway_api_key=os.getenv("PAYMENT_GATEWAY_API_KEY") or None,
            gateway_timeout=_env_float("PAYMENT_GATEWAY_TIMEOUT", 10.0),
            checkout_lock_ttl=_env_int("CHECKOUT_LOCK_TTL", 900),
        )


_current_settings: CheckoutSettings | None = None


def get_settings() -> CheckoutSettings:
    """Return the active settings, loading them from the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = CheckoutSettings.from_env()
    return _current_settings


def set_settings(settings: CheckoutSettings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Drop overrides; the next call re-reads the environment."""
    global _current_settings
    _current_settings = None
