"""HTTP mapping for checkout errors.

Protean's own errors (ValidationError and its subclasses EmptyCartError
and InvalidTransitionError) are mapped by
``protean.integrations.fastapi.register_exception_handlers``; this module
covers the workflow errors that are not input mistakes.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError

from ordering.exceptions import (
    AccessDeniedError,
    AmountMismatchError,
    CheckoutInProgressError,
    PaymentError,
)

logger = structlog.get_logger(__name__)


def register_checkout_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ObjectNotFoundError)
    async def not_found(request: Request, exc: ObjectNotFoundError):
        return JSONResponse(status_code=404, content={"error": "Not found"})

    @app.exception_handler(AccessDeniedError)
    async def access_denied(request: Request, exc: AccessDeniedError):
        return JSONResponse(status_code=403, content={"error": exc.message})

    @app.exception_handler(CheckoutInProgressError)
    async def checkout_in_progress(request: Request, exc: CheckoutInProgressError):
        return JSONResponse(status_code=409, content={"error": exc.message, "cart_id": exc.cart_id})

    @app.exception_handler(AmountMismatchError)
    async def amount_mismatch(request: Request, exc: AmountMismatchError):
        logger.error(
            "amount_mismatch",
            path=request.url.path,
            order_id=exc.order_id,
            expected=exc.expected,
            received=exc.received,
        )
        return JSONResponse(status_code=500, content={"error": "Internal error while charging the order"})

    @app.exception_handler(PaymentError)
    async def payment_failed(request: Request, exc: PaymentError):
        return JSONResponse(
            status_code=402,
            content={
                "error": exc.message,
                "order_id": exc.order_id,
                "payment_id": exc.payment_id,
                "retryable": exc.retryable,
            },
        )
