"""Typed errors raised by ledger operations.

Business logic raises these instead of ``HTTPException`` so that the same
operations can run from the worker. The API maps them to JSON responses via
``register_exception_handlers``.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from libs.common.logging import get_logger

logger = get_logger(__name__)


class LedgerError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "LEDGER_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InsufficientFunds(LedgerError):
    code = "INSUFFICIENT_FUNDS"


class OverRelease(LedgerError):
    code = "OVER_RELEASE"


class InvalidAmount(LedgerError):
    code = "INVALID_AMOUNT"


class NoPaymentMethod(LedgerError):
    code = "NO_PAYMENT_METHOD"


class AlreadySettled(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_SETTLED"


class EscrowAlreadyExists(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "ESCROW_ALREADY_EXISTS"


class AlreadyProcessed(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_PROCESSED"


class InvalidState(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "INVALID_STATE"


class NotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class Forbidden(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class ProviderUnavailable(LedgerError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "PROVIDER_UNAVAILABLE"


class ProviderTimeout(ProviderUnavailable):
    """The provider did not answer in time; the call may still have applied."""

    code = "PROVIDER_TIMEOUT"


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
