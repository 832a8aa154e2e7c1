"""
Error taxonomy for receipt processing and entitlement lookups.

Services raise these; the API layer turns them into JSON responses through
register_exception_handlers().
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class SubscriptionError(Exception):
    """Base class for errors surfaced to the client with a fixed status code."""
    status_code = status.HTTP_400_BAD_REQUEST
    error = "subscription_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReceiptValidationError(SubscriptionError):
    """Malformed, missing or out-of-range receipt field."""
    status_code = status.HTTP_400_BAD_REQUEST
    error = "validation_error"


class OwnershipConflictError(SubscriptionError):
    """A natural purchase identifier already belongs to another account."""
    status_code = status.HTTP_409_CONFLICT
    error = "ownership_conflict"


class NotFoundError(SubscriptionError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class InternalError(SubscriptionError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "internal_error"


def register_exception_handlers(app: FastAPI) -> None:
    """Register JSON handlers for the subscription error taxonomy."""

    @app.exception_handler(SubscriptionError)
    async def handle_subscription_error(request: Request, exc: SubscriptionError):
        if exc.status_code >= 500:
            logger.error(f"Subscription error on {request.url.path}: {exc.message}")
        else:
            logger.info(f"Rejected request on {request.url.path}: {exc.error} - {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.error, "detail": exc.message},
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request: Request, exc: SQLAlchemyError):
        logger.exception(f"Database error on {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": InternalError.error, "detail": "Internal storage error"},
        )
