"""
Domain exceptions and their HTTP translation.

Services raise the ClinicDeskError family. Routers never build HTTP errors
for these themselves: the handler registered in main.py maps each one
through BusinessError, which logs and keeps internal details out of the
response body for storage failures.
"""
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class ClinicDeskError(Exception):
    """Base class for all domain errors."""


class ValidationError(ClinicDeskError):
    """Bad user input: missing field, out-of-range value."""


class InvalidDiscount(ValidationError):
    pass


class EmptyInvoice(ValidationError):
    pass


class InsufficientStock(ClinicDeskError):
    def __init__(self, item_name: str, available: int, requested: int):
        self.item_name = item_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {item_name}. Available: {available}, requested: {requested}"
        )


class NotFound(ClinicDeskError):
    def __init__(self, resource: str, resource_id: str | None = None):
        self.resource = resource
        self.resource_id = resource_id
        detail = f"{resource} not found" if resource_id is None else f"{resource} '{resource_id}' not found"
        super().__init__(detail)


class StorageError(ClinicDeskError):
    """Persistence layer failure (database error, unserializable value)."""


class SubscriptionCheckFailed(ClinicDeskError):
    pass


class RemoteConfigInvalid(ClinicDeskError):
    pass


class RemoteSyncFailed(ClinicDeskError):
    pass


class BusinessError:
    """HTTP responses for domain errors, with safe (non-leaky) messages."""

    @staticmethod
    def not_found(detail: str) -> HTTPException:
        logger.warning(f"Not found: {detail}")
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation / business logic errors.

        OK to include specific details here since the user caused the issue.
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

    @staticmethod
    def conflict(detail: str) -> HTTPException:
        """409 when the request clashes with current state (e.g. stock)."""
        logger.info(f"Conflict: {detail}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
        )

    @staticmethod
    def payment_required(detail: str) -> HTTPException:
        """402 while the subscription is expired or could not be verified."""
        logger.warning(f"Subscription blocked: {detail}")
        return HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=detail,
        )

    @staticmethod
    def bad_gateway(detail: str) -> HTTPException:
        logger.error(f"Remote store failure: {detail}")
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
        )

    @staticmethod
    def server_error(original_error: Exception = None) -> HTTPException:
        """
        Generic 500 - logs actual error internally, hides from user.
        """
        if original_error:
            logger.error(
                f"Internal server error: {type(original_error).__name__}: {str(original_error)}",
                exc_info=original_error,
            )
        else:
            logger.error("Internal server error occurred")

        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An internal error occurred. Please try again later.",
        )


def to_http_exception(exc: ClinicDeskError) -> HTTPException:
    """Map a domain error to the HTTP error the API returns for it."""
    if isinstance(exc, NotFound):
        return BusinessError.not_found(str(exc))
    if isinstance(exc, InsufficientStock):
        return BusinessError.conflict(str(exc))
    if isinstance(exc, (ValidationError, RemoteConfigInvalid)):
        return BusinessError.bad_request(str(exc))
    if isinstance(exc, SubscriptionCheckFailed):
        return BusinessError.payment_required(str(exc))
    if isinstance(exc, RemoteSyncFailed):
        return BusinessError.bad_gateway(str(exc))
    return BusinessError.server_error(exc)
