"""
Domain exceptions and their HTTP rendering.

Services raise these; the handler registered on the application turns
them into JSON error responses.
"""

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
from loguru import logger


class SteerSoloError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 400
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidRequestError(SteerSoloError):
    status_code = 400
    default_detail = "Invalid request"


class PermissionDeniedError(SteerSoloError):
    status_code = 403
    default_detail = "You do not have access to this resource"


class LimitExceededError(SteerSoloError):
    """Plan or quota limit reached."""

    status_code = 403
    default_detail = "Plan limit reached"


class NotFoundError(SteerSoloError):
    status_code = 404
    default_detail = "Resource not found"


class ConflictError(SteerSoloError):
    status_code = 409
    default_detail = "Resource already exists"


class InvalidTransitionError(ConflictError):
    """Status change not allowed from the current status."""

    default_detail = "Status transition not allowed"

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot change status from '{current}' to '{target}'")


class PaymentProviderError(SteerSoloError):
    """Payment provider rejected or failed a request."""

    status_code = 502
    default_detail = "Payment provider error"


async def steersolo_error_handler(request: Request, exc: SteerSoloError) -> ORJSONResponse:
    """Render a domain error as JSON."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")
    else:
        logger.debug(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.detail}")

    return ORJSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach domain error handlers to the application."""
    app.add_exception_handler(SteerSoloError, steersolo_error_handler)
