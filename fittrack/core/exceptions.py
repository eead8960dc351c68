import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from fittrack.core.responses import ErrorResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors that map to a typed HTTP response."""
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Request failed"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Validation Error"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not Found"


class ReferentialError(DomainError):
    """A referenced row (exercise, session, user) does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    message = "Referenced entity does not exist"


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Operation not permitted"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    message = "Conflict"


def _error_response(request: Request, status_code: int, detail, message: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    body = ErrorResponse(detail=detail, message=message, request_id=request_id)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def domain_exception_handler(request: Request, exc: DomainError):
    if isinstance(exc, ForbiddenError):
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.detail)
    return _error_response(request, exc.status_code, exc.detail, exc.message)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(request, status.HTTP_400_BAD_REQUEST, jsonable_encoder(exc.errors()), "Validation Error")


async def integrity_exception_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return _error_response(
        request,
        status.HTTP_409_CONFLICT,
        "Database conflict. A record with this identifier likely already exists.",
        "Conflict",
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "Internal Server Error")
