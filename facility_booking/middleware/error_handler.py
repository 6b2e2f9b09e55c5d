import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from facility_booking.schemas.common import error_response
from facility_booking.utils.exceptions import AppException, ErrorCode, is_checkin_code_collision

logger = logging.getLogger(__name__)

# Where FastAPI found the bad value; clients only care about the field name
_REQUEST_PARTS = {"body", "query", "path", "header"}


def _reply(status_code: int, message: str, code: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_response(message, code, **extra))


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    error = exc.detail.get("error") or {}
    return _reply(
        exc.status_code,
        exc.detail.get("message", "An error occurred"),
        error.get("code", exc.error_code),
        details=error.get("details"),
        field=error.get("field"),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """422 with one {field, message} entry per failed check."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in _REQUEST_PARTS:
            loc = loc[1:]
        details.append({"field": ".".join(loc) or "unknown", "message": err.get("msg", "Invalid value")})

    return _reply(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error. Please check your input.",
        ErrorCode.VALIDATION_ERROR,
        details=details,
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """
    Database constraint failures that got past the service layer.

    A clash on the check-in code index is a minting collision the client can
    simply retry. Check and foreign-key violations mean the request itself was
    bad. Anything else is treated as a duplicate row.
    """
    reason = str(exc.orig)
    logger.warning(f"IntegrityError on {request.method} {request.url.path}: {reason}")

    if is_checkin_code_collision(exc):
        return _reply(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Could not allocate a check-in code, please retry.",
            ErrorCode.CHECKIN_CODE_COLLISION,
        )
    lowered = reason.lower()
    if "check constraint" in lowered or "foreign key" in lowered:
        return _reply(
            status.HTTP_400_BAD_REQUEST,
            "The request violates a data constraint.",
            ErrorCode.INTEGRITY_VIOLATION,
        )
    return _reply(status.HTTP_409_CONFLICT, "A record with this data already exists.", ErrorCode.DUPLICATE_ENTRY)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
    return _reply(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        ErrorCode.INTERNAL_SERVER_ERROR,
    )
