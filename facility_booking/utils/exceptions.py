from fastapi import HTTPException, status


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES: machine-readable constants for frontend switch/case
# ═══════════════════════════════════════════════════════════════════════════════
class ErrorCode:
    VALIDATION_ERROR          = "VALIDATION_ERROR"
    UNAUTHORIZED              = "UNAUTHORIZED"
    TOKEN_EXPIRED             = "TOKEN_EXPIRED"
    INVALID_CREDENTIALS       = "INVALID_CREDENTIALS"
    FORBIDDEN                 = "FORBIDDEN"
    NOT_FOUND                 = "NOT_FOUND"
    DUPLICATE_ENTRY           = "DUPLICATE_ENTRY"
    BOOKING_CONFLICT          = "BOOKING_CONFLICT"
    RESOURCE_UNAVAILABLE      = "RESOURCE_UNAVAILABLE"
    INVALID_DATE_RANGE        = "INVALID_DATE_RANGE"
    EMPTY_RESOURCE_SET        = "EMPTY_RESOURCE_SET"
    INVALID_DURATION          = "INVALID_DURATION"
    BOOKING_LIMIT_EXCEEDED    = "BOOKING_LIMIT_EXCEEDED"
    EXTERNAL_NOT_ALLOWED      = "EXTERNAL_NOT_ALLOWED"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    CHECKIN_NOT_ALLOWED       = "CHECKIN_NOT_ALLOWED"
    INVALID_CHECKIN_CODE      = "INVALID_CHECKIN_CODE"
    ACCOUNT_INACTIVE          = "ACCOUNT_INACTIVE"
    CHECKIN_CODE_COLLISION    = "CHECKIN_CODE_COLLISION"
    INTEGRITY_VIOLATION       = "INTEGRITY_VIOLATION"
    INTERNAL_SERVER_ERROR     = "INTERNAL_SERVER_ERROR"


# ═══════════════════════════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════════════════════════
class AppException(HTTPException):
    """
    Base exception for all application-level errors.
    Carries a machine-readable error_code for frontend handling.
    """
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str,
        details: list | None = None,
        field: str | None = None,
    ):
        self.error_code = error_code
        super().__init__(status_code=status_code, detail={
            "message": message,
            "error": {
                "code": error_code,
                "details": details,
                "field": field,
            }
        })


# ═══════════════════════════════════════════════════════════════════════════════
# CONCRETE EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class UnauthorizedException(AppException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, ErrorCode.UNAUTHORIZED)


class TokenExpiredException(AppException):
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Access token has expired", ErrorCode.TOKEN_EXPIRED)


class InvalidCredentialsException(AppException):
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Invalid email or password", ErrorCode.INVALID_CREDENTIALS)


class ForbiddenException(AppException):
    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(status.HTTP_403_FORBIDDEN, message, ErrorCode.FORBIDDEN)


class AccountInactiveException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            "Your account has been deactivated. Contact admin.",
            ErrorCode.ACCOUNT_INACTIVE,
        )


class NotFoundException(AppException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{resource} not found", ErrorCode.NOT_FOUND)


class BookingConflictException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "Resource is already booked for the requested time range",
            ErrorCode.BOOKING_CONFLICT,
        )


class ResourceUnavailableException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "Resource is not currently bookable (inactive or under maintenance)",
            ErrorCode.RESOURCE_UNAVAILABLE,
        )


class InvalidDateRangeException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "End time must be after start time",
            ErrorCode.INVALID_DATE_RANGE,
        )


class EmptyResourceSetException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "At least one resource must be requested",
            ErrorCode.EMPTY_RESOURCE_SET,
            field="resourceIds",
        )


class InvalidDurationException(AppException):
    def __init__(self, resource_name: str, min_minutes: int, max_minutes: int):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"Bookings of '{resource_name}' must last between {min_minutes} and {max_minutes} minutes",
            ErrorCode.INVALID_DURATION,
        )


class BookingLimitExceededException(AppException):
    def __init__(self, limit: int):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"Daily booking limit of {limit} reached",
            ErrorCode.BOOKING_LIMIT_EXCEEDED,
        )


class ExternalBookingNotAllowedException(AppException):
    def __init__(self, message: str = "External bookings are not allowed for this request"):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, ErrorCode.EXTERNAL_NOT_ALLOWED)


class InvalidTransitionException(AppException):
    def __init__(self, current: str, action: str):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            f"Cannot {action} a reservation in {current} status",
            ErrorCode.INVALID_STATUS_TRANSITION,
        )


class CheckInNotAllowedException(AppException):
    def __init__(self, message: str):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, ErrorCode.CHECKIN_NOT_ALLOWED)


class InvalidCheckInCodeException(AppException):
    def __init__(self, message: str = "Invalid QR code format"):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, ErrorCode.INVALID_CHECKIN_CODE)


def is_checkin_code_collision(exc) -> bool:
    """True when an IntegrityError comes from the unique index on Reservation.checkInCode."""
    return "checkInCode" in str(getattr(exc, "orig", exc))
