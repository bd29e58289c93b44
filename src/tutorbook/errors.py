"""Error codes and exceptions shared by the booking core and its collaborators."""

from enum import Enum


class ErrorCode(Enum):
    BACKEND_REQUEST_FAILED = "BACKEND_REQUEST_FAILED"
    SLOT_CONFLICT = "SLOT_CONFLICT"
    AVAILABILITY_FETCH_FAILED = "AVAILABILITY_FETCH_FAILED"
    SESSION_CREATION_FAILED = "SESSION_CREATION_FAILED"
    PAYMENT_SETUP_FAILED = "PAYMENT_SETUP_FAILED"
    PAYMENT_RATE_LIMITED = "PAYMENT_RATE_LIMITED"
    COURSE_FETCH_FAILED = "COURSE_FETCH_FAILED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class TutorbookError(Exception):
    """Base error with a code and a user-safe message."""

    code: ErrorCode = ErrorCode.BACKEND_REQUEST_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class BackendError(TutorbookError):
    """Raised when the managed backend rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionConflictError(BackendError):
    """Raised when the requested time was booked by someone else first."""

    code = ErrorCode.SLOT_CONFLICT


class AvailabilityFetchError(TutorbookError):
    code = ErrorCode.AVAILABILITY_FETCH_FAILED


class SessionCreationError(TutorbookError):
    code = ErrorCode.SESSION_CREATION_FAILED


class PaymentSetupError(TutorbookError):
    code = ErrorCode.PAYMENT_SETUP_FAILED


class SignatureVerificationError(TutorbookError):
    code = ErrorCode.INVALID_SIGNATURE


class PaymentRateLimitedError(PaymentSetupError):
    """Raised when the payment processor throttles requests. Retry after a short wait."""

    code = ErrorCode.PAYMENT_RATE_LIMITED


class CourseFetchError(TutorbookError):
    code = ErrorCode.COURSE_FETCH_FAILED
