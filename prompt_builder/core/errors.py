"""Error types shared by the generation service and the generation driver.

Every failure that crosses the remote boundary is one of these classes, so the
retry policy can dispatch on type. Untyped exceptions (raised by third-party
code or re-raised from plain messages) are classified by message text.
"""
from enum import Enum
from typing import List, Optional


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_PREREQUISITE = "MISSING_PREREQUISITE"
    EMPTY_RESULT = "EMPTY_RESULT"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    ALREADY_RUNNING = "ALREADY_RUNNING"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    QUOTA = "quota"
    PERMISSION = "permission"
    TRANSIENT = "transient"


class GenerationError(Exception):
    code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR
    status_code: int = 500
    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


class ValidationError(GenerationError):
    code = ErrorCode.INVALID_INPUT
    status_code = 400
    kind = ErrorKind.VALIDATION


class MissingPrerequisiteError(ValidationError):
    """A stage was requested before the outputs it depends on exist."""
    code = ErrorCode.MISSING_PREREQUISITE
    status_code = 409

    def __init__(self, stage: str, missing: List[str]):
        self.stage = stage
        self.missing = list(missing)
        super().__init__(f"Cannot generate {stage}: missing {', '.join(self.missing)}")


class EmptyResultError(ValidationError):
    """The remote call succeeded but produced blank content."""
    code = ErrorCode.EMPTY_RESULT
    status_code = 502

    def __init__(self, stage: str):
        self.stage = stage
        super().__init__(f"{stage} generation returned empty content")


class PermissionDeniedError(GenerationError):
    code = ErrorCode.UNAUTHORIZED
    status_code = 403
    kind = ErrorKind.PERMISSION


class QuotaExceededError(GenerationError):
    code = ErrorCode.LIMIT_EXCEEDED
    status_code = 429
    kind = ErrorKind.QUOTA

    def __init__(self, message: str = "Daily prompt limit reached. Please upgrade to Pro.", remaining: Optional[int] = None):
        super().__init__(message)
        self.remaining = remaining


class ConflictError(ValidationError):
    """The generation already has a workflow running."""
    code = ErrorCode.ALREADY_RUNNING
    status_code = 409


class NotFoundError(GenerationError):
    code = ErrorCode.RESOURCE_NOT_FOUND
    status_code = 404
    kind = ErrorKind.VALIDATION


class TransientError(GenerationError):
    code = ErrorCode.EXTERNAL_SERVICE_ERROR
    status_code = 502
    kind = ErrorKind.TRANSIENT


class GenerationTimeoutError(TransientError):
    code = ErrorCode.TIMEOUT
    status_code = 504


class GenerationCancelledError(GenerationError):
    code = ErrorCode.CANCELLED
    status_code = 409
    kind = ErrorKind.VALIDATION


ERRORS_BY_CODE = {
    ErrorCode.UNAUTHORIZED: PermissionDeniedError,
    ErrorCode.INVALID_INPUT: ValidationError,
    ErrorCode.RESOURCE_NOT_FOUND: NotFoundError,
    ErrorCode.LIMIT_EXCEEDED: QuotaExceededError,
    ErrorCode.EXTERNAL_SERVICE_ERROR: TransientError,
    ErrorCode.TIMEOUT: GenerationTimeoutError,
    ErrorCode.CANCELLED: GenerationCancelledError,
    ErrorCode.ALREADY_RUNNING: ConflictError,
}

# Checked in order against the lowercased message of untyped exceptions.
MESSAGE_PATTERNS = [
    ("limit reached", ErrorKind.QUOTA),
    ("validation", ErrorKind.VALIDATION),
    ("cannot generate", ErrorKind.VALIDATION),
    ("permission", ErrorKind.PERMISSION),
]


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, GenerationError):
        return exc.kind
    message = str(exc).lower()
    for pattern, kind in MESSAGE_PATTERNS:
        if pattern in message:
            return kind
    return ErrorKind.TRANSIENT


def is_retryable(exc: BaseException) -> bool:
    return classify_error(exc) is ErrorKind.TRANSIENT


def error_from_payload(status_code: int, payload: dict) -> GenerationError:
    """Rebuild a typed error from an API error body ``{code, message}``."""
    message = str(payload.get("message") or f"Request failed with status {status_code}")
    try:
        code = ErrorCode(payload.get("code"))
    except ValueError:
        code = None

    if code is ErrorCode.MISSING_PREREQUISITE or code is ErrorCode.EMPTY_RESULT:
        err = ValidationError(message)
        err.code = code
        return err
    if code in ERRORS_BY_CODE:
        return ERRORS_BY_CODE[code](message)
    if status_code in (401, 403):
        return PermissionDeniedError(message)
    if status_code == 404:
        return NotFoundError(message)
    if status_code == 429:
        return QuotaExceededError(message)
    if 400 <= status_code < 500:
        return ValidationError(message)
    return TransientError(message)
