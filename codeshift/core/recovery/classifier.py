"""Error classification for retry decisions."""

from enum import Enum

from ..errors import ErrorCode, MigrationError


class ErrorClass(str, Enum):
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    RESOURCE_ERROR = "RESOURCE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


_CODE_TO_CLASS = {
    ErrorCode.PROVIDER_RATE_LIMITED: ErrorClass.API_ERROR,
    ErrorCode.PROVIDER_QUOTA_EXCEEDED: ErrorClass.API_ERROR,
    ErrorCode.PROVIDER_UNAVAILABLE: ErrorClass.NETWORK_ERROR,
    ErrorCode.PROVIDER_MALFORMED_RESPONSE: ErrorClass.PARSE_ERROR,
    ErrorCode.VALIDATION_FAILED: ErrorClass.VALIDATION_ERROR,
    ErrorCode.STORE_UNAVAILABLE: ErrorClass.DATABASE_ERROR,
    ErrorCode.STORE_CONSISTENCY: ErrorClass.DATABASE_ERROR,
    ErrorCode.RESOURCE_EXHAUSTED: ErrorClass.RESOURCE_ERROR,
}

# Checked in order; the first matching keyword wins.
_TEXT_RULES = (
    (("api", "key"), ErrorClass.API_ERROR),
    (("timeout", "network"), ErrorClass.NETWORK_ERROR),
    (("parse", "json"), ErrorClass.PARSE_ERROR),
    (("validation", "invalid"), ErrorClass.VALIDATION_ERROR),
    (("database", "connection"), ErrorClass.DATABASE_ERROR),
    (("memory", "limit"), ErrorClass.RESOURCE_ERROR),
)

# Request errors are never retried, whatever their text says.
NON_RETRYABLE_CODES = frozenset({ErrorCode.INVALID_REQUEST, ErrorCode.NO_INDEXED_CODE})


def error_text(error: BaseException) -> str:
    """Lower-cased message, or the exception type name when there is none."""
    return (str(error) or type(error).__name__).lower()


def classify_error(error: BaseException) -> ErrorClass:
    """Map an error onto a recovery class.

    Typed codeshift errors are classified by their code; anything else by
    keyword matching over its text.
    """
    code = getattr(error, "code", None) if isinstance(error, MigrationError) else None
    if code in _CODE_TO_CLASS:
        return _CODE_TO_CLASS[code]

    text = error_text(error)
    for keywords, error_class in _TEXT_RULES:
        if any(k in text for k in keywords):
            return error_class
    return ErrorClass.UNKNOWN_ERROR


def is_non_retryable(error: BaseException) -> bool:
    return isinstance(error, MigrationError) and error.code in NON_RETRYABLE_CODES
