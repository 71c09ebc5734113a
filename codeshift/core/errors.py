"""Error taxonomy and the Outcome type used at external boundaries.

Every failure the migration pipeline knows about is a MigrationError
carrying an ErrorCode. Provider and store adapters return an Outcome
instead of raising, so the stage state machine can classify the error
and decide whether to retry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(Enum):
    """Failure taxonomy surfaced to callers."""
    INVALID_REQUEST = "INVALID_REQUEST"
    NO_INDEXED_CODE = "NO_INDEXED_CODE"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    PROVIDER_RATE_LIMITED = "PROVIDER_RATE_LIMITED"
    PROVIDER_QUOTA_EXCEEDED = "PROVIDER_QUOTA_EXCEEDED"
    PROVIDER_MALFORMED_RESPONSE = "PROVIDER_MALFORMED_RESPONSE"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    STORE_CONSISTENCY = "STORE_CONSISTENCY"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"


class MigrationError(Exception):
    """Base class for all codeshift failures."""

    code: Optional[ErrorCode] = None

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        if code is not None:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class InvalidRequestError(MigrationError):
    code = ErrorCode.INVALID_REQUEST


class NoIndexedCodeError(MigrationError):
    code = ErrorCode.NO_INDEXED_CODE


class ProviderUnavailableError(MigrationError):
    code = ErrorCode.PROVIDER_UNAVAILABLE


class ProviderRateLimitedError(MigrationError):
    code = ErrorCode.PROVIDER_RATE_LIMITED


class ProviderQuotaExceededError(MigrationError):
    code = ErrorCode.PROVIDER_QUOTA_EXCEEDED


class ProviderMalformedResponseError(MigrationError):
    code = ErrorCode.PROVIDER_MALFORMED_RESPONSE


class StoreUnavailableError(MigrationError):
    code = ErrorCode.STORE_UNAVAILABLE


class StoreConsistencyError(MigrationError):
    code = ErrorCode.STORE_CONSISTENCY


class ValidationFailedError(MigrationError):
    code = ErrorCode.VALIDATION_FAILED


class ResourceExhaustedError(MigrationError):
    code = ErrorCode.RESOURCE_EXHAUSTED


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a call across an external boundary: a value or an error."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> "Outcome":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Outcome":
        return cls(error=error)
