"""Error classification, recovery strategies and the stage state machine."""

from .classifier import ErrorClass, classify_error
from .retry import retry_with_backoff
from .state_machine import (
    IllegalTransitionError,
    RecoveryTelemetry,
    StageExecution,
    StageResult,
    StageRunner,
    StageState,
)
from .strategies import RecoveryAction, RecoveryPolicy, Strategy, repair_chunk

__all__ = [
    "ErrorClass",
    "IllegalTransitionError",
    "RecoveryAction",
    "RecoveryPolicy",
    "RecoveryTelemetry",
    "StageExecution",
    "StageResult",
    "StageRunner",
    "StageState",
    "Strategy",
    "classify_error",
    "repair_chunk",
    "retry_with_backoff",
]
