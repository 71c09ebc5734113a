"""Recovery policy: what to do about a classified error.

Each error class maps onto one strategy. The policy only decides; the
StageRunner applies the delay and the context updates, then re-runs the
stage operation.
"""

import asyncio
import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..chunks.models import CodeChunk
from ..constants import (
    MAX_COMPLEXITY,
    MAX_RETRIES,
    MIN_COMPLEXITY,
    NETWORK_BACKOFF_BASE_SECONDS,
    RATE_LIMIT_DELAY_SECONDS,
    RECONNECT_DELAY_SECONDS,
    REDUCED_CHUNK_COUNT,
)
from .classifier import ErrorClass, classify_error, error_text, is_non_retryable

logger = logging.getLogger(__name__)


class Strategy(str, Enum):
    RETRY_WITH_DELAY = "retry_with_delay"
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    RETRY_WITH_FIXED_DATA = "retry_with_fixed_data"
    RETRY_WITH_FIXED_CHUNKS = "retry_with_fixed_chunks"
    RETRY_AFTER_RECONNECT = "retry_after_reconnect"
    RETRY_WITH_REDUCED_RESOURCES = "retry_with_reduced_resources"
    MANUAL_INTERVENTION = "manual_intervention"


SUGGESTIONS: Dict[ErrorClass, List[str]] = {
    ErrorClass.API_ERROR: [
        "Check the provider API key environment variable",
        "Verify API quota and billing",
        "Try using a different model",
        "Check API rate limits",
    ],
    ErrorClass.NETWORK_ERROR: [
        "Check your internet connection",
        "Verify firewall settings",
        "Try again in a few minutes",
        "Check if the service is temporarily unavailable",
    ],
    ErrorClass.PARSE_ERROR: [
        "Check the AI response format",
        "Try regenerating the migration plan",
        "Verify input data structure",
        "Check for malformed JSON",
    ],
    ErrorClass.VALIDATION_ERROR: [
        "Verify input parameters",
        "Check chunk data integrity",
        "Ensure required fields are present",
        "Validate migration plan structure",
    ],
    ErrorClass.DATABASE_ERROR: [
        "Check database connection",
        "Verify the database server is running",
        "Check database permissions",
        "Review connection string",
    ],
    ErrorClass.RESOURCE_ERROR: [
        "Reduce the number of chunks to process",
        "Try processing files individually",
        "Check available memory",
        "Consider using smaller batch sizes",
    ],
    ErrorClass.UNKNOWN_ERROR: [
        "Review the error message for specific details",
        "Check system logs for more information",
        "Try the operation again",
        "Contact support if the issue persists",
    ],
}


@dataclass
class RecoveryAction:
    """Decision for one failed attempt."""

    strategy: Strategy
    error_class: ErrorClass
    can_retry: bool
    delay: float = 0.0
    max_retries: int = 0
    context_updates: Dict[str, Any] = field(default_factory=dict)
    suggestions: List[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.value,
            "error_type": self.error_class.value,
            "can_retry": self.can_retry,
            "delay": self.delay,
            "max_retries": self.max_retries,
            "suggestions": list(self.suggestions),
            "message": self.message,
        }


def repair_chunk(chunk: CodeChunk) -> CodeChunk:
    """Fill missing chunk fields with neutral fallbacks."""
    file_path = chunk.file_path or "unknown"
    complexity = chunk.complexity
    if not complexity or not MIN_COMPLEXITY <= complexity <= MAX_COMPLEXITY:
        complexity = 1
    return dataclasses.replace(
        chunk,
        chunk_id=chunk.chunk_id or f"chunk-{uuid.uuid4().hex}",
        name=chunk.name or "unnamed",
        code=chunk.code or "",
        file_path=file_path,
        file_name=chunk.file_name or file_path.rsplit("/", 1)[-1],
        language=chunk.language or "javascript",
        complexity=complexity,
    )


class RecoveryPolicy:
    """Maps classified errors onto recovery actions.

    Args:
        health_check: Callable returning True when the store is reachable.
            Used to tell a dropped connection from a persistent fault.
        plan_defaults: Callable(target_technology) -> dict of default plan
            sections, used to patch plans after parse errors.
    """

    def __init__(
        self,
        health_check: Optional[Callable[[], bool]] = None,
        plan_defaults: Optional[Callable[[str], Dict[str, Any]]] = None,
        rate_limit_delay: float = RATE_LIMIT_DELAY_SECONDS,
        network_backoff_base: float = NETWORK_BACKOFF_BASE_SECONDS,
        reconnect_delay: float = RECONNECT_DELAY_SECONDS,
        max_retries: int = MAX_RETRIES,
    ):
        self._health_check = health_check
        self._plan_defaults = plan_defaults
        self.rate_limit_delay = rate_limit_delay
        self.network_backoff_base = network_backoff_base
        self.reconnect_delay = reconnect_delay
        self.max_retries = max_retries

    async def decide(
        self,
        error: BaseException,
        attempt: int,
        context: Optional[Dict[str, Any]] = None,
    ) -> RecoveryAction:
        """Choose a strategy for ``error`` raised on (0-based) ``attempt``."""
        context = context or {}
        error_class = classify_error(error)

        if is_non_retryable(error):
            action = self._manual(error_class, "Request cannot be retried")
        elif error_class == ErrorClass.API_ERROR:
            action = self._api(error, error_class)
        elif error_class == ErrorClass.NETWORK_ERROR:
            action = RecoveryAction(
                strategy=Strategy.RETRY_WITH_BACKOFF,
                error_class=error_class,
                can_retry=True,
                delay=self.network_backoff_base * (2 ** attempt),
                max_retries=self.max_retries,
                message="Network error detected, will retry with exponential backoff",
            )
        elif error_class == ErrorClass.PARSE_ERROR:
            action = self._parse(error_class, context)
        elif error_class == ErrorClass.VALIDATION_ERROR:
            action = self._validation(error_class, context)
        elif error_class == ErrorClass.DATABASE_ERROR:
            action = await self._database(error_class)
        elif error_class == ErrorClass.RESOURCE_ERROR:
            action = self._resource(error_class, context)
        else:
            action = self._manual(error_class, "Unrecognized error")

        action.suggestions = list(SUGGESTIONS[error_class])
        logger.info(
            f"Recovery decision for {error_class.value} (attempt {attempt}): "
            f"{action.strategy.value} — {action.message}"
        )
        logger.debug(f"Suggestions: {action.suggestions}")
        return action

    # ── Per-class strategies ──────────────────────────────────────────

    @staticmethod
    def _manual(error_class: ErrorClass, message: str) -> RecoveryAction:
        return RecoveryAction(
            strategy=Strategy.MANUAL_INTERVENTION,
            error_class=error_class,
            can_retry=False,
            message=message,
        )

    def _api(self, error: BaseException, error_class: ErrorClass) -> RecoveryAction:
        text = error_text(error)
        if "api key" in text:
            return self._manual(
                error_class, "Please verify the provider API key is correct and has sufficient quota"
            )
        if "rate limit" in text or "quota" in text:
            return RecoveryAction(
                strategy=Strategy.RETRY_WITH_DELAY,
                error_class=error_class,
                can_retry=True,
                delay=self.rate_limit_delay,
                max_retries=self.max_retries,
                message="Rate limit exceeded, retrying after delay",
            )
        return self._manual(error_class, "Provider API error")

    def _parse(self, error_class: ErrorClass, context: Dict[str, Any]) -> RecoveryAction:
        target = context.get("target_technology")
        if self._plan_defaults is None or not target:
            return self._manual(error_class, "Parse error with no plan context to repair")
        return RecoveryAction(
            strategy=Strategy.RETRY_WITH_FIXED_DATA,
            error_class=error_class,
            can_retry=True,
            max_retries=1,
            context_updates={"plan_defaults": self._plan_defaults(target)},
            message="Parse error fixed, retrying with corrected data",
        )

    def _validation(self, error_class: ErrorClass, context: Dict[str, Any]) -> RecoveryAction:
        chunks = context.get("chunks")
        if not chunks:
            return self._manual(error_class, "Validation error with no chunks to repair")
        return RecoveryAction(
            strategy=Strategy.RETRY_WITH_FIXED_CHUNKS,
            error_class=error_class,
            can_retry=True,
            max_retries=1,
            context_updates={"chunks": [repair_chunk(c) for c in chunks]},
            message="Validation errors fixed, retrying with corrected chunks",
        )

    async def _database(self, error_class: ErrorClass) -> RecoveryAction:
        healthy = False
        if self._health_check is not None:
            try:
                healthy = bool(await asyncio.to_thread(self._health_check))
            except Exception as e:
                logger.warning(f"Store health check failed: {e}")
                healthy = False
        if healthy:
            return self._manual(error_class, "Database reachable; error needs manual review")
        return RecoveryAction(
            strategy=Strategy.RETRY_AFTER_RECONNECT,
            error_class=error_class,
            can_retry=True,
            delay=self.reconnect_delay,
            max_retries=self.max_retries,
            message="Database connection lost, retrying after reconnection",
        )

    def _resource(self, error_class: ErrorClass, context: Dict[str, Any]) -> RecoveryAction:
        chunks = context.get("chunks") or []
        return RecoveryAction(
            strategy=Strategy.RETRY_WITH_REDUCED_RESOURCES,
            error_class=error_class,
            can_retry=True,
            max_retries=1,
            context_updates={"chunks": list(chunks[:REDUCED_CHUNK_COUNT])},
            message="Resource usage reduced, retrying with smaller dataset",
        )
