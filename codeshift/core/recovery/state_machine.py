"""Per-stage retry state machine.

    READY ──start──> RUNNING ──ok──> SUCCEEDED
                       │  ^
          retryable &  │  │ after the strategy's delay
          attempts left│  │
                       v  │
                  FAILED_TRANSIENT
    RUNNING ──otherwise / exhausted──> FAILED_FATAL

A stage operation is an async callable taking the (mutable) stage
context and returning an Outcome. Each attempt of a bounded run is held
to the call deadline; an expired deadline counts as a PROVIDER_UNAVAILABLE
failure. Stages that fan out into many calls run unbounded and rely on
their inner calls carrying the deadline.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..errors import Outcome, ProviderUnavailableError
from .strategies import RecoveryAction, RecoveryPolicy

logger = logging.getLogger(__name__)


class StageState(str, Enum):
    READY = "READY"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED_TRANSIENT = "FAILED_TRANSIENT"
    FAILED_FATAL = "FAILED_FATAL"


TERMINAL_STATES = frozenset({StageState.SUCCEEDED, StageState.FAILED_FATAL})

_TRANSITIONS = {
    StageState.READY: {StageState.RUNNING},
    StageState.RUNNING: {StageState.SUCCEEDED, StageState.FAILED_TRANSIENT, StageState.FAILED_FATAL},
    StageState.FAILED_TRANSIENT: {StageState.RUNNING},
    StageState.SUCCEEDED: set(),
    StageState.FAILED_FATAL: set(),
}


class IllegalTransitionError(RuntimeError):
    """A stage was moved along an edge the state machine does not have."""


@dataclass
class StageExecution:
    """State and history of one stage run."""

    stage: str
    state: StageState = StageState.READY
    attempts: int = 0
    history: List[StageState] = field(default_factory=lambda: [StageState.READY])
    last_error: Optional[BaseException] = None
    last_action: Optional[RecoveryAction] = None

    def transition(self, new_state: StageState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise IllegalTransitionError(
                f"Stage {self.stage}: illegal transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.history.append(new_state)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass
class RecoveryTelemetry:
    """Counts of failures and retries across all stages of one request."""

    transient_failures: int = 0
    retries: int = 0
    fatal_failures: int = 0
    events: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, stage: str, kind: str, error: Optional[BaseException] = None,
               action: Optional[RecoveryAction] = None, attempt: int = 0) -> None:
        event = {"stage": stage, "event": kind, "attempt": attempt}
        if error is not None:
            event["error"] = str(error) or type(error).__name__
        if action is not None:
            event["strategy"] = action.strategy.value
            event["delay"] = action.delay
        self.events.append(event)

    def to_dict(self) -> dict:
        return {
            "transient_failures": self.transient_failures,
            "retries": self.retries,
            "fatal_failures": self.fatal_failures,
            "events": list(self.events),
        }


@dataclass
class StageResult:
    execution: StageExecution
    outcome: Outcome

    @property
    def ok(self) -> bool:
        return self.outcome.ok


StageOperation = Callable[[Dict[str, Any]], Awaitable[Outcome]]


class StageRunner:
    """Runs stage operations through the retry state machine.

    Args:
        policy: RecoveryPolicy deciding retry strategy per failure.
        sleep: Async sleep used for retry delays (injected clock).
        call_timeout: Deadline in seconds for one attempt (None = no deadline).
        telemetry: Shared telemetry for the request.
    """

    def __init__(
        self,
        policy: RecoveryPolicy,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        call_timeout: Optional[float] = None,
        telemetry: Optional[RecoveryTelemetry] = None,
    ):
        self._policy = policy
        self._sleep = sleep
        self._call_timeout = call_timeout
        self.telemetry = telemetry or RecoveryTelemetry()

    async def _attempt(self, operation: StageOperation, context: Dict[str, Any], bounded: bool) -> Outcome:
        try:
            if bounded and self._call_timeout:
                return await asyncio.wait_for(operation(context), timeout=self._call_timeout)
            return await operation(context)
        except asyncio.TimeoutError:
            return Outcome.failure(ProviderUnavailableError(
                f"Call exceeded the {self._call_timeout}s deadline (timeout)"
            ))
        except Exception as e:
            return Outcome.failure(e)

    async def run(
        self,
        stage: str,
        operation: StageOperation,
        context: Optional[Dict[str, Any]] = None,
        bounded: bool = True,
    ) -> StageResult:
        """Run ``operation`` until it succeeds or the policy gives up.

        ``bounded=False`` skips the per-attempt deadline.
        """
        context = context if context is not None else {}
        execution = StageExecution(stage=stage)

        while True:
            execution.transition(StageState.RUNNING)
            outcome = await self._attempt(operation, context, bounded)
            attempt = execution.attempts
            execution.attempts += 1

            if outcome.ok:
                execution.transition(StageState.SUCCEEDED)
                return StageResult(execution, outcome)

            error = outcome.error
            execution.last_error = error
            action = await self._policy.decide(error, attempt, context)
            execution.last_action = action

            # `attempt` retries have already happened for this stage
            if action.can_retry and attempt < action.max_retries:
                execution.transition(StageState.FAILED_TRANSIENT)
                self.telemetry.transient_failures += 1
                self.telemetry.record(stage, "transient_failure", error, action, attempt)
                logger.warning(
                    f"Stage {stage} failed (attempt {attempt + 1}): {error}; "
                    f"{action.strategy.value} in {action.delay:.1f}s"
                )

                if action.delay > 0:
                    await self._sleep(action.delay)
                context.update(action.context_updates)
                self.telemetry.retries += 1
                self.telemetry.record(stage, "retry", action=action, attempt=attempt + 1)
                continue

            execution.transition(StageState.FAILED_FATAL)
            self.telemetry.fatal_failures += 1
            self.telemetry.record(stage, "fatal_failure", error, action, attempt)
            logger.error(f"Stage {stage} failed permanently after {execution.attempts} attempt(s): {error}")
            return StageResult(execution, outcome)
