"""Tests for error classification, recovery strategies and the stage runner."""

import asyncio

import pytest

from codeshift.core.errors import (
    InvalidRequestError,
    Outcome,
    ProviderMalformedResponseError,
    ProviderQuotaExceededError,
    ProviderRateLimitedError,
    ProviderUnavailableError,
    ResourceExhaustedError,
    StoreUnavailableError,
    ValidationFailedError,
)
from codeshift.core.migration.technology import default_plan_sections
from codeshift.core.recovery import (
    ErrorClass,
    IllegalTransitionError,
    RecoveryPolicy,
    StageExecution,
    StageRunner,
    StageState,
    Strategy,
    classify_error,
    repair_chunk,
    retry_with_backoff,
)


class Flaky:
    """Stage operation failing with the queued errors, then returning ``value``."""

    def __init__(self, *errors, value="done"):
        self.errors = list(errors)
        self.value = value
        self.contexts = []

    async def __call__(self, context):
        self.contexts.append(dict(context))
        if self.errors:
            return Outcome.failure(self.errors.pop(0))
        return Outcome.success(self.value)


# ── Tests: Classification ─────────────────────────────────────────────────


class TestClassifier:

    def test_typed_errors_use_their_code(self):
        assert classify_error(ProviderRateLimitedError("slow down")) == ErrorClass.API_ERROR
        assert classify_error(ProviderQuotaExceededError("out")) == ErrorClass.API_ERROR
        assert classify_error(ProviderUnavailableError("down")) == ErrorClass.NETWORK_ERROR
        assert classify_error(ProviderMalformedResponseError("bad")) == ErrorClass.PARSE_ERROR
        assert classify_error(ValidationFailedError("bad")) == ErrorClass.VALIDATION_ERROR
        assert classify_error(StoreUnavailableError("gone")) == ErrorClass.DATABASE_ERROR
        assert classify_error(ResourceExhaustedError("full")) == ErrorClass.RESOURCE_ERROR

    def test_untyped_errors_use_keywords(self):
        assert classify_error(RuntimeError("Invalid API key provided")) == ErrorClass.API_ERROR
        assert classify_error(RuntimeError("read timeout")) == ErrorClass.NETWORK_ERROR
        assert classify_error(ValueError("Unexpected token in JSON")) == ErrorClass.PARSE_ERROR
        assert classify_error(ValueError("invalid chunk")) == ErrorClass.VALIDATION_ERROR
        assert classify_error(RuntimeError("connection refused")) == ErrorClass.DATABASE_ERROR
        assert classify_error(MemoryError()) == ErrorClass.RESOURCE_ERROR
        assert classify_error(RuntimeError("something odd")) == ErrorClass.UNKNOWN_ERROR


# ── Tests: Policy ─────────────────────────────────────────────────────────


class TestRecoveryPolicy:

    @pytest.mark.asyncio
    async def test_rate_limit_waits(self):
        action = await RecoveryPolicy().decide(ProviderRateLimitedError("Provider rate limit exceeded"), 0)
        assert action.strategy == Strategy.RETRY_WITH_DELAY
        assert action.delay == 60
        assert action.max_retries == 3
        assert action.suggestions[0] == "Check the provider API key environment variable"

    @pytest.mark.asyncio
    async def test_bad_api_key_needs_a_human(self):
        action = await RecoveryPolicy().decide(RuntimeError("Incorrect API key provided"), 0)
        assert action.strategy == Strategy.MANUAL_INTERVENTION
        assert action.can_retry is False

    @pytest.mark.asyncio
    async def test_network_backoff_doubles(self):
        policy = RecoveryPolicy(network_backoff_base=5)
        delays = [(await policy.decide(ProviderUnavailableError("down"), n)).delay for n in range(3)]
        assert delays == [5, 10, 20]

    @pytest.mark.asyncio
    async def test_parse_error_patches_plan_defaults(self):
        policy = RecoveryPolicy(plan_defaults=default_plan_sections)
        action = await policy.decide(ProviderMalformedResponseError("bad json"), 0, {"target_technology": "prisma"})
        assert action.strategy == Strategy.RETRY_WITH_FIXED_DATA
        assert action.max_retries == 1
        assert action.context_updates["plan_defaults"] == default_plan_sections("prisma")

    @pytest.mark.asyncio
    async def test_parse_error_without_target_is_manual(self):
        policy = RecoveryPolicy(plan_defaults=default_plan_sections)
        action = await policy.decide(ProviderMalformedResponseError("bad json"), 0, {})
        assert action.strategy == Strategy.MANUAL_INTERVENTION

    @pytest.mark.asyncio
    async def test_validation_error_repairs_chunks(self, make_chunk):
        broken = make_chunk("", complexity=0, language="")
        action = await RecoveryPolicy().decide(ValidationFailedError("invalid"), 0, {"chunks": [broken]})
        repaired = action.context_updates["chunks"][0]
        assert action.strategy == Strategy.RETRY_WITH_FIXED_CHUNKS
        assert repaired.name == "unnamed"
        assert repaired.complexity == 1
        assert repaired.language == "javascript"

    @pytest.mark.asyncio
    async def test_database_error_depends_on_health(self):
        unhealthy = await RecoveryPolicy(health_check=lambda: False).decide(StoreUnavailableError("gone"), 0)
        assert unhealthy.strategy == Strategy.RETRY_AFTER_RECONNECT
        assert unhealthy.delay == 10

        healthy = await RecoveryPolicy(health_check=lambda: True).decide(StoreUnavailableError("gone"), 0)
        assert healthy.strategy == Strategy.MANUAL_INTERVENTION

    @pytest.mark.asyncio
    async def test_resource_error_reduces_chunks(self, project_chunks):
        action = await RecoveryPolicy().decide(MemoryError(), 0, {"chunks": project_chunks})
        assert action.strategy == Strategy.RETRY_WITH_REDUCED_RESOURCES
        assert len(action.context_updates["chunks"]) == 10

    @pytest.mark.asyncio
    async def test_request_errors_never_retry(self):
        action = await RecoveryPolicy().decide(InvalidRequestError("invalid request: timeout"), 0)
        assert action.can_retry is False

    def test_repair_keeps_good_fields(self, make_chunk):
        chunk = make_chunk("getUser", complexity=5)
        assert repair_chunk(chunk) == chunk


# ── Tests: Stage runner ───────────────────────────────────────────────────


class TestStageRunner:

    def test_illegal_transition(self):
        execution = StageExecution(stage="plan")
        with pytest.raises(IllegalTransitionError):
            execution.transition(StageState.SUCCEEDED)

    def test_terminal_states_have_no_exits(self):
        execution = StageExecution(stage="plan")
        execution.transition(StageState.RUNNING)
        execution.transition(StageState.FAILED_FATAL)
        assert execution.is_terminal
        with pytest.raises(IllegalTransitionError):
            execution.transition(StageState.RUNNING)

    @pytest.mark.asyncio
    async def test_success_first_time(self, clock):
        runner = StageRunner(RecoveryPolicy(), sleep=clock.sleep)
        result = await runner.run("embed", Flaky())
        assert result.ok
        assert result.execution.history == [StageState.READY, StageState.RUNNING, StageState.SUCCEEDED]
        assert runner.telemetry.to_dict()["retries"] == 0

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self, clock):
        runner = StageRunner(RecoveryPolicy(), sleep=clock.sleep)
        result = await runner.run("embed", Flaky(ProviderRateLimitedError("rate limit")))

        assert result.outcome.value == "done"
        assert result.execution.attempts == 2
        assert result.execution.history == [
            StageState.READY, StageState.RUNNING, StageState.FAILED_TRANSIENT,
            StageState.RUNNING, StageState.SUCCEEDED,
        ]
        assert clock.sleeps == [60]
        telemetry = runner.telemetry
        assert (telemetry.transient_failures, telemetry.retries, telemetry.fatal_failures) == (1, 1, 0)
        assert [e["event"] for e in telemetry.events] == ["transient_failure", "retry"]

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self, clock):
        runner = StageRunner(RecoveryPolicy(network_backoff_base=1), sleep=clock.sleep)
        errors = [ProviderUnavailableError("down") for _ in range(5)]
        result = await runner.run("embed", Flaky(*errors))

        assert not result.ok
        assert result.execution.state == StageState.FAILED_FATAL
        assert result.execution.attempts == 4
        assert clock.sleeps == [1, 2, 4]
        assert runner.telemetry.fatal_failures == 1

    @pytest.mark.asyncio
    async def test_context_updates_reach_the_next_attempt(self, clock):
        runner = StageRunner(RecoveryPolicy(plan_defaults=default_plan_sections), sleep=clock.sleep)
        operation = Flaky(ProviderMalformedResponseError("bad"))
        result = await runner.run("plan", operation, {"target_technology": "react"})

        assert result.ok
        assert "plan_defaults" not in operation.contexts[0]
        assert operation.contexts[1]["plan_defaults"] == default_plan_sections("react")

    @pytest.mark.asyncio
    async def test_fatal_without_retry(self, clock):
        runner = StageRunner(RecoveryPolicy(), sleep=clock.sleep)
        result = await runner.run("plan", Flaky(RuntimeError("something odd")))
        assert result.execution.history[-1] == StageState.FAILED_FATAL
        assert result.execution.attempts == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_raised_exceptions_become_outcomes(self, clock):
        async def explode(context):
            raise ValueError("invalid chunk data")

        result = await StageRunner(RecoveryPolicy(), sleep=clock.sleep).run("rewrite", explode)
        assert isinstance(result.outcome.error, ValueError)
        assert result.execution.state == StageState.FAILED_FATAL

    @pytest.mark.asyncio
    async def test_deadline(self, clock):
        async def hang(context):
            await asyncio.sleep(10)

        runner = StageRunner(RecoveryPolicy(max_retries=0), sleep=clock.sleep, call_timeout=0.01)
        result = await runner.run("plan", hang)
        assert isinstance(result.outcome.error, ProviderUnavailableError)
        assert "deadline" in str(result.outcome.error)

    @pytest.mark.asyncio
    async def test_unbounded_run_outlives_the_deadline(self, clock):
        runner = StageRunner(RecoveryPolicy(), sleep=clock.sleep, call_timeout=0.05)

        async def call(context):
            await asyncio.sleep(0.02)
            return Outcome.success("chunk")

        async def many_calls(context):
            results = [(await runner.run("rewrite:c", call)).outcome.value for _ in range(5)]
            return Outcome.success(results)

        result = await runner.run("execution", many_calls, bounded=False)
        assert result.ok
        assert result.outcome.value == ["chunk"] * 5
        assert runner.telemetry.transient_failures == 0
        assert clock.sleeps == []


# ── Tests: Generic retry ──────────────────────────────────────────────────


class TestRetryWithBackoff:

    @pytest.mark.asyncio
    async def test_eventual_success(self):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) < 3:
                raise StoreUnavailableError("gone")
            return "ok"

        result = await retry_with_backoff(operation, max_retries=3, base_delay=0,
                                          exceptions=(StoreUnavailableError,))
        assert result == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_last_error_is_raised(self):
        async def operation():
            raise StoreUnavailableError("still gone")

        with pytest.raises(StoreUnavailableError, match="still gone"):
            await retry_with_backoff(operation, max_retries=2, base_delay=0)

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        calls = []

        async def operation():
            calls.append(1)
            raise KeyError("x")

        with pytest.raises(KeyError):
            await retry_with_backoff(operation, max_retries=3, base_delay=0, exceptions=(StoreUnavailableError,))
        assert len(calls) == 1
