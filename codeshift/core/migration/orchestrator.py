"""Migration orchestrator: the six-stage pipeline behind one request.

    validate -> analyze -> retrieve -> plan -> rewrite -> validate results

Each stage runs through the StageRunner, so provider and store failures
are classified and retried per the recovery policy before the request
gives up. A failed stage produces ``{success: False, error, step}``; a
completed run produces the full report. Persistent state is only read.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from ..constants import (
    STEP_ANALYSIS,
    STEP_CHUNK_DISCOVERY,
    STEP_EXECUTION,
    STEP_PLAN_GENERATION,
    STEP_VALIDATION,
)
from ..errors import InvalidRequestError, MigrationError, NoIndexedCodeError, Outcome
from ..recovery.state_machine import RecoveryTelemetry, StageRunner
from ..recovery.strategies import RecoveryPolicy
from ..retrieval.engine import RetrievalEngine
from ..retrieval.models import RetrievalResult
from ..services import MigrationServices
from ..validation.results import validate_migration_results
from .models import MigrationPlan, MigrationResult
from .planner import PlanSynthesizer
from .rewriter import RewriteEngine
from .technology import default_plan_sections

logger = logging.getLogger(__name__)

NO_INDEXED_CODE_MESSAGE = (
    "No indexed code found for this session. Please ensure the project has been analyzed."
)

# (attribute, wire name)
REQUIRED_FIELDS = (
    ("session_id", "sessionId"),
    ("user_id", "userId"),
    ("command", "command"),
    ("target_technology", "targetTechnology"),
)


@dataclass
class MigrationRequest:
    session_id: str = ""
    user_id: str = ""
    command: str = ""
    target_technology: str = ""
    options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationRequest":
        def pick(camel, snake):
            value = data.get(camel, data.get(snake))
            return str(value).strip() if value is not None else ""

        return cls(
            session_id=pick("sessionId", "session_id"),
            user_id=pick("userId", "user_id"),
            command=pick("command", "command"),
            target_technology=pick("targetTechnology", "target_technology"),
            options=dict(data.get("options") or {}),
        )

    def missing_fields(self) -> List[str]:
        return [wire for attr, wire in REQUIRED_FIELDS if not getattr(self, attr)]


def failure_report(error: str, step: str) -> Dict[str, Any]:
    return {"success": False, "error": error, "step": step}


def validation_fallback(error: Exception) -> Dict[str, Any]:
    return {
        "overall": {"success": False, "error": str(error)},
        "issues": ["Validation process failed"],
        "recommendations": ["Review migration results manually"],
    }


class MigrationOrchestrator:
    """Runs migration requests against an injected service bundle."""

    def __init__(self, services: MigrationServices):
        self._services = services
        self._log = services.logger or logger
        settings = services.settings
        self.retrieval = RetrievalEngine(
            services.embedder,
            services.store,
            threshold=settings.threshold,
            limit=settings.limit,
            max_related=settings.max_related,
        )
        self.planner = PlanSynthesizer(services.llm, now=services.clock.now)

    def _runner(self, telemetry: RecoveryTelemetry) -> StageRunner:
        settings = self._services.settings
        policy = RecoveryPolicy(
            health_check=self._services.store.ping,
            plan_defaults=default_plan_sections,
            rate_limit_delay=settings.rate_limit_delay,
            network_backoff_base=settings.network_backoff_base,
            reconnect_delay=settings.reconnect_delay,
            max_retries=settings.max_retries,
        )
        return StageRunner(
            policy,
            sleep=self._services.clock.sleep,
            call_timeout=settings.call_timeout,
            telemetry=telemetry,
        )

    async def process_migration(self, request: Union[MigrationRequest, Dict[str, Any]]) -> Dict[str, Any]:
        """Run the full pipeline for one request and return the report."""
        telemetry = RecoveryTelemetry()
        try:
            if not isinstance(request, MigrationRequest):
                request = MigrationRequest.from_dict(request or {})
            return await self._run(request, self._runner(telemetry), telemetry)
        except Exception as e:
            self._log.error(f"Migration failed during execution: {e}", exc_info=True)
            return failure_report(str(e), STEP_EXECUTION)

    async def _run(self, req: MigrationRequest, runner: StageRunner, telemetry: RecoveryTelemetry) -> Dict[str, Any]:
        clock = self._services.clock
        started = clock.monotonic()
        self._log.info(f"Processing migration request: \"{req.command}\" (session={req.session_id}, user={req.user_id})")

        # ── 1. Validate ──
        stage = await runner.run(STEP_VALIDATION, lambda ctx: self._validate(req))
        if not stage.ok:
            return self._failed(STEP_VALIDATION, str(stage.outcome.error))

        # ── 2. Analyze ──
        stage = await runner.run(STEP_ANALYSIS, lambda ctx: self._analyze(req))
        if not stage.ok:
            return self._failed(STEP_ANALYSIS, f"Failed to get project statistics: {stage.outcome.error}")
        project_stats: Dict[str, Any] = stage.outcome.value

        # ── 3. Retrieve ──
        stage = await runner.run(
            STEP_CHUNK_DISCOVERY,
            lambda ctx: self.retrieval.retrieve(req.command, req.session_id, req.options),
        )
        if not stage.ok:
            return self._failed(STEP_CHUNK_DISCOVERY, f"Failed to find relevant chunks: {stage.outcome.error}")
        retrieval: RetrievalResult = stage.outcome.value
        retrieved = retrieval.chunks

        # ── 4. Plan ──
        async def _plan(ctx: Dict[str, Any]) -> Outcome[MigrationPlan]:
            return await self.planner.synthesize(
                req.command,
                req.target_technology,
                retrieved,
                req.options,
                plan_defaults=ctx.get("plan_defaults"),
            )

        stage = await runner.run(STEP_PLAN_GENERATION, _plan, {"target_technology": req.target_technology})
        if not stage.ok:
            return self._failed(STEP_PLAN_GENERATION, f"Failed to generate migration plan: {stage.outcome.error}")
        plan: MigrationPlan = stage.outcome.value

        # ── 5. Rewrite ──
        rewriter = RewriteEngine(
            self._services.llm,
            runner=runner,
            max_concurrent_files=self._services.settings.max_concurrent_files,
        )

        async def _rewrite(ctx: Dict[str, Any]) -> Outcome[MigrationResult]:
            result = await rewriter.rewrite(req.session_id, req.user_id, plan, ctx["chunks"])
            return Outcome.success(result)

        # per-chunk calls carry the deadline; the stage as a whole has none
        stage = await runner.run(
            STEP_EXECUTION, _rewrite, {"chunks": [item.chunk for item in retrieved]}, bounded=False
        )
        if not stage.ok:
            return self._failed(STEP_EXECUTION, str(stage.outcome.error))
        migration: MigrationResult = stage.outcome.value

        # ── 6. Validate results ──
        try:
            validation = validate_migration_results(migration).to_dict()
        except Exception as e:
            self._log.error(f"Result validation failed: {e}", exc_info=True)
            validation = validation_fallback(e)

        elapsed_ms = (clock.monotonic() - started) * 1000
        self._log.info(
            f"Migration {migration.migration_id} completed in {elapsed_ms:.0f}ms "
            f"({len(migration.results)} files, {telemetry.retries} retries)"
        )
        return {
            "success": True,
            "migrationId": migration.migration_id,
            "command": req.command,
            "targetTechnology": req.target_technology,
            "plan": plan.to_dict(),
            "results": [r.to_dict() for r in migration.results],
            "errors": [e.to_dict() for e in migration.errors],
            "validation": validation,
            "statistics": {
                "chunks_analyzed": len(retrieved),
                "files_modified": len(migration.results),
                "migration_time_ms": round(migration.execution_time_ms, 1),
                "total_elapsed_ms": round(elapsed_ms, 1),
                "migration": migration.statistics(),
                "project": project_stats,
                "retrieval": retrieval.metadata,
                "telemetry": telemetry.to_dict(),
            },
        }

    # ── Stage operations ──────────────────────────────────────────────

    async def _validate(self, req: MigrationRequest) -> Outcome[bool]:
        missing = req.missing_fields()
        if missing:
            return Outcome.failure(InvalidRequestError(f"Missing required fields: {', '.join(missing)}"))
        try:
            count = await asyncio.to_thread(self._services.store.count_chunks, req.session_id)
        except MigrationError as e:
            return Outcome.failure(e)
        if count == 0:
            return Outcome.failure(NoIndexedCodeError(NO_INDEXED_CODE_MESSAGE))
        return Outcome.success(True)

    async def _analyze(self, req: MigrationRequest) -> Outcome[Dict[str, Any]]:
        try:
            stats = await asyncio.to_thread(self._services.store.get_project_statistics, req.session_id)
        except MigrationError as e:
            return Outcome.failure(e)
        return Outcome.success(stats)

    def _failed(self, step: str, error: str) -> Dict[str, Any]:
        self._log.warning(f"Migration stopped at step {step}: {error}")
        return failure_report(error, step)
