"""Rewrite engine: per-chunk LLM rewrites assembled into per-file output.

Files are processed concurrently (bounded by a semaphore); chunks inside
a file are rewritten one at a time in kind-priority order so that
interfaces and types come before the classes and functions using them.
A failed chunk is recorded and the file carries on; a file where nothing
could be rewritten is reported as a file error.
"""

import asyncio
import logging
import time
import uuid
from collections import OrderedDict
from typing import Dict, List, Optional

from ..chunks.models import ChunkKind, CodeChunk
from ..errors import Outcome, ProviderMalformedResponseError
from ..gateway import LLMGateway
from ..recovery.state_machine import StageRunner
from ..utils.text import strip_code_fences
from ..validation import static_checks as checks
from .models import ChunkRewrite, FileContext, FileError, FileResult, MigrationPlan, MigrationResult
from .prompts import chunk_rewrite_prompt
from .technology import get_profile

logger = logging.getLogger(__name__)

KIND_PRIORITY = [
    ChunkKind.INTERFACE,
    ChunkKind.TYPE,
    ChunkKind.CLASS,
    ChunkKind.FUNCTION,
    ChunkKind.METHOD,
    ChunkKind.VARIABLE,
]
_PRIORITY_INDEX = {kind: i for i, kind in enumerate(KIND_PRIORITY)}


def group_by_file(chunks: List[CodeChunk]) -> "OrderedDict[str, List[CodeChunk]]":
    groups: "OrderedDict[str, List[CodeChunk]]" = OrderedDict()
    for chunk in chunks:
        groups.setdefault(chunk.file_path or "unknown", []).append(chunk)
    return groups


def order_by_priority(chunks: List[CodeChunk]) -> List[CodeChunk]:
    """Kind priority first, then ascending complexity; kinds not listed go last."""
    return sorted(
        chunks,
        key=lambda c: (_PRIORITY_INDEX.get(c.kind, len(KIND_PRIORITY)), c.complexity),
    )


def build_file_context(chunks: List[CodeChunk]) -> FileContext:
    imports: List[str] = []
    exports: List[str] = []
    dependencies: List[str] = []
    for chunk in chunks:
        imports.extend(checks.import_sources(chunk.code))
        exports.extend(checks.exported_names(chunk.code))
        dependencies.extend(dep.source for dep in chunk.dependencies if dep.source)

    first = chunks[0] if chunks else None
    return FileContext(
        imports=checks.dedupe(imports),
        exports=checks.dedupe(exports),
        dependencies=checks.dedupe(dependencies),
        language=(first.language if first else None) or "javascript",
        file_extension=(first.file_extension if first else None) or ".js",
        total_chunks=len(chunks),
    )


def _import_line(spec: str) -> str:
    # a bare module source ("./db") becomes a side-effect import
    if " from " in spec or spec.startswith(("{", "*")):
        return f"import {spec};"
    return f'import "{spec}";'


def assemble_file(context: FileContext, rewrites: List[ChunkRewrite], target_technology: str) -> str:
    specs = checks.dedupe(list(context.imports) + list(get_profile(target_technology).import_statements))
    imports = "\n".join(_import_line(s) for s in specs)
    body = "\n\n".join(r.migrated_code for r in rewrites if r.success)
    exports = f"export {{ {', '.join(context.exports)} }};" if context.exports else ""

    sections = [imports, "", body, "", exports]
    return "\n".join(s for s in sections if s.strip())


def new_migration_id() -> str:
    return f"migration-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class RewriteEngine:
    """Fans a migration plan out to per-chunk LLM rewrites.

    Args:
        llm: LLMGateway used for rewrite calls.
        runner: Optional StageRunner; when given each chunk call goes
            through the retry state machine (deadline + backoff).
        max_concurrent_files: Files rewritten at the same time.
    """

    def __init__(
        self,
        llm: LLMGateway,
        runner: Optional[StageRunner] = None,
        max_concurrent_files: int = 4,
    ):
        self._llm = llm
        self._runner = runner
        self._max_concurrent_files = max(1, max_concurrent_files)

    async def rewrite(
        self,
        session_id: str,
        user_id: str,
        plan: MigrationPlan,
        chunks: List[CodeChunk],
    ) -> MigrationResult:
        migration_id = new_migration_id()
        t0 = time.time()
        groups = group_by_file(chunks)
        logger.info(
            f"Executing migration {migration_id}: {len(chunks)} chunks "
            f"in {len(groups)} files (session={session_id}, user={user_id})"
        )

        semaphore = asyncio.Semaphore(self._max_concurrent_files)

        async def _bounded(path: str, file_chunks: List[CodeChunk]):
            async with semaphore:
                return await self._rewrite_file_safely(path, file_chunks, plan)

        outcomes = await asyncio.gather(*(_bounded(p, c) for p, c in groups.items()))

        results = [o for o in outcomes if isinstance(o, FileResult)]
        errors = [o for o in outcomes if isinstance(o, FileError)]
        elapsed_ms = (time.time() - t0) * 1000

        migration = MigrationResult(
            migration_id=migration_id,
            results=results,
            errors=errors,
            execution_time_ms=elapsed_ms,
            total_chunks=len(chunks),
        )
        stats = migration.statistics()
        logger.info(
            f"Migration {migration_id} finished: {stats['successful_files']}/{stats['files_processed']} files "
            f"in {elapsed_ms:.0f}ms"
        )
        return migration

    async def _rewrite_file_safely(self, file_path: str, chunks: List[CodeChunk], plan: MigrationPlan):
        try:
            result = await self.rewrite_file(file_path, chunks, plan)
        except Exception as e:
            logger.error(f"File {file_path} failed: {e}", exc_info=True)
            return FileError(file_path=file_path, error=str(e), chunks=len(chunks))

        if not result.migrated_chunks:
            reasons = "; ".join(r.error or "invalid output" for r in result.failed_chunks)
            return FileError(
                file_path=file_path,
                error=f"No chunks could be migrated: {reasons}" if reasons else "No chunks could be migrated",
                chunks=len(chunks),
            )
        return result

    async def rewrite_file(self, file_path: str, chunks: List[CodeChunk], plan: MigrationPlan) -> FileResult:
        target = plan.target_technology or "generic"
        context = build_file_context(chunks)
        logger.info(f"Processing file: {file_path} ({len(chunks)} chunks)")

        rewrites: List[ChunkRewrite] = []
        for chunk in order_by_priority(chunks):
            rewrite = await self.rewrite_chunk(chunk, plan, context)
            if not rewrite.success:
                logger.warning(f"Failed to migrate chunk {chunk.name}: {rewrite.error}")
            rewrites.append(rewrite)

        return FileResult(
            file_path=file_path,
            success=any(r.success for r in rewrites),
            chunk_results=rewrites,
            content=assemble_file(context, rewrites, target),
            context=context,
        )

    async def rewrite_chunk(self, chunk: CodeChunk, plan: MigrationPlan, context: FileContext) -> ChunkRewrite:
        target = plan.target_technology or "generic"
        command = plan.metadata.command if plan.metadata else ""
        prompt = chunk_rewrite_prompt(chunk, plan, context, target, command)

        outcome = await self._generate(chunk, prompt)
        if not outcome.ok:
            validation = None
            if isinstance(outcome.error, ProviderMalformedResponseError):
                validation = checks.check_rewrite(chunk, "", target)
            return ChunkRewrite(chunk=chunk, success=False, validation=validation, error=str(outcome.error))

        migrated = strip_code_fences(outcome.value)
        validation = checks.check_rewrite(chunk, migrated, target)
        if not migrated:
            return ChunkRewrite(chunk=chunk, success=False, validation=validation, error=checks.NO_CODE)
        return ChunkRewrite(chunk=chunk, success=True, migrated_code=migrated, validation=validation)

    async def _generate(self, chunk: CodeChunk, prompt: str) -> Outcome[str]:
        async def _call(_context: Dict) -> Outcome[str]:
            return await self._llm.generate(prompt, purpose="rewrite")

        if self._runner is None:
            return await _call({})
        result = await self._runner.run(f"rewrite:{chunk.chunk_id}", _call, {})
        return result.outcome
