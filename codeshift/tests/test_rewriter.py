"""Tests for chunk ordering, file assembly and the rewrite engine."""

import re
from unittest.mock import AsyncMock

import pytest

from codeshift.core.chunks.models import ChunkKind
from codeshift.core.migration.models import ChunkRewrite, FileError, FileResult
from codeshift.core.migration.planner import PlanSynthesizer
from codeshift.core.migration.rewriter import (
    RewriteEngine,
    _import_line,
    assemble_file,
    build_file_context,
    group_by_file,
    new_migration_id,
    order_by_priority,
)
from codeshift.core.recovery import RecoveryPolicy, StageRunner
from codeshift.core.validation.static_checks import NO_CODE

from conftest import default_responder

COMMAND = "convert database connection to Prisma"


@pytest.fixture
def plan(gateway, clock):
    return PlanSynthesizer(gateway, now=clock.now).normalize({}, COMMAND, "prisma", 6)


def _users_file(make_chunk):
    return [
        make_chunk("createUser", complexity=4, start_line=20),
        make_chunk("UserRepository", kind=ChunkKind.CLASS, start_line=30,
                   code="class UserRepository { find() { return db.query('x'); } }"),
        make_chunk("getUser", complexity=2, start_line=1),
    ]


# ── Tests: Ordering & context ─────────────────────────────────────────────


class TestOrdering:

    def test_kind_priority_then_complexity(self, make_chunk):
        chunks = [
            make_chunk("v", kind=ChunkKind.VARIABLE, start_line=1),
            make_chunk("Status", kind=ChunkKind.ENUM, start_line=2),
            make_chunk("hard", kind=ChunkKind.FUNCTION, complexity=7, start_line=3),
            make_chunk("easy", kind=ChunkKind.FUNCTION, complexity=1, start_line=4),
            make_chunk("Repo", kind=ChunkKind.CLASS, start_line=5),
            make_chunk("Id", kind=ChunkKind.TYPE, start_line=6),
            make_chunk("Row", kind=ChunkKind.INTERFACE, start_line=7),
            make_chunk("save", kind=ChunkKind.METHOD, start_line=8),
        ]
        ordered = [c.name for c in order_by_priority(chunks)]
        assert ordered == ["Row", "Id", "Repo", "easy", "hard", "save", "v", "Status"]

    def test_group_by_file_keeps_first_seen_order(self, project_chunks):
        groups = group_by_file(project_chunks)
        assert list(groups)[:3] == ["src/db/users.js", "src/db/connection.js", "src/db/orders.js"]
        assert len(groups["src/db/users.js"]) == 4

    def test_file_context(self, make_chunk):
        chunks = [
            make_chunk("a", start_line=1, dependencies=["./db", "pg"],
                       code="import { Pool } from 'pg';\nexport function a() { return 1; }"),
            make_chunk("b", start_line=10, dependencies=["./db"],
                       code="import { Pool } from 'pg';\nexport const b = 2;"),
        ]
        context = build_file_context(chunks)
        assert context.imports == ["pg"]
        assert context.exports == ["a", "b"]
        assert context.dependencies == ["./db", "pg"]
        assert context.language == "javascript"
        assert context.file_extension == ".js"
        assert context.total_chunks == 2

    def test_import_lines(self):
        assert _import_line('{ PrismaClient } from "@prisma/client"') == 'import { PrismaClient } from "@prisma/client";'
        assert _import_line("./db") == 'import "./db";'

    def test_assemble_file(self, make_chunk):
        chunk = make_chunk("getUser", code="import x from './db';\nexport function getUser() {}")
        context = build_file_context([chunk])
        rewrites = [
            ChunkRewrite(chunk=chunk, success=True, migrated_code="export function getUser() {}"),
            ChunkRewrite(chunk=chunk, success=False, migrated_code="ignored"),
        ]
        content = assemble_file(context, rewrites, "prisma")
        assert content == (
            'import "./db";\n'
            'import { PrismaClient } from "@prisma/client";\n'
            "export function getUser() {}\n"
            "export { getUser };"
        )

    def test_migration_ids_are_unique(self):
        first, second = new_migration_id(), new_migration_id()
        assert re.fullmatch(r"migration-\d+-[0-9a-f]{9}", first)
        assert first != second


# ── Tests: Rewrite engine ─────────────────────────────────────────────────


class TestRewriteEngine:

    @pytest.mark.asyncio
    async def test_rewrite_file(self, gateway, fake_llm, plan, make_chunk):
        result = await RewriteEngine(gateway).rewrite_file("src/db/users.js", _users_file(make_chunk), plan)

        assert isinstance(result, FileResult)
        assert result.success
        assert [r.chunk.name for r in result.chunk_results] == ["UserRepository", "getUser", "createUser"]
        assert all(r.validation.is_valid for r in result.chunk_results)
        assert not result.chunk_results[0].migrated_code.startswith("```")
        assert result.content.startswith('import { PrismaClient } from "@prisma/client";')
        assert "export async function createUser" in result.content

        prompt = fake_llm.rewrite_prompts()[0]
        assert "Name: UserRepository" in prompt
        assert "Migrate the following code chunk to use prisma" in prompt

        data = result.to_dict()
        assert data["statistics"] == {"total_chunks": 3, "successful_migrations": 3, "failed_migrations": 0}

    @pytest.mark.asyncio
    async def test_empty_output_marks_chunk_invalid(self, gateway, fake_llm, plan, make_chunk):
        fake_llm.responder = lambda p: "```\n```" if "Name: getUser" in p else default_responder(p)
        result = await RewriteEngine(gateway).rewrite_file("src/db/users.js", _users_file(make_chunk), plan)

        failed = result.failed_chunks
        assert [r.chunk.name for r in failed] == ["getUser"]
        assert failed[0].error == NO_CODE
        assert failed[0].validation.issues == [NO_CODE]
        assert failed[0].validation.is_valid is False
        assert result.success

    @pytest.mark.asyncio
    async def test_file_with_no_migrated_chunks_is_an_error(self, gateway, fake_llm, plan, project_chunks):
        fake_llm.responder = lambda p: "" if "File: src/db/orders.js" in p else default_responder(p)
        migration = await RewriteEngine(gateway).rewrite("s1", "u1", plan, project_chunks[:8])

        assert [r.file_path for r in migration.results] == ["src/db/users.js", "src/db/connection.js"]
        assert len(migration.errors) == 1
        error = migration.errors[0]
        assert error.file_path == "src/db/orders.js"
        assert error.chunks == 2
        assert error.error.startswith("No chunks could be migrated")

        stats = migration.statistics()
        assert stats["files_processed"] == 3
        assert stats["successful_files"] == 2
        assert stats["success_rate"] == pytest.approx(2 / 3)

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_file_error(self, gateway, plan, make_chunk):
        engine = RewriteEngine(gateway)
        engine.rewrite_chunk = AsyncMock(side_effect=RuntimeError("tokenizer crashed"))
        migration = await engine.rewrite("s1", "u1", plan, _users_file(make_chunk))

        assert migration.results == []
        assert migration.errors == [FileError(file_path="src/db/users.js", error="tokenizer crashed", chunks=3)]

    @pytest.mark.asyncio
    async def test_chunk_calls_retry_through_runner(self, gateway, fake_llm, plan, make_chunk, clock):
        fake_llm.failures.append(RuntimeError("429 rate limit reached"))
        runner = StageRunner(RecoveryPolicy(), sleep=clock.sleep)
        result = await RewriteEngine(gateway, runner=runner).rewrite_file(
            "src/db/users.js", _users_file(make_chunk), plan
        )

        assert all(r.success for r in result.chunk_results)
        assert clock.sleeps == [60.0]
        assert runner.telemetry.transient_failures == 1
        assert runner.telemetry.retries == 1
        assert runner.telemetry.events[0]["stage"].startswith("rewrite:")
