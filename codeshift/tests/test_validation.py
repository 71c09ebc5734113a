"""Tests for per-chunk static checks and the post-migration report."""

from codeshift.core.chunks.models import ChunkKind
from codeshift.core.migration.models import ChunkRewrite, FileContext, FileError, FileResult, MigrationResult
from codeshift.core.validation import check_rewrite, validate_migration_results
from codeshift.core.validation import static_checks as checks
from codeshift.core.validation.results import GENERAL_RECOMMENDATIONS

PRISMA_FILE = """import { PrismaClient } from "@prisma/client";
import dotenv from "dotenv";

const prisma = new PrismaClient({ datasources: { db: { url: process.env.DATABASE_URL } } });

export async function getUser(id: string) {
  try {
    return await prisma.user.findUnique({ where: { id } });
  } catch (error) {
    throw error;
  }
}
"""


def _file_result(make_chunk, content, success=True, migrated_code=None):
    chunk = make_chunk("getUser")
    code = content if migrated_code is None else migrated_code
    rewrite = ChunkRewrite(chunk=chunk, success=success, migrated_code=code,
                           validation=check_rewrite(chunk, code, "prisma"))
    context = FileContext(imports=[], exports=[], dependencies=[], language="javascript",
                          file_extension=".js", total_chunks=1)
    return FileResult(file_path=chunk.file_path, success=success, chunk_results=[rewrite],
                      content=content, context=context)


# ── Tests: Static checks ──────────────────────────────────────────────────


class TestStaticChecks:

    def test_extractors(self):
        assert checks.import_sources(PRISMA_FILE) == ["@prisma/client", "dotenv"]
        assert checks.exported_names(PRISMA_FILE) == ["getUser"]
        assert checks.env_vars(PRISMA_FILE) == ["DATABASE_URL"]
        assert checks.dedupe(["a", "b", "a"]) == ["a", "b"]

    def test_valid_rewrite(self, make_chunk):
        validation = check_rewrite(make_chunk("getUser"), PRISMA_FILE, "prisma")
        assert validation.is_valid
        assert validation.issues == []
        assert validation.to_dict()["is_valid"] is True

    def test_empty_rewrite(self, make_chunk):
        validation = check_rewrite(make_chunk("getUser"), "  \n", "prisma")
        assert validation.issues == [checks.NO_CODE]
        assert not validation.is_valid
        assert validation.has_code is False

    def test_missing_imports_and_patterns(self, make_chunk):
        validation = check_rewrite(make_chunk("getUser"), "function getUser() { return db.find(); }", "prisma")
        assert validation.issues == [checks.MISSING_IMPORTS, checks.PATTERNS_NOT_FOLLOWED]
        assert validation.maintains_structure

    def test_structure_per_kind(self):
        assert checks.maintains_structure("const f = () => 1", ChunkKind.ARROW_FUNCTION)
        assert not checks.maintains_structure("return 1", ChunkKind.FUNCTION)
        assert checks.maintains_structure("export class Repo {}", ChunkKind.CLASS)
        assert not checks.maintains_structure("function Repo() {}", ChunkKind.CLASS)
        assert checks.maintains_structure("let x", ChunkKind.VARIABLE)
        assert checks.maintains_structure("anything", ChunkKind.INTERFACE)

    def test_unknown_technology_uses_generic_profile(self, make_chunk):
        validation = check_rewrite(make_chunk("getUser"), "function getUser() {}", "elm")
        assert validation.is_valid

    def test_quality_markers(self):
        assert checks.has_valid_syntax(PRISMA_FILE)
        assert checks.has_type_safety(PRISMA_FILE)
        assert checks.has_error_handling(PRISMA_FILE)
        assert checks.has_configuration_code(PRISMA_FILE)
        assert not checks.mentions_tests(PRISMA_FILE)
        assert checks.build_tools("import webpack from 'webpack'; // jest") == ["webpack", "jest"]
        assert checks.observed_test_patterns("describe('x', () => { it('y', () => expect(1)) })") == [
            "describe", "it", "expect",
        ]


# ── Tests: Validation report ──────────────────────────────────────────────


class TestValidationReport:

    def test_good_migration(self, make_chunk):
        migration = MigrationResult(
            migration_id="migration_1",
            results=[_file_result(make_chunk, PRISMA_FILE)],
            errors=[],
            execution_time_ms=120.0,
            total_chunks=1,
        )
        report = validate_migration_results(migration)
        data = report.to_dict()

        assert data["overall"]["success"] is True
        assert data["overall"]["success_rate"] == 1.0
        assert data["code_quality"]["syntax_valid_rate"] == 1.0
        assert data["functionality"]["api_compatible"] == 1
        assert data["dependencies"]["required_dependencies"] == ["@prisma/client", "dotenv"]
        assert data["configuration"]["environment_variables"] == ["DATABASE_URL"]
        assert data["configuration"]["config_update_rate"] == 1.0
        assert data["issues"] == []
        assert data["recommendations"] == ["Update tests to match migrated code", *GENERAL_RECOMMENDATIONS]

    def test_poor_migration(self, make_chunk):
        weak = _file_result(make_chunk, "x = 1", migrated_code="x = 1")
        migration = MigrationResult(
            migration_id="migration_2",
            results=[weak],
            errors=[FileError(file_path="src/a.js", error="boom", chunks=2)],
            execution_time_ms=10.0,
            total_chunks=3,
        )
        report = validate_migration_results(migration)

        assert report.overall["success"] is False
        assert report.overall["failed_files"] == 1
        assert report.overall["success_rate"] == 0.5
        assert "Some files have syntax issues" in report.issues
        assert "Import statements may be incorrect" in report.issues
        assert "Error handling may be insufficient" in report.issues
        assert "Consider adding more TypeScript type annotations" in report.recommendations
        assert report.recommendations[-3:] == list(GENERAL_RECOMMENDATIONS)

    def test_no_results(self):
        report = validate_migration_results(
            MigrationResult(migration_id="m", results=[], errors=[], execution_time_ms=0.0, total_chunks=0)
        )
        assert report.code_quality["syntax_valid_rate"] == 0.0
        assert report.functionality["total_files"] == 0
        assert len(report.issues) == 5
