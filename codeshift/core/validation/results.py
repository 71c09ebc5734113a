"""Post-migration validation report.

Five sub-reports are computed over the successfully rewritten files:
code quality, functionality preservation, dependencies, configuration
and testing. Rates use the number of file results as denominator. The
report never fails the migration; problems become ``issues`` and
``recommendations``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..migration.models import FileResult, MigrationResult
from . import static_checks as checks

logger = logging.getLogger(__name__)

# (report, rate key, threshold, issue)
ISSUE_THRESHOLDS = (
    ("code_quality", "syntax_valid_rate", 0.9, "Some files have syntax issues"),
    ("code_quality", "imports_correct_rate", 0.8, "Import statements may be incorrect"),
    ("code_quality", "error_handling_rate", 0.5, "Error handling may be insufficient"),
    ("functionality", "structure_preserved_rate", 0.8, "Code structure may not be fully preserved"),
    ("functionality", "logic_intact_rate", 0.9, "Some logic may have been altered"),
)

RECOMMENDATION_THRESHOLDS = (
    ("code_quality", "type_safety_rate", 0.7, "Consider adding more TypeScript type annotations"),
    ("code_quality", "error_handling_rate", 0.6, "Add comprehensive error handling to migrated code"),
    ("testing", "test_update_rate", 0.5, "Update tests to match migrated code"),
    ("configuration", "config_update_rate", 0.3, "Review and update configuration files"),
)

GENERAL_RECOMMENDATIONS = (
    "Review all migrated files before deployment",
    "Run comprehensive tests to ensure functionality",
    "Update documentation to reflect changes",
)


@dataclass
class ValidationReport:
    overall: Dict[str, Any]
    code_quality: Dict[str, Any] = field(default_factory=dict)
    functionality: Dict[str, Any] = field(default_factory=dict)
    dependencies: Dict[str, Any] = field(default_factory=dict)
    configuration: Dict[str, Any] = field(default_factory=dict)
    testing: Dict[str, Any] = field(default_factory=dict)
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "overall": dict(self.overall),
            "code_quality": dict(self.code_quality),
            "functionality": dict(self.functionality),
            "dependencies": dict(self.dependencies),
            "configuration": dict(self.configuration),
            "testing": dict(self.testing),
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
        }


def _rate(count: int, total: int) -> float:
    return count / total if total > 0 else 0.0


def _rewritten_files(results: List[FileResult]) -> List[FileResult]:
    return [r for r in results if r.success and r.content]


def validate_code_quality(results: List[FileResult]) -> Dict[str, Any]:
    total = len(results)
    counts = {
        "syntax_valid": 0,
        "imports_correct": 0,
        "exports_correct": 0,
        "type_safety": 0,
        "error_handling": 0,
    }
    for result in _rewritten_files(results):
        code = result.content
        counts["syntax_valid"] += checks.has_valid_syntax(code)
        counts["imports_correct"] += checks.has_valid_imports(code)
        counts["exports_correct"] += checks.has_valid_exports(code)
        counts["type_safety"] += checks.has_type_safety(code)
        counts["error_handling"] += checks.has_error_handling(code)

    report: Dict[str, Any] = dict(counts, total_files=total)
    for name, count in counts.items():
        report[f"{name}_rate"] = _rate(count, total)
    return report


def validate_functionality(results: List[FileResult]) -> Dict[str, Any]:
    total = len(results)
    structure = logic = api = 0
    for result in results:
        if not result.success:
            continue
        migrated = result.migrated_chunks
        if all(r.chunk.kind is not None and r.migrated_code for r in migrated):
            structure += 1
        if all(len(r.migrated_code) > 0 for r in migrated):
            logic += 1
        if all(r.validation is not None and r.validation.is_valid for r in migrated):
            api += 1

    return {
        "structure_preserved": structure,
        "logic_intact": logic,
        "api_compatible": api,
        "total_files": total,
        "structure_preserved_rate": _rate(structure, total),
        "logic_intact_rate": _rate(logic, total),
        "api_compatible_rate": _rate(api, total),
    }


def validate_dependencies(results: List[FileResult]) -> Dict[str, Any]:
    required: List[str] = []
    for result in _rewritten_files(results):
        required.extend(checks.import_sources(result.content))
    required = checks.dedupe(required)
    return {
        "required_dependencies": required,
        "missing_dependencies": [],
        "version_conflicts": [],
        "total_required": len(required),
    }


def validate_configuration(results: List[FileResult]) -> Dict[str, Any]:
    total = len(results)
    updated = 0
    env: List[str] = []
    build: List[str] = []
    for result in _rewritten_files(results):
        code = result.content
        updated += checks.has_configuration_code(code)
        env.extend(checks.env_vars(code))
        build.extend(checks.build_tools(code))

    return {
        "config_files_updated": updated,
        "environment_variables": checks.dedupe(env),
        "build_configurations": checks.dedupe(build),
        "config_update_rate": _rate(updated, total),
    }


def validate_testing(results: List[FileResult]) -> Dict[str, Any]:
    total = len(results)
    updated = 0
    patterns: List[str] = []
    for result in _rewritten_files(results):
        code = result.content
        updated += checks.mentions_tests(code)
        patterns.extend(checks.observed_test_patterns(code))

    return {
        "tests_updated": updated,
        "test_patterns": checks.dedupe(patterns),
        "test_update_rate": _rate(updated, total),
    }


def identify_issues(report: ValidationReport) -> List[str]:
    issues = []
    for section, key, threshold, message in ISSUE_THRESHOLDS:
        if getattr(report, section)[key] < threshold:
            issues.append(message)
    if report.dependencies.get("missing_dependencies"):
        issues.append("Some required dependencies may be missing")
    return issues


def generate_recommendations(report: ValidationReport) -> List[str]:
    recommendations = []
    for section, key, threshold, message in RECOMMENDATION_THRESHOLDS:
        if getattr(report, section)[key] < threshold:
            recommendations.append(message)
    recommendations.extend(GENERAL_RECOMMENDATIONS)
    return recommendations


def validate_migration_results(migration: MigrationResult) -> ValidationReport:
    """Score a migration result and derive issues and recommendations."""
    results = migration.results
    stats = migration.statistics()
    report = ValidationReport(
        overall={
            "success": not migration.errors,
            "total_files": len(results),
            "failed_files": len(migration.errors),
            "execution_time_ms": round(migration.execution_time_ms, 1),
            "success_rate": stats["success_rate"],
        },
        code_quality=validate_code_quality(results),
        functionality=validate_functionality(results),
        dependencies=validate_dependencies(results),
        configuration=validate_configuration(results),
        testing=validate_testing(results),
    )
    report.issues = identify_issues(report)
    report.recommendations = generate_recommendations(report)

    logger.info(f"Validation completed: {len(report.issues)} issues found")
    return report
