"""Regex-based inspection of JavaScript/TypeScript source.

All patterns used to look at code (import sources, exports, env vars,
structure and quality markers) are defined here so the rewrite engine and
the result validator share one vocabulary.
"""

import re
from typing import Iterable, List

from ..chunks.models import ChunkKind, CodeChunk
from ..migration.models import ChunkValidation
from ..migration.technology import get_profile

IMPORT_RE = re.compile(r"""import\s+.*?from\s+['"]([^'"]+)['"]""")
EXPORT_RE = re.compile(r"export\s+(?:default\s+)?(?:async\s+)?(?:const|let|var|function|class)\s+(\w+)")
ENV_VAR_RE = re.compile(r"process\.env\.(\w+)")

SYNTAX_TOKENS = ("function", "class", "const", "let", "var")
TYPE_SAFETY_TOKENS = (":", "interface", "type ")
ERROR_HANDLING_TOKENS = ("try", "catch", "throw", "error")
CONFIG_TOKENS = ("config", "Config", "process.env", "configuration")
BUILD_TOOLS = ("webpack", "babel", "typescript", "jest")
TEST_TOKENS = ("test", "describe", "expect", "it(")
# marker in code -> reported pattern name
TEST_PATTERNS = (
    ("describe", "describe"),
    ("it(", "it"),
    ("expect", "expect"),
    ("beforeEach", "beforeEach"),
    ("afterEach", "afterEach"),
)

_CALLABLE_KINDS = {ChunkKind.FUNCTION, ChunkKind.METHOD, ChunkKind.ARROW_FUNCTION}
_BINDING_RE = re.compile(r"\b(?:const|let|var)\b")

NO_CODE = "No code generated"
MISSING_IMPORTS = "Missing required imports"
STRUCTURE_CHANGED = "Structure may have changed significantly"
PATTERNS_NOT_FOLLOWED = "Does not follow target technology patterns"


def import_sources(code: str) -> List[str]:
    return IMPORT_RE.findall(code or "")


def exported_names(code: str) -> List[str]:
    return EXPORT_RE.findall(code or "")


def env_vars(code: str) -> List[str]:
    return ENV_VAR_RE.findall(code or "")


def dedupe(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def has_required_imports(code: str, target_technology: str) -> bool:
    required = get_profile(target_technology).required_imports
    if not required:
        return True
    return any(package in code for package in required)


def maintains_structure(code: str, kind: ChunkKind) -> bool:
    if kind in _CALLABLE_KINDS:
        return ("(" in code and ")" in code) or "=>" in code
    if kind == ChunkKind.CLASS:
        return "class" in code
    if kind == ChunkKind.VARIABLE:
        return "=" in code or bool(_BINDING_RE.search(code))
    return True


def follows_patterns(code: str, target_technology: str) -> bool:
    markers = get_profile(target_technology).pattern_markers
    if not markers:
        return True
    return any(marker in code for marker in markers)


def check_rewrite(chunk: CodeChunk, migrated_code: str, target_technology: str) -> ChunkValidation:
    """Static checks on one rewritten chunk."""
    code = migrated_code or ""
    has_code = bool(code.strip())
    if not has_code:
        return ChunkValidation(
            has_code=False,
            has_imports=False,
            maintains_structure=False,
            follows_patterns=False,
            issues=[NO_CODE],
        )

    validation = ChunkValidation(
        has_code=True,
        has_imports=has_required_imports(code, target_technology),
        maintains_structure=maintains_structure(code, chunk.kind),
        follows_patterns=follows_patterns(code, target_technology),
    )
    if not validation.has_imports:
        validation.issues.append(MISSING_IMPORTS)
    if not validation.maintains_structure:
        validation.issues.append(STRUCTURE_CHANGED)
    if not validation.follows_patterns:
        validation.issues.append(PATTERNS_NOT_FOLLOWED)
    return validation


# ── File-level quality markers ────────────────────────────────────────

def contains_any(code: str, tokens: Iterable[str]) -> bool:
    return any(token in code for token in tokens)


def has_valid_syntax(code: str) -> bool:
    return contains_any(code, SYNTAX_TOKENS)


def has_valid_imports(code: str) -> bool:
    return IMPORT_RE.search(code) is not None


def has_valid_exports(code: str) -> bool:
    return EXPORT_RE.search(code) is not None


def has_type_safety(code: str) -> bool:
    return contains_any(code, TYPE_SAFETY_TOKENS)


def has_error_handling(code: str) -> bool:
    return contains_any(code, ERROR_HANDLING_TOKENS)


def has_configuration_code(code: str) -> bool:
    return contains_any(code, CONFIG_TOKENS)


def build_tools(code: str) -> List[str]:
    return [tool for tool in BUILD_TOOLS if tool in code]


def mentions_tests(code: str) -> bool:
    return contains_any(code, TEST_TOKENS)


def observed_test_patterns(code: str) -> List[str]:
    return [name for marker, name in TEST_PATTERNS if marker in code]
