"""Plan and result types for the migration pipeline.

MigrationPlan is a pydantic model: LLM JSON is validated into it, unknown
keys are dropped, and missing sections are filled field by field.
Rewrite results are plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..chunks.models import CodeChunk

PlanSection = Union[str, List[Any], Dict[str, Any]]

SECTION_NAMES = (
    "analysis",
    "strategy",
    "code_transformations",
    "dependencies",
    "configuration",
    "testing",
    "risks",
    "implementation_order",
)

RiskLevel = Literal["Low", "Medium", "High"]


class TimelinePhase(BaseModel):
    phase: str
    duration: str
    tasks: List[str] = Field(default_factory=list)


class Timeline(BaseModel):
    phases: List[TimelinePhase]
    estimated_total_time: str
    risk_level: RiskLevel


class PlanMetadata(BaseModel):
    generated_at: datetime
    chunks_analyzed: int
    target_technology: str
    command: str
    model: Optional[str] = None


class MigrationPlan(BaseModel):
    """Eight-section migration plan plus metadata and timeline."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    analysis: Optional[PlanSection] = None
    strategy: Optional[PlanSection] = None
    code_transformations: Optional[PlanSection] = Field(None, alias="codeTransformations")
    dependencies: Optional[PlanSection] = None
    configuration: Optional[PlanSection] = None
    testing: Optional[PlanSection] = None
    risks: Optional[PlanSection] = None
    implementation_order: Optional[PlanSection] = Field(None, alias="implementationOrder")

    metadata: Optional[PlanMetadata] = None
    timeline: Optional[Timeline] = None

    def missing_sections(self) -> List[str]:
        return [name for name in SECTION_NAMES if _is_empty(getattr(self, name))]

    def sections(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in SECTION_NAMES}

    @property
    def target_technology(self) -> Optional[str]:
        return self.metadata.target_technology if self.metadata else None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return len(value) == 0


# ── Rewrite results ───────────────────────────────────────────────────


@dataclass
class ChunkValidation:
    """Static checks on one rewritten chunk; valid iff there are no issues."""

    has_code: bool
    has_imports: bool
    maintains_structure: bool
    follows_patterns: bool
    issues: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def to_dict(self) -> dict:
        return {
            "has_code": self.has_code,
            "has_imports": self.has_imports,
            "maintains_structure": self.maintains_structure,
            "follows_patterns": self.follows_patterns,
            "issues": list(self.issues),
            "is_valid": self.is_valid,
        }


@dataclass
class ChunkRewrite:
    """Outcome of rewriting one chunk."""

    chunk: CodeChunk
    success: bool
    migrated_code: str = ""
    validation: Optional[ChunkValidation] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "original_chunk": {
                "id": self.chunk.chunk_id,
                "name": self.chunk.name,
                "type": self.chunk.kind.value,
                "code": self.chunk.code,
                "file_path": self.chunk.file_path,
                "language": self.chunk.language,
                "complexity": self.chunk.complexity,
            },
            "migrated_code": self.migrated_code,
            "validation": self.validation.to_dict() if self.validation else None,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class FileContext:
    imports: List[str]
    exports: List[str]
    dependencies: List[str]
    language: str
    file_extension: str
    total_chunks: int

    def to_dict(self) -> dict:
        return {
            "imports": list(self.imports),
            "exports": list(self.exports),
            "dependencies": list(self.dependencies),
            "language": self.language,
            "file_extension": self.file_extension,
            "total_chunks": self.total_chunks,
        }


@dataclass
class FileResult:
    """All chunk rewrites for one file plus the assembled output."""

    file_path: str
    success: bool
    chunk_results: List[ChunkRewrite]
    content: str
    context: FileContext

    @property
    def migrated_chunks(self) -> List[ChunkRewrite]:
        return [r for r in self.chunk_results if r.success]

    @property
    def failed_chunks(self) -> List[ChunkRewrite]:
        return [r for r in self.chunk_results if not r.success]

    def statistics(self) -> dict:
        return {
            "total_chunks": len(self.chunk_results),
            "successful_migrations": len(self.migrated_chunks),
            "failed_migrations": len(self.failed_chunks),
        }

    def to_dict(self) -> dict:
        return {
            "file_path": self.file_path,
            "success": self.success,
            "migrated_chunks": [r.to_dict() for r in self.migrated_chunks],
            "failed_chunks": [r.to_dict() for r in self.failed_chunks],
            "migrated_file": {"content": self.content},
            "file_context": self.context.to_dict(),
            "statistics": self.statistics(),
        }


@dataclass
class FileError:
    file_path: str
    error: str
    chunks: int

    def to_dict(self) -> dict:
        return {"file_path": self.file_path, "error": self.error, "chunks": self.chunks}


@dataclass
class MigrationResult:
    migration_id: str
    results: List[FileResult]
    errors: List[FileError]
    execution_time_ms: float
    total_chunks: int

    @property
    def files_processed(self) -> int:
        return len(self.results) + len(self.errors)

    def statistics(self) -> dict:
        processed = self.files_processed
        return {
            "total_chunks": self.total_chunks,
            "files_processed": processed,
            "successful_files": len(self.results),
            "failed_files": len(self.errors),
            "success_rate": len(self.results) / processed if processed else 0.0,
            "average_time_per_chunk_ms": (
                self.execution_time_ms / self.total_chunks if self.total_chunks else 0.0
            ),
        }

    def to_dict(self) -> dict:
        return {
            "migration_id": self.migration_id,
            "results": [r.to_dict() for r in self.results],
            "errors": [e.to_dict() for e in self.errors],
            "execution_time_ms": round(self.execution_time_ms, 1),
            "statistics": self.statistics(),
        }
