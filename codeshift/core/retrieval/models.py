"""Retrieval result types."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..chunks.models import CodeChunk


@dataclass
class ChunkContext:
    file_name: str
    file_path: str
    file_extension: str
    directory: str

    def to_dict(self) -> dict:
        return {
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_extension": self.file_extension,
            "directory": self.directory,
        }


@dataclass
class RetrievedChunk:
    """A chunk chosen for migration, with its ranking signals."""

    chunk: CodeChunk
    similarity: float
    score: float
    migration_relevance: float = 0.0
    context: Optional[ChunkContext] = None
    related: bool = False

    def to_dict(self) -> dict:
        c = self.chunk
        return {
            "chunk_id": c.chunk_id,
            "name": c.name,
            "type": c.kind.value,
            "file_path": c.file_path,
            "language": c.language,
            "complexity": c.complexity,
            "similarity": round(self.similarity, 4),
            "score": round(self.score, 4),
            "migration_relevance": round(self.migration_relevance, 4),
            "context": self.context.to_dict() if self.context else None,
            "related": self.related,
        }


@dataclass
class RetrievalOptions:
    threshold: float
    limit: int
    chunk_types: Optional[List[str]] = None
    languages: Optional[List[str]] = None
    include_dependencies: bool = True
    include_related_files: bool = True

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]], threshold: float, limit: int) -> "RetrievalOptions":
        options = options or {}

        def pick(camel, snake, default=None):
            return options.get(camel, options.get(snake, default))

        return cls(
            threshold=float(pick("threshold", "threshold", threshold)),
            limit=int(pick("limit", "limit", limit)),
            chunk_types=pick("chunkTypes", "chunk_types"),
            languages=options.get("languages"),
            include_dependencies=bool(pick("includeDependencies", "include_dependencies", True)),
            include_related_files=bool(pick("includeRelatedFiles", "include_related_files", True)),
        )


@dataclass
class RetrievalResult:
    chunks: List[RetrievedChunk]
    metadata: Dict[str, Any] = field(default_factory=dict)
