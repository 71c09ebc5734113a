"""Data model for indexed code chunks.

A CodeChunk is one semantic fragment of a source file (function, class,
method, ...). Chunks are produced at ingestion time and are immutable
afterwards except for their similar-chunks list and search text.

The wire format is a nested dict with camelCase keys and ISO-8601
timestamps; from_dict() also accepts snake_case keys.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..constants import FILE_EXTENSIONS, MAX_COMPLEXITY, MAX_SIMILAR_CHUNKS, MIN_COMPLEXITY
from ..errors import ValidationFailedError


class ChunkKind(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    METHOD = "method"
    VARIABLE = "variable"
    IMPORT = "import"
    EXPORT = "export"
    ARROW_FUNCTION = "arrow_function"
    BLOCK = "block"
    INTERFACE = "interface"
    TYPE = "type"
    ENUM = "enum"
    NAMESPACE = "namespace"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"
    INTERNAL = "internal"


class CommentKind(str, Enum):
    SINGLE_LINE = "single_line"
    MULTI_LINE = "multi_line"
    DOCBLOCK = "docblock"
    DOCSTRING = "docstring"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _get(data: Dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _enum_value(enum_cls, raw, default):
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    # Accept "arrow-function" as well as "arrow_function"
    return enum_cls(str(raw).replace("-", "_"))


@dataclass
class ChunkParameter:
    name: str
    type: Optional[str] = None
    line: Optional[int] = None
    optional: bool = False
    default_value: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type,
            "line": self.line,
            "optional": self.optional,
            "defaultValue": self.default_value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChunkParameter":
        return cls(
            name=data.get("name", ""),
            type=data.get("type"),
            line=data.get("line"),
            optional=bool(data.get("optional", False)),
            default_value=_get(data, "defaultValue", "default_value"),
        )


@dataclass
class ChunkDependency:
    kind: str
    source: str
    line: Optional[int] = None
    external: bool = False

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "source": self.source,
            "line": self.line,
            "isExternal": self.external,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChunkDependency":
        return cls(
            kind=data.get("type", data.get("kind", "import")),
            source=data.get("source", ""),
            line=data.get("line"),
            external=bool(_get(data, "isExternal", "external", False)),
        )


@dataclass
class ChunkComment:
    text: str
    line: Optional[int] = None
    kind: CommentKind = CommentKind.SINGLE_LINE

    def to_dict(self) -> dict:
        return {"text": self.text, "line": self.line, "type": self.kind.value}

    @classmethod
    def from_dict(cls, data: dict) -> "ChunkComment":
        return cls(
            text=data.get("text", ""),
            line=data.get("line"),
            kind=_enum_value(CommentKind, data.get("type", data.get("kind")), CommentKind.SINGLE_LINE),
        )


@dataclass
class SimilarChunk:
    chunk_id: str
    similarity: float
    calculated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "chunkId": self.chunk_id,
            "similarity": self.similarity,
            "calculatedAt": _iso(self.calculated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SimilarChunk":
        return cls(
            chunk_id=_get(data, "chunkId", "chunk_id"),
            similarity=float(data.get("similarity", 0.0)),
            calculated_at=_parse_ts(_get(data, "calculatedAt", "calculated_at")) or utcnow(),
        )


@dataclass
class EmbeddingRecord:
    """Vector for one chunk plus a denormalized copy of the chunk's key fields."""

    vector: List[float]
    dimensions: int
    model: str
    chunk_id: str
    generated_at: datetime = field(default_factory=utcnow)
    name: Optional[str] = None
    file_path: Optional[str] = None
    kind: Optional[str] = None
    language: Optional[str] = None
    complexity: Optional[int] = None
    search_text: str = ""

    def to_dict(self) -> dict:
        return {
            "embedding": list(self.vector),
            "dimensions": self.dimensions,
            "model": self.model,
            "generatedAt": _iso(self.generated_at),
            "chunkId": self.chunk_id,
            "name": self.name,
            "filePath": self.file_path,
            "type": self.kind,
            "language": self.language,
            "complexity": self.complexity,
            "searchText": self.search_text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EmbeddingRecord":
        vector = data.get("embedding", data.get("vector")) or []
        return cls(
            vector=[float(v) for v in vector],
            dimensions=int(data.get("dimensions", len(vector))),
            model=data.get("model", ""),
            chunk_id=_get(data, "chunkId", "chunk_id"),
            generated_at=_parse_ts(_get(data, "generatedAt", "generated_at")) or utcnow(),
            name=data.get("name"),
            file_path=_get(data, "filePath", "file_path"),
            kind=data.get("type", data.get("kind")),
            language=data.get("language"),
            complexity=data.get("complexity"),
            search_text=_get(data, "searchText", "search_text", ""),
        )


@dataclass
class CodeChunk:
    """A semantic fragment of one source file."""

    chunk_id: str
    session_id: str
    user_id: str
    file_path: str
    file_name: str
    file_extension: str
    code: str
    kind: ChunkKind
    name: str
    start_line: int
    end_line: int
    language: str
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    start_column: int = 0
    end_column: int = 0
    start_index: int = 0
    end_index: int = 0
    complexity: int = MIN_COMPLEXITY
    is_async: bool = False
    is_static: bool = False
    visibility: Visibility = Visibility.PUBLIC
    parameters: List[ChunkParameter] = field(default_factory=list)
    dependencies: List[ChunkDependency] = field(default_factory=list)
    comments: List[ChunkComment] = field(default_factory=list)
    parent_chunk_id: Optional[str] = None
    child_chunk_ids: List[str] = field(default_factory=list)
    file_size: int = 0
    last_modified: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    tags: List[str] = field(default_factory=list)
    search_text: str = ""
    similar_chunks: List[SimilarChunk] = field(default_factory=list)
    embedding: Optional[EmbeddingRecord] = None

    # Set on retrieval results only; never persisted.
    similarity: Optional[float] = None

    @property
    def directory(self) -> str:
        head, sep, _ = self.file_path.rpartition("/")
        return head if sep else "."

    def to_dict(self, include_embedding: bool = True) -> Dict[str, Any]:
        data = {
            "chunkId": self.chunk_id,
            "sessionId": self.session_id,
            "userId": self.user_id,
            "projectId": self.project_id,
            "projectName": self.project_name,
            "filePath": self.file_path,
            "fileName": self.file_name,
            "fileExtension": self.file_extension,
            "code": self.code,
            "type": self.kind.value,
            "name": self.name,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "startColumn": self.start_column,
            "endColumn": self.end_column,
            "startIndex": self.start_index,
            "endIndex": self.end_index,
            "language": self.language,
            "complexity": self.complexity,
            "isAsync": self.is_async,
            "isStatic": self.is_static,
            "visibility": self.visibility.value,
            "parameters": [p.to_dict() for p in self.parameters],
            "dependencies": [d.to_dict() for d in self.dependencies],
            "comments": [c.to_dict() for c in self.comments],
            "parentChunkId": self.parent_chunk_id,
            "childChunkIds": list(self.child_chunk_ids),
            "fileSize": self.file_size,
            "lastModified": _iso(self.last_modified),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "tags": list(self.tags),
            "searchText": self.search_text,
            "similarChunks": [s.to_dict() for s in self.similar_chunks],
        }
        if include_embedding and self.embedding is not None:
            data["embedding"] = self.embedding.to_dict()
        if self.similarity is not None:
            data["similarity"] = self.similarity
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CodeChunk":
        embedding = data.get("embedding")
        if isinstance(embedding, list):
            # Bare vector: wrap it in a record
            embedding = {"embedding": embedding, "chunkId": _get(data, "chunkId", "chunk_id")}
        return cls(
            chunk_id=_get(data, "chunkId", "chunk_id"),
            session_id=_get(data, "sessionId", "session_id"),
            user_id=_get(data, "userId", "user_id"),
            project_id=_get(data, "projectId", "project_id"),
            project_name=_get(data, "projectName", "project_name"),
            file_path=_get(data, "filePath", "file_path"),
            file_name=_get(data, "fileName", "file_name"),
            file_extension=_get(data, "fileExtension", "file_extension"),
            code=data.get("code", ""),
            kind=_enum_value(ChunkKind, data.get("type", data.get("kind")), ChunkKind.BLOCK),
            name=data.get("name", ""),
            start_line=int(_get(data, "startLine", "start_line", 0)),
            end_line=int(_get(data, "endLine", "end_line", 0)),
            start_column=int(_get(data, "startColumn", "start_column", 0)),
            end_column=int(_get(data, "endColumn", "end_column", 0)),
            start_index=int(_get(data, "startIndex", "start_index", 0)),
            end_index=int(_get(data, "endIndex", "end_index", 0)),
            language=data.get("language", ""),
            complexity=int(data.get("complexity", MIN_COMPLEXITY)),
            is_async=bool(_get(data, "isAsync", "is_async", False)),
            is_static=bool(_get(data, "isStatic", "is_static", False)),
            visibility=_enum_value(Visibility, data.get("visibility"), Visibility.PUBLIC),
            parameters=[ChunkParameter.from_dict(p) for p in data.get("parameters") or []],
            dependencies=[ChunkDependency.from_dict(d) for d in data.get("dependencies") or []],
            comments=[ChunkComment.from_dict(c) for c in data.get("comments") or []],
            parent_chunk_id=_get(data, "parentChunkId", "parent_chunk_id"),
            child_chunk_ids=list(_get(data, "childChunkIds", "child_chunk_ids", None) or []),
            file_size=int(_get(data, "fileSize", "file_size", 0) or 0),
            last_modified=_parse_ts(_get(data, "lastModified", "last_modified")),
            created_at=_parse_ts(_get(data, "createdAt", "created_at")) or utcnow(),
            updated_at=_parse_ts(_get(data, "updatedAt", "updated_at")) or utcnow(),
            tags=list(data.get("tags") or []),
            search_text=_get(data, "searchText", "search_text", "") or "",
            similar_chunks=[
                SimilarChunk.from_dict(s)
                for s in _get(data, "similarChunks", "similar_chunks", None) or []
            ],
            embedding=EmbeddingRecord.from_dict(embedding) if embedding else None,
            similarity=data.get("similarity"),
        )


# ── Invariants ────────────────────────────────────────────────────────


def validate_chunk(chunk: CodeChunk) -> None:
    """Raise ValidationFailedError if the chunk breaks a record invariant."""
    problems = []
    if not chunk.chunk_id:
        problems.append("chunk_id is required")
    for attr in ("session_id", "user_id", "file_path", "file_name", "name", "language"):
        if not getattr(chunk, attr):
            problems.append(f"{attr} is required")
    if chunk.file_extension not in FILE_EXTENSIONS:
        problems.append(f"unsupported file extension: {chunk.file_extension!r}")
    if chunk.start_line > chunk.end_line:
        problems.append("start_line must be <= end_line")
    if chunk.start_index > chunk.end_index:
        problems.append("start_index must be <= end_index")
    if not MIN_COMPLEXITY <= chunk.complexity <= MAX_COMPLEXITY:
        problems.append(f"complexity must be in [{MIN_COMPLEXITY}, {MAX_COMPLEXITY}]")

    emb = chunk.embedding
    if emb is not None:
        if not emb.vector:
            problems.append("embedding vector is empty")
        elif len(emb.vector) != emb.dimensions:
            problems.append(
                f"embedding has {len(emb.vector)} values but declares {emb.dimensions} dimensions"
            )
        if emb.chunk_id != chunk.chunk_id:
            problems.append("embedding references a different chunk")

    if problems:
        raise ValidationFailedError(f"Invalid chunk {chunk.chunk_id or '<no id>'}: " + "; ".join(problems))


def generate_chunk_id(session_id: str, file_path: str, start_line: int, end_line: int, name: str) -> str:
    """Stable identifier derived from the chunk's position within the session."""
    raw = f"{session_id}-{file_path}-{start_line}-{end_line}-{name}"
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


def build_search_text(chunk: CodeChunk) -> str:
    """Concatenate the fields that free-text search runs against."""
    parts = [
        chunk.name,
        chunk.code,
        chunk.file_path,
        chunk.kind.value,
        chunk.language,
        " ".join(p.name for p in chunk.parameters),
        " ".join(d.source for d in chunk.dependencies),
    ]
    return " ".join(p for p in parts if p)


def build_tags(chunk: CodeChunk) -> List[str]:
    tags = [chunk.kind.value, chunk.language, f"complexity-{chunk.complexity}"]
    if chunk.is_async:
        tags.append("async")
    if chunk.is_static:
        tags.append("static")
    tags.append(chunk.visibility.value)
    return tags


def add_similar_chunk(
    entries: List[SimilarChunk],
    new_entry: SimilarChunk,
    limit: int = MAX_SIMILAR_CHUNKS,
) -> List[SimilarChunk]:
    """Insert an entry, keeping the list sorted by similarity and capped at limit.

    An existing entry for the same chunk is replaced. Ties keep insertion order.
    """
    kept = [e for e in entries if e.chunk_id != new_entry.chunk_id]
    kept.append(new_entry)
    kept.sort(key=lambda e: e.similarity, reverse=True)
    return kept[:limit]


def rank_similar_chunks(
    entries: List[SimilarChunk], limit: int = MAX_SIMILAR_CHUNKS
) -> List[SimilarChunk]:
    ranked = sorted(entries, key=lambda e: e.similarity, reverse=True)
    return ranked[:limit]
