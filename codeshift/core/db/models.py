"""
SQLAlchemy ORM Models for codeshift

- CodeChunkRow: one indexed code chunk (table ``code_chunks``)
- ChunkEmbeddingRow: the chunk's embedding record (table ``chunk_embeddings``)

Rows convert to and from the CodeChunk dataclass; the core never sees
ORM objects.
"""

import json
from datetime import datetime, timezone

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    JSON, Boolean, Column, ForeignKey, Index, Integer, String, Text,
    TIMESTAMP, TypeDecorator,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

from ..chunks.models import (
    ChunkComment,
    ChunkDependency,
    ChunkKind,
    ChunkParameter,
    CodeChunk,
    EmbeddingRecord,
    SimilarChunk,
    Visibility,
)

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow():
    return datetime.now(timezone.utc)


class EmbeddingVector(TypeDecorator):
    """Platform-independent embedding column.

    Uses pgvector's VECTOR type on PostgreSQL, otherwise stores the vector
    as a JSON array of floats.
    """
    impl = Text
    cache_ok = True

    def __init__(self, dimensions=None, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.dimensions = dimensions

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(Vector(self.dimensions))
        else:
            return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == 'postgresql':
            return [float(v) for v in value]
        else:
            return json.dumps([float(v) for v in value])

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        elif dialect.name == 'postgresql':
            return [float(v) for v in value]
        else:
            return [float(v) for v in json.loads(value)]


# =============================================================================
# Chunks
# =============================================================================

class CodeChunkRow(Base):
    """An indexed code chunk."""
    __tablename__ = "code_chunks"

    # Autoincrement id doubles as store-insertion order
    id = Column(Integer, primary_key=True, autoincrement=True)
    chunk_id = Column(String(64), unique=True, nullable=False)
    session_id = Column(String(255), nullable=False)
    user_id = Column(String(255), nullable=False)
    project_id = Column(String(255), nullable=True)
    project_name = Column(String(255), nullable=True)

    file_path = Column(Text, nullable=False)
    file_name = Column(String(500), nullable=False)
    file_extension = Column(String(10), nullable=False)

    code = Column(Text, nullable=False)
    chunk_type = Column(String(30), nullable=False)
    name = Column(String(500), nullable=False)

    start_line = Column(Integer, nullable=False)
    end_line = Column(Integer, nullable=False)
    start_column = Column(Integer, default=0)
    end_column = Column(Integer, default=0)
    start_index = Column(Integer, default=0)
    end_index = Column(Integer, default=0)

    language = Column(String(50), nullable=False)
    complexity = Column(Integer, nullable=False, default=1)
    is_async = Column(Boolean, nullable=False, default=False)
    is_static = Column(Boolean, nullable=False, default=False)
    visibility = Column(String(20), nullable=False, default="public")

    parameters = Column(JSONType, default=list)       # [{name, type, line, optional, defaultValue}]
    dependencies = Column(JSONType, default=list)     # [{type, source, line, isExternal}]
    comments = Column(JSONType, default=list)         # [{text, line, type}]
    parent_chunk_id = Column(String(64), nullable=True)
    child_chunk_ids = Column(JSONType, default=list)

    file_size = Column(Integer, default=0)
    last_modified = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    tags = Column(JSONType, default=list)
    search_text = Column(Text, default="")
    similar_chunks = Column(JSONType, default=list)   # [{chunkId, similarity, calculatedAt}]

    embedding = relationship(
        "ChunkEmbeddingRow",
        back_populates="chunk",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_chunks_session", "session_id"),
        Index("idx_chunks_session_file", "session_id", "file_path"),
        Index("idx_chunks_session_type", "session_id", "chunk_type"),
        Index("idx_chunks_session_language", "session_id", "language"),
    )

    @classmethod
    def from_chunk(cls, chunk: CodeChunk) -> "CodeChunkRow":
        row = cls(
            chunk_id=chunk.chunk_id,
            session_id=chunk.session_id,
            user_id=chunk.user_id,
            project_id=chunk.project_id,
            project_name=chunk.project_name,
            file_path=chunk.file_path,
            file_name=chunk.file_name,
            file_extension=chunk.file_extension,
            code=chunk.code,
            chunk_type=chunk.kind.value,
            name=chunk.name,
            start_line=chunk.start_line,
            end_line=chunk.end_line,
            start_column=chunk.start_column,
            end_column=chunk.end_column,
            start_index=chunk.start_index,
            end_index=chunk.end_index,
            language=chunk.language,
            complexity=chunk.complexity,
            is_async=chunk.is_async,
            is_static=chunk.is_static,
            visibility=chunk.visibility.value,
            parameters=[p.to_dict() for p in chunk.parameters],
            dependencies=[d.to_dict() for d in chunk.dependencies],
            comments=[c.to_dict() for c in chunk.comments],
            parent_chunk_id=chunk.parent_chunk_id,
            child_chunk_ids=list(chunk.child_chunk_ids),
            file_size=chunk.file_size,
            last_modified=chunk.last_modified,
            created_at=chunk.created_at,
            updated_at=chunk.updated_at,
            tags=list(chunk.tags),
            search_text=chunk.search_text,
            similar_chunks=[s.to_dict() for s in chunk.similar_chunks],
        )
        if chunk.embedding is not None:
            row.embedding = ChunkEmbeddingRow.from_record(chunk, chunk.embedding)
        return row

    def to_chunk(self, with_embedding: bool = False) -> CodeChunk:
        chunk = CodeChunk(
            chunk_id=self.chunk_id,
            session_id=self.session_id,
            user_id=self.user_id,
            project_id=self.project_id,
            project_name=self.project_name,
            file_path=self.file_path,
            file_name=self.file_name,
            file_extension=self.file_extension,
            code=self.code,
            kind=ChunkKind(self.chunk_type),
            name=self.name,
            start_line=self.start_line,
            end_line=self.end_line,
            start_column=self.start_column or 0,
            end_column=self.end_column or 0,
            start_index=self.start_index or 0,
            end_index=self.end_index or 0,
            language=self.language,
            complexity=self.complexity,
            is_async=bool(self.is_async),
            is_static=bool(self.is_static),
            visibility=Visibility(self.visibility),
            parameters=[ChunkParameter.from_dict(p) for p in self.parameters or []],
            dependencies=[ChunkDependency.from_dict(d) for d in self.dependencies or []],
            comments=[ChunkComment.from_dict(c) for c in self.comments or []],
            parent_chunk_id=self.parent_chunk_id,
            child_chunk_ids=list(self.child_chunk_ids or []),
            file_size=self.file_size or 0,
            last_modified=self.last_modified,
            created_at=self.created_at,
            updated_at=self.updated_at,
            tags=list(self.tags or []),
            search_text=self.search_text or "",
            similar_chunks=[SimilarChunk.from_dict(s) for s in self.similar_chunks or []],
        )
        if with_embedding and self.embedding is not None:
            chunk.embedding = self.embedding.to_record()
        return chunk


class ChunkEmbeddingRow(Base):
    """Embedding record for one chunk (written once, never updated)."""
    __tablename__ = "chunk_embeddings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chunk_id = Column(
        String(64),
        ForeignKey("code_chunks.chunk_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    session_id = Column(String(255), nullable=False)
    vector = Column(EmbeddingVector(), nullable=False)
    dimensions = Column(Integer, nullable=False)
    model = Column(String(200), nullable=False)
    generated_at = Column(TIMESTAMP(timezone=True), default=_utcnow, nullable=False)

    # Denormalized from the owning chunk
    name = Column(String(500))
    file_path = Column(Text)
    chunk_type = Column(String(30))
    language = Column(String(50))
    complexity = Column(Integer)
    search_text = Column(Text, default="")

    chunk = relationship("CodeChunkRow", back_populates="embedding")

    __table_args__ = (
        Index("idx_embeddings_session", "session_id"),
    )

    @classmethod
    def from_record(cls, chunk: CodeChunk, record: EmbeddingRecord) -> "ChunkEmbeddingRow":
        return cls(
            chunk_id=chunk.chunk_id,
            session_id=chunk.session_id,
            vector=list(record.vector),
            dimensions=record.dimensions,
            model=record.model,
            generated_at=record.generated_at,
            name=record.name or chunk.name,
            file_path=record.file_path or chunk.file_path,
            chunk_type=record.kind or chunk.kind.value,
            language=record.language or chunk.language,
            complexity=record.complexity if record.complexity is not None else chunk.complexity,
            search_text=record.search_text or chunk.search_text,
        )

    def to_record(self) -> EmbeddingRecord:
        return EmbeddingRecord(
            vector=list(self.vector or []),
            dimensions=self.dimensions,
            model=self.model,
            chunk_id=self.chunk_id,
            generated_at=self.generated_at,
            name=self.name,
            file_path=self.file_path,
            kind=self.chunk_type,
            language=self.language,
            complexity=self.complexity,
            search_text=self.search_text or "",
        )


__all__ = [
    "Base",
    "CodeChunkRow",
    "ChunkEmbeddingRow",
    "EmbeddingVector",
    "JSONType",
]
