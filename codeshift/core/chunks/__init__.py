"""Code chunk data model and the in-memory chunk arena."""

from .arena import ChunkArena
from .models import (
    ChunkComment,
    ChunkDependency,
    ChunkKind,
    ChunkParameter,
    CodeChunk,
    CommentKind,
    EmbeddingRecord,
    SimilarChunk,
    Visibility,
    add_similar_chunk,
    build_search_text,
    build_tags,
    generate_chunk_id,
    validate_chunk,
)

__all__ = [
    "ChunkArena",
    "ChunkComment",
    "ChunkDependency",
    "ChunkKind",
    "ChunkParameter",
    "CodeChunk",
    "CommentKind",
    "EmbeddingRecord",
    "SimilarChunk",
    "Visibility",
    "add_similar_chunk",
    "build_search_text",
    "build_tags",
    "generate_chunk_id",
    "validate_chunk",
]
