"""Chunk store interface and its two backends."""

from .base import ChunkStore, SearchCriteria
from .factory import create_chunk_store
from .local_store import LocalCosineChunkStore
from .pgvector_store import PgVectorChunkStore
from .sql_store import SqlChunkStore

__all__ = [
    "ChunkStore",
    "LocalCosineChunkStore",
    "PgVectorChunkStore",
    "SearchCriteria",
    "SqlChunkStore",
    "create_chunk_store",
]
