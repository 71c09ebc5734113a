"""Ingestion-side chunk indexing (parsing itself happens upstream)."""

from .indexer import ChunkIndexer, IndexReport

__all__ = ["ChunkIndexer", "IndexReport"]
