"""Pick the chunk store variant the database supports."""

import logging

from ..db.db import DatabaseManager
from .base import ChunkStore
from .local_store import LocalCosineChunkStore
from .pgvector_store import PgVectorChunkStore

logger = logging.getLogger(__name__)


def create_chunk_store(db_manager: DatabaseManager) -> ChunkStore:
    """PgVectorChunkStore when PostgreSQL has pgvector, else LocalCosineChunkStore."""
    if db_manager.has_vector_extension():
        logger.info("Chunk store: pgvector (server-side similarity)")
        return PgVectorChunkStore(db_manager)

    logger.info(
        f"Chunk store: local cosine fallback (dialect={db_manager.dialect_name}, no pgvector)"
    )
    return LocalCosineChunkStore(db_manager)
