"""
Database module for codeshift.

Exports:
- DatabaseManager: Database connection and session management
- wait_for_db: Database availability checker with retry logic
- Models: CodeChunkRow, ChunkEmbeddingRow
- Base: SQLAlchemy declarative base
"""

from .db import DatabaseManager, wait_for_db
from .models import Base, ChunkEmbeddingRow, CodeChunkRow, EmbeddingVector

__all__ = [
    # Database management
    "DatabaseManager",
    "wait_for_db",

    # ORM models
    "Base",
    "CodeChunkRow",
    "ChunkEmbeddingRow",
    "EmbeddingVector",
]
