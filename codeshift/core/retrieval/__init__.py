"""Command expansion, vector retrieval and re-ranking."""

from .engine import RetrievalEngine, migration_relevance, rank_score
from .keywords import expand_command, technology_keywords
from .models import ChunkContext, RetrievalOptions, RetrievalResult, RetrievedChunk

__all__ = [
    "ChunkContext",
    "RetrievalEngine",
    "RetrievalOptions",
    "RetrievalResult",
    "RetrievedChunk",
    "expand_command",
    "migration_relevance",
    "rank_score",
    "technology_keywords",
]
