"""Embedding provider and cosine similarity."""

from .provider import BatchSummary, Embedding, EmbeddingProvider, prepare_text
from .similarity import cosine_similarities, cosine_similarity

__all__ = [
    "BatchSummary",
    "Embedding",
    "EmbeddingProvider",
    "cosine_similarities",
    "cosine_similarity",
    "prepare_text",
]
