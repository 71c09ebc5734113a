"""Fallback chunk store: fetch candidates, compute cosine in process.

Used when the database has no vector support (SQLite, PostgreSQL without
pgvector).
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.orm import contains_eager

from ..chunks.models import CodeChunk
from ..db.models import ChunkEmbeddingRow, CodeChunkRow
from ..embedding.similarity import cosine_similarities
from .base import StrOrList
from .sql_store import SqlChunkStore, translate_db_errors

logger = logging.getLogger(__name__)


class LocalCosineChunkStore(SqlChunkStore):
    """Chunk store computing similarity with NumPy over fetched embeddings."""

    backend_name = "local_cosine"

    @translate_db_errors
    def find_similar(
        self,
        session_id: str,
        vector: Sequence[float],
        threshold: float,
        limit: int,
        chunk_types: StrOrList = None,
        languages: StrOrList = None,
        exclude_chunk_id: Optional[str] = None,
    ) -> List[CodeChunk]:
        with self._db.get_session() as session:
            q = (
                session.query(CodeChunkRow)
                .join(ChunkEmbeddingRow, ChunkEmbeddingRow.chunk_id == CodeChunkRow.chunk_id)
                .options(contains_eager(CodeChunkRow.embedding))
                .filter(CodeChunkRow.session_id == session_id)
            )
            q = self._apply_filters(q, chunk_types, languages)
            if exclude_chunk_id:
                q = q.filter(CodeChunkRow.chunk_id != exclude_chunk_id)
            rows = q.order_by(CodeChunkRow.id.asc()).all()

            scores = cosine_similarities(vector, [row.embedding.vector for row in rows])

            # Python's sort is stable: equal scores keep insertion order
            ranked = sorted(
                (
                    (float(score), row)
                    for score, row in zip(scores, rows)
                    if score >= threshold
                ),
                key=lambda pair: pair[0],
                reverse=True,
            )[:limit]

            results = []
            for score, row in ranked:
                chunk = row.to_chunk(with_embedding=True)
                chunk.similarity = score
                results.append(chunk)

        logger.debug(
            f"Local cosine search: {len(rows)} candidates, {len(results)} >= {threshold}"
        )
        return results
