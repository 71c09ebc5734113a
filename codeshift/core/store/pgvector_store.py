"""Primary chunk store: similarity computed server-side by pgvector."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import Float, case, func, literal
from sqlalchemy.orm import contains_eager

from ..chunks.models import CodeChunk
from ..db.models import ChunkEmbeddingRow, CodeChunkRow
from .base import SearchCriteria, StrOrList
from .sql_store import SqlChunkStore, translate_db_errors

logger = logging.getLogger(__name__)


def similarity_expression(vector: Sequence[float]):
    """``1 - (vector <=> query)`` for rows of the query's width, else 0.

    The width check sits inside CASE so <=> never sees a row of another width.
    """
    # <=> is pgvector's cosine distance
    distance = ChunkEmbeddingRow.vector.op("<=>", return_type=Float)(list(vector))
    return case(
        (ChunkEmbeddingRow.dimensions == len(vector), 1 - distance),
        else_=literal(0.0, Float),
    )


class PgVectorChunkStore(SqlChunkStore):
    """Chunk store for PostgreSQL with the ``vector`` extension."""

    backend_name = "pgvector"

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
        if not vector:
            return []

        score = similarity_expression(vector)
        similarity = score.label("similarity")

        with self._db.get_session() as session:
            q = (
                session.query(CodeChunkRow, similarity)
                .join(ChunkEmbeddingRow, ChunkEmbeddingRow.chunk_id == CodeChunkRow.chunk_id)
                .options(contains_eager(CodeChunkRow.embedding))
                .filter(CodeChunkRow.session_id == session_id)
                .filter(ChunkEmbeddingRow.dimensions == len(vector))
                .filter(score >= threshold)
            )
            q = self._apply_filters(q, chunk_types, languages)
            if exclude_chunk_id:
                q = q.filter(CodeChunkRow.chunk_id != exclude_chunk_id)

            rows = q.order_by(score.desc(), CodeChunkRow.id.asc()).limit(limit).all()

            results = []
            for row, value in rows:
                chunk = row.to_chunk(with_embedding=True)
                chunk.similarity = float(value)
                results.append(chunk)

        logger.debug(f"pgvector search returned {len(results)} chunks >= {threshold}")
        return results

    def _search_ranked(self, q, terms: List[str], criteria: SearchCriteria) -> List[CodeChunk]:
        """Full-text ranking with ts_rank; any term may match."""
        document = func.to_tsvector("english", func.coalesce(CodeChunkRow.search_text, ""))
        ts_query = func.to_tsquery("english", " | ".join(terms))
        rank = func.ts_rank(document, ts_query)

        rows = (
            q.filter(document.op("@@")(ts_query))
            .order_by(rank.desc(), CodeChunkRow.id.asc())
            .offset(max(criteria.offset, 0))
            .limit(criteria.limit)
            .all()
        )
        return [row.to_chunk() for row in rows]
