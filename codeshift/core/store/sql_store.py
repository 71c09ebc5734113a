"""SQLAlchemy-backed chunk store: everything except the similarity query.

Subclasses provide ``find_similar`` (and may override the free-text
ranking used by ``search_chunks``).
"""

import functools
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import case, func, or_
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import selectinload

from ..chunks.models import (
    CodeChunk,
    SimilarChunk,
    build_search_text,
    rank_similar_chunks,
    validate_chunk,
)
from ..constants import MAX_SIMILAR_CHUNKS
from ..db.db import DatabaseManager
from ..db.models import ChunkEmbeddingRow, CodeChunkRow
from ..errors import StoreConsistencyError, StoreUnavailableError
from .base import ChunkStore, SearchCriteria, StrOrList, as_list

logger = logging.getLogger(__name__)

_TERM_RE = re.compile(r"[A-Za-z0-9_]+")


def query_terms(query: Optional[str]) -> List[str]:
    """Lower-cased word terms of a free-text query, without duplicates."""
    seen = []
    for term in _TERM_RE.findall((query or "").lower()):
        if term not in seen:
            seen.append(term)
    return seen


def translate_db_errors(fn):
    """Map SQLAlchemy failures onto STORE_UNAVAILABLE / STORE_CONSISTENCY."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except IntegrityError as e:
            raise StoreConsistencyError(f"Chunk store consistency error: {e.orig}") from e
        except (OperationalError, DBAPIError) as e:
            raise StoreUnavailableError(f"Chunk store database connection failed: {e}") from e

    return wrapper


class SqlChunkStore(ChunkStore):
    """Shared SQL implementation over code_chunks / chunk_embeddings."""

    backend_name = "sql"

    def __init__(self, db_manager: DatabaseManager):
        self._db = db_manager

    # ── Helpers ───────────────────────────────────────────────────────

    @staticmethod
    def _apply_filters(q, chunk_types: StrOrList = None, languages: StrOrList = None):
        types = as_list(chunk_types)
        langs = as_list(languages)
        if types:
            q = q.filter(CodeChunkRow.chunk_type.in_(types))
        if langs:
            q = q.filter(CodeChunkRow.language.in_(langs))
        return q

    # ── Reads ─────────────────────────────────────────────────────────

    @translate_db_errors
    def get_chunks_by_session(
        self,
        session_id: str,
        chunk_types: StrOrList = None,
        languages: StrOrList = None,
        file_path: Optional[str] = None,
        limit: Optional[int] = None,
        with_embeddings: bool = False,
    ) -> List[CodeChunk]:
        with self._db.get_session() as session:
            q = session.query(CodeChunkRow).filter(CodeChunkRow.session_id == session_id)
            q = self._apply_filters(q, chunk_types, languages)
            if file_path:
                q = q.filter(CodeChunkRow.file_path == file_path)
            if with_embeddings:
                q = q.options(selectinload(CodeChunkRow.embedding))
            q = q.order_by(CodeChunkRow.id.asc())
            if limit:
                q = q.limit(limit)
            return [row.to_chunk(with_embedding=with_embeddings) for row in q.all()]

    @translate_db_errors
    def get_chunk(self, chunk_id: str, with_embedding: bool = False) -> Optional[CodeChunk]:
        with self._db.get_session() as session:
            q = session.query(CodeChunkRow).filter(CodeChunkRow.chunk_id == chunk_id)
            if with_embedding:
                q = q.options(selectinload(CodeChunkRow.embedding))
            row = q.first()
            return row.to_chunk(with_embedding=with_embedding) if row else None

    @translate_db_errors
    def count_chunks(self, session_id: str) -> int:
        with self._db.get_session() as session:
            return (
                session.query(func.count(CodeChunkRow.id))
                .filter(CodeChunkRow.session_id == session_id)
                .scalar()
            ) or 0

    @translate_db_errors
    def get_project_statistics(self, session_id: str) -> Dict[str, Any]:
        with self._db.get_session() as session:
            base = session.query(CodeChunkRow).filter(CodeChunkRow.session_id == session_id)

            total_chunks, total_files, avg_complexity, async_chunks = (
                session.query(
                    func.count(CodeChunkRow.id),
                    func.count(func.distinct(CodeChunkRow.file_path)),
                    func.avg(CodeChunkRow.complexity),
                    func.sum(case((CodeChunkRow.is_async.is_(True), 1), else_=0)),
                )
                .filter(CodeChunkRow.session_id == session_id)
                .one()
            )

            def grouped(column):
                return dict(
                    base.with_entities(column, func.count(CodeChunkRow.id))
                    .group_by(column)
                    .all()
                )

            return {
                "total_chunks": total_chunks or 0,
                "total_files": total_files or 0,
                "average_complexity": round(float(avg_complexity), 2) if avg_complexity is not None else 0.0,
                "async_chunks": async_chunks or 0,
                "by_type": grouped(CodeChunkRow.chunk_type),
                "by_language": grouped(CodeChunkRow.language),
                "by_file": grouped(CodeChunkRow.file_path),
            }

    @translate_db_errors
    def search_chunks(self, session_id: str, criteria: SearchCriteria) -> List[CodeChunk]:
        with self._db.get_session() as session:
            q = session.query(CodeChunkRow).filter(CodeChunkRow.session_id == session_id)
            q = self._apply_filters(q, criteria.chunk_type, criteria.language)
            if criteria.min_complexity is not None:
                q = q.filter(CodeChunkRow.complexity >= criteria.min_complexity)
            if criteria.max_complexity is not None:
                q = q.filter(CodeChunkRow.complexity <= criteria.max_complexity)
            if criteria.is_async is not None:
                q = q.filter(CodeChunkRow.is_async.is_(bool(criteria.is_async)))
            if criteria.file_path:
                q = q.filter(CodeChunkRow.file_path.ilike(f"%{criteria.file_path}%"))

            terms = query_terms(criteria.query)
            if terms:
                return self._search_ranked(q, terms, criteria)

            q = q.order_by(CodeChunkRow.created_at.desc(), CodeChunkRow.id.desc())
            rows = q.offset(max(criteria.offset, 0)).limit(criteria.limit).all()
            return [row.to_chunk() for row in rows]

    def _search_ranked(self, q, terms: List[str], criteria: SearchCriteria) -> List[CodeChunk]:
        """Rank by how often the query terms occur in the search text."""
        q = q.filter(or_(*[CodeChunkRow.search_text.ilike(f"%{t}%") for t in terms]))
        rows = q.order_by(CodeChunkRow.id.asc()).all()

        def relevance(row) -> int:
            haystack = (row.search_text or "").lower()
            return sum(haystack.count(t) for t in terms)

        ranked = sorted(rows, key=relevance, reverse=True)
        start = max(criteria.offset, 0)
        return [row.to_chunk() for row in ranked[start:start + criteria.limit]]

    @translate_db_errors
    def ping(self) -> bool:
        return self._db.ping()

    # ── Writes ────────────────────────────────────────────────────────

    @staticmethod
    def _prepare(chunk: CodeChunk) -> CodeChunkRow:
        if not chunk.search_text:
            chunk.search_text = build_search_text(chunk)
        validate_chunk(chunk)
        return CodeChunkRow.from_chunk(chunk)

    @translate_db_errors
    def insert(self, chunk: CodeChunk) -> CodeChunk:
        row = self._prepare(chunk)
        with self._db.get_session() as session:
            session.add(row)
        logger.debug(f"Inserted chunk {chunk.chunk_id} ({chunk.name})")
        return chunk

    @translate_db_errors
    def insert_many(self, chunks: Iterable[CodeChunk]) -> int:
        rows = [self._prepare(c) for c in chunks]
        if not rows:
            return 0
        with self._db.get_session() as session:
            session.add_all(rows)
        logger.info(f"Inserted {len(rows)} chunks")
        return len(rows)

    @translate_db_errors
    def delete_by_session(self, session_id: str) -> int:
        with self._db.get_session() as session:
            session.query(ChunkEmbeddingRow).filter(
                ChunkEmbeddingRow.session_id == session_id
            ).delete(synchronize_session=False)
            deleted = session.query(CodeChunkRow).filter(
                CodeChunkRow.session_id == session_id
            ).delete(synchronize_session=False)
        logger.info(f"Deleted {deleted} chunks for session {session_id}")
        return deleted

    @translate_db_errors
    def record_similar_chunks(
        self, chunk_id: str, entries: Iterable[SimilarChunk]
    ) -> List[SimilarChunk]:
        ranked = rank_similar_chunks(
            [e for e in entries if e.chunk_id != chunk_id], MAX_SIMILAR_CHUNKS
        )
        with self._db.get_session() as session:
            row = session.query(CodeChunkRow).filter(CodeChunkRow.chunk_id == chunk_id).first()
            if row is None:
                raise StoreConsistencyError(f"Chunk {chunk_id} not found")
            row.similar_chunks = [e.to_dict() for e in ranked]
        return ranked
