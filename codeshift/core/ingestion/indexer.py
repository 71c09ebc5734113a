"""Chunk indexing: validate, embed and persist chunks from a parser.

Parsing source files is someone else's job; the indexer receives chunk
records and makes them searchable:

1. fill session metadata and a stable id, derive tags and search text
2. check record invariants (bad chunks are rejected, not stored)
3. embed chunk code in rate-limited batches
4. attach embedding records and insert everything that embedded
5. optionally refresh each chunk's similar-chunks list
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..chunks.models import (
    CodeChunk,
    EmbeddingRecord,
    SimilarChunk,
    build_search_text,
    build_tags,
    generate_chunk_id,
    utcnow,
    validate_chunk,
)
from ..constants import DEFAULT_BATCH_SIZE, DEFAULT_DELAY_BETWEEN_BATCHES_MS, DEFAULT_SIMILARITY_THRESHOLD, MAX_SIMILAR_CHUNKS
from ..embedding.provider import EmbeddingProvider
from ..errors import StoreUnavailableError, ValidationFailedError
from ..recovery.retry import retry_with_backoff
from ..store.base import ChunkStore

logger = logging.getLogger(__name__)


@dataclass
class IndexReport:
    session_id: str
    stored: int = 0
    rejected: List[Dict[str, str]] = field(default_factory=list)
    embedding_failures: List[Dict[str, str]] = field(default_factory=list)
    embedding_summary: Optional[dict] = None

    @property
    def success(self) -> bool:
        return not self.rejected and not self.embedding_failures

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "success": self.success,
            "stored": self.stored,
            "rejected": list(self.rejected),
            "embedding_failures": list(self.embedding_failures),
            "embedding_summary": self.embedding_summary,
        }


class ChunkIndexer:
    """Turns parsed chunks into stored, embedded, searchable records."""

    def __init__(
        self,
        store: ChunkStore,
        embedder: EmbeddingProvider,
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay_between_batches_ms: int = DEFAULT_DELAY_BETWEEN_BATCHES_MS,
        store_retries: int = 3,
        store_retry_delay: float = 1.0,
    ):
        self._store = store
        self._embedder = embedder
        self.batch_size = batch_size
        self.delay_between_batches_ms = delay_between_batches_ms
        self.store_retries = store_retries
        self.store_retry_delay = store_retry_delay

    def prepare(
        self,
        chunk: CodeChunk,
        session_id: str,
        user_id: str,
        project_id: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> CodeChunk:
        """Copy of the chunk with session metadata, id, tags and search text filled in."""
        chunk = dataclasses.replace(
            chunk,
            session_id=chunk.session_id or session_id,
            user_id=chunk.user_id or user_id,
            project_id=chunk.project_id or project_id or session_id,
            project_name=chunk.project_name or project_name or "Unknown Project",
        )
        if not chunk.chunk_id:
            chunk.chunk_id = generate_chunk_id(
                chunk.session_id, chunk.file_path, chunk.start_line, chunk.end_line, chunk.name
            )
        chunk.tags = build_tags(chunk)
        chunk.search_text = build_search_text(chunk)
        return chunk

    async def index(
        self,
        chunks: Iterable[CodeChunk],
        session_id: str,
        user_id: str,
        project_id: Optional[str] = None,
        project_name: Optional[str] = None,
    ) -> IndexReport:
        report = IndexReport(session_id=session_id)
        valid: List[CodeChunk] = []

        for raw in chunks:
            chunk = self.prepare(raw, session_id, user_id, project_id, project_name)
            try:
                validate_chunk(chunk)
            except ValidationFailedError as e:
                report.rejected.append({"chunk_id": chunk.chunk_id, "error": str(e)})
                continue
            valid.append(chunk)

        if not valid:
            logger.info(f"No valid chunks to index for session {session_id}")
            return report

        outcomes, summary = await self._embedder.embed_batch(
            [c.code for c in valid],
            batch_size=self.batch_size,
            delay_between_batches_ms=self.delay_between_batches_ms,
        )
        report.embedding_summary = summary.to_dict()

        embedded: List[CodeChunk] = []
        for chunk, outcome in zip(valid, outcomes):
            if not outcome.ok:
                report.embedding_failures.append({"chunk_id": chunk.chunk_id, "error": str(outcome.error)})
                continue
            emb = outcome.value
            chunk.embedding = EmbeddingRecord(
                vector=emb.vector,
                dimensions=emb.dimensions,
                model=emb.model,
                chunk_id=chunk.chunk_id,
                generated_at=utcnow(),
                name=chunk.name,
                file_path=chunk.file_path,
                kind=chunk.kind.value,
                language=chunk.language,
                complexity=chunk.complexity,
                search_text=chunk.search_text,
            )
            embedded.append(chunk)

        # Inserts are one transaction, so a dropped connection leaves nothing behind
        report.stored = await retry_with_backoff(
            lambda: asyncio.to_thread(self._store.insert_many, embedded),
            max_retries=self.store_retries,
            base_delay=self.store_retry_delay,
            exceptions=(StoreUnavailableError,),
        )
        logger.info(
            f"Indexed session {session_id}: {report.stored} stored, "
            f"{len(report.rejected)} rejected, {len(report.embedding_failures)} embedding failures"
        )
        return report

    async def refresh_similar_chunks(
        self,
        session_id: str,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        limit: int = MAX_SIMILAR_CHUNKS,
    ) -> int:
        """Recompute and persist the similar-chunks list of every chunk in a session."""
        chunks = await asyncio.to_thread(self._store.get_chunks_by_session, session_id)
        updated = 0
        for chunk in chunks:
            similar = await asyncio.to_thread(
                self._store.find_similar_to_chunk, session_id, chunk.chunk_id, threshold, limit
            )
            now = utcnow()
            entries = [SimilarChunk(chunk_id=s.chunk_id, similarity=s.similarity or 0.0, calculated_at=now) for s in similar]
            await asyncio.to_thread(self._store.record_similar_chunks, chunk.chunk_id, entries)
            updated += 1
        logger.info(f"Refreshed similar chunks for {updated} chunks in session {session_id}")
        return updated
