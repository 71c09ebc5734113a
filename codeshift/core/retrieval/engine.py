"""Retrieval engine: command -> ranked, enriched chunks.

Pipeline:
    expand command -> embed -> store vector search (2 x limit candidates)
    -> lexical/structural re-rank -> truncate -> add referenced relatives
    -> enrich with file context and migration relevance

Every chunk returned, relatives included, has cosine >= threshold against
the query embedding and matches the kind/language filters.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from ..chunks.arena import ChunkArena
from ..chunks.models import ChunkKind, CodeChunk, utcnow
from ..constants import (
    CANDIDATE_MULTIPLIER,
    DEFAULT_RESULT_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
    MAX_RELATED_CHUNKS,
)
from ..embedding.provider import EmbeddingProvider
from ..embedding.similarity import cosine_similarity
from ..errors import MigrationError, Outcome
from ..store.base import ChunkStore, as_list
from .keywords import command_tokens, expand_command
from .models import ChunkContext, RetrievalOptions, RetrievalResult, RetrievedChunk

logger = logging.getLogger(__name__)

KEYWORD_BOOST = 0.1
KIND_BOOST = 0.05
COMPLEXITY_BOOST = 0.03
BOOSTED_KINDS = {ChunkKind.CLASS, ChunkKind.FUNCTION, ChunkKind.METHOD, ChunkKind.INTERFACE, ChunkKind.TYPE}

CORE_KINDS = {ChunkKind.CLASS, ChunkKind.FUNCTION, ChunkKind.METHOD, ChunkKind.INTERFACE}


def rank_score(chunk: CodeChunk, similarity: float, tokens: Sequence[str]) -> float:
    text = f"{chunk.name} {chunk.code}".lower()
    score = similarity
    score += KEYWORD_BOOST * sum(1 for token in tokens if token in text)
    if chunk.kind in BOOSTED_KINDS:
        score += KIND_BOOST
    if chunk.complexity > 2:
        score += COMPLEXITY_BOOST
    return score


def migration_relevance(chunk: CodeChunk) -> float:
    relevance = 0.0
    if chunk.kind in CORE_KINDS:
        relevance += 0.3
    if chunk.complexity > 2:
        relevance += 0.2
    if chunk.is_async:
        relevance += 0.1
    return min(relevance, 1.0)


def file_context(chunk: CodeChunk) -> ChunkContext:
    return ChunkContext(
        file_name=chunk.file_name or "unknown",
        file_path=chunk.file_path or "unknown",
        file_extension=chunk.file_extension or ".js",
        directory=chunk.directory if chunk.file_path else "unknown",
    )


def _matches(chunk: CodeChunk, chunk_types: Optional[List[str]], languages: Optional[List[str]]) -> bool:
    if chunk_types and chunk.kind.value not in chunk_types:
        return False
    if languages and chunk.language not in languages:
        return False
    return True


class RetrievalEngine:
    """Finds the chunks most relevant to a migration command.

    Args:
        embedder: EmbeddingProvider for the query embedding.
        store: ChunkStore holding the session's chunks.
        threshold: Default minimum cosine similarity.
        limit: Default number of chunks returned.
        max_related: Cap on relatives appended after ranking.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: ChunkStore,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        limit: int = DEFAULT_RESULT_LIMIT,
        max_related: int = MAX_RELATED_CHUNKS,
    ):
        self._embedder = embedder
        self._store = store
        self.threshold = threshold
        self.limit = limit
        self.max_related = max_related

    async def retrieve(
        self,
        command: str,
        session_id: str,
        options: Union[RetrievalOptions, Dict[str, Any], None] = None,
    ) -> Outcome[RetrievalResult]:
        if not isinstance(options, RetrievalOptions):
            options = RetrievalOptions.from_dict(options, self.threshold, self.limit)
        chunk_types = as_list(options.chunk_types)
        languages = as_list(options.languages)

        expanded = expand_command(command)
        logger.info(f"Finding relevant chunks for command: \"{command}\"")
        logger.debug(f"Expanded query: {expanded}")

        embedded = await self._embedder.embed(expanded)
        if not embedded.ok:
            return embedded
        query = embedded.value.vector

        try:
            candidates = await asyncio.to_thread(
                self._store.find_similar,
                session_id,
                query,
                options.threshold,
                CANDIDATE_MULTIPLIER * options.limit,
                chunk_types,
                languages,
            )
        except MigrationError as e:
            return Outcome.failure(e)

        ranked = self.rank(candidates, command)[:options.limit]

        related: List[RetrievedChunk] = []
        if options.include_dependencies or options.include_related_files:
            try:
                related = await self._relatives(session_id, ranked, query, options.threshold, chunk_types, languages)
            except MigrationError as e:
                return Outcome.failure(e)
        selected = (ranked + related)[:options.limit]

        for item in selected:
            item.context = file_context(item.chunk)
            item.migration_relevance = migration_relevance(item.chunk)

        metadata = {
            "original_command": command,
            "enhanced_command": expanded,
            "total_candidates": len(candidates),
            "related_added": sum(1 for item in selected if item.related),
            "final_results": len(selected),
            "threshold": options.threshold,
            "search_timestamp": utcnow().isoformat(),
            "backend": self._store.backend_name,
        }
        logger.info(f"Found {len(selected)} relevant chunks ({len(candidates)} candidates)")
        return Outcome.success(RetrievalResult(chunks=selected, metadata=metadata))

    @staticmethod
    def rank(candidates: List[CodeChunk], command: str) -> List[RetrievedChunk]:
        """Score candidates and sort best first; ties keep store order."""
        tokens = command_tokens(command)
        scored = [
            RetrievedChunk(chunk=c, similarity=c.similarity or 0.0, score=rank_score(c, c.similarity or 0.0, tokens))
            for c in candidates
        ]
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored

    async def _relatives(
        self,
        session_id: str,
        ranked: List[RetrievedChunk],
        query: Sequence[float],
        threshold: float,
        chunk_types: Optional[List[str]],
        languages: Optional[List[str]],
    ) -> List[RetrievedChunk]:
        """Referenced chunks (import targets, callees) that still clear the threshold."""
        if not ranked:
            return []
        session_chunks = await asyncio.to_thread(
            self._store.get_chunks_by_session, session_id, None, None, None, None, True
        )
        arena = ChunkArena(session_chunks)
        selected = [arena.get(item.chunk.chunk_id) or item.chunk for item in ranked]

        out: List[RetrievedChunk] = []
        for chunk in arena.related(selected, limit=len(arena)):
            if len(out) >= self.max_related:
                break
            if chunk.embedding is None or not _matches(chunk, chunk_types, languages):
                continue
            similarity = cosine_similarity(query, chunk.embedding.vector)
            if similarity < threshold:
                continue
            chunk.similarity = similarity
            out.append(RetrievedChunk(chunk=chunk, similarity=similarity, score=similarity, related=True))
        return out
