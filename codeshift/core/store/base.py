"""Chunk store interface.

The core talks to persisted chunks only through ChunkStore. Two variants
implement it: PgVectorChunkStore (similarity computed by PostgreSQL) and
LocalCosineChunkStore (candidates fetched, cosine computed in process).

Store methods are synchronous; async callers run them through
``asyncio.to_thread``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..chunks.models import CodeChunk, SimilarChunk

StrOrList = Union[str, Sequence[str], None]


def as_list(value: StrOrList) -> Optional[List[str]]:
    """Normalize a single filter value or a list of them; None/empty means no filter."""
    if value is None:
        return None
    if isinstance(value, str):
        return [value] if value else None
    items = [v for v in value if v]
    return items or None


@dataclass
class SearchCriteria:
    """Filters for ChunkStore.search_chunks."""

    query: Optional[str] = None
    chunk_type: StrOrList = None
    language: StrOrList = None
    min_complexity: Optional[int] = None
    max_complexity: Optional[int] = None
    is_async: Optional[bool] = None
    file_path: Optional[str] = None
    offset: int = 0
    limit: int = 50

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchCriteria":
        def pick(camel, snake, default=None):
            return data.get(camel, data.get(snake, default))

        return cls(
            query=data.get("query"),
            chunk_type=pick("chunkType", "chunk_type"),
            language=data.get("language"),
            min_complexity=pick("minComplexity", "min_complexity"),
            max_complexity=pick("maxComplexity", "max_complexity"),
            is_async=pick("isAsync", "is_async"),
            file_path=pick("filePath", "file_path"),
            offset=int(data.get("offset", 0) or 0),
            limit=int(data.get("limit", 50) or 50),
        )


class ChunkStore(ABC):
    """Persists code chunks and answers similarity, filter and aggregate queries."""

    backend_name = "abstract"

    @abstractmethod
    def get_chunks_by_session(
        self,
        session_id: str,
        chunk_types: StrOrList = None,
        languages: StrOrList = None,
        file_path: Optional[str] = None,
        limit: Optional[int] = None,
        with_embeddings: bool = False,
    ) -> List[CodeChunk]:
        """All chunks of a session in store-insertion order."""

    @abstractmethod
    def get_project_statistics(self, session_id: str) -> Dict[str, Any]:
        """Aggregates: total_chunks, total_files, average_complexity,
        async_chunks, by_type, by_language, by_file."""

    @abstractmethod
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
        """Chunks with cosine(vector, chunk) >= threshold, best first.

        Each returned chunk has ``similarity`` set. Equal similarities keep
        store-insertion order.
        """

    @abstractmethod
    def search_chunks(self, session_id: str, criteria: SearchCriteria) -> List[CodeChunk]:
        """Filtered search. Ordered by textual relevance when criteria.query
        is set, newest first otherwise."""

    @abstractmethod
    def insert(self, chunk: CodeChunk) -> CodeChunk: ...

    @abstractmethod
    def insert_many(self, chunks: Iterable[CodeChunk]) -> int: ...

    @abstractmethod
    def delete_by_session(self, session_id: str) -> int: ...

    @abstractmethod
    def get_chunk(self, chunk_id: str, with_embedding: bool = False) -> Optional[CodeChunk]: ...

    @abstractmethod
    def count_chunks(self, session_id: str) -> int: ...

    @abstractmethod
    def ping(self) -> bool: ...

    @abstractmethod
    def record_similar_chunks(self, chunk_id: str, entries: Iterable[SimilarChunk]) -> List[SimilarChunk]:
        """Persist the top-K similar-chunks list for one chunk."""

    def find_similar_to_chunk(
        self,
        session_id: str,
        chunk_id: str,
        threshold: float,
        limit: int,
    ) -> List[CodeChunk]:
        """Chunks similar to an already-indexed chunk, excluding itself."""
        reference = self.get_chunk(chunk_id, with_embedding=True)
        if reference is None or reference.embedding is None:
            return []
        return self.find_similar(
            session_id,
            reference.embedding.vector,
            threshold=threshold,
            limit=limit,
            exclude_chunk_id=chunk_id,
        )
