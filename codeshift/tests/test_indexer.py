"""Tests for chunk indexing."""

import dataclasses
from unittest.mock import MagicMock

import pytest

from codeshift.core.errors import StoreUnavailableError
from codeshift.core.ingestion.indexer import ChunkIndexer


def _raw(chunk):
    """Chunk as a parser would hand it over: no session metadata, no id."""
    return dataclasses.replace(chunk, chunk_id="", session_id="", user_id="", tags=[], search_text="")


class TestChunkIndexer:

    def test_prepare_fills_metadata(self, store, embedder, make_chunk):
        indexer = ChunkIndexer(store, embedder)
        chunk = indexer.prepare(_raw(make_chunk("getUser", is_async=True)), "s9", "u9", project_name="shop")

        assert chunk.session_id == "s9"
        assert chunk.user_id == "u9"
        assert chunk.project_id == "s9"
        assert chunk.project_name == "shop"
        assert chunk.chunk_id
        assert "async" in chunk.tags
        assert "getUser" in chunk.search_text

    def test_prepare_is_stable(self, store, embedder, make_chunk):
        indexer = ChunkIndexer(store, embedder)
        raw = _raw(make_chunk("getUser"))
        assert indexer.prepare(raw, "s1", "u1").chunk_id == indexer.prepare(raw, "s1", "u1").chunk_id

    @pytest.mark.asyncio
    async def test_index_project(self, store, embedder, embed_model, clock, project_chunks):
        indexer = ChunkIndexer(store, embedder, batch_size=5, delay_between_batches_ms=200)
        report = await indexer.index([_raw(c) for c in project_chunks], "s1", "u1")

        assert report.success
        assert report.stored == 12
        assert report.embedding_summary["successful"] == 12
        assert clock.sleeps == [0.2, 0.2]
        assert len(embed_model.calls) == 12

        stored = store.get_chunks_by_session("s1", with_embeddings=True)
        assert [c.name for c in stored] == [c.name for c in project_chunks]
        assert stored[0].embedding.model == "fake-embed"
        assert stored[0].embedding.dimensions == 4

    @pytest.mark.asyncio
    async def test_invalid_chunks_are_rejected(self, store, embedder, make_chunk):
        bad = dataclasses.replace(make_chunk("broken", file_path="notes/readme.md"), chunk_id="bad-1")
        report = await ChunkIndexer(store, embedder).index([make_chunk("getUser"), bad], "s1", "u1")

        assert report.stored == 1
        assert report.rejected[0]["chunk_id"] == "bad-1"
        assert "unsupported file extension" in report.rejected[0]["error"]
        assert not report.success

    @pytest.mark.asyncio
    async def test_embedding_failures_are_reported(self, store, embedder, embed_model, make_chunk):
        embed_model.failures.append(ConnectionError("reset by peer"))
        chunks = [make_chunk("a", start_line=1), make_chunk("b", start_line=10)]
        report = await ChunkIndexer(store, embedder, batch_size=1).index(chunks, "s1", "u1")

        assert report.stored == 1
        assert len(report.embedding_failures) == 1
        assert "Provider unavailable" in report.embedding_failures[0]["error"]
        assert report.to_dict()["embedding_summary"]["failed"] == 1

    @pytest.mark.asyncio
    async def test_nothing_valid_stores_nothing(self, embedder, make_chunk):
        store = MagicMock()
        bad = make_chunk("broken", file_path="notes/readme.md")
        report = await ChunkIndexer(store, embedder).index([bad], "s1", "u1")
        assert report.stored == 0
        store.insert_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_insert_is_retried(self, embedder, make_chunk):
        store = MagicMock()
        store.insert_many.side_effect = [StoreUnavailableError("connection dropped"), 1]
        indexer = ChunkIndexer(store, embedder, store_retries=3, store_retry_delay=0)

        report = await indexer.index([make_chunk("getUser")], "s1", "u1")
        assert report.stored == 1
        assert store.insert_many.call_count == 2

    @pytest.mark.asyncio
    async def test_refresh_similar_chunks(self, indexed_store, embedder):
        updated = await ChunkIndexer(indexed_store, embedder).refresh_similar_chunks("s1")
        assert updated == 12

        get_user = indexed_store.get_chunks_by_session("s1")[0]
        similar = indexed_store.get_chunk(get_user.chunk_id).similar_chunks
        assert len(similar) == 7
        assert all(s.similarity == pytest.approx(1.0) for s in similar)
        assert get_user.chunk_id not in {s.chunk_id for s in similar}
