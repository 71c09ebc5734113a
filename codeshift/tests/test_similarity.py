"""Tests for cosine similarity and embedding preparation."""

import pytest

from codeshift.core.embedding.provider import EmbeddingProvider, prepare_text
from codeshift.core.embedding.similarity import cosine_similarities, cosine_similarity
from codeshift.core.errors import ErrorCode, ProviderRateLimitedError


class TestCosineLaw:

    def test_identical_vectors(self):
        assert cosine_similarity([1, 0, 0], [1, 0, 0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1, 0, 0], [0, 1, 0]) == pytest.approx(0.0)

    def test_zero_vector(self):
        assert cosine_similarity([1, 0, 0], [0, 0, 0]) == 0.0

    def test_self_similarity_is_one(self):
        a = [0.3, -1.2, 4.0, 0.5]
        assert cosine_similarity(a, a) == pytest.approx(1.0)

    def test_symmetric(self):
        a, b = [1.0, 2.0, 3.0], [-2.0, 0.5, 1.0]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_length_mismatch_is_zero(self):
        assert cosine_similarity([1, 0, 0], [1, 0]) == 0.0

    def test_empty_is_zero(self):
        assert cosine_similarity([], []) == 0.0


class TestCosineBatch:

    def test_matches_pairwise(self):
        query = [1.0, 1.0, 0.0]
        rows = [[1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [2.0, 2.0, 0.0]]
        scores = cosine_similarities(query, rows)
        for score, row in zip(scores, rows):
            assert score == pytest.approx(cosine_similarity(query, row))

    def test_wrong_dimension_and_zero_rows_score_zero(self):
        scores = cosine_similarities([1.0, 0.0], [[1.0, 0.0, 0.0], [0.0, 0.0], [3.0, 0.0]])
        assert list(scores) == pytest.approx([0.0, 0.0, 1.0])

    def test_no_rows(self):
        assert len(cosine_similarities([1.0], [])) == 0


class TestPrepareText:

    def test_collapses_whitespace(self):
        assert prepare_text("a  \n\t b\n\nc") == "a b c"

    def test_truncates_after_collapsing(self):
        text = "x " * 10
        assert prepare_text(text, max_chars=5) == "x x x"


class _StaticModel:
    model_name = "static"

    def __init__(self, vector=None, error=None):
        self.vector = vector
        self.error = error
        self.inputs = []

    async def aget_text_embedding(self, text):
        self.inputs.append(text)
        if self.error is not None:
            raise self.error
        return self.vector


class TestEmbeddingProvider:

    @pytest.mark.asyncio
    async def test_embed_success(self):
        provider = EmbeddingProvider(_StaticModel([0.1, 0.2, 0.3]), dimensions=3)
        outcome = await provider.embed("hello   world")

        assert outcome.ok
        assert outcome.value.dimensions == 3
        assert outcome.value.model == "static"

    @pytest.mark.asyncio
    async def test_wrong_dimension_is_malformed(self):
        provider = EmbeddingProvider(_StaticModel([0.1, 0.2]), dimensions=3)
        outcome = await provider.embed("hello")

        assert not outcome.ok
        assert outcome.error.code == ErrorCode.PROVIDER_MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_rate_limit_is_translated(self):
        provider = EmbeddingProvider(_StaticModel(error=RuntimeError("429 rate limit reached")), dimensions=3)
        outcome = await provider.embed("hello")

        assert isinstance(outcome.error, ProviderRateLimitedError)

    @pytest.mark.asyncio
    async def test_batch_pauses_between_batches(self):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        provider = EmbeddingProvider(_StaticModel([1.0, 0.0]), dimensions=2, sleep=fake_sleep)
        outcomes, summary = await provider.embed_batch(["a", "b", "c", "d", "e"], batch_size=2,
                                                       delay_between_batches_ms=250)

        assert len(outcomes) == 5
        assert sleeps == [0.25, 0.25]
        assert summary.successful == 5
        assert summary.success_rate == 1.0
        assert summary.average_dimensions == 2
