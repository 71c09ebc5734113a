"""Embedding provider: text -> fixed-width vector.

Wraps any LlamaIndex embedding model (anything with
``aget_text_embedding``). Calls never raise: each returns an Outcome
whose error is already translated onto the codeshift taxonomy.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ..constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_DELAY_BETWEEN_BATCHES_MS,
    DEFAULT_EMBEDDING_DIMENSIONS,
    MAX_EMBEDDING_INPUT_CHARS,
)
from ..errors import Outcome, ProviderMalformedResponseError
from ..providers import translate_provider_error

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class Embedding:
    vector: List[float]
    dimensions: int
    model: str


@dataclass
class BatchSummary:
    total: int
    successful: int
    failed: int
    average_dimensions: float
    success_rate: float

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "average_dimensions": self.average_dimensions,
            "success_rate": self.success_rate,
        }


def prepare_text(text: str, max_chars: int = MAX_EMBEDDING_INPUT_CHARS) -> str:
    """Collapse whitespace runs to single spaces and cap the length."""
    cleaned = _WHITESPACE_RE.sub(" ", text or "").strip()
    return cleaned[:max_chars]


class EmbeddingProvider:
    """Embeds text with a configured LlamaIndex embedding model."""

    def __init__(
        self,
        embed_model: Any,
        dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS,
        model_name: Optional[str] = None,
        max_input_chars: int = MAX_EMBEDDING_INPUT_CHARS,
        sleep=asyncio.sleep,
    ):
        self._embed_model = embed_model
        self.dimensions = dimensions
        self.model_name = model_name or getattr(embed_model, "model_name", None) or "unknown"
        self._max_input_chars = max_input_chars
        self._sleep = sleep

    async def embed(self, text: str) -> Outcome[Embedding]:
        prepared = prepare_text(text, self._max_input_chars)
        try:
            vector = await self._embed_model.aget_text_embedding(prepared)
        except Exception as e:
            logger.warning(f"Embedding call failed ({type(e).__name__}): {e}")
            return Outcome.failure(translate_provider_error(e))

        if not vector or len(vector) != self.dimensions:
            got = len(vector) if vector else 0
            return Outcome.failure(ProviderMalformedResponseError(
                f"Embedding has {got} dimensions, expected {self.dimensions}"
            ))

        return Outcome.success(Embedding(
            vector=[float(v) for v in vector],
            dimensions=self.dimensions,
            model=self.model_name,
        ))

    async def embed_batch(
        self,
        texts: List[str],
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay_between_batches_ms: int = DEFAULT_DELAY_BETWEEN_BATCHES_MS,
    ) -> Tuple[List[Outcome[Embedding]], BatchSummary]:
        """Embed many texts, batch_size at a time, pausing between batches.

        Returns per-item outcomes (same order as texts) and a summary.
        """
        outcomes: List[Outcome[Embedding]] = []
        batch_size = max(1, batch_size)

        for start in range(0, len(texts), batch_size):
            batch = texts[start:start + batch_size]
            outcomes.extend(await asyncio.gather(*(self.embed(t) for t in batch)))

            if start + batch_size < len(texts) and delay_between_batches_ms > 0:
                await self._sleep(delay_between_batches_ms / 1000)

        successful = [o.value for o in outcomes if o.ok]
        total = len(outcomes)
        summary = BatchSummary(
            total=total,
            successful=len(successful),
            failed=total - len(successful),
            average_dimensions=(
                sum(e.dimensions for e in successful) / len(successful) if successful else 0.0
            ),
            success_rate=len(successful) / total if total else 0.0,
        )
        logger.info(
            f"Embedded batch: {summary.successful}/{summary.total} succeeded "
            f"({summary.success_rate:.0%})"
        )
        return outcomes, summary
