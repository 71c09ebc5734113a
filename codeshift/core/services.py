"""Capability bundle handed to the migration pipeline.

Providers are built once at startup from configuration and passed in
explicitly; nothing in the pipeline reaches for module-level clients.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .chunks.models import utcnow
from .constants import (
    DEFAULT_RESULT_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
    MAX_RELATED_CHUNKS,
    MAX_RETRIES,
    NETWORK_BACKOFF_BASE_SECONDS,
    RATE_LIMIT_DELAY_SECONDS,
    RECONNECT_DELAY_SECONDS,
)
from .db.db import DatabaseManager
from .embedding.provider import EmbeddingProvider
from .gateway import LLMGateway
from .providers import create_embed_model, create_llm
from .store.base import ChunkStore
from .store.factory import create_chunk_store

logger = logging.getLogger(__name__)


class SystemClock:
    """Wall clock plus asyncio sleep. Tests swap in a fake."""

    def now(self) -> datetime:
        return utcnow()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


@dataclass
class PipelineSettings:
    """Tunables for retrieval, rewrite concurrency and recovery."""

    threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    limit: int = DEFAULT_RESULT_LIMIT
    max_related: int = MAX_RELATED_CHUNKS
    max_concurrent_files: int = 4
    call_timeout: Optional[float] = 120.0
    max_retries: int = MAX_RETRIES
    network_backoff_base: float = NETWORK_BACKOFF_BASE_SECONDS
    rate_limit_delay: float = RATE_LIMIT_DELAY_SECONDS
    reconnect_delay: float = RECONNECT_DELAY_SECONDS

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "PipelineSettings":
        retrieval = config.get("retrieval", {})
        migration = config.get("migration", {})
        timeout = migration.get("call_timeout_seconds", 120)
        return cls(
            threshold=float(retrieval.get("threshold", DEFAULT_SIMILARITY_THRESHOLD)),
            limit=int(retrieval.get("limit", DEFAULT_RESULT_LIMIT)),
            max_related=int(retrieval.get("max_related", MAX_RELATED_CHUNKS)),
            max_concurrent_files=int(migration.get("max_concurrent_files", 4)),
            call_timeout=float(timeout) if timeout else None,
            max_retries=int(migration.get("max_retries", MAX_RETRIES)),
            network_backoff_base=float(migration.get("network_backoff_base_seconds", NETWORK_BACKOFF_BASE_SECONDS)),
            rate_limit_delay=float(migration.get("rate_limit_delay_seconds", RATE_LIMIT_DELAY_SECONDS)),
            reconnect_delay=float(migration.get("reconnect_delay_seconds", RECONNECT_DELAY_SECONDS)),
        )


@dataclass
class MigrationServices:
    """{embedder, llm, store, clock, logger} plus pipeline settings."""

    embedder: EmbeddingProvider
    llm: LLMGateway
    store: ChunkStore
    clock: Any = field(default_factory=SystemClock)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("codeshift.migration"))
    settings: PipelineSettings = field(default_factory=PipelineSettings)
    db_manager: Optional[DatabaseManager] = None


def build_services(config: Dict[str, Any], db_manager: Optional[DatabaseManager] = None) -> MigrationServices:
    """Construct all providers from a loaded config dict."""
    if db_manager is None:
        db_cfg = config.get("database", {})
        db_manager = DatabaseManager(
            db_cfg.get("url", "sqlite:///codeshift.db"),
            pool_size=int(db_cfg.get("pool_size", 5)),
            echo=bool(db_cfg.get("echo", False)),
        )

    clock = SystemClock()
    emb_cfg = config.get("embedding", {})
    embedder = EmbeddingProvider(
        create_embed_model(emb_cfg),
        dimensions=int(emb_cfg.get("dimensions", 768)),
        model_name=emb_cfg.get("model"),
        max_input_chars=int(emb_cfg.get("max_input_chars", 8000)),
        sleep=clock.sleep,
    )

    llm = LLMGateway(create_llm(config.get("llm", {})))
    store = create_chunk_store(db_manager)

    logger.info(f"Migration services ready (store={store.backend_name}, llm={llm.model})")
    return MigrationServices(
        embedder=embedder,
        llm=llm,
        store=store,
        clock=clock,
        settings=PipelineSettings.from_config(config),
        db_manager=db_manager,
    )
