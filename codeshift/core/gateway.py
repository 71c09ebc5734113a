"""LLM Gateway — observability and metrics around the LLM provider.

Wraps any LlamaIndex LLM. Every prompt the migration pipeline sends goes
through ``generate()``, which:
- tags the call with a purpose (plan, rewrite, ...)
- counts prompt/response tokens with tiktoken
- records latency, errors and estimated cost in thread-safe metrics
- returns an Outcome instead of raising, with vendor errors translated

Retries are not done here: the stage runner owns retry decisions.
"""

import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import Outcome, ProviderMalformedResponseError
from .providers import translate_provider_error
from .utils.token_counter import TokenCounter

logger = logging.getLogger(__name__)

# ── Cost table (USD per 1M tokens) ────────────────────────────────────
_COST_PER_1M_TOKENS = {
    # OpenAI
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4-turbo": {"input": 10.00, "output": 30.00},
    # Anthropic
    "claude-3-5-sonnet-20241022": {"input": 3.00, "output": 15.00},
    "claude-3-haiku-20240307": {"input": 0.25, "output": 1.25},
    # Gemini
    "gemini-2.0-flash": {"input": 0.10, "output": 0.40},
    "gemini-1.5-pro": {"input": 1.25, "output": 5.00},
    # Local (Ollama) — no cost
    "_default": {"input": 0.0, "output": 0.0},
}


# ── Metrics ────────────────────────────────────────────────────────────

@dataclass
class LLMMetrics:
    """In-memory LLM usage metrics (guarded by the gateway's lock)."""

    total_calls: int = 0
    total_tokens_in: int = 0
    total_tokens_out: int = 0
    total_latency_ms: float = 0.0
    errors: int = 0
    calls_by_purpose: dict = field(default_factory=lambda: defaultdict(int))
    errors_by_purpose: dict = field(default_factory=lambda: defaultdict(int))
    estimated_cost_usd: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_calls": self.total_calls,
            "total_tokens_in": self.total_tokens_in,
            "total_tokens_out": self.total_tokens_out,
            "total_latency_ms": round(self.total_latency_ms, 1),
            "avg_latency_ms": round(self.total_latency_ms / max(self.total_calls, 1), 1),
            "errors": self.errors,
            "calls_by_purpose": dict(self.calls_by_purpose),
            "errors_by_purpose": dict(self.errors_by_purpose),
            "estimated_cost_usd": round(self.estimated_cost_usd, 4),
        }


# ── Gateway ────────────────────────────────────────────────────────────

class LLMGateway:
    """LLM proxy with logging, token accounting and metrics.

    Usage:
        from codeshift.core.gateway import LLMGateway
        raw_llm = ...  # Any LlamaIndex LLM
        llm = LLMGateway(raw_llm)
        outcome = await llm.generate(prompt, purpose="plan")
    """

    def __init__(self, llm: Any, token_counter: Optional[TokenCounter] = None):
        self._llm = llm
        self._metrics = LLMMetrics()
        self._lock = threading.Lock()
        self._token_counter = token_counter or TokenCounter()
        logger.info(
            f"LLMGateway initialized — wrapping {type(llm).__name__}"
            f" (model={self.model})"
        )

    @property
    def model(self) -> str:
        return getattr(self._llm, "model", "unknown")

    async def generate(self, prompt: str, purpose: str = "general") -> Outcome[str]:
        """Send a prompt and return the generated text as an Outcome."""
        t0 = time.time()
        try:
            response = await self._llm.acomplete(prompt)
        except Exception as e:
            self._record_error(purpose, e)
            return Outcome.failure(translate_provider_error(e))

        text = getattr(response, "text", None)
        if text is None:
            text = str(response) if response is not None else ""

        latency_ms = (time.time() - t0) * 1000
        self._record_success(prompt, text, latency_ms, purpose)

        if not text.strip():
            return Outcome.failure(ProviderMalformedResponseError("LLM returned an empty response"))
        return Outcome.success(text)

    # ── Metrics helpers ───────────────────────────────────────────────

    def _estimate_cost(self, tokens_in: int, tokens_out: int) -> float:
        rates = _COST_PER_1M_TOKENS.get(self.model, _COST_PER_1M_TOKENS["_default"])
        return (tokens_in * rates["input"] + tokens_out * rates["output"]) / 1_000_000

    def _record_success(self, prompt: str, text: str, latency_ms: float, purpose: str) -> None:
        tokens_in = self._token_counter.count(prompt)
        tokens_out = self._token_counter.count(text)
        with self._lock:
            m = self._metrics
            m.total_calls += 1
            m.total_tokens_in += tokens_in
            m.total_tokens_out += tokens_out
            m.total_latency_ms += latency_ms
            m.calls_by_purpose[purpose] += 1
            m.estimated_cost_usd += self._estimate_cost(tokens_in, tokens_out)

        logger.debug(
            f"LLM call [{purpose}] model={self.model} "
            f"tokens_in={tokens_in} tokens_out={tokens_out} latency={latency_ms:.0f}ms"
        )

    def _record_error(self, purpose: str, error: Exception) -> None:
        with self._lock:
            self._metrics.total_calls += 1
            self._metrics.errors += 1
            self._metrics.calls_by_purpose[purpose] += 1
            self._metrics.errors_by_purpose[purpose] += 1
        logger.error(f"LLM call [{purpose}] failed: {type(error).__name__}: {error}")

    def get_metrics(self) -> dict:
        with self._lock:
            return self._metrics.to_dict()

    def reset_metrics(self) -> None:
        with self._lock:
            self._metrics = LLMMetrics()
