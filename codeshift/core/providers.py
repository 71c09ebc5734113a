"""Provider factories and vendor-error translation.

LLM and embedding vendors are LlamaIndex integrations, imported lazily
so only the configured provider's package has to be installed.
"""

import logging
import os
from typing import Any, Dict

import httpx

from .errors import (
    MigrationError,
    ProviderQuotaExceededError,
    ProviderRateLimitedError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)


def _get_rate_limit_exceptions():
    """Lazy-load vendor rate-limit exception classes.

    Handles missing provider packages gracefully.
    """
    exceptions = []
    try:
        from openai import RateLimitError as OpenAIRateLimit
        exceptions.append(OpenAIRateLimit)
    except ImportError:
        pass
    try:
        from groq import RateLimitError as GroqRateLimit
        exceptions.append(GroqRateLimit)
    except ImportError:
        pass
    try:
        from anthropic import RateLimitError as AnthropicRateLimit
        exceptions.append(AnthropicRateLimit)
    except ImportError:
        pass
    return tuple(exceptions)


_RATE_LIMIT_EXCEPTIONS = None


def _rate_limit_exceptions():
    global _RATE_LIMIT_EXCEPTIONS
    if _RATE_LIMIT_EXCEPTIONS is None:
        _RATE_LIMIT_EXCEPTIONS = _get_rate_limit_exceptions()
    return _RATE_LIMIT_EXCEPTIONS


def translate_provider_error(exc: BaseException) -> BaseException:
    """Map a vendor/transport exception onto the codeshift error taxonomy.

    Exceptions that match nothing are returned unchanged; the recovery
    classifier still sees their text.
    """
    if isinstance(exc, MigrationError):
        return exc

    text = str(exc)
    lowered = text.lower()

    if isinstance(exc, _rate_limit_exceptions()) or "429" in text or "rate limit" in lowered:
        if "quota" in lowered:
            return ProviderQuotaExceededError(f"Provider quota exceeded: {text}")
        return ProviderRateLimitedError(f"Provider rate limit exceeded: {text}")
    if "quota" in lowered:
        return ProviderQuotaExceededError(f"Provider quota exceeded: {text}")
    if isinstance(exc, (TimeoutError, ConnectionError, httpx.TransportError)):
        return ProviderUnavailableError(f"Provider unavailable: {text or type(exc).__name__}")
    return exc


# ── Factories ─────────────────────────────────────────────────────────


def create_llm(cfg: Dict[str, Any]) -> Any:
    """Create a LlamaIndex LLM from the ``llm`` config section.

    Supports: openai, ollama, anthropic, gemini.
    """
    provider = cfg.get("provider", "openai")
    model = cfg.get("model")
    temperature = cfg.get("temperature", 0.1)
    timeout = cfg.get("request_timeout", 120)

    if provider == "openai":
        from llama_index.llms.openai import OpenAI
        llm = OpenAI(
            model=model,
            temperature=temperature,
            api_key=os.getenv("OPENAI_API_KEY"),
            timeout=timeout,
        )
    elif provider == "ollama":
        from llama_index.llms.ollama import Ollama
        llm = Ollama(
            model=model,
            temperature=temperature,
            base_url=os.getenv("OLLAMA_HOST", "http://localhost:11434"),
            request_timeout=timeout,
        )
    elif provider == "anthropic":
        from llama_index.llms.anthropic import Anthropic
        llm = Anthropic(
            model=model,
            temperature=temperature,
            api_key=os.getenv("ANTHROPIC_API_KEY"),
        )
    elif provider == "gemini":
        from llama_index.llms.gemini import Gemini
        llm = Gemini(
            model=model,
            temperature=temperature,
            api_key=os.getenv("GOOGLE_API_KEY"),
        )
    else:
        raise ValueError(f"Unknown LLM provider: {provider}")

    logger.info(f"LLM provider: {provider}/{model}")
    return llm


def create_embed_model(cfg: Dict[str, Any]) -> Any:
    """Create a LlamaIndex embedding model from the ``embedding`` config section.

    Supports: openai, ollama, gemini, huggingface.
    """
    provider = cfg.get("provider", "openai")
    model = cfg.get("model")
    dimensions = cfg.get("dimensions")

    if provider == "openai":
        from llama_index.embeddings.openai import OpenAIEmbedding
        embed_model = OpenAIEmbedding(
            model=model,
            dimensions=dimensions,
            api_key=os.getenv("OPENAI_API_KEY"),
        )
    elif provider == "ollama":
        from llama_index.embeddings.ollama import OllamaEmbedding
        embed_model = OllamaEmbedding(
            model_name=model,
            base_url=os.getenv("OLLAMA_HOST", "http://localhost:11434"),
        )
    elif provider == "gemini":
        from llama_index.embeddings.gemini import GeminiEmbedding
        embed_model = GeminiEmbedding(
            model_name=model,
            api_key=os.getenv("GOOGLE_API_KEY"),
        )
    elif provider == "huggingface":
        from llama_index.embeddings.huggingface import HuggingFaceEmbedding
        embed_model = HuggingFaceEmbedding(model_name=model)
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")

    logger.info(f"Embedding provider: {provider}/{model} ({dimensions} dims)")
    return embed_model
