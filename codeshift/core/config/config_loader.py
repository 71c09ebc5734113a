"""Configuration loading for codeshift.

Reads config/codeshift.yaml (or the file named by CODESHIFT_CONFIG),
layers environment variables on top, and falls back to built-in defaults
for anything missing.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from ..constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_DELAY_BETWEEN_BATCHES_MS,
    DEFAULT_EMBEDDING_DIMENSIONS,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_RESULT_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
    MAX_EMBEDDING_INPUT_CHARS,
    MAX_RELATED_CHUNKS,
    MAX_RETRIES,
    NETWORK_BACKOFF_BASE_SECONDS,
    RATE_LIMIT_DELAY_SECONDS,
    RECONNECT_DELAY_SECONDS,
)

load_dotenv()

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent.parent / "config" / "codeshift.yaml"

DEFAULTS: Dict[str, Any] = {
    "database": {
        "url": "sqlite:///codeshift.db",
        "pool_size": 5,
        "echo": False,
    },
    "embedding": {
        "provider": "openai",
        "model": DEFAULT_EMBEDDING_MODEL,
        "dimensions": DEFAULT_EMBEDDING_DIMENSIONS,
        "batch_size": DEFAULT_BATCH_SIZE,
        "delay_between_batches_ms": DEFAULT_DELAY_BETWEEN_BATCHES_MS,
        "max_input_chars": MAX_EMBEDDING_INPUT_CHARS,
    },
    "llm": {
        "provider": "openai",
        "model": "gpt-4o-mini",
        "temperature": 0.1,
        "request_timeout": 120,
    },
    "retrieval": {
        "threshold": DEFAULT_SIMILARITY_THRESHOLD,
        "limit": DEFAULT_RESULT_LIMIT,
        "max_related": MAX_RELATED_CHUNKS,
    },
    "migration": {
        "max_concurrent_files": 4,
        "call_timeout_seconds": 120,
        "max_retries": MAX_RETRIES,
        "network_backoff_base_seconds": NETWORK_BACKOFF_BASE_SECONDS,
        "rate_limit_delay_seconds": RATE_LIMIT_DELAY_SECONDS,
        "reconnect_delay_seconds": RECONNECT_DELAY_SECONDS,
    },
    "logging": {
        "level": "INFO",
    },
}

# env var -> (section, key, caster)
_ENV_OVERRIDES = {
    "DATABASE_URL": ("database", "url", str),
    "EMBEDDING_PROVIDER": ("embedding", "provider", str),
    "EMBEDDING_MODEL": ("embedding", "model", str),
    "EMBEDDING_DIMENSIONS": ("embedding", "dimensions", int),
    "LLM_PROVIDER": ("llm", "provider", str),
    "LLM_MODEL": ("llm", "model", str),
    "SIMILARITY_THRESHOLD": ("retrieval", "threshold", float),
    "RESULT_LIMIT": ("retrieval", "limit", int),
    "LOG_LEVEL": ("logging", "level", str),
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key, caster) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            config.setdefault(section, {})[key] = caster(raw)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
    return config


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML + environment, without caching.

    Args:
        path: Explicit config path. Defaults to CODESHIFT_CONFIG, then
            config/codeshift.yaml at the project root.

    Returns:
        Fully populated configuration dict.
    """
    config_path = Path(path or os.getenv("CODESHIFT_CONFIG") or _DEFAULT_CONFIG_PATH)

    file_config: Dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r") as f:
            file_config = yaml.safe_load(f) or {}
        logger.debug(f"Loaded configuration from {config_path}")
    else:
        logger.info(f"No config file at {config_path}, using defaults")

    return _apply_env_overrides(_deep_merge(DEFAULTS, file_config))
