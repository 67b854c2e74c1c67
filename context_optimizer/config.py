"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .providers import PROVIDERS as EMBEDDING_PROVIDERS
from .types import (
    STRATEGIES,
    ChatConfig,
    ChunkConfig,
    DedupeConfig,
    EmbeddingConfig,
    OptimizerConfig,
    PrioritizationConfig,
)

CONFIG_FILENAMES = [
    "context-optimizer.yaml",
    "context-optimizer.yml",
    "context-optimizer.json",
]

FALLBACK_MODES = ("none", "keyword")

DEFAULT_MODELS = {
    "openai": "text-embedding-3-small",
    "sentence-transformers": "all-MiniLM-L6-v2",
    "hash": "",
}


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _build_config(raw: dict[str, Any]) -> OptimizerConfig:
    """Build an OptimizerConfig from a raw dict."""
    emb_raw = raw.get("embedding", {})
    provider = emb_raw.get("provider", "openai")
    embedding = EmbeddingConfig(
        provider=provider,
        model=emb_raw.get("model", DEFAULT_MODELS.get(provider, "")),
        api_key=emb_raw.get("api_key", ""),
        api_key_env=emb_raw.get("api_key_env", "OPENAI_API_KEY"),
        base_url=emb_raw.get("base_url", "https://api.openai.com/v1"),
        timeout=emb_raw.get("timeout", 30.0),
        dimensions=emb_raw.get("dimensions", 64),
        fallback=emb_raw.get("fallback", "none"),
    )

    dedupe_raw = raw.get("dedupe", {})
    dedupe = DedupeConfig(
        enabled=dedupe_raw.get("enabled", True),
        threshold=dedupe_raw.get("threshold", 0.9),
        user_threshold=dedupe_raw.get("user_threshold", 0.85),
        assistant_threshold=dedupe_raw.get("assistant_threshold", 0.9),
    )

    prio_raw = raw.get("prioritization", {})
    prioritization = PrioritizationConfig(
        strategy=prio_raw.get("strategy", "hybrid"),
        conversation_flow_max_messages=prio_raw.get("conversation_flow_max_messages", 10),
    )

    chunks_raw = raw.get("chunks", {})
    chunks = ChunkConfig(
        prompt_buffer_tokens=chunks_raw.get("prompt_buffer_tokens", 10),
    )

    chat_raw = raw.get("chat", {})
    chat = ChatConfig(
        preserve_system=chat_raw.get("preserve_system", True),
        preserve_last_n=chat_raw.get("preserve_last_n", 0),
        buffer_tokens=chat_raw.get("buffer_tokens", 50),
        restore_order=chat_raw.get("restore_order", True),
    )

    return OptimizerConfig(
        version=raw.get("version", "1.0"),
        token_counter=raw.get("token_counter", "estimate"),
        embedding=embedding,
        dedupe=dedupe,
        prioritization=prioritization,
        chunks=chunks,
        chat=chat,
    )


def validate_config(config: OptimizerConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    if config.embedding.provider not in EMBEDDING_PROVIDERS:
        errors.append(
            f"embedding.provider must be one of {', '.join(EMBEDDING_PROVIDERS)}, "
            f"got '{config.embedding.provider}'"
        )

    if config.embedding.fallback not in FALLBACK_MODES:
        errors.append(
            f"embedding.fallback must be one of {', '.join(FALLBACK_MODES)}, "
            f"got '{config.embedding.fallback}'"
        )

    if config.embedding.provider == "hash" and config.embedding.dimensions < 1:
        errors.append("embedding.dimensions must be >= 1")

    for name in ("threshold", "user_threshold", "assistant_threshold"):
        value = getattr(config.dedupe, name)
        if not 0.0 <= value <= 1.0:
            errors.append(f"dedupe.{name} ({value}) must be between 0 and 1")

    if config.prioritization.strategy not in STRATEGIES:
        errors.append(
            f"prioritization.strategy must be one of {', '.join(STRATEGIES)}, "
            f"got '{config.prioritization.strategy}'"
        )

    if config.prioritization.conversation_flow_max_messages < 1:
        errors.append("prioritization.conversation_flow_max_messages must be >= 1")

    if config.chunks.prompt_buffer_tokens < 0:
        errors.append("chunks.prompt_buffer_tokens must be >= 0")

    if config.chat.buffer_tokens < 0:
        errors.append("chat.buffer_tokens must be >= 0")

    if config.chat.preserve_last_n < 0:
        errors.append("chat.preserve_last_n must be >= 0")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> OptimizerConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)
