"""
Configuration loading.

Settings live in config/config.yaml. Every section is optional: whatever the
file omits falls back to DEFAULT_CONFIG, so components can read their section
with plain dict.get() calls.
"""
from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Optional

import yaml
from loguru import logger

DEFAULT_CONFIG: dict[str, Any] = {
    "project": {"name": "IntentSpace"},
    "logging": {
        "level": "INFO",
        "file": "logs/intentspace.log",
        "rotation": "10 MB",
        "retention": "7 days",
    },
    "crawl": {
        "max_pages": 30,
        "max_depth": 3,
        "same_domain_only": True,
        "timeout_seconds": 10.0,
        "min_text_chars": 200,
        "concurrency": 1,
        "user_agent": "IntentSpace/1.0",
    },
    "chunking": {"max_words": 500, "overlap": 50, "min_chars": 100},
    "embedding": {"max_vocabulary": 5000},
    "clustering": {
        "min_k": 6,
        "max_k": 40,
        "max_iter": 20,
        "min_cluster_size": 2,
        "representatives": 8,
        "keywords": 5,
        "summary_sentences": 2,
        "seed": None,
    },
    "graph": {"max_neighbours": 4, "min_similarity": 0.1},
    "search": {
        "max_vocabulary": 1000,
        "top_k": 5,
        "min_score": 0.1,
        "keyword_boost": 0.1,
        "evidence_per_result": 3,
    },
    "evidence": {"pages_per_intent": 3, "snippet_chars": 200},
    "storage": {"graphs_dir": "data/graphs", "embedding_dims": 100},
}


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str | Path] = "config/config.yaml") -> dict[str, Any]:
    """Read the YAML config at `path` and merge it over the defaults."""
    if path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"[Config] {config_path} not found - using built-in defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path, "r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    logger.debug(f"[Config] Loaded {config_path}")
    return _deep_merge(DEFAULT_CONFIG, loaded)
