"""Configuration management for codelocate."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Dict, List, Optional


DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    ".git/**",
    "node_modules/**",
    "dist/**",
    "build/**",
    ".venv/**",
    "venv/**",
    "__pycache__/**",
    "target/**",
    ".next/**",
    ".idea/**",
    ".vscode/**",
]

DEFAULT_CONFIG: Dict = {
    "project_root": None,
    "max_file_size_kb": 512,
    "exclude_patterns": DEFAULT_EXCLUDE_PATTERNS,
    "indexing": {
        # "ordinal": {filename}_{token}_{ordinal}; "structural": stable across edits
        "id_scheme": "ordinal",
        "prune_stale": True,
        "strict_parsing": True,
        "index_on_startup": True,
    },
    "embedding": {
        "backend": "sentence_transformers",
        "sentence_transformers_model": "sentence-transformers/all-MiniLM-L6-v2",
        "max_input_tokens": 512,
        "max_concurrency": 1,
    },
    "search": {"top_k": 3},
    "vector_store": {
        "backend": "qdrant",
        "batch_size": 128,
        "qdrant": {
            "host": "localhost",
            "port": 6333,
            "url": None,
            "location": None,
            "collection": None,
        },
    },
}


def expand_pattern(pattern: str) -> List[str]:
    """Expand pattern to include both root and nested versions.

    Examples:
        '*.py' -> ['*.py', '**/*.py']
        'venv/**' -> ['venv/**', '**/venv/**']
    """
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return []

    if pattern.startswith("**/"):
        return [pattern]

    if pattern.startswith("*."):
        return [pattern, "**/" + pattern]

    if "/**" in pattern:
        return [pattern, "**/" + pattern]

    return [pattern]


def _expand_patterns(patterns: List[str]) -> List[str]:
    """Expand and deduplicate patterns while preserving order."""
    out: List[str] = []
    seen: set[str] = set()
    for p in patterns:
        for ep in expand_pattern(p):
            if ep not in seen:
                seen.add(ep)
                out.append(ep)
    return out


def _deep_merge(base: Dict, overrides: Dict) -> Dict:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(repo: Optional[Path] = None, overrides: Optional[Dict] = None) -> Dict:
    """Load configuration.

    Starts from a deep copy of DEFAULT_CONFIG, applies environment overrides,
    then explicit ``overrides``, and finally expands the exclude patterns.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    qdrant = config["vector_store"]["qdrant"]
    qdrant["host"] = os.getenv("QDRANT_HOST", qdrant["host"])
    qdrant["port"] = int(os.getenv("QDRANT_PORT", str(qdrant["port"])))
    qdrant["url"] = os.getenv("QDRANT_URL", qdrant["url"])
    qdrant["location"] = os.getenv("QDRANT_LOCATION", qdrant["location"])
    qdrant["collection"] = os.getenv("QDRANT_COLLECTION", qdrant["collection"])

    model = os.getenv("EMBEDDING_MODEL")
    if model:
        config["embedding"]["sentence_transformers_model"] = model

    if repo is not None:
        config["project_root"] = str(repo)
    elif os.getenv("PROJECT_ROOT"):
        config["project_root"] = os.environ["PROJECT_ROOT"]

    if overrides:
        _deep_merge(config, copy.deepcopy(overrides))

    config["exclude_globs"] = _expand_patterns(config.get("exclude_patterns") or [])
    return config
