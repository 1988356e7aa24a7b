"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/keys.py.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any


def make_cache_key(service: str, namespace: str, identifier: str) -> str:
    """Build a namespaced key such as `youtube:metadata:dQw4w9WgXcQ`."""
    parts = [str(part).strip() for part in (service, namespace, identifier)]
    if not all(parts):
        raise ValueError("Cache key parts must be non-empty")
    return ":".join(parts)


def hash_cache_key(service: str, payload: Mapping[str, Any]) -> str:
    """Build deterministic key for a structured request payload."""
    normalized = json.dumps(payload, ensure_ascii=True, sort_keys=True, default=str)
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return f"{service}:{digest}"
