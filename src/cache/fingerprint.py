# src/cache/fingerprint.py
"""Content fingerprinting for items.

The fingerprint covers only the fields that change enrichment output, so two
shelter records describing the same animal share cached content. Any change
to those fields produces a new fingerprint and invalidates cached work.
"""

from __future__ import annotations

import hashlib
import json

from pawmatch.core.models import Item

# Descriptions past this length rarely change the enrichment
_DESCRIPTION_PREFIX = 500
_FINGERPRINT_LENGTH = 16


def compute_fingerprint(item: Item) -> str:
    """Stable hash over the enrichment-relevant fields of an item.

    Pure and total: the payload is serialised with sorted keys so the result
    does not depend on field order or process state.

    Returns:
        16-character hex digest.
    """
    payload = {
        "breed": _norm(item.breed),
        "age": _norm(item.age),
        "description": _norm((item.description or "")[:_DESCRIPTION_PREFIX]),
        "size": _norm(item.size),
        "color": _norm(item.color),
        "image": item.primary_image() or "",
    }
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:_FINGERPRINT_LENGTH]


def generate_cache_key(category: str, *parts: str) -> str:
    """Cache key for a category and its inputs (SHA-256 hex)."""
    combined = "::".join([category, *parts])
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()


def _norm(value: str | None) -> str:
    """Lowercase and strip; None becomes empty."""
    return (value or "").strip().lower()
