# src/flowcanvas/core/canonical.py
"""
Canonical JSON serialization for deterministic hashing.

Two-phase approach:
1. Normalize: Convert pydantic models, enums and tuples to JSON-safe primitives
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

NaN and Infinity are rejected, not silently converted.
"""

import hashlib
import math
from enum import Enum
from typing import Any

import rfc8785
from pydantic import BaseModel

# Version string reported alongside every graph hash
CANONICAL_VERSION = "sha256-rfc8785-v1"


def _normalize_value(obj: Any) -> Any:
    """Convert a single value to a JSON-safe primitive.

    Raises:
        ValueError: If value contains NaN or Infinity
    """
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot canonicalize non-finite float: {obj}")
        return obj

    if obj is None or isinstance(obj, (str, int, bool)):
        return obj

    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, BaseModel):
        return _normalize_value(obj.model_dump(mode="json"))
    if isinstance(obj, dict):
        return {str(k): _normalize_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_normalize_value(v) for v in obj]

    raise TypeError(f"Cannot canonicalize value of type {type(obj).__name__}")


def canonical_json(obj: Any) -> str:
    """Serialize to canonical JSON (RFC 8785)."""
    return rfc8785.dumps(_normalize_value(obj)).decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()


def text_hash(text: str) -> str:
    """SHA-256 hex digest of a text artifact such as a compiled script."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
