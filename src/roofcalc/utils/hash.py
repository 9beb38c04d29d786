"""Deterministic hashing for estimate identifiers."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def sha256_bytes(data: bytes) -> str:
    """Compute SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_dict(d: dict[str, Any]) -> str:
    """Compute SHA-256 of a dict via deterministic JSON serialization.

    Dict keys are normalized to stripped strings (YAML may load ``on`` as a
    boolean key); values are hashed as-is, so ``1.0`` and ``1`` differ.
    """
    canonical = json.dumps(
        _normalize_keys_only(d), sort_keys=True, separators=(",", ":"), default=str
    )
    return sha256_bytes(canonical.encode())


def _normalize_keys_only(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {str(k).strip(): _normalize_keys_only(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_normalize_keys_only(v) for v in obj]
    return obj


def estimate_id_for(spec: dict[str, Any]) -> str:
    """Derive a stable estimate id (``est_`` + 12 hex chars) from its inputs."""
    return "est_" + sha256_dict(spec)[:12]
