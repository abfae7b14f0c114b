# SPDX-License-Identifier: MIT
"""
FAF Checksum Engine

Hashes the scoring-relevant projection of a compilation so a previously
recorded score can later be checked for drift. Only the schema version, the
score, per-section filled/total counts and the sorted filled slot ids take
part; document text, diagnostics and timestamps never do.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any, Dict, Iterable, Mapping


def checksum_state(
    schema_version: str,
    score: int,
    breakdown: Mapping[str, Any],
    filled_slot_ids: Iterable[str],
) -> Dict[str, Any]:
    """
    Build the normalized projection that the checksum covers.

    Args:
        schema_version: Resolved schema version the document was checked against
        score: The raw (uncapped) score
        breakdown: Section name -> object with ``filled`` and ``total``
        filled_slot_ids: Ids of every filled slot, in any order

    Returns:
        A plain dict with deterministic content
    """
    return {
        "schema_version": schema_version,
        "score": score,
        "breakdown": {
            name: {"filled": bucket.filled, "total": bucket.total}
            for name, bucket in sorted(breakdown.items())
        },
        "filled": sorted(filled_slot_ids),
    }


def canonical_json(state: Mapping[str, Any]) -> str:
    return json.dumps(state, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def checksum(state: Mapping[str, Any]) -> str:
    """SHA-256 hex digest of the canonical JSON form of a state projection."""
    return hashlib.sha256(canonical_json(state).encode("utf-8")).hexdigest()


def verify(actual: Any, expected: Any) -> bool:
    """
    Compare two checksums.

    Never raises; anything that is not a pair of equal strings is a mismatch.
    """
    if not isinstance(actual, str) or not isinstance(expected, str):
        return False
    return hmac.compare_digest(actual.encode("utf-8"), expected.encode("utf-8"))
