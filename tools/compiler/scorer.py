# SPDX-License-Identifier: MIT
"""
FAF Slot Scorer

Computes the completeness score of a context document from its slots,
back-filling open slots from discovery facts. Every slot is counted at most
once: a value declared in the document is counted under its own section,
and a slot filled only by discovery is counted under the synthetic
``discovery`` bucket instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .diagnostics import Diagnostic, warning
from .discovery import DiscoveryFact
from .parser import ContextDocument
from .slots import DEFAULT_SLOTS, DISCOVERY_BUCKET, SlotDefinition, section_order, slots_by_id

# Score-like fields from older generators. They are never read as inputs.
EMBEDDED_SCORE_FIELDS = (
    "ai_score",
    "ai_scoring_system",
    "ai_scoring_details",
    "faf_score",
    "project.faf_score",
)

# Placeholders generators write for slots they could not fill
IGNORED_VALUES = frozenset({"slotignored", "none", "unknown", "not specified", "n/a"})


@dataclass(frozen=True)
class SectionBreakdown:
    """Filled/total slot counts for one breakdown bucket."""

    filled: int
    total: int
    missing: Tuple[str, ...] = ()
    ignored: Tuple[str, ...] = ()

    @property
    def percentage(self) -> int:
        return half_up(100 * self.filled / self.total) if self.total else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filled": self.filled,
            "total": self.total,
            "percentage": self.percentage,
            "missing": list(self.missing),
            "ignored": list(self.ignored),
        }


@dataclass(frozen=True)
class ScoreResult:
    """Result of scoring a document against a slot table."""

    score: int
    filled_slots: int
    total_slots: int
    breakdown: Mapping[str, SectionBreakdown]
    filled_slot_ids: Tuple[str, ...] = ()
    discovered: Tuple[DiscoveryFact, ...] = ()
    diagnostics: Tuple[Diagnostic, ...] = ()

    @property
    def declared_slots(self) -> int:
        """Slots filled from the document itself."""
        return sum(
            bucket.filled
            for name, bucket in self.breakdown.items()
            if name != DISCOVERY_BUCKET
        )


# =============================================================================
# Helpers
# =============================================================================


def half_up(value: float) -> int:
    """Round half away from zero for non-negative values (12.5 -> 13)."""
    return int(math.floor(value + 0.5))


def clamp_score(value: int) -> int:
    return max(0, min(100, value))


def is_ignored(value: Any) -> bool:
    """Whether a value is a placeholder such as 'None' or 'n/a' (case-insensitive)."""
    return isinstance(value, str) and value.strip().lower() in IGNORED_VALUES


def is_filled(value: Any) -> bool:
    """
    Whether a slot value counts as filled.

    Scalars count when present; strings must be non-empty once stripped
    and not a placeholder. Lists and mappings never fill a slot.
    """
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip()) and not is_ignored(value)
    if isinstance(value, float):
        return not math.isnan(value)
    return isinstance(value, (bool, int, date))


def embedded_score_warnings(document: ContextDocument) -> List[Diagnostic]:
    """Warn about stored score fields that the scorer ignores."""
    diagnostics: List[Diagnostic] = []
    for path in EMBEDDED_SCORE_FIELDS:
        value = document.get(path)
        if value is not None:
            diagnostics.append(
                warning(
                    f"Embedded score field '{path}' is deprecated and ignored; "
                    f"the score is always recomputed from slots",
                    path,
                )
            )
    return diagnostics


# =============================================================================
# Scoring
# =============================================================================


def score_document(
    document: ContextDocument,
    facts: Iterable[DiscoveryFact] = (),
    slots: Sequence[SlotDefinition] = DEFAULT_SLOTS,
) -> ScoreResult:
    """
    Score a document against a slot table.

    Args:
        document: The parsed context document
        facts: Discovery facts available for back-filling open slots
        slots: The slot table to score against

    Returns:
        ScoreResult with counts, per-section breakdown and diagnostics
    """
    slots_by_id(slots)  # validates the table

    fact_index: Dict[str, DiscoveryFact] = {}
    for fact in facts:
        fact_index.setdefault(fact.key, fact)

    sections = section_order(slots)
    filled_by_section: Dict[str, int] = {name: 0 for name in sections}
    total_by_section: Dict[str, int] = {name: 0 for name in sections}
    missing_by_section: Dict[str, List[str]] = {name: [] for name in sections}
    ignored_by_section: Dict[str, List[str]] = {name: [] for name in sections}

    filled_ids: List[str] = []
    discovered: List[DiscoveryFact] = []
    discovery_open = 0
    discovery_missing: List[str] = []
    filled_weight = 0
    total_weight = 0

    for slot in slots:
        total_by_section[slot.section] += 1
        total_weight += slot.weight

        value = document.section(slot.section).get(slot.key)
        if is_filled(value):
            filled_by_section[slot.section] += 1
            filled_ids.append(slot.slot_id)
            filled_weight += slot.weight
            continue

        if slot.discoverable:
            discovery_open += 1
            fact = fact_index.get(slot.slot_id)
            if fact is not None and is_filled(fact.value):
                discovered.append(fact)
                filled_ids.append(slot.slot_id)
                filled_weight += slot.weight
                continue
            discovery_missing.append(slot.slot_id)

        if is_ignored(value):
            ignored_by_section[slot.section].append(slot.slot_id)
        else:
            missing_by_section[slot.section].append(slot.slot_id)

    breakdown: Dict[str, SectionBreakdown] = {
        name: SectionBreakdown(
            filled=filled_by_section[name],
            total=total_by_section[name],
            missing=tuple(missing_by_section[name]),
            ignored=tuple(ignored_by_section[name]),
        )
        for name in sections
    }
    breakdown[DISCOVERY_BUCKET] = SectionBreakdown(
        filled=len(discovered),
        total=discovery_open,
        missing=tuple(discovery_missing),
    )

    total_slots = len(slots)
    filled_slots = len(filled_ids)
    if total_weight == 0:
        score = 0
    else:
        score = clamp_score(half_up(100 * filled_weight / total_weight))

    return ScoreResult(
        score=score,
        filled_slots=filled_slots,
        total_slots=total_slots,
        breakdown=MappingProxyType(breakdown),
        filled_slot_ids=tuple(sorted(filled_ids)),
        discovered=tuple(discovered),
        diagnostics=tuple(embedded_score_warnings(document)),
    )
