# SPDX-License-Identifier: MIT
"""
FAF Slot Model

The static taxonomy of scoreable slots. The table is defined once at import
time and only ever read afterwards, so it is safe to share across
concurrent compilations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple


@dataclass(frozen=True)
class SlotDefinition:
    """A single named, weighted field in the scoring taxonomy."""

    section: str
    key: str
    weight: int = 1
    discoverable: bool = False

    @property
    def slot_id(self) -> str:
        return f"{self.section}.{self.key}"


# Name of the synthetic breakdown bucket for discovery back-fill
DISCOVERY_BUCKET = "discovery"


def _section(name: str, keys: Iterable[str], discoverable: bool = False) -> List[SlotDefinition]:
    return [SlotDefinition(section=name, key=key, discoverable=discoverable) for key in keys]


# =============================================================================
# Default Slot Table
# =============================================================================

DEFAULT_SLOTS: Tuple[SlotDefinition, ...] = tuple(
    _section("project", ["name", "goal", "main_language", "type"], discoverable=True)
    + _section(
        "stack",
        [
            "frontend",
            "css_framework",
            "ui_library",
            "state_management",
            "backend",
            "api_type",
            "runtime",
            "database",
            "connection",
            "build",
            "package_manager",
            "hosting",
            "cicd",
            "testing",
            "monorepo",
        ],
        discoverable=True,
    )
    + _section("human_context", ["who", "what", "why", "where", "when", "how"])
    + _section("ai_instructions", ["priority", "usage", "message"])
    + _section("preferences", ["quality_bar", "commit_style", "communication", "verbosity"])
    + _section("state", ["phase", "version", "focus", "status"])
    + _section("ai", ["context_file", "handoff_ready", "session_continuity", "onboarding_time"])
)


def section_order(slots: Iterable[SlotDefinition]) -> List[str]:
    """Section names in first-appearance order."""
    order: List[str] = []
    for slot in slots:
        if slot.section not in order:
            order.append(slot.section)
    return order


def slots_by_id(slots: Iterable[SlotDefinition]) -> Dict[str, SlotDefinition]:
    """
    Index a slot table by slot id.

    Raises:
        ValueError: If two definitions share a slot id or a section is
            named like the discovery bucket
    """
    index: Dict[str, SlotDefinition] = {}
    for slot in slots:
        if slot.section == DISCOVERY_BUCKET:
            raise ValueError(f"Section name '{DISCOVERY_BUCKET}' is reserved")
        if slot.slot_id in index:
            raise ValueError(f"Duplicate slot definition: {slot.slot_id}")
        if slot.weight < 0:
            raise ValueError(f"Negative weight for slot {slot.slot_id}")
        index[slot.slot_id] = slot
    return index
