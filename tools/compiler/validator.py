# SPDX-License-Identifier: MIT
"""
FAF Schema Validator

Checks a parsed context document against a versioned schema: required
fields, core sections, version format, numeric ranges, the generation
timestamp and slot value types. Validation never raises for data-quality
problems; everything it finds is returned as diagnostics.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dateutil import parser as date_parser

from .diagnostics import Diagnostic, Severity, error, warning
from .parser import ContextDocument
from .slots import DEFAULT_SLOTS, SlotDefinition


class UnknownSchemaError(ValueError):
    """Raised when a document is validated against an unregistered schema version."""

    def __init__(self, version: str) -> None:
        self.version = version
        known = ", ".join(sorted(SCHEMAS))
        super().__init__(f"Unknown schema version: {version} (known: {known}, latest)")


# =============================================================================
# Schema Registry
# =============================================================================

VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(-[a-zA-Z0-9-]+)?$")

LATEST = "latest"


@dataclass(frozen=True)
class SchemaDefinition:
    """Fixed rule set for one schema version."""

    version: str
    required_fields: Tuple[str, ...]
    core_sections: Tuple[str, ...]
    range_fields: Tuple[str, ...]
    score_range: Tuple[int, int] = (0, 100)


SCHEMA_2_5 = SchemaDefinition(
    version="2.5.0",
    required_fields=(
        "faf_version",
        "generated",
        "project.name",
        "project.main_language",
        "scores.faf_score",
        "scores.slot_based_percentage",
    ),
    core_sections=(
        "project",
        "stack",
        "scores",
        "ai_instructions",
        "preferences",
        "state",
    ),
    range_fields=(
        "scores.faf_score",
        "scores.slot_based_percentage",
    ),
)

SCHEMAS: Dict[str, SchemaDefinition] = {SCHEMA_2_5.version: SCHEMA_2_5}
LATEST_VERSION = SCHEMA_2_5.version


def resolve_schema(version: str = LATEST) -> SchemaDefinition:
    """
    Look up a schema by version.

    Raises:
        UnknownSchemaError: If the version is not registered
    """
    key = LATEST_VERSION if version == LATEST else version
    schema = SCHEMAS.get(key)
    if schema is None:
        raise UnknownSchemaError(version)
    return schema


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ValidationResult:
    """Result of schema validation."""

    valid: bool = True
    errors: List[Diagnostic] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)
    sections_found: int = 0
    required_fields_found: int = 0
    required_fields_total: int = 0
    schema_version: str = LATEST_VERSION
    diagnostics: List[Diagnostic] = field(default_factory=list, repr=False)

    def add(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic; any error makes the result invalid."""
        self.diagnostics.append(diagnostic)
        if diagnostic.severity is Severity.ERROR:
            self.errors.append(diagnostic)
            self.valid = False
        else:
            self.warnings.append(diagnostic)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "schema_version": self.schema_version,
            "errors": [d.to_dict() for d in self.errors],
            "warnings": [d.to_dict() for d in self.warnings],
            "sections_found": self.sections_found,
            "required_fields_found": self.required_fields_found,
            "required_fields_total": self.required_fields_total,
        }


# =============================================================================
# Field Checks
# =============================================================================


def is_present(value: Any) -> bool:
    """A field is present unless it is missing, None or the empty string."""
    return value is not None and value != ""


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_version(value: Any) -> Optional[Diagnostic]:
    """
    Check the faf_version format (MAJOR.MINOR.PATCH with optional suffix).

    Returns:
        A warning if the format is wrong, None if valid
    """
    if not VERSION_RE.match(str(value)):
        return warning(f"Invalid faf_version format: {value}", "faf_version")
    return None


def check_range(
    path: str, value: Any, bounds: Tuple[int, int] = (0, 100)
) -> Optional[Diagnostic]:
    """
    Check a numeric field against an inclusive range.

    Returns:
        An error for a non-numeric or out-of-range value, None if valid
    """
    low, high = bounds
    name = path.rsplit(".", 1)[-1]
    if not is_number(value):
        return error(f"{name} must be a number, got {type(value).__name__}", path)
    if not low <= value <= high:
        return error(f"{name} must be between {low}-{high}", path)
    return None


def check_timestamp(value: Any) -> Optional[Diagnostic]:
    """
    Check that the generation timestamp is a parseable date.

    Dates and datetimes (as loaded from YAML) are accepted as-is.
    """
    if isinstance(value, date):
        return None
    if isinstance(value, str):
        try:
            date_parser.parse(value)
            return None
        except (ValueError, OverflowError):
            pass
    return warning("Invalid generated timestamp format", "generated")


def check_slot_types(
    document: ContextDocument, slots: Sequence[SlotDefinition]
) -> List[Diagnostic]:
    """Flag slot positions that hold a list or mapping."""
    diagnostics: List[Diagnostic] = []
    for slot in slots:
        value = document.section(slot.section).get(slot.key)
        if isinstance(value, (list, dict)):
            diagnostics.append(
                error(
                    f"Slot {slot.slot_id} expected a scalar value, got {type(value).__name__}",
                    slot.slot_id,
                )
            )
    return diagnostics


# =============================================================================
# Document Validation
# =============================================================================


def validate_document(
    document: ContextDocument,
    schema_version: str = LATEST,
    slots: Sequence[SlotDefinition] = DEFAULT_SLOTS,
) -> ValidationResult:
    """
    Validate a document against a schema version.

    Args:
        document: The parsed context document
        schema_version: Registered version or "latest"
        slots: Slot table used for the slot type check

    Returns:
        ValidationResult with errors, warnings and counts

    Raises:
        UnknownSchemaError: If schema_version is not registered
    """
    schema = resolve_schema(schema_version)
    result = ValidationResult(
        schema_version=schema.version,
        required_fields_total=len(schema.required_fields),
    )

    for path in schema.required_fields:
        if is_present(document.get(path)):
            result.required_fields_found += 1
        else:
            result.add(error(f"Required field missing: {path}", path))

    for section in schema.core_sections:
        if isinstance(document.data.get(section), dict):
            result.sections_found += 1
        else:
            result.add(warning(f"Core section missing or invalid: {section}", section))

    version = document.data.get("faf_version")
    if is_present(version):
        diagnostic = check_version(version)
        if diagnostic:
            result.add(diagnostic)

    for path in schema.range_fields:
        value = document.get(path)
        if is_present(value):
            diagnostic = check_range(path, value, schema.score_range)
            if diagnostic:
                result.add(diagnostic)

    generated = document.generated
    if is_present(generated):
        diagnostic = check_timestamp(generated)
        if diagnostic:
            result.add(diagnostic)

    for diagnostic in check_slot_types(document, slots):
        result.add(diagnostic)

    return result
