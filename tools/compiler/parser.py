# SPDX-License-Identifier: MIT
"""
FAF Document Parser

Parses .faf project-context documents (YAML mappings of named sections and
slots) into an immutable ContextDocument. Structural failures are fatal and
raised as ParseError; nothing partial is ever returned.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Optional, Set, Tuple, Union

import yaml
from yaml.constructor import ConstructorError

logger = logging.getLogger(__name__)


class DocumentError(Exception):
    """Base class for fatal document errors."""


class ParseError(DocumentError):
    """Raised when a document cannot be parsed into a mapping."""

    def __init__(self, message: str, line: int = 0, column: int = 0) -> None:
        self.line = line
        self.column = column
        super().__init__(f"{message} (line {line}, col {column})" if line else message)


class DocumentReadError(DocumentError):
    """Raised when a document file cannot be read."""

    def __init__(self, path: Union[str, Path], reason: str) -> None:
        self.path = str(path)
        super().__init__(f"Cannot read {self.path}: {reason}")


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class ContextDocument:
    """
    A parsed .faf document.

    ``data`` is the complete top-level mapping, exposed read-only. The
    document is owned by a single compilation and is never mutated after
    parsing; validation and scoring only read from it.
    """

    data: Mapping[str, Any]
    source: Optional[str] = None
    raw: str = field(default="", repr=False, compare=False)

    @property
    def version(self) -> Optional[str]:
        value = self.data.get("faf_version")
        return None if value is None else str(value)

    @property
    def generated(self) -> Any:
        return self.data.get("generated")

    @property
    def sections(self) -> Dict[str, Dict[str, Any]]:
        """Every top-level value that is a mapping, keyed by section name."""
        return {
            str(name): value
            for name, value in self.data.items()
            if isinstance(value, dict)
        }

    def section(self, name: str) -> Dict[str, Any]:
        value = self.data.get(name)
        return value if isinstance(value, dict) else {}

    def get(self, path: str) -> Any:
        return get_path(self.data, path)


# =============================================================================
# YAML Loading
# =============================================================================

MERGE_TAG = "tag:yaml.org,2002:merge"

# Candidate context file names, most specific first
CONTEXT_FILE_NAMES = ("project.faf", ".faf")


class UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate keys within a single mapping."""

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> Dict[Any, Any]:
        seen: Set[Any] = set()
        for key_node, _value_node in node.value:
            if key_node.tag == MERGE_TAG:
                continue
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue
            if key in seen:
                raise ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"found duplicate key '{key}'",
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _mark_position(exc: yaml.YAMLError) -> Tuple[int, int]:
    mark = getattr(exc, "problem_mark", None) or getattr(exc, "context_mark", None)
    if mark is None:
        return 0, 0
    return mark.line + 1, mark.column + 1


def _describe(exc: yaml.YAMLError) -> str:
    problem = getattr(exc, "problem", None)
    context = getattr(exc, "context", None)
    if problem and context:
        return f"{context}: {problem}"
    return problem or str(exc).splitlines()[0]


# =============================================================================
# Utility Functions
# =============================================================================


def get_path(data: Any, path: str) -> Any:
    """
    Resolve a dotted path inside nested mappings.

    Args:
        data: The mapping to search
        path: Dot-separated path (e.g., "project.name")

    Returns:
        The value at the path, or None if any step is missing or not a mapping
    """
    current = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def find_context_file(directory: Union[str, Path]) -> Optional[Path]:
    """
    Locate the context file inside a project directory.

    Prefers ``project.faf``, then ``.faf``, then the first other ``*.faf``
    file in name order.
    """
    root = Path(directory)
    for name in CONTEXT_FILE_NAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    others = sorted(p for p in root.glob("*.faf") if p.is_file())
    return others[0] if others else None


# =============================================================================
# Document Parser
# =============================================================================


def parse_document(content: str, source: Optional[str] = None) -> ContextDocument:
    """
    Parse .faf text into a ContextDocument.

    Args:
        content: The raw YAML text
        source: Optional path the text was read from, kept for messages

    Returns:
        ContextDocument wrapping the top-level mapping

    Raises:
        ParseError: If the text is empty, is not valid YAML, contains a
            duplicate key, nests too deeply, or does not have a mapping at
            the top level
    """
    if not content or not content.strip():
        raise ParseError("Empty document")

    try:
        data = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as e:
        line, column = _mark_position(e)
        raise ParseError(f"Invalid YAML: {_describe(e)}", line, column) from e
    except RecursionError as e:
        # PyYAML composes nodes recursively
        raise ParseError("Document nesting too deep") from e

    if data is None:
        raise ParseError("Document contains no data")
    if not isinstance(data, dict):
        raise ParseError(
            f"Top-level structure must be a mapping, got {type(data).__name__}"
        )

    logger.debug(f"Parsed {source or '<string>'}: {len(data)} top-level keys")
    return ContextDocument(data=MappingProxyType(data), source=source, raw=content)


def load_document(path: Union[str, Path]) -> ContextDocument:
    """
    Read and parse a .faf file.

    Raises:
        DocumentReadError: If the file cannot be read as UTF-8 text
        ParseError: If the content cannot be parsed
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentReadError(file_path, str(e)) from e
    return parse_document(content, source=str(file_path))
