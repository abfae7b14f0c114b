# SPDX-License-Identifier: MIT
"""
FAF Compiler Pipeline

Runs a context document through a fixed sequence of passes:

    parse -> validate -> discover_merge -> score -> checksum [-> trace_finalize]

and returns one immutable CompileResult. Only unreadable or structurally
unparseable input raises; every other problem is reported as a diagnostic
and a score is always produced.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Sequence, Tuple, Union

from .checksum import checksum, checksum_state
from .checksum import verify as verify_checksum
from .config import CompilerConfig
from .diagnostics import Diagnostic, DiagnosticLog, Pass, Severity, Trace
from .discovery import DiscoveryFact, DiscoveryProvider
from .parser import ContextDocument, DocumentError, load_document, parse_document
from .scorer import SectionBreakdown, score_document
from .slots import DEFAULT_SLOTS, SlotDefinition, slots_by_id
from .validator import resolve_schema, validate_document

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class FactSource(Protocol):
    """Anything that can supply discovery facts for a project tree."""

    def discover(self, project_root: PathLike) -> Iterable[DiscoveryFact]: ...


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class CompileResult:
    """
    Terminal artifact of one compilation.

    ``score`` is the raw slot-based score; license capping happens
    downstream. ``trace`` is empty unless the compilation was traced.
    """

    score: int
    filled_slots: int
    total_slots: int
    breakdown: Mapping[str, SectionBreakdown]
    diagnostics: Tuple[Diagnostic, ...]
    checksum: str
    schema_version: str
    trace: Tuple[Pass, ...] = ()
    filled_slot_ids: Tuple[str, ...] = ()
    discovered: Tuple[DiscoveryFact, ...] = ()
    source: Optional[str] = None

    @property
    def valid(self) -> bool:
        return not any(d.severity is Severity.ERROR for d in self.diagnostics)

    @property
    def errors(self) -> Tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity is Severity.ERROR)

    @property
    def warnings(self) -> Tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity is Severity.WARNING)

    def to_dict(self) -> Dict[str, Any]:
        """Plain structure for CLI output and other consumers."""
        data: Dict[str, Any] = {
            "score": self.score,
            "filled": self.filled_slots,
            "total": self.total_slots,
            "checksum": self.checksum,
            "valid": self.valid,
            "schema_version": self.schema_version,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "breakdown": {name: bucket.to_dict() for name, bucket in self.breakdown.items()},
            "discovered": [f.to_dict() for f in self.discovered],
        }
        if self.trace:
            data["trace"] = [p.to_dict() for p in self.trace]
        return data

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


# =============================================================================
# Compiler
# =============================================================================


class FafCompiler:
    """
    Compiles .faf documents into scored, checksummed results.

    A compiler holds only read-only configuration, so one instance can serve
    concurrent compilations; each call owns its own diagnostics and trace.

    Args:
        config: Pipeline settings (defaults to CompilerConfig())
        discovery: Fact source for back-filling open slots; built from the
            config when omitted. Ignored when discovery is disabled.
        slots: Slot table to score against

    Raises:
        UnknownSchemaError: If the configured schema version is not registered
        ValueError: If the slot table is inconsistent
    """

    def __init__(
        self,
        config: Optional[CompilerConfig] = None,
        discovery: Optional[FactSource] = None,
        slots: Sequence[SlotDefinition] = DEFAULT_SLOTS,
    ) -> None:
        self.config = config or CompilerConfig()
        self.schema = resolve_schema(self.config.schema_version)
        self.slots = tuple(slots)
        slots_by_id(self.slots)

        if not self.config.discovery_enabled:
            discovery = None
        elif discovery is None:
            discovery = DiscoveryProvider(
                max_workers=self.config.discovery_max_workers,
                timeout=self.config.discovery_timeout,
                max_bytes=self.config.discovery_max_bytes,
            )
        self.discovery = discovery

    def compile(
        self,
        path: PathLike,
        project_root: Optional[PathLike] = None,
        facts: Optional[Iterable[DiscoveryFact]] = None,
    ) -> CompileResult:
        """
        Compile a .faf file.

        Args:
            path: The document to compile
            project_root: Tree to run discovery against (defaults to the
                document's directory)
            facts: Pre-collected facts; when given, discovery is not run

        Returns:
            CompileResult with an empty trace

        Raises:
            DocumentReadError: If the file cannot be read
            ParseError: If the content is not a YAML mapping
        """
        return self._compile_file(path, project_root, facts, record=False)

    def compile_with_trace(
        self,
        path: PathLike,
        project_root: Optional[PathLike] = None,
        facts: Optional[Iterable[DiscoveryFact]] = None,
    ) -> CompileResult:
        """Same as compile(), additionally returning one Pass per stage."""
        return self._compile_file(path, project_root, facts, record=True)

    def compile_source(
        self,
        content: str,
        project_root: Optional[PathLike] = None,
        facts: Optional[Iterable[DiscoveryFact]] = None,
        trace: bool = False,
        source: Optional[str] = None,
    ) -> CompileResult:
        """
        Compile in-memory .faf text.

        Discovery only runs when a project_root is given.

        Raises:
            ParseError: If the content is not a YAML mapping
        """
        recorder = Trace()
        with recorder.measure("parse"):
            document = parse_document(content, source=source)
        return self._run(document, project_root, facts, recorder, record=trace)

    def verify(
        self,
        path: PathLike,
        expected: Any,
        project_root: Optional[PathLike] = None,
    ) -> bool:
        """
        Recompile a document and compare its checksum with an expected one.

        Never raises: a document that can no longer be read or parsed does
        not verify.
        """
        try:
            result = self.compile(path, project_root=project_root)
        except DocumentError as e:
            logger.debug(f"Verification of {path} failed to compile: {e}")
            return False
        matched = verify_checksum(result.checksum, expected)
        if not matched:
            logger.debug(f"Checksum drift for {path}: now {result.checksum}")
        return matched

    # -------------------------------------------------------------------------

    def _compile_file(
        self,
        path: PathLike,
        project_root: Optional[PathLike],
        facts: Optional[Iterable[DiscoveryFact]],
        record: bool,
    ) -> CompileResult:
        recorder = Trace()
        with recorder.measure("parse"):
            document = load_document(path)
        if project_root is None:
            project_root = Path(path).resolve().parent
        return self._run(document, project_root, facts, recorder, record)

    def _discover(
        self,
        project_root: Optional[PathLike],
        facts: Optional[Iterable[DiscoveryFact]],
    ) -> Tuple[DiscoveryFact, ...]:
        if facts is not None:
            return tuple(facts)
        if self.discovery is None or project_root is None:
            return ()
        return tuple(self.discovery.discover(project_root))

    def _run(
        self,
        document: ContextDocument,
        project_root: Optional[PathLike],
        facts: Optional[Iterable[DiscoveryFact]],
        recorder: Trace,
        record: bool,
    ) -> CompileResult:
        diagnostics = DiagnosticLog()

        with recorder.measure("validate"):
            validation = validate_document(document, self.schema.version, self.slots)
            diagnostics.extend(validation.diagnostics)

        with recorder.measure("discover_merge"):
            available = self._discover(project_root, facts)

        with recorder.measure("score"):
            scored = score_document(document, available, self.slots)
            diagnostics.extend(scored.diagnostics)

        with recorder.measure("checksum"):
            digest = checksum(
                checksum_state(
                    self.schema.version,
                    scored.score,
                    scored.breakdown,
                    scored.filled_slot_ids,
                )
            )

        passes: Tuple[Pass, ...] = ()
        if record:
            with recorder.measure("trace_finalize"):
                frozen = diagnostics.freeze()
            passes = recorder.passes
        else:
            frozen = diagnostics.freeze()

        logger.debug(
            f"Compiled {document.source or '<string>'}: score {scored.score} "
            f"({scored.filled_slots}/{scored.total_slots}), "
            f"{len(validation.errors)} errors, {recorder.summary()}"
        )

        return CompileResult(
            score=scored.score,
            filled_slots=scored.filled_slots,
            total_slots=scored.total_slots,
            breakdown=scored.breakdown,
            diagnostics=frozen,
            checksum=digest,
            schema_version=self.schema.version,
            trace=passes,
            filled_slot_ids=scored.filled_slot_ids,
            discovered=scored.discovered,
            source=document.source,
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def compile_context(
    path: PathLike,
    config: Optional[CompilerConfig] = None,
    project_root: Optional[PathLike] = None,
) -> CompileResult:
    """Compile a .faf file with a default compiler."""
    return FafCompiler(config).compile(path, project_root=project_root)


def verify_context(
    path: PathLike,
    expected: Any,
    config: Optional[CompilerConfig] = None,
    project_root: Optional[PathLike] = None,
) -> bool:
    """Check a .faf file against a previously recorded checksum."""
    return FafCompiler(config).verify(path, expected, project_root=project_root)
