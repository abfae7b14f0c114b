# SPDX-License-Identifier: MIT
"""
FAF Context Compiler

Turns a .faf project-context document plus facts discovered in the project
tree into a deterministic completeness score with diagnostics, a per-pass
trace and a verifiable checksum.

Usage:
    from tools.compiler import FafCompiler

    compiler = FafCompiler()
    result = compiler.compile("project.faf")
    print(result.score, result.checksum)

    # Later: has the score drifted?
    compiler.verify("project.faf", result.checksum)
"""

from .parser import (
    parse_document,
    load_document,
    find_context_file,
    ContextDocument,
    DocumentError,
    DocumentReadError,
    ParseError,
)

from .validator import (
    validate_document,
    ValidationResult,
    UnknownSchemaError,
)

from .diagnostics import (
    Diagnostic,
    Severity,
    Pass,
    Trace,
)

from .slots import (
    DEFAULT_SLOTS,
    SlotDefinition,
)

from .scorer import (
    score_document,
    ScoreResult,
    SectionBreakdown,
)

from .checksum import (
    checksum_state,
    verify as verify_checksum,
)

from .discovery import (
    DiscoveryFact,
    DiscoveryProvider,
    DetectorRegistry,
    RuleDetector,
    facts_from_mapping,
)

from .license import (
    LicenseAuthority,
    LicenseInfo,
    LicenseLevel,
)

from .config import CompilerConfig

from .compiler import (
    FafCompiler,
    CompileResult,
    compile_context,
    verify_context,
)

__version__ = "0.1.0"
__all__ = [
    # Parser exports
    "parse_document",
    "load_document",
    "find_context_file",
    "ContextDocument",
    "DocumentError",
    "DocumentReadError",
    "ParseError",
    # Validator exports
    "validate_document",
    "ValidationResult",
    "UnknownSchemaError",
    # Diagnostics exports
    "Diagnostic",
    "Severity",
    "Pass",
    "Trace",
    # Scoring exports
    "DEFAULT_SLOTS",
    "SlotDefinition",
    "score_document",
    "ScoreResult",
    "SectionBreakdown",
    # Checksum exports
    "checksum_state",
    "verify_checksum",
    # Discovery exports
    "DiscoveryFact",
    "DiscoveryProvider",
    "DetectorRegistry",
    "RuleDetector",
    "facts_from_mapping",
    # License exports
    "LicenseAuthority",
    "LicenseInfo",
    "LicenseLevel",
    # Compiler exports
    "CompilerConfig",
    "FafCompiler",
    "CompileResult",
    "compile_context",
    "verify_context",
    # Version
    "__version__",
]
