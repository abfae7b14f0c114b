# SPDX-License-Identifier: MIT
"""
FAF Diagnostics & Trace Recorder

Structured diagnostic entries produced by validation and scoring, and the
per-pass timing trace recorded by the compiler pipeline.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


class Severity(Enum):
    """Diagnostic severity. Errors block validity, warnings do not."""

    ERROR = "error"
    WARNING = "warning"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Diagnostic:
    """A single validation or scoring observation."""

    severity: Severity
    message: str
    path: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": str(self.severity),
            "message": self.message,
            "path": self.path,
        }


def error(message: str, path: Optional[str] = None) -> Diagnostic:
    """Build an error-severity diagnostic."""
    return Diagnostic(Severity.ERROR, message, path)


def warning(message: str, path: Optional[str] = None) -> Diagnostic:
    """Build a warning-severity diagnostic."""
    return Diagnostic(Severity.WARNING, message, path)


class DiagnosticLog:
    """
    Ordered, append-only collection of diagnostics.

    Owned by exactly one in-progress compilation; frozen into a tuple when
    the pipeline returns.
    """

    def __init__(self) -> None:
        self._entries: List[Diagnostic] = []

    def add(self, diagnostic: Diagnostic) -> None:
        self._entries.append(diagnostic)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.add(diagnostic)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self._entries if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self._entries if d.severity is Severity.WARNING]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._entries)

    def freeze(self) -> Tuple[Diagnostic, ...]:
        return tuple(self._entries)


# =============================================================================
# Pass Trace
# =============================================================================


@dataclass(frozen=True)
class Pass:
    """One named pipeline stage and how long it took."""

    name: str
    duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "duration_ms": self.duration_ms}


class Trace:
    """
    Records the duration of each pipeline pass.

    Timing uses a monotonic clock and keeps everything in memory, so
    recording never performs I/O.
    """

    def __init__(self) -> None:
        self._passes: List[Pass] = []

    @contextmanager
    def measure(self, name: str) -> Iterator[None]:
        """
        Time the enclosed block and append it as a pass.

        The pass is recorded even if the block raises, so a failed
        compilation still shows how far it got.
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - start) * 1000.0
            self._passes.append(Pass(name=name, duration_ms=round(elapsed, 3)))

    @property
    def passes(self) -> Tuple[Pass, ...]:
        return tuple(self._passes)

    @property
    def total_ms(self) -> float:
        return round(sum(p.duration_ms for p in self._passes), 3)

    def summary(self) -> str:
        parts = [f"{p.name}={p.duration_ms:.3f}ms" for p in self._passes]
        return f"{len(self._passes)} passes in {self.total_ms:.3f}ms ({', '.join(parts)})"
