# SPDX-License-Identifier: MIT
"""Tests for the FAF diagnostics and trace module."""

import unittest

from tools.compiler.diagnostics import (
    DiagnosticLog,
    Severity,
    Trace,
    error,
    warning,
)


class TestDiagnostics(unittest.TestCase):
    """Test diagnostic entries and the log."""

    def test_to_dict(self) -> None:
        """Test diagnostic serialization."""
        d = error("Required field missing: project.name", "project.name")
        self.assertTrue(d.is_error)
        self.assertEqual(
            d.to_dict(),
            {"severity": "error", "message": "Required field missing: project.name", "path": "project.name"},
        )

    def test_log_keeps_order(self) -> None:
        """Test ordered accumulation and filtering."""
        log = DiagnosticLog()
        log.add(warning("w1"))
        log.add(error("e1"))
        log.extend([warning("w2")])
        self.assertEqual([d.message for d in log], ["w1", "e1", "w2"])
        self.assertEqual([d.message for d in log.errors], ["e1"])
        self.assertEqual(len(log.warnings), 2)
        frozen = log.freeze()
        self.assertIsInstance(frozen, tuple)
        self.assertEqual(len(frozen), 3)

    def test_severity_str(self) -> None:
        """Test severity string form."""
        self.assertEqual(str(Severity.WARNING), "warning")


class TestTrace(unittest.TestCase):
    """Test pass timing."""

    def test_measure_records_passes(self) -> None:
        """Test that each measured block becomes a pass."""
        trace = Trace()
        with trace.measure("parse"):
            pass
        with trace.measure("score"):
            pass
        self.assertEqual([p.name for p in trace.passes], ["parse", "score"])
        self.assertTrue(all(p.duration_ms >= 0 for p in trace.passes))
        self.assertIn("2 passes", trace.summary())

    def test_measure_records_on_error(self) -> None:
        """Test that a failing pass is still recorded."""
        trace = Trace()
        with self.assertRaises(RuntimeError):
            with trace.measure("parse"):
                raise RuntimeError("boom")
        self.assertEqual(trace.passes[0].name, "parse")


if __name__ == "__main__":
    unittest.main()
