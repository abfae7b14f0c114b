# SPDX-License-Identifier: MIT
"""Tests for the FAF discovery provider module."""

import json
import os
import shutil
import tempfile
import time
import unittest
from pathlib import Path
from typing import Dict, Optional
from unittest import mock

from tools.compiler.discovery import (
    DetectorRegistry,
    DiscoveryFact,
    DiscoveryProvider,
    FieldRule,
    Matcher,
    NODE_DETECTOR,
    ProjectFiles,
    RuleDetector,
    default_registry,
    facts_from_mapping,
    read_candidate,
)


def files(contents: Dict[str, str]) -> ProjectFiles:
    return ProjectFiles(root=Path("."), contents=contents)


PACKAGE_JSON = json.dumps(
    {
        "name": "shop",
        "description": "A storefront",
        "dependencies": {"react": "^18", "next": "14", "zustand": "4"},
        "devDependencies": {"vitest": "1", "tailwindcss": "3", "typescript": "5"},
    }
)


class TestMatchers(unittest.TestCase):
    """Test tagged matcher variants."""

    def test_file_matcher(self) -> None:
        """Test file existence matching."""
        m = Matcher("file", "yarn.lock", value="Yarn")
        self.assertEqual(m.match(files({"yarn.lock": ""})), "Yarn")
        self.assertIsNone(m.match(files({})))

    def test_regex_capture(self) -> None:
        """Test that a regex group supplies the value."""
        m = Matcher("regex", r"^name\s*=\s*\"([^\"]+)\"", source="pyproject.toml")
        self.assertEqual(m.match(files({"pyproject.toml": 'x = 1\nname = "svc"\n'})), "svc")
        self.assertIsNone(m.match(files({"pyproject.toml": "x = 1\n"})))

    def test_regex_fixed_value(self) -> None:
        """Test that a fixed value overrides the captured text."""
        m = Matcher("regex", r"(?im)^django", source="requirements.txt", value="Django")
        self.assertEqual(m.match(files({"requirements.txt": "Django==5.0\n"})), "Django")

    def test_dependency_matcher(self) -> None:
        """Test dependency lookup across both dependency maps."""
        m = Matcher("dependency", "vitest", source="package.json", value="Vitest")
        self.assertEqual(m.match(files({"package.json": PACKAGE_JSON})), "Vitest")
        self.assertIsNone(m.match(files({"package.json": "{not json"})))

    def test_field_matcher(self) -> None:
        """Test JSON field lookup."""
        m = Matcher("field", "description", source="package.json")
        self.assertEqual(m.match(files({"package.json": PACKAGE_JSON})), "A storefront")

    def test_invalid_matchers(self) -> None:
        """Test matcher construction checks."""
        with self.assertRaises(ValueError):
            Matcher("glob", "*.py")
        with self.assertRaises(ValueError):
            Matcher("regex", "x")
        with self.assertRaises(ValueError):
            Matcher("file", "yarn.lock")

    def test_first_matcher_wins(self) -> None:
        """Test matcher priority within a rule."""
        rule = FieldRule(
            "stack.package_manager",
            (
                Matcher("file", "pnpm-lock.yaml", value="pnpm"),
                Matcher("file", "package-lock.json", value="npm"),
            ),
        )
        both = files({"pnpm-lock.yaml": "", "package-lock.json": ""})
        self.assertEqual(rule.resolve(both), "pnpm")
        self.assertEqual(rule.resolve(files({"package-lock.json": ""})), "npm")


class TestDetectors(unittest.TestCase):
    """Test detectors and the registry."""

    def test_node_detector(self) -> None:
        """Test the built-in package.json detector."""
        snapshot = files({"package.json": PACKAGE_JSON, "pnpm-lock.yaml": "", "tsconfig.json": "{}"})
        self.assertTrue(NODE_DETECTOR.detect(snapshot))
        context = NODE_DETECTOR.generate_context(snapshot)
        self.assertEqual(context["project.name"], "shop")
        self.assertEqual(context["project.main_language"], "TypeScript")
        self.assertEqual(context["stack.frontend"], "Next.js")
        self.assertEqual(context["stack.css_framework"], "Tailwind CSS")
        self.assertEqual(context["stack.state_management"], "Zustand")
        self.assertEqual(context["stack.testing"], "Vitest")
        self.assertEqual(context["stack.package_manager"], "pnpm")
        self.assertEqual(context["stack.runtime"], "Node.js")

    def test_detector_not_detected(self) -> None:
        """Test that an undetected project yields no context."""
        self.assertEqual(NODE_DETECTOR.generate_context(files({})), {})

    def test_candidate_files(self) -> None:
        """Test that candidate files cover markers and matcher sources."""
        names = NODE_DETECTOR.candidate_files
        self.assertEqual(names[0], "package.json")
        self.assertIn("yarn.lock", names)
        self.assertEqual(len(names), len(set(names)))

    def test_registry_duplicate_name(self) -> None:
        """Test that detector names are unique."""
        registry = DetectorRegistry([NODE_DETECTOR])
        with self.assertRaises(ValueError):
            registry.register(NODE_DETECTOR)

    def test_default_registry_order(self) -> None:
        """Test built-in registration order."""
        self.assertEqual(default_registry().names, ["node", "python", "platform"])

    def test_facts_from_mapping(self) -> None:
        """Test normalizing a caller-supplied map."""
        facts = facts_from_mapping({"stack.frontend": "React", "project.name": "x", "stack.build": None})
        self.assertEqual([f.key for f in facts], ["project.name", "stack.frontend"])
        self.assertEqual(facts[0].source, "external")


class TestDiscoveryProvider(unittest.TestCase):
    """Test discovery against a real directory tree."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self) -> None:
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir)

    def _write(self, name: str, content: str) -> str:
        path = os.path.join(self.temp_dir, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    def test_python_project(self) -> None:
        """Test discovery of a Python project."""
        self._write(
            "pyproject.toml",
            '[project]\nname = "svc"\ndescription = "Billing API"\n'
            'dependencies = [\n  "fastapi>=0.110",\n  "sqlalchemy",\n  "psycopg[binary]",\n]\n',
        )
        self._write("uv.lock", "")
        self._write(".github/workflows/ci.yml", "on: push\n")
        facts = {f.key: f for f in DiscoveryProvider().discover(self.temp_dir)}
        self.assertEqual(facts["project.name"].value, "svc")
        self.assertEqual(facts["project.goal"].value, "Billing API")
        self.assertEqual(facts["project.main_language"].value, "Python")
        self.assertEqual(facts["stack.backend"].value, "FastAPI")
        self.assertEqual(facts["stack.connection"].value, "SQLAlchemy")
        self.assertEqual(facts["stack.database"].value, "PostgreSQL")
        self.assertEqual(facts["stack.package_manager"].value, "uv")
        self.assertEqual(facts["stack.cicd"].value, "GitHub Actions")
        self.assertEqual(facts["stack.cicd"].source, "platform detector")

    def test_requirement_prefix_not_matched(self) -> None:
        """Test that a longer package name does not match a shorter one."""
        self._write("requirements.txt", "flask-cors==4\n")
        facts = {f.key: f.value for f in DiscoveryProvider().discover(self.temp_dir)}
        self.assertNotIn("stack.backend", facts)
        self.assertEqual(facts["stack.package_manager"], "pip")

    def test_output_sorted_and_first_detector_wins(self) -> None:
        """Test fact ordering and detector precedence."""
        self._write("package.json", json.dumps({"name": "web"}))
        self._write("pyproject.toml", '[project]\nname = "api"\n')
        facts = DiscoveryProvider().discover(self.temp_dir)
        keys = [f.key for f in facts]
        self.assertEqual(keys, sorted(keys))
        by_key = {f.key: f for f in facts}
        self.assertEqual(by_key["project.name"].value, "web")
        self.assertEqual(by_key["project.name"].source, "node detector")

    def test_empty_directory(self) -> None:
        """Test that an empty tree yields no facts."""
        self.assertEqual(DiscoveryProvider().discover(self.temp_dir), ())

    def test_missing_directory(self) -> None:
        """Test that a missing root yields no facts."""
        self.assertEqual(DiscoveryProvider().discover(os.path.join(self.temp_dir, "nope")), ())

    def test_read_candidate_truncates(self) -> None:
        """Test bounded reads."""
        self._write("big.txt", "x" * 100)
        self.assertEqual(read_candidate(Path(self.temp_dir), "big.txt", max_bytes=10), "x" * 10)
        self.assertIsNone(read_candidate(Path(self.temp_dir), "absent.txt"))
        os.makedirs(os.path.join(self.temp_dir, "adir"))
        self.assertEqual(read_candidate(Path(self.temp_dir), "adir"), "")

    def test_failing_detector_is_skipped(self) -> None:
        """Test that a detector error does not abort discovery."""

        class Broken:
            name = "broken"
            candidate_files = ("package.json",)

            def detect(self, files: ProjectFiles) -> bool:
                raise RuntimeError("boom")

            def generate_context(self, files: ProjectFiles) -> Dict[str, str]:
                return {}

        self._write("package.json", json.dumps({"name": "web"}))
        registry = DetectorRegistry([Broken(), NODE_DETECTOR])
        with self.assertLogs("tools.compiler.discovery", level="WARNING"):
            facts = DiscoveryProvider(registry=registry).discover(self.temp_dir)
        self.assertIn("project.name", [f.key for f in facts])

    def test_slow_read_contributes_nothing(self) -> None:
        """Test that a read exceeding the timeout is skipped with a warning."""
        detector = RuleDetector(
            name="slow",
            markers=("slow.txt",),
            rules=(FieldRule("stack.build", (Matcher("file", "slow.txt", value="Slow"),)),),
        )
        self._write("slow.txt", "content")

        def slow_read(root: Path, name: str, max_bytes: int) -> Optional[str]:
            time.sleep(0.5)
            return "content"

        provider = DiscoveryProvider(registry=DetectorRegistry([detector]), timeout=0.05)
        with mock.patch("tools.compiler.discovery.read_candidate", side_effect=slow_read):
            with self.assertLogs("tools.compiler.discovery", level="WARNING") as logs:
                started = time.perf_counter()
                facts = provider.discover(self.temp_dir)
                elapsed = time.perf_counter() - started

        self.assertEqual(facts, ())
        self.assertLess(elapsed, 0.5)
        self.assertTrue(any("Timed out reading" in line for line in logs.output))

    def test_custom_detector(self) -> None:
        """Test that new rule detectors are additive."""
        detector = RuleDetector(
            name="go",
            markers=("go.mod",),
            rules=(
                FieldRule("project.main_language", (Matcher("file", "go.mod", value="Go"),)),
                FieldRule(
                    "project.name",
                    (Matcher("regex", r"^module\s+(\S+)", source="go.mod"),),
                ),
            ),
        )
        self._write("go.mod", "module example.com/tool\n\ngo 1.22\n")
        registry = DetectorRegistry([detector])
        facts = DiscoveryProvider(registry=registry, max_workers=1).discover(self.temp_dir)
        self.assertEqual(
            facts,
            (
                DiscoveryFact("project.main_language", "Go", "go detector"),
                DiscoveryFact("project.name", "example.com/tool", "go detector"),
            ),
        )


if __name__ == "__main__":
    unittest.main()
