# SPDX-License-Identifier: MIT
"""Tests for the FAF checksum module."""

import unittest

from tools.compiler.checksum import canonical_json, checksum, checksum_state, verify
from tools.compiler.scorer import SectionBreakdown


def state(score: int = 5, filled=("project.name", "project.main_language"), version: str = "2.5.0"):
    breakdown = {
        "stack": SectionBreakdown(filled=0, total=15),
        "project": SectionBreakdown(filled=len(filled), total=4, missing=("project.goal",)),
    }
    return checksum_state(version, score, breakdown, filled)


class TestChecksumState(unittest.TestCase):
    """Test the normalized projection."""

    def test_projection_contents(self) -> None:
        """Test that only scoring-relevant values are kept."""
        projection = state()
        self.assertEqual(set(projection), {"schema_version", "score", "breakdown", "filled"})
        self.assertEqual(projection["breakdown"]["project"], {"filled": 2, "total": 4})
        self.assertEqual(projection["filled"], ["project.main_language", "project.name"])

    def test_canonical_json_is_compact_and_sorted(self) -> None:
        """Test the canonical serialization."""
        self.assertEqual(canonical_json({"b": 1, "a": [1, 2]}), '{"a":[1,2],"b":1}')


class TestChecksum(unittest.TestCase):
    """Test hashing and verification."""

    def test_sha256_hex(self) -> None:
        """Test digest shape."""
        digest = checksum(state())
        self.assertEqual(len(digest), 64)
        int(digest, 16)

    def test_order_insensitive(self) -> None:
        """Test that slot order and breakdown order do not matter."""
        a = state(filled=("project.name", "project.main_language"))
        b = state(filled=("project.main_language", "project.name"))
        self.assertEqual(checksum(a), checksum(b))

    def test_sensitive_to_score(self) -> None:
        """Test that a score change changes the digest."""
        self.assertNotEqual(checksum(state(score=5)), checksum(state(score=6)))

    def test_sensitive_to_slots(self) -> None:
        """Test that a different filled set changes the digest."""
        self.assertNotEqual(
            checksum(state(filled=("project.name", "project.goal"))),
            checksum(state(filled=("project.name", "project.main_language"))),
        )

    def test_sensitive_to_schema_version(self) -> None:
        """Test that the schema version participates."""
        self.assertNotEqual(checksum(state(version="2.5.0")), checksum(state(version="3.0.0")))

    def test_verify(self) -> None:
        """Test verification outcomes."""
        digest = checksum(state())
        self.assertTrue(verify(digest, digest))
        self.assertFalse(verify(digest, "wrongsum"))
        self.assertFalse(verify(digest, digest.upper()))
        self.assertFalse(verify(digest, None))
        self.assertFalse(verify(None, digest))
        self.assertFalse(verify(digest, 12345))
        self.assertFalse(verify(digest, ""))


if __name__ == "__main__":
    unittest.main()
