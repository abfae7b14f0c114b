# SPDX-License-Identifier: MIT
"""Tests for the FAF compiler configuration module."""

import unittest

from tools.compiler.config import CompilerConfig, license_key_from_env


class TestCompilerConfig(unittest.TestCase):
    """Test configuration defaults and environment overrides."""

    def test_defaults(self) -> None:
        """Test default settings."""
        config = CompilerConfig()
        self.assertEqual(config.schema_version, "latest")
        self.assertTrue(config.discovery_enabled)
        self.assertEqual(config.discovery_max_workers, 4)
        self.assertEqual(config.discovery_timeout, 2.0)
        self.assertEqual(config.discovery_max_bytes, 256 * 1024)

    def test_empty_environment(self) -> None:
        """Test that no variables gives the defaults."""
        self.assertEqual(CompilerConfig.from_env({}), CompilerConfig())

    def test_environment_overrides(self) -> None:
        """Test reading every variable."""
        config = CompilerConfig.from_env(
            {
                "FAF_SCHEMA_VERSION": "2.5.0",
                "FAF_DISCOVERY": "off",
                "FAF_DISCOVERY_WORKERS": "8",
                "FAF_DISCOVERY_TIMEOUT": "0.5",
                "FAF_DISCOVERY_MAX_BYTES": "1024",
            }
        )
        self.assertEqual(config.schema_version, "2.5.0")
        self.assertFalse(config.discovery_enabled)
        self.assertEqual(config.discovery_max_workers, 8)
        self.assertEqual(config.discovery_timeout, 0.5)
        self.assertEqual(config.discovery_max_bytes, 1024)

    def test_malformed_values_fall_back(self) -> None:
        """Test that bad values are logged and ignored."""
        with self.assertLogs("tools.compiler.config", level="WARNING") as logs:
            config = CompilerConfig.from_env(
                {
                    "FAF_DISCOVERY": "maybe",
                    "FAF_DISCOVERY_WORKERS": "-2",
                    "FAF_DISCOVERY_TIMEOUT": "soon",
                }
            )
        self.assertEqual(config, CompilerConfig())
        self.assertEqual(len(logs.output), 3)

    def test_frozen(self) -> None:
        """Test that configs are immutable."""
        with self.assertRaises(AttributeError):
            CompilerConfig().schema_version = "1.0.0"  # type: ignore[misc]

    def test_license_key(self) -> None:
        """Test license key lookup."""
        self.assertEqual(license_key_from_env({"FAF_LICENSE_KEY": "dev_x"}), "dev_x")
        self.assertIsNone(license_key_from_env({}))


if __name__ == "__main__":
    unittest.main()
