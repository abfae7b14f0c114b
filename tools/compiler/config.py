# SPDX-License-Identifier: MIT
"""
FAF Compiler Configuration

Immutable settings for the compiler pipeline and its discovery boundary,
optionally read from ``FAF_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TypeVar

from .discovery import DEFAULT_MAX_BYTES, DEFAULT_MAX_WORKERS, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class CompilerConfig:
    """
    Configuration for the compiler pipeline.

    Attributes:
        schema_version: Schema version to validate against (default "latest")
        discovery_enabled: Whether to back-fill slots from the project tree
        discovery_max_workers: Concurrent discovery file reads (default 4)
        discovery_timeout: Seconds to wait for any single file read (default 2.0)
        discovery_max_bytes: Characters read per discovery file (default 256 KiB)
    """

    schema_version: str = "latest"
    discovery_enabled: bool = True
    discovery_max_workers: int = DEFAULT_MAX_WORKERS
    discovery_timeout: float = DEFAULT_TIMEOUT
    discovery_max_bytes: int = DEFAULT_MAX_BYTES

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CompilerConfig":
        """
        Build a config from ``FAF_*`` environment variables.

        Malformed values are logged and replaced by the default.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            schema_version=env.get("FAF_SCHEMA_VERSION", "").strip() or defaults.schema_version,
            discovery_enabled=_read(
                env, "FAF_DISCOVERY", _parse_bool, defaults.discovery_enabled
            ),
            discovery_max_workers=_read(
                env, "FAF_DISCOVERY_WORKERS", _positive(int), defaults.discovery_max_workers
            ),
            discovery_timeout=_read(
                env, "FAF_DISCOVERY_TIMEOUT", _positive(float), defaults.discovery_timeout
            ),
            discovery_max_bytes=_read(
                env, "FAF_DISCOVERY_MAX_BYTES", _positive(int), defaults.discovery_max_bytes
            ),
        )


def license_key_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    env = os.environ if environ is None else environ
    return env.get("FAF_LICENSE_KEY") or None


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _positive(convert: Callable[[str], T]) -> Callable[[str], T]:
    def parse(raw: str) -> T:
        value = convert(raw.strip())
        if not value > 0:  # type: ignore[operator]
            raise ValueError(f"must be positive: {raw!r}")
        return value

    return parse


def _read(env: Mapping[str, str], name: str, parse: Callable[[str], T], default: T) -> T:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return parse(raw)
    except ValueError as e:
        logger.warning(f"Ignoring {name}={raw!r} ({e}); using default {default!r}")
        return default
