# SPDX-License-Identifier: MIT
"""
FAF License Authority

Maps license keys to tiers and caps a computed score by tier. Capping is
strictly downstream of compilation: the compiler's own result never looks
at a license.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Optional, Tuple


class LicenseLevel(Enum):
    """Subscription tiers."""

    FREE = "free"
    DEVELOPER = "developer"
    ENTERPRISE = "enterprise"
    CHAMPIONSHIP = "championship"

    def __str__(self) -> str:
        return self.value


SCORE_LIMITS: Mapping[LicenseLevel, int] = MappingProxyType(
    {
        LicenseLevel.FREE: 70,
        LicenseLevel.DEVELOPER: 85,
        LicenseLevel.ENTERPRISE: 95,
        LicenseLevel.CHAMPIONSHIP: 100,
    }
)

LICENSE_MESSAGES: Mapping[LicenseLevel, str] = MappingProxyType(
    {
        LicenseLevel.FREE: "Free Tier - Score capped at 70%",
        LicenseLevel.DEVELOPER: "Developer Tier - Score up to 85%",
        LicenseLevel.ENTERPRISE: "Enterprise - Score up to 95%",
        LicenseLevel.CHAMPIONSHIP: "Championship - Unlimited scoring",
    }
)

DEVELOPER_KEY_PREFIX = "dev_"
ALL_FEATURES = "all"


@dataclass(frozen=True)
class LicenseInfo:
    """A resolved license."""

    level: LicenseLevel
    score_limit: int
    features: Tuple[str, ...] = ()
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        if self.expires_at is None:
            return False
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires < now

    def to_dict(self) -> Dict[str, object]:
        return {
            "level": str(self.level),
            "score_limit": self.score_limit,
            "features": list(self.features),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


FREE_LICENSE = LicenseInfo(
    level=LicenseLevel.FREE,
    score_limit=SCORE_LIMITS[LicenseLevel.FREE],
    features=("basic_scoring", "basic_context"),
)

DEVELOPER_LICENSE = LicenseInfo(
    level=LicenseLevel.DEVELOPER,
    score_limit=SCORE_LIMITS[LicenseLevel.DEVELOPER],
    features=("advanced_scoring", "chrome_extension", "cache_warming"),
)


def hash_key(key: str) -> str:
    """Keys are only ever stored as SHA-256 hex digests."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LicenseAuthority:
    """
    Resolves license keys against a read-only table of hashed keys.

    Args:
        keys: Mapping of SHA-256 key digest -> LicenseInfo
        clock: Returns the current time; used only for expiry checks
    """

    def __init__(
        self,
        keys: Optional[Mapping[str, LicenseInfo]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._keys: Mapping[str, LicenseInfo] = MappingProxyType(dict(keys or {}))
        self._clock = clock

    @classmethod
    def from_keys(
        cls,
        keys: Mapping[str, LicenseInfo],
        clock: Callable[[], datetime] = _utcnow,
    ) -> "LicenseAuthority":
        """Build an authority from plain-text keys, hashing each one."""
        return cls({hash_key(key): info for key, info in keys.items()}, clock=clock)

    def validate_license(self, key: Optional[str] = None) -> LicenseInfo:
        """
        Resolve a key to a license.

        A missing, unknown or expired key resolves to the free tier;
        ``dev_`` keys resolve to the developer tier.
        """
        if not key:
            return FREE_LICENSE
        if key.startswith(DEVELOPER_KEY_PREFIX):
            return DEVELOPER_LICENSE

        info = self._keys.get(hash_key(key))
        if info is None:
            return FREE_LICENSE
        if info.is_expired(self._clock()):
            return FREE_LICENSE
        return info

    @staticmethod
    def score_limit_for(level: LicenseLevel) -> int:
        return SCORE_LIMITS.get(level, SCORE_LIMITS[LicenseLevel.FREE])

    @staticmethod
    def has_feature(license_info: LicenseInfo, feature: str) -> bool:
        return ALL_FEATURES in license_info.features or feature in license_info.features

    @staticmethod
    def cap_score(score: int, license_info: LicenseInfo) -> int:
        return min(score, license_info.score_limit)

    @staticmethod
    def license_message(license_info: LicenseInfo) -> str:
        return LICENSE_MESSAGES.get(license_info.level, LICENSE_MESSAGES[LicenseLevel.FREE])


def championship_license(expires_at: Optional[datetime] = None) -> LicenseInfo:
    """Full-access license info, for building key tables."""
    return LicenseInfo(
        level=LicenseLevel.CHAMPIONSHIP,
        score_limit=SCORE_LIMITS[LicenseLevel.CHAMPIONSHIP],
        features=(ALL_FEATURES,),
        expires_at=expires_at,
    )
