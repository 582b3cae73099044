from __future__ import annotations

import logging
from dataclasses import dataclass, field

import redis

from ..db.store import EmployeeStore, StoreError

"""Post-write cache invalidation.

Every write that touches compensation data clears the cached aggregates
derived from it. Import runs additionally force-expire stored AI insights.

Failures are collected into CacheInvalidationOutcome (``degraded=True``) and
logged; they never propagate to the write that triggered them.
"""

__all__ = [
    "COMPENSATION_CACHE_PATTERNS",
    "COMPENSATION_CACHE_KEYS",
    "CacheError",
    "CacheInvalidationOutcome",
    "CacheInvalidator",
]

logger = logging.getLogger(__name__)

COMPENSATION_CACHE_PATTERNS: tuple[str, ...] = (
    "dashboard:*",
    "pay-equity:*",
    "salary-bands:*",
    "performance:*",
)
COMPENSATION_CACHE_KEYS: tuple[str, ...] = (
    "ai:dashboard-summary",
    "benefits:catalog",
    "benefits:utilization",
)


class CacheError(Exception):
    pass


@dataclass(frozen=True)
class CacheInvalidationOutcome:
    cleared: int = 0
    insights_expired: int = 0
    failures: tuple[str, ...] = field(default_factory=tuple)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


class CacheInvalidator:
    """Deletes compensation cache entries from Redis.

    ``client`` may be None (no cache configured): invalidation is then a no-op.
    """

    def __init__(self, client: redis.Redis | None = None) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str | None) -> CacheInvalidator:
        if not url:
            return cls(None)
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def delete_pattern(self, pattern: str) -> int:
        if self._client is None:
            return 0
        try:
            keys = list(self._client.scan_iter(match=pattern))
            return int(self._client.delete(*keys)) if keys else 0
        except redis.RedisError as exc:
            raise CacheError(f"Redis delete failed for pattern={pattern!r}: {exc}") from exc

    def delete_key(self, key: str) -> int:
        if self._client is None:
            return 0
        try:
            return int(self._client.delete(key))
        except redis.RedisError as exc:
            raise CacheError(f"Redis DELETE failed for key={key!r}: {exc}") from exc

    def invalidate_compensation(self) -> CacheInvalidationOutcome:
        cleared = 0
        failures: list[str] = []
        for pattern in COMPENSATION_CACHE_PATTERNS:
            try:
                cleared += self.delete_pattern(pattern)
            except CacheError as e:
                failures.append(str(e))
        for key in COMPENSATION_CACHE_KEYS:
            try:
                cleared += self.delete_key(key)
            except CacheError as e:
                failures.append(str(e))
        for failure in failures:
            logger.warning("cache invalidation failed: %s", failure)
        return CacheInvalidationOutcome(cleared=cleared, failures=tuple(failures))

    def invalidate_after_import(self, store: EmployeeStore) -> CacheInvalidationOutcome:
        outcome = self.invalidate_compensation()
        try:
            expired = store.expire_ai_insights()
        except StoreError as e:
            logger.warning("AI insight expiry failed: %s", e)
            return CacheInvalidationOutcome(
                cleared=outcome.cleared,
                failures=outcome.failures + (f"insight expiry failed: {e}",),
            )
        return CacheInvalidationOutcome(
            cleared=outcome.cleared, insights_expired=expired, failures=outcome.failures
        )
