from __future__ import annotations

from unittest.mock import MagicMock

import redis

from comp_ingest.db.store import StoreError
from comp_ingest.services.fanout import (
    COMPENSATION_CACHE_KEYS,
    CacheInvalidationOutcome,
    CacheInvalidator,
)


def _seed(client):
    client.set("dashboard:acme:summary", "1")
    client.set("dashboard:acme:heatmap", "1")
    client.set("pay-equity:acme", "1")
    client.set("salary-bands:acme", "1")
    client.set("benefits:catalog", "1")
    client.set("unrelated:key", "1")


def test_invalidate_compensation_clears_patterns_and_keys(fake_redis):
    _seed(fake_redis)
    outcome = CacheInvalidator(fake_redis).invalidate_compensation()
    assert outcome.cleared == 5
    assert not outcome.degraded
    assert fake_redis.keys("*") == ["unrelated:key"]


def test_no_client_is_noop():
    outcome = CacheInvalidator(None).invalidate_compensation()
    assert outcome == CacheInvalidationOutcome()
    assert CacheInvalidator.from_url(None).delete_key("benefits:catalog") == 0


def test_redis_failure_is_degraded_not_raised(caplog):
    client = MagicMock()
    client.scan_iter.side_effect = redis.ConnectionError("refused")
    client.delete.side_effect = redis.ConnectionError("refused")
    outcome = CacheInvalidator(client).invalidate_compensation()
    assert outcome.degraded
    assert len(outcome.failures) == 4 + len(COMPENSATION_CACHE_KEYS)
    assert "cache invalidation failed" in caplog.text


def test_after_import_expires_insights(fake_redis, store):
    store.ai_insights["i1"] = None
    _seed(fake_redis)
    outcome = CacheInvalidator(fake_redis).invalidate_after_import(store)
    assert outcome.insights_expired == 1
    assert outcome.cleared == 5
    assert store.ai_insights["i1"] is not None


def test_after_import_insight_failure_is_degraded(fake_redis):
    broken = MagicMock()
    broken.expire_ai_insights.side_effect = StoreError("relation does not exist")
    outcome = CacheInvalidator(fake_redis).invalidate_after_import(broken)
    assert outcome.degraded
    assert outcome.failures[-1].startswith("insight expiry failed")
