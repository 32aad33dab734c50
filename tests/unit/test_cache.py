"""Unit tests for mediawiki_assets.core.cache module."""
from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest

from mediawiki_assets.core.cache import QueryResultCache, build_signature
from mediawiki_assets.model import QueryResultBatch


class TestBuildSignature:
    """Tests for build_signature function."""

    def test_parameter_order_does_not_matter(self):
        a = build_signature("https://x/w/api.php", {"term": "cat", "offset": 0, "limit": 20})
        b = build_signature("https://x/w/api.php", {"limit": 20, "offset": 0, "term": "cat"})
        assert a == b

    def test_endpoint_is_part_of_key(self):
        params = {"offset": 0}
        assert build_signature("https://a/w/api.php", params) != build_signature("https://b/w/api.php", params)

    def test_values_are_encoded(self):
        sig = build_signature("https://x/w/api.php", {"term": "a&b=c"})
        assert sig == "https://x/w/api.php?term=a%26b%3Dc"

    def test_none_values_dropped(self):
        assert build_signature("e", {"a": None, "b": 1}) == "e?b=1"


class TestQueryResultCache:
    """Tests for QueryResultCache class."""

    def test_get_missing_returns_none(self):
        assert QueryResultCache().get("nope") is None

    def test_set_and_get(self):
        cache = QueryResultCache()
        batch = QueryResultBatch(total_results=3, total_reported=True)
        cache.set("k", batch)
        assert cache.get("k") is batch
        assert "k" in cache
        assert len(cache) == 1

    def test_get_or_load_calls_loader_once(self):
        cache = QueryResultCache()
        loader = MagicMock(return_value=QueryResultBatch(total_results=1))

        first = cache.get_or_load("k", loader)
        second = cache.get_or_load("k", loader)

        assert first is second
        loader.assert_called_once()
        assert cache.hits == 1
        assert cache.misses == 1

    def test_loader_error_is_not_cached(self):
        cache = QueryResultCache()
        loader = MagicMock(side_effect=[RuntimeError("boom"), QueryResultBatch()])

        with pytest.raises(RuntimeError):
            cache.get_or_load("k", loader)
        assert "k" not in cache

        cache.get_or_load("k", loader)
        assert loader.call_count == 2

    def test_max_entries_evicts_least_recently_used(self):
        cache = QueryResultCache(max_entries=2)
        cache.set("a", QueryResultBatch(total_results=1))
        cache.set("b", QueryResultBatch(total_results=2))
        cache.get("a")
        cache.set("c", QueryResultBatch(total_results=3))

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_unbounded_by_default(self):
        cache = QueryResultCache()
        for i in range(500):
            cache.set(str(i), QueryResultBatch())
        assert len(cache) == 500

    def test_clear(self):
        cache = QueryResultCache()
        cache.get_or_load("k", QueryResultBatch)
        cache.clear()
        assert len(cache) == 0
        assert cache.misses == 0

    def test_concurrent_misses_load_once(self):
        """Threads racing on one signature trigger a single load."""
        cache = QueryResultCache()
        calls = []

        def loader():
            calls.append(1)
            time.sleep(0.05)
            return QueryResultBatch(total_results=7)

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(cache.get_or_load("k", loader)))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert len(results) == 8
        assert all(r.total_results == 7 for r in results)

    def test_eviction_keeps_key_lock(self):
        """A lock another thread may be waiting on survives eviction."""
        cache = QueryResultCache(max_entries=1)
        cache.get_or_load("a", QueryResultBatch)
        lock = cache._key_lock("a")

        cache.get_or_load("b", QueryResultBatch)

        assert "a" not in cache
        assert cache._key_lock("a") is lock

    def test_failed_load_releases_key_lock(self):
        cache = QueryResultCache()

        with pytest.raises(RuntimeError):
            cache.get_or_load("k", MagicMock(side_effect=RuntimeError("boom")))

        assert "k" not in cache._key_locks
