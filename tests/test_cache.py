"""Unit tests for the in-memory TTL cache and the request throttle."""

import asyncio
import time
import unittest

from screener.cache import InMemoryCache
from screener.providers.rate_limiter import RequestThrottle


class TestInMemoryCache(unittest.TestCase):
    def test_set_and_get(self):
        cache = InMemoryCache(default_ttl=60)
        cache.set("markets", [1, 2, 3])
        self.assertEqual([1, 2, 3], cache.get("markets"))
        self.assertEqual({"keys": 1, "hits": 1, "misses": 0}, cache.stats())

    def test_zero_ttl_expires_immediately(self):
        cache = InMemoryCache(default_ttl=60)
        cache.set("global", {"x": 1}, ttl_seconds=0)
        self.assertIsNone(cache.get("global"))
        self.assertEqual(1, cache.misses)

    def test_falsy_values_are_cached(self):
        cache = InMemoryCache()
        cache.set("empty", [])
        self.assertEqual([], cache.get("empty"))

    def test_cleanup_removes_only_expired(self):
        cache = InMemoryCache(default_ttl=60)
        cache.set("stale", 1, ttl_seconds=0)
        cache.set("fresh", 2)
        self.assertEqual(1, cache.cleanup())
        self.assertEqual(["fresh"], cache.keys())

    def test_delete_and_clear(self):
        cache = InMemoryCache()
        cache.set("a", 1)
        cache.set("b", 2)
        cache.delete("a")
        self.assertIsNone(cache.get("a"))
        cache.clear()
        self.assertEqual([], cache.keys())


class TestRequestThrottle(unittest.TestCase):
    def test_spaces_requests(self):
        async def run():
            throttle = RequestThrottle(min_interval=0.05)
            start = time.monotonic()
            await asyncio.gather(throttle.acquire(), throttle.acquire(), throttle.acquire())
            return throttle, time.monotonic() - start

        throttle, elapsed = asyncio.run(run())
        self.assertGreaterEqual(elapsed, 0.09)
        self.assertEqual(3, throttle.get_stats()["requests"])

    def test_negative_interval_rejected(self):
        with self.assertRaises(ValueError):
            RequestThrottle(min_interval=-1)


if __name__ == "__main__":
    unittest.main()
