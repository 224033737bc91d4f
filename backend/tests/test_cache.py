"""
Tests for the TTL cache
"""

import unittest

from clients.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestTTLCache(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=60, clock=self.clock)

    def test_get_and_set(self):
        self.cache.set("a", 1)
        self.assertEqual(self.cache.get("a"), 1)
        self.assertIn("a", self.cache)
        self.assertEqual(len(self.cache), 1)

    def test_missing_key(self):
        self.assertIsNone(self.cache.get("missing"))
        self.assertEqual(self.cache.get("missing", "fallback"), "fallback")
        self.assertNotIn("missing", self.cache)

    def test_expiry(self):
        self.cache.set("a", 1)
        self.clock.advance(59)
        self.assertEqual(self.cache.get("a"), 1)
        self.clock.advance(1)
        self.assertIsNone(self.cache.get("a"))
        self.assertEqual(len(self.cache), 0)

    def test_per_entry_ttl(self):
        self.cache.set("short", 1, ttl_seconds=5)
        self.cache.set("long", 2)
        self.clock.advance(10)
        self.assertIsNone(self.cache.get_or_none("short"))
        self.assertEqual(self.cache.get_or_none("long"), 2)

    def test_tuple_keys(self):
        self.cache.set(("betting-data", "nba", "2"), "x")
        self.assertEqual(self.cache.get(("betting-data", "nba", "2")), "x")

    def test_delete(self):
        self.cache.set("a", 1)
        self.assertTrue(self.cache.delete("a"))
        self.assertFalse(self.cache.delete("a"))

    def test_purge_expired(self):
        self.cache.set("a", 1, ttl_seconds=5)
        self.cache.set("b", 2, ttl_seconds=5)
        self.cache.set("c", 3)
        self.clock.advance(30)
        self.assertEqual(self.cache.purge_expired(), 2)
        self.assertEqual(len(self.cache), 1)

    def test_set_sweeps_expired_entries(self):
        self.cache.set("a", 1, ttl_seconds=5)
        self.cache.set("b", 2)
        self.clock.advance(30)
        self.cache.set("c", 3)
        # Sweep waits for a full ttl window
        self.assertEqual(len(self.cache), 3)

        self.clock.advance(30)
        self.cache.set("d", 4)
        self.assertEqual(len(self.cache), 2)
        self.assertEqual(self.cache.get("c"), 3)
        self.assertEqual(self.cache.get("d"), 4)

    def test_stats_and_clear(self):
        self.cache.set("a", 1)
        self.cache.get("a")
        self.cache.get("b")
        self.assertEqual(self.cache.stats(), {"size": 1, "ttl_seconds": 60, "hits": 1, "misses": 1})

        self.cache.clear()
        self.assertEqual(self.cache.stats(), {"size": 0, "ttl_seconds": 60, "hits": 0, "misses": 0})

    def test_rejects_non_positive_ttl(self):
        with self.assertRaises(ValueError):
            TTLCache(ttl_seconds=0)


if __name__ == "__main__":
    unittest.main()
