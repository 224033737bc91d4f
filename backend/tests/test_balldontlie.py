"""
Tests for the BallDontLie client and real ATS/totals records
"""

import asyncio
import unittest
from datetime import date
from unittest.mock import patch

import httpx

from clients.balldontlie import (
    BallDontLieClient,
    BallDontLieError,
    consensus_spread,
    consensus_total,
    date_range,
)
from clients.cache import TTLCache

CELTICS_ESPN = "2"
CELTICS_BDL = 2

GAMES = [
    # Home win by 12 as a 7.5 point favorite: covers, total 226
    {"id": 101, "date": "2025-01-28", "status": "Final",
     "home_team": {"id": CELTICS_BDL}, "visitor_team": {"id": 16},
     "home_team_score": 119, "visitor_team_score": 107},
    # Road loss by 3 as a 2.5 point dog: fails, total 213
    {"id": 102, "date": "2025-01-30", "status": "Final",
     "home_team": {"id": 20}, "visitor_team": {"id": CELTICS_BDL},
     "home_team_score": 108, "visitor_team_score": 105},
    # No odds posted
    {"id": 103, "date": "2025-01-25", "status": "Final",
     "home_team": {"id": CELTICS_BDL}, "visitor_team": {"id": 5},
     "home_team_score": 100, "visitor_team_score": 90},
    # Not finished
    {"id": 104, "date": "2025-01-31", "status": "2nd Qtr",
     "home_team": {"id": CELTICS_BDL}, "visitor_team": {"id": 9},
     "home_team_score": 50, "visitor_team_score": 48},
]

ODDS = {
    101: [
        {"vendor": "bovada", "spread_home_value": "-8", "spread_away_value": "8", "total_value": "224"},
        {"vendor": "draftkings", "spread_home_value": "-7.5", "spread_away_value": "7.5", "total_value": "221.5"},
    ],
    102: [
        {"vendor": "fanduel", "spread_home_value": "-2.5", "spread_away_value": "2.5", "total_value": "220"},
    ],
    103: [],
}


def handler(request):
    if request.url.path == "/v1/games":
        return httpx.Response(200, json={"data": GAMES})
    if request.url.path == "/v2/odds":
        game_id = int(request.url.params["game_ids[]"])
        return httpx.Response(200, json={"data": ODDS.get(game_id, [])})
    return httpx.Response(404)


class TestConsensus(unittest.TestCase):

    def test_priority_book_wins(self):
        self.assertEqual(consensus_spread(ODDS[101], is_home=True), -7.5)
        self.assertEqual(consensus_spread(ODDS[101], is_home=False), 7.5)
        self.assertEqual(consensus_total(ODDS[101]), 221.5)

    def test_falls_back_to_any_book(self):
        odds = [{"vendor": "bovada", "spread_home_value": "-3", "total_value": None}]
        self.assertEqual(consensus_spread(odds, is_home=True), -3.0)
        self.assertIsNone(consensus_total(odds))

    def test_no_odds(self):
        self.assertIsNone(consensus_spread([], is_home=True))

    def test_date_range(self):
        self.assertEqual(date_range(2, today=date(2025, 2, 1)), ["2025-01-31", "2025-01-30"])


class TestBallDontLieClient(unittest.TestCase):

    def setUp(self):
        self.requests = []

        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        self.client = BallDontLieClient(
            api_key="test-key",
            cache=TTLCache(ttl_seconds=60),
            transport=httpx.MockTransport(recording_handler),
        )

    def test_requires_api_key(self):
        with patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(BallDontLieError):
                BallDontLieClient()

    def test_empty_cache_is_kept(self):
        cache = TTLCache(ttl_seconds=60)
        self.assertIs(BallDontLieClient(api_key="test-key", cache=cache).cache, cache)

    def test_team_games_are_final_and_newest_first(self):
        games = asyncio.run(self.client.get_team_games(CELTICS_BDL, days=3))

        self.assertEqual([g["id"] for g in games], [102, 101, 103])
        request = self.requests[0]
        self.assertEqual(request.headers["Authorization"], "test-key")
        self.assertEqual(request.url.params.get_list("team_ids[]"), ["2"])
        self.assertEqual(len(request.url.params.get_list("dates[]")), 3)

    def test_team_games_are_cached(self):
        asyncio.run(self.client.get_team_games(CELTICS_BDL))
        asyncio.run(self.client.get_team_games(CELTICS_BDL))
        self.assertEqual(len(self.requests), 1)

    def test_real_ats(self):
        ats = asyncio.run(self.client.calculate_real_ats(CELTICS_ESPN))

        self.assertTrue(ats.is_real)
        self.assertEqual((ats.wins, ats.losses, ats.pushes), (1, 1, 0))
        self.assertEqual(ats.recent, ("L", "W"))
        self.assertEqual(ats.home.wins, 1)
        self.assertEqual(ats.away.losses, 1)
        self.assertEqual(ats.percentage, 50)

    def test_real_totals(self):
        totals = asyncio.run(self.client.calculate_real_totals(CELTICS_ESPN))

        self.assertTrue(totals.is_real)
        # 213 vs 220 under, 226 vs 221.5 over
        self.assertEqual(totals.recent, ("U", "O"))
        self.assertEqual(totals.average_total_points, 220)

    def test_unknown_team(self):
        self.assertIsNone(asyncio.run(self.client.calculate_real_ats("999")))
        self.assertEqual(self.requests, [])

    def test_http_error(self):
        client = BallDontLieClient(
            api_key="test-key",
            transport=httpx.MockTransport(lambda request: httpx.Response(429)),
        )
        with self.assertRaises(BallDontLieError):
            asyncio.run(client.calculate_real_ats(CELTICS_ESPN))


if __name__ == "__main__":
    unittest.main()
