"""
BallDontLie API Client

Historical NBA games and closing lines, used to build real
against-the-spread and over/under records.
"""

import asyncio
import httpx
import logging
from datetime import date, timedelta
from typing import Optional, List, Dict, Any
import os
from dotenv import load_dotenv

from services.betting_stats import (
    RealATSRecord,
    RealTotalsRecord,
    build_ats_record,
    build_totals_record,
)
from .cache import TTLCache

load_dotenv()

logger = logging.getLogger(__name__)


class BallDontLieError(Exception):
    """Custom exception for BallDontLie client errors."""
    pass


# ESPN team id -> BallDontLie team id
ESPN_TO_BDL_TEAM_IDS = {
    "1": 1,    # Hawks
    "2": 2,    # Celtics
    "17": 3,   # Nets
    "30": 4,   # Hornets
    "4": 5,    # Bulls
    "5": 6,    # Cavaliers
    "6": 7,    # Mavericks
    "7": 8,    # Nuggets
    "8": 9,    # Pistons
    "9": 10,   # Warriors
    "10": 11,  # Rockets
    "11": 12,  # Pacers
    "12": 13,  # Clippers
    "13": 14,  # Lakers
    "29": 15,  # Grizzlies
    "14": 16,  # Heat
    "15": 17,  # Bucks
    "16": 18,  # Timberwolves
    "3": 19,   # Pelicans
    "18": 20,  # Knicks
    "25": 21,  # Thunder
    "19": 22,  # Magic
    "20": 23,  # 76ers
    "21": 24,  # Suns
    "22": 25,  # Trail Blazers
    "23": 26,  # Kings
    "24": 27,  # Spurs
    "28": 28,  # Raptors
    "26": 29,  # Jazz
    "27": 30,  # Wizards
}

# Preferred books for consensus lines, in order
PRIORITY_BOOKS = ["draftkings", "fanduel", "caesars", "betmgm", "betrivers"]


def _to_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _consensus(odds: List[Dict[str, Any]], field_name: str) -> Optional[float]:
    """First usable value for a field, priority books first, then any book."""
    by_vendor = {}
    for o in odds:
        by_vendor.setdefault(o.get("vendor"), o)

    for book in PRIORITY_BOOKS:
        if book in by_vendor:
            value = _to_float(by_vendor[book].get(field_name))
            if value is not None:
                return value

    for o in odds:
        value = _to_float(o.get(field_name))
        if value is not None:
            return value
    return None


def consensus_spread(odds: List[Dict[str, Any]], is_home: bool) -> Optional[float]:
    return _consensus(odds, "spread_home_value" if is_home else "spread_away_value")


def consensus_total(odds: List[Dict[str, Any]]) -> Optional[float]:
    return _consensus(odds, "total_value")


def date_range(days: int, today: Optional[date] = None) -> List[str]:
    """ISO dates for the last `days` days, not including today."""
    today = today or date.today()
    return [(today - timedelta(days=i)).isoformat() for i in range(1, days + 1)]


class BallDontLieClient:
    """Client for the BallDontLie NBA API."""

    BASE_URL = "https://api.balldontlie.io"

    LOOKBACK_DAYS = 45
    DEFAULT_LIMIT = 15

    def __init__(
        self,
        api_key: Optional[str] = None,
        cache: Optional[TTLCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or os.getenv("BALLDONTLIE_API_KEY")
        if not self.api_key:
            raise BallDontLieError(
                "BallDontLie API key is required. Set BALLDONTLIE_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.headers = {"Authorization": self.api_key}
        self.cache = cache if cache is not None else TTLCache(ttl_seconds=1800)
        self._transport = transport

    async def _request(self, version: str, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Make an authenticated request to the BallDontLie API."""
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self.BASE_URL}/{version}/{endpoint}",
                    params=params,
                    headers=self.headers,
                    timeout=30.0
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise BallDontLieError(f"BallDontLie request failed for {endpoint}: {e}") from e

    # ==================== GAMES / ODDS ====================

    async def get_team_games(self, team_id: int, days: int = LOOKBACK_DAYS) -> List[Dict[str, Any]]:
        """
        Completed games for a team over the last `days` days, newest first.

        Args:
            team_id: BallDontLie team id
            days: Lookback window in days
        """
        cache_key = ("bdl-games", team_id, days)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._request("v1", "games", {
            "team_ids[]": [team_id],
            "dates[]": date_range(days),
            "per_page": 50,
        })
        games = [g for g in data.get("data", []) if g.get("status") == "Final"]
        games.sort(key=lambda g: g.get("date", ""), reverse=True)

        self.cache.set(cache_key, games)
        return games

    async def get_game_odds(self, game_id: int) -> List[Dict[str, Any]]:
        cache_key = ("bdl-odds", game_id)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        data = await self._request("v2", "odds", {"game_ids[]": [game_id]})
        odds = data.get("data", [])
        self.cache.set(cache_key, odds)
        return odds

    async def _games_with_odds(self, espn_team_id: str, limit: int):
        bdl_team_id = ESPN_TO_BDL_TEAM_IDS.get(str(espn_team_id))
        if bdl_team_id is None:
            logger.warning(f"No BallDontLie mapping for ESPN team id {espn_team_id}")
            return None, []

        games = (await self.get_team_games(bdl_team_id))[:limit]
        all_odds = await asyncio.gather(*(self.get_game_odds(g["id"]) for g in games))
        return bdl_team_id, list(zip(games, all_odds))

    # ==================== RECORDS ====================

    async def calculate_real_ats(
        self,
        espn_team_id: str,
        limit: int = DEFAULT_LIMIT,
    ) -> Optional[RealATSRecord]:
        """
        ATS record from closing spreads of the team's recent games.

        Games without a usable spread are skipped. Returns None when there
        is no mapping for the team or nothing could be graded.
        """
        bdl_team_id, games = await self._games_with_odds(espn_team_id, limit)

        outcomes = []
        for game, odds in games:
            is_home = game["home_team"]["id"] == bdl_team_id
            spread = consensus_spread(odds, is_home)
            if spread is None:
                continue

            team_score = game["home_team_score"] if is_home else game["visitor_team_score"]
            opp_score = game["visitor_team_score"] if is_home else game["home_team_score"]
            outcomes.append((is_home, team_score - opp_score + spread))

        return build_ats_record(outcomes, RealATSRecord)

    async def calculate_real_totals(
        self,
        espn_team_id: str,
        limit: int = DEFAULT_LIMIT,
    ) -> Optional[RealTotalsRecord]:
        """Over/under record from closing totals of the team's recent games."""
        _, games = await self._games_with_odds(espn_team_id, limit)

        outcomes = []
        for game, odds in games:
            line = consensus_total(odds)
            if line is None:
                continue
            outcomes.append((game["home_team_score"] + game["visitor_team_score"], line))

        return build_totals_record(outcomes, RealTotalsRecord)
