"""
The Odds API Client

Handles all interactions with The Odds API for sports betting odds.
Supports NBA and NFL odds from multiple bookmakers.
"""

import httpx
import logging
from typing import Optional, List, Dict, Any, Sequence, Union
import os
from dotenv import load_dotenv
from enum import Enum

from services.sports import Sport, get_profile, to_sport
from services.value_calculator import MarketLine

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_MONEYLINE = -110


class OddsAPIError(Exception):
    """Custom exception for Odds API errors."""
    pass


class Market(Enum):
    """Available betting markets."""
    H2H = "h2h"           # Moneyline
    SPREADS = "spreads"   # Point spread
    TOTALS = "totals"     # Over/Under


class OddsFormat(Enum):
    """Odds display format."""
    AMERICAN = "american"  # +150, -200
    DECIMAL = "decimal"    # 2.50, 1.50


SPORT_KEYS = {
    Sport.NBA: "basketball_nba",
    Sport.NFL: "americanfootball_nfl",
}

DEFAULT_MARKETS = (Market.H2H, Market.SPREADS, Market.TOTALS)


# ==================== NORMALIZATION ====================

def extract_best_odds(event: Dict[str, Any], market: Market, team: str) -> Dict[str, Any]:
    """
    Find the best odds for a specific team and market across all bookmakers.

    Args:
        event: Event data from get_odds()
        market: The betting market
        team: Team name to find odds for

    Returns:
        Dict with best odds, bookmaker, and line (if applicable)
    """
    best_odds = None
    best_bookmaker = None
    best_point = None

    for bookmaker in event.get("bookmakers", []):
        for mkt in bookmaker.get("markets", []):
            if mkt.get("key") != market.value:
                continue

            for outcome in mkt.get("outcomes", []):
                if outcome.get("name") != team:
                    continue
                # Higher is better for both positive and negative American odds
                if best_odds is None or outcome["price"] > best_odds:
                    best_odds = outcome["price"]
                    best_bookmaker = bookmaker.get("title")
                    best_point = outcome.get("point")

    return {
        "odds": best_odds,
        "bookmaker": best_bookmaker,
        "point": best_point
    }


def _first_book_outcome(event: Dict[str, Any], market: Market, name: str) -> Optional[Dict[str, Any]]:
    bookmakers = event.get("bookmakers", [])
    if not bookmakers:
        return None
    for mkt in bookmakers[0].get("markets", []):
        if mkt.get("key") == market.value:
            return next((o for o in mkt.get("outcomes", []) if o.get("name") == name), None)
    return None


def to_market_line(event: Dict[str, Any], sport: Union[Sport, str]) -> Optional[MarketLine]:
    """
    Normalize an odds event into a single market line.

    Spread and total come from the first bookmaker listed; moneylines are
    the best price for each side across all books. A missing total falls
    back to the league average and missing moneylines to -110.

    Returns None when the event has no bookmakers.
    """
    bookmakers = event.get("bookmakers", [])
    if not bookmakers:
        return None

    home_team = event.get("home_team", "")
    away_team = event.get("away_team", "")

    home_spread = _first_book_outcome(event, Market.SPREADS, home_team)
    total_over = _first_book_outcome(event, Market.TOTALS, "Over")

    best_home = extract_best_odds(event, Market.H2H, home_team)
    best_away = extract_best_odds(event, Market.H2H, away_team)

    spread = (home_spread or {}).get("point") or 0.0
    total = (total_over or {}).get("point") or get_profile(sport).ou_baseline_total

    return MarketLine(
        spread=float(spread),
        total=float(total),
        home_moneyline=best_home["odds"] or DEFAULT_MONEYLINE,
        away_moneyline=best_away["odds"] or DEFAULT_MONEYLINE,
        bookmaker=bookmakers[0].get("title", ""),
    )


def find_event(
    events: List[Dict[str, Any]],
    home_name: str,
    home_abbreviation: str = "",
) -> Optional[Dict[str, Any]]:
    """Find the odds event for a game by its home team."""
    home_lower = home_name.lower()
    abbr = home_abbreviation.lower()
    for event in events:
        event_home = event.get("home_team", "").lower()
        if not event_home:
            continue
        if event_home == home_lower or event_home in home_lower or (abbr and abbr in event_home.split()):
            return event
    return None


# ==================== CLIENT ====================

class OddsAPIClient:
    """Client for interacting with The Odds API."""

    BASE_URL = "https://api.the-odds-api.com/v4"

    def __init__(
        self,
        sport: Union[Sport, str] = Sport.NBA,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sport = to_sport(sport)
        self.api_key = api_key or os.getenv("ODDS_API_KEY")
        if not self.api_key:
            raise OddsAPIError(
                "Odds API key is required. Set ODDS_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self._transport = transport
        self.remaining_requests = None
        self.used_requests = None

    @property
    def sport_key(self) -> str:
        return SPORT_KEYS[self.sport]

    def _update_usage(self, headers: httpx.Headers):
        """Track API usage from response headers."""
        self.remaining_requests = headers.get("x-requests-remaining")
        self.used_requests = headers.get("x-requests-used")

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Any:
        """Make an authenticated request to The Odds API."""
        params = dict(params, apiKey=self.api_key)

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self.BASE_URL}/{endpoint}",
                    params=params,
                    timeout=30.0
                )
                self._update_usage(response.headers)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise OddsAPIError(f"Odds API request failed for {endpoint}: {e}") from e

    # ==================== ODDS ====================

    async def get_odds(
        self,
        markets: Optional[List[Market]] = None,
        regions: Sequence[str] = ("us",),
        bookmakers: Optional[List[str]] = None,
        odds_format: OddsFormat = OddsFormat.AMERICAN,
        event_ids: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Current odds for every upcoming game in the client's sport.

        Args:
            markets: Markets to price (default: moneyline, spread and total)
            regions: Bookmaker regions, e.g. "us", "uk"
            bookmakers: Restrict to these bookmaker keys
            odds_format: American or decimal prices
            event_ids: Restrict to these Odds API event ids

        Returns:
            Raw odds events, one per game, each with a "bookmakers" list
        """
        params = {
            "regions": ",".join(regions),
            "markets": ",".join(m.value for m in (markets or DEFAULT_MARKETS)),
            "oddsFormat": odds_format.value,
        }
        if bookmakers:
            params["bookmakers"] = ",".join(bookmakers)
        if event_ids:
            params["eventIds"] = ",".join(event_ids)

        events = await self._request(f"sports/{self.sport_key}/odds", params)
        logger.debug(f"Fetched odds for {len(events)} {self.sport.value} events")
        return events

    # ==================== EVENTS / SCORES ====================

    async def get_events(self, event_ids: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Upcoming events without prices (doesn't count against the odds quota)."""
        params = {"eventIds": ",".join(event_ids)} if event_ids else {}
        return await self._request(f"sports/{self.sport_key}/events", params)

    async def get_scores(self, days_from: int = 1) -> List[Dict[str, Any]]:
        # The API only looks back up to three days
        params = {"daysFrom": max(1, min(days_from, 3))}
        return await self._request(f"sports/{self.sport_key}/scores", params)

    # ==================== USAGE ====================

    def to_market_line(self, event: Dict[str, Any]) -> Optional[MarketLine]:
        return to_market_line(event, self.sport)

    def get_api_usage(self) -> Dict[str, Any]:
        """Request quota as reported by the last response."""
        return {
            "remaining_requests": self.remaining_requests,
            "used_requests": self.used_requests
        }


def get_odds_client(sport: Union[Sport, str] = Sport.NBA) -> OddsAPIClient:
    return OddsAPIClient(sport)
