"""
ESPN Client

Scoreboards, team records, schedules, injuries and head-to-head history
from ESPN's public site and core APIs (NBA and NFL).
"""

import asyncio
import httpx
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Union

from services.betting_stats import InjuryEntry, InjuryStatus, RecentGameResult
from services.predictor import HeadToHead
from services.sports import Sport, to_sport

logger = logging.getLogger(__name__)


class ESPNClientError(Exception):
    """Custom exception for ESPN client errors."""
    pass


SPORT_PATHS = {
    Sport.NBA: "basketball/nba",
    Sport.NFL: "football/nfl",
}

# ESPN site API team ids
NBA_TEAM_IDS = {
    "atlanta hawks": "1", "hawks": "1",
    "boston celtics": "2", "celtics": "2",
    "brooklyn nets": "17", "nets": "17",
    "charlotte hornets": "30", "hornets": "30",
    "chicago bulls": "4", "bulls": "4",
    "cleveland cavaliers": "5", "cavaliers": "5", "cavs": "5",
    "dallas mavericks": "6", "mavericks": "6", "mavs": "6",
    "denver nuggets": "7", "nuggets": "7",
    "detroit pistons": "8", "pistons": "8",
    "golden state warriors": "9", "warriors": "9",
    "houston rockets": "10", "rockets": "10",
    "indiana pacers": "11", "pacers": "11",
    "la clippers": "12", "los angeles clippers": "12", "clippers": "12",
    "los angeles lakers": "13", "la lakers": "13", "lakers": "13",
    "memphis grizzlies": "29", "grizzlies": "29",
    "miami heat": "14", "heat": "14",
    "milwaukee bucks": "15", "bucks": "15",
    "minnesota timberwolves": "16", "timberwolves": "16", "wolves": "16",
    "new orleans pelicans": "3", "pelicans": "3",
    "new york knicks": "18", "knicks": "18",
    "oklahoma city thunder": "25", "thunder": "25", "okc thunder": "25",
    "orlando magic": "19", "magic": "19",
    "philadelphia 76ers": "20", "76ers": "20", "sixers": "20",
    "phoenix suns": "21", "suns": "21",
    "portland trail blazers": "22", "trail blazers": "22", "blazers": "22",
    "sacramento kings": "23", "kings": "23",
    "san antonio spurs": "24", "spurs": "24",
    "toronto raptors": "28", "raptors": "28",
    "utah jazz": "26", "jazz": "26",
    "washington wizards": "27", "wizards": "27",
}

NFL_TEAM_IDS = {
    "arizona cardinals": "22", "cardinals": "22",
    "atlanta falcons": "1", "falcons": "1",
    "baltimore ravens": "33", "ravens": "33",
    "buffalo bills": "2", "bills": "2",
    "carolina panthers": "29", "panthers": "29",
    "chicago bears": "3", "bears": "3",
    "cincinnati bengals": "4", "bengals": "4",
    "cleveland browns": "5", "browns": "5",
    "dallas cowboys": "6", "cowboys": "6",
    "denver broncos": "7", "broncos": "7",
    "detroit lions": "8", "lions": "8",
    "green bay packers": "9", "packers": "9",
    "houston texans": "34", "texans": "34",
    "indianapolis colts": "11", "colts": "11",
    "jacksonville jaguars": "30", "jaguars": "30",
    "kansas city chiefs": "12", "chiefs": "12",
    "las vegas raiders": "13", "raiders": "13",
    "los angeles chargers": "24", "la chargers": "24", "chargers": "24",
    "los angeles rams": "14", "la rams": "14", "rams": "14",
    "miami dolphins": "15", "dolphins": "15",
    "minnesota vikings": "16", "vikings": "16",
    "new england patriots": "17", "patriots": "17",
    "new orleans saints": "18", "saints": "18",
    "new york giants": "19", "giants": "19", "ny giants": "19",
    "new york jets": "20", "jets": "20", "ny jets": "20",
    "philadelphia eagles": "21", "eagles": "21",
    "pittsburgh steelers": "23", "steelers": "23",
    "san francisco 49ers": "25", "49ers": "25", "niners": "25",
    "seattle seahawks": "26", "seahawks": "26",
    "tampa bay buccaneers": "27", "buccaneers": "27", "bucs": "27",
    "tennessee titans": "10", "titans": "10",
    "washington commanders": "28", "commanders": "28",
}

TEAM_IDS = {
    Sport.NBA: NBA_TEAM_IDS,
    Sport.NFL: NFL_TEAM_IDS,
}


# ==================== DATA TYPES ====================

@dataclass(frozen=True)
class ESPNTeam:
    id: str
    name: str
    abbreviation: str = ""
    record: str = ""


@dataclass(frozen=True)
class ScheduledGame:
    """A game on the scoreboard."""
    id: str
    date: datetime
    status: str               # e.g. "STATUS_SCHEDULED", "STATUS_FINAL"
    completed: bool
    home: ESPNTeam
    away: ESPNTeam
    home_score: int = 0
    away_score: int = 0
    venue: Optional[str] = None
    broadcast: Optional[str] = None


@dataclass(frozen=True)
class TeamSeasonStats:
    """Season record and scoring averages for a team."""
    team_id: str
    name: str
    abbreviation: str
    record: str
    home_record: str
    away_record: str
    points_per_game: float
    points_allowed_per_game: float
    point_differential: float


# ==================== PARSING ====================

def parse_espn_date(value: str) -> datetime:
    """Parse ESPN timestamps like "2025-01-15T00:30Z" into aware datetimes."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _parse_score(score: Any) -> int:
    """Scores come as plain strings or as {"value", "displayValue"} objects."""
    if isinstance(score, dict):
        score = score.get("displayValue", score.get("value"))
    try:
        return int(float(score))
    except (TypeError, ValueError):
        return 0


def _parse_team(competitor: Dict[str, Any]) -> ESPNTeam:
    team = competitor.get("team", {})
    records = competitor.get("records") or [{}]
    return ESPNTeam(
        id=str(team.get("id", "")),
        name=team.get("displayName", "Unknown"),
        abbreviation=team.get("abbreviation", ""),
        record=records[0].get("summary", ""),
    )


def parse_scoreboard(data: Dict[str, Any]) -> List[ScheduledGame]:
    """Parse a site API scoreboard response."""
    games = []
    for event in data.get("events", []):
        competition = event.get("competitions", [{}])[0]
        competitors = competition.get("competitors", [])
        home = next((c for c in competitors if c.get("homeAway") == "home"), None)
        away = next((c for c in competitors if c.get("homeAway") == "away"), None)
        if home is None or away is None:
            logger.debug(f"Skipping event {event.get('id')} without home/away competitors")
            continue

        status_type = event.get("status", {}).get("type", {})
        broadcasts = competition.get("broadcasts") or [{}]
        broadcast_names = broadcasts[0].get("names") or [None]

        games.append(ScheduledGame(
            id=str(event.get("id", "")),
            date=parse_espn_date(event["date"]),
            status=status_type.get("name", ""),
            completed=bool(status_type.get("completed", False)),
            home=_parse_team(home),
            away=_parse_team(away),
            home_score=_parse_score(home.get("score")),
            away_score=_parse_score(away.get("score")),
            venue=competition.get("venue", {}).get("fullName"),
            broadcast=broadcast_names[0],
        ))
    return games


def _record_wins_losses(summary: str) -> int:
    parts = (summary or "0-0").split("-")
    total = 0
    for part in parts[:2]:
        try:
            total += int(part)
        except ValueError:
            pass
    return total


def parse_team_stats(data: Dict[str, Any]) -> Optional[TeamSeasonStats]:
    """Parse a site API team response into season scoring stats."""
    team = data.get("team")
    if not team:
        return None

    records = team.get("record", {}).get("items", [])
    overall = next((r for r in records if r.get("type") == "total"), records[0] if records else {})
    home = next((r for r in records if r.get("type") == "home"), {})
    away = next((r for r in records if r.get("type") in ("road", "away")), {})

    stats = {s.get("name"): s.get("value") or 0 for s in overall.get("stats", [])}
    games_played = max(_record_wins_losses(overall.get("summary")), 1)

    ppg = stats.get("avgPointsFor") or stats.get("pointsFor", 0) / games_played
    oppg = stats.get("avgPointsAgainst") or stats.get("pointsAgainst", 0) / games_played
    diff = stats.get("pointDifferential") or (stats.get("pointsFor", 0) - stats.get("pointsAgainst", 0))

    return TeamSeasonStats(
        team_id=str(team.get("id", "")),
        name=team.get("displayName", "Unknown"),
        abbreviation=team.get("abbreviation", ""),
        record=overall.get("summary", "0-0"),
        home_record=home.get("summary", "-"),
        away_record=away.get("summary", "-"),
        points_per_game=float(ppg),
        points_allowed_per_game=float(oppg),
        point_differential=float(diff),
    )


def parse_recent_games(data: Dict[str, Any], team_id: str, limit: int = 10) -> List[RecentGameResult]:
    """
    Completed games from a team schedule response, most recent first.

    Args:
        data: Site API schedule response
        team_id: ESPN id of the team whose point of view to take
        limit: Number of games to keep
    """
    team_id = str(team_id)
    completed = [
        e for e in data.get("events", [])
        if e.get("competitions", [{}])[0].get("status", {}).get("type", {}).get("completed")
    ]

    games = []
    for event in reversed(completed[-limit:] if limit > 0 else []):
        competitors = event["competitions"][0].get("competitors", [])
        team = next((c for c in competitors if str(c.get("team", {}).get("id")) == team_id), None)
        opponent = next((c for c in competitors if str(c.get("team", {}).get("id")) != team_id), None)
        if team is None or opponent is None:
            continue

        games.append(RecentGameResult(
            date=parse_espn_date(event["date"]),
            team_score=_parse_score(team.get("score")),
            opponent_score=_parse_score(opponent.get("score")),
            is_home=team.get("homeAway") == "home",
            opponent=opponent.get("team", {}).get("displayName", "Unknown"),
            opponent_id=str(opponent.get("team", {}).get("id", "")),
        ))
    return games


def parse_injury(injury: Dict[str, Any], athlete: Optional[Dict[str, Any]] = None) -> InjuryEntry:
    """Build an injury entry from core API injury and athlete documents."""
    athlete = athlete or {}
    position = athlete.get("position") or {}
    status_text = injury.get("status") or injury.get("type", {}).get("description", "")
    return InjuryEntry(
        player_name=athlete.get("displayName") or athlete.get("fullName") or "Unknown",
        position=position.get("abbreviation") or position.get("name") or "",
        status=InjuryStatus.normalize(status_text),
    )


def head_to_head_from_games(away_games: List[RecentGameResult], home_id: str) -> HeadToHead:
    """H2H from the away team's recent games against the home team."""
    meetings = [g for g in away_games if g.opponent_id == str(home_id)]
    away_wins = sum(1 for g in meetings if g.result == "W")
    average_margin = sum(g.margin for g in meetings) / len(meetings) if meetings else 0.0
    return HeadToHead(
        away_wins=away_wins,
        home_wins=len(meetings) - away_wins,
        average_margin=average_margin,
    )


def find_team_id_by_name(sport: Union[Sport, str], name: str) -> Optional[str]:
    """ESPN team id for a full name or nickname ("Boston Celtics", "celtics")."""
    return TEAM_IDS[to_sport(sport)].get(name.lower().strip())


# ==================== CLIENT ====================

class ESPNClient:
    """Client for ESPN's public sports APIs."""

    SITE_URL = "https://site.api.espn.com/apis/site/v2/sports"
    CORE_URL = "https://sports.core.api.espn.com/v2/sports"

    MAX_INJURIES = 10
    HEAD_TO_HEAD_GAMES = 50

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    async def _request(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET a JSON document from ESPN."""
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(url, params=params, timeout=30.0)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            raise ESPNClientError(f"ESPN request failed for {url}: {e}") from e

    def _site_url(self, sport: Union[Sport, str], path: str) -> str:
        return f"{self.SITE_URL}/{SPORT_PATHS[to_sport(sport)]}/{path}"

    # ==================== SCOREBOARD ====================

    async def get_scoreboard(self, sport: Union[Sport, str], date: Optional[str] = None) -> List[ScheduledGame]:
        """
        Get games on the scoreboard.

        Args:
            sport: "nba" or "nfl"
            date: Optional date (YYYYMMDD). Defaults to today.
        """
        params = {"dates": date} if date else None
        data = await self._request(self._site_url(sport, "scoreboard"), params)
        return parse_scoreboard(data)

    # ==================== TEAMS ====================

    async def get_team_stats(self, sport: Union[Sport, str], team_id: str) -> Optional[TeamSeasonStats]:
        data = await self._request(self._site_url(sport, f"teams/{team_id}"))
        return parse_team_stats(data)

    async def get_recent_games(
        self,
        sport: Union[Sport, str],
        team_id: str,
        limit: int = 10,
    ) -> List[RecentGameResult]:
        data = await self._request(self._site_url(sport, f"teams/{team_id}/schedule"))
        return parse_recent_games(data, team_id, limit)

    async def get_head_to_head(self, sport: Union[Sport, str], home_id: str, away_id: str) -> HeadToHead:
        away_games = await self.get_recent_games(sport, away_id, self.HEAD_TO_HEAD_GAMES)
        return head_to_head_from_games(away_games, home_id)

    def find_team_id_by_name(self, sport: Union[Sport, str], name: str) -> Optional[str]:
        return find_team_id_by_name(sport, name)

    # ==================== INJURIES ====================

    async def _get_injury(self, ref: str) -> Optional[InjuryEntry]:
        try:
            injury = await self._request(ref)
        except ESPNClientError as e:
            logger.debug(f"Skipping injury {ref}: {e}")
            return None

        athlete = None
        athlete_ref = injury.get("athlete", {}).get("$ref")
        if athlete_ref:
            try:
                athlete = await self._request(athlete_ref)
            except ESPNClientError as e:
                logger.debug(f"Athlete lookup failed for {athlete_ref}: {e}")

        return parse_injury(injury, athlete)

    async def get_team_injuries(self, sport: Union[Sport, str], team_id: str) -> List[InjuryEntry]:
        """
        Current injury report for a team.

        The core API lists $ref links; the first few are resolved in
        parallel. Entries that fail to resolve are skipped.
        """
        sport = to_sport(sport)
        sport_path, league = SPORT_PATHS[sport].split("/")
        url = f"{self.CORE_URL}/{sport_path}/leagues/{league}/teams/{team_id}/injuries"

        data = await self._request(url)
        refs = [item["$ref"] for item in data.get("items", [])[:self.MAX_INJURIES] if "$ref" in item]
        if not refs:
            return []

        injuries = await asyncio.gather(*(self._get_injury(ref) for ref in refs))
        return [i for i in injuries if i is not None]


# Factory function
def get_espn_client() -> ESPNClient:
    """Get an ESPN client instance."""
    return ESPNClient()
